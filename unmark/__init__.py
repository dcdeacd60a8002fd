"""
Unmark

Detect, add and remove the corner logo overlay of AI-generated images by
reversing its alpha blend.
"""

__version__ = "0.2.0"
