"""
Audio extraction worker node.
"""

__version__ = "0.1.0"
