"""
Storage Layer.

This package handles loading the node configuration from its environment.
"""

from .config_manager import ConfigManager

__all__ = ["ConfigManager"]
