"""
Storage Layer.

This package handles configuration persistence: reading, migrating and
writing the listener's INI file.
"""

from .config_manager import ConfigManager

__all__ = ["ConfigManager"]
