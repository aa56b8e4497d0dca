"""
Storage Layer.

This package holds the per-session resolution cache and the configuration file
handling.
"""

from .cache import ResolutionCache
from .config_manager import ConfigManager

__all__ = ["ConfigManager", "ResolutionCache"]
