"""
Storage Layer.

This package handles all state the provider keeps: the configuration file
(including the persisted token) and the in-memory song cache.
"""

from .config_manager import ConfigManager
from .song_cache import RemovalCause, TrackCache

__all__ = ["ConfigManager", "RemovalCause", "TrackCache"]
