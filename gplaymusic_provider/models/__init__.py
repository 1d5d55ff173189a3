"""
Data Models Layer.

This package contains the catalog records (tracks and songs) and the
Pydantic model that validates the provider configuration.
"""

from .config import ProviderConfig, StreamQuality
from .track import Song, Track

__all__ = ["ProviderConfig", "Song", "StreamQuality", "Track"]
