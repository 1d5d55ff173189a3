"""
Media Layer.

This package is responsible for getting audio onto local storage: the
low-level HTTP downloader and the atomic song file loader.
"""

from .downloader import Downloader
from .song_loader import SongFileLoader

__all__ = ["Downloader", "SongFileLoader"]
