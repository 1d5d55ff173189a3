"""
Catalog API Layer.

This package handles all communication with the remote catalog service and
owns the session token used to authorize it.
"""

from .auth import SessionManager
from .base import CatalogClient, Station
from .client import GPlayMusicAPIClient, RadioStation

__all__ = [
    "CatalogClient",
    "GPlayMusicAPIClient",
    "RadioStation",
    "SessionManager",
    "Station",
]
