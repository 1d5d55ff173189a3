"""
Core provider engine.

The `GPlayMusicProvider` resolves, searches and stores songs for the host;
the `StationSuggester` drives radio-based recommendations on top of it.
"""

from .provider import GPlayMusicProvider
from .recently_played import RecentlyPlayedWindow
from .suggester import StationSuggester, SuggesterState

__all__ = [
    "GPlayMusicProvider",
    "RecentlyPlayedWindow",
    "StationSuggester",
    "SuggesterState",
]
