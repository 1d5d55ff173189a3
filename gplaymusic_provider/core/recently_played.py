"""
A bounded, de-duplicated window of recently played songs.
"""

from collections import OrderedDict
from typing import Iterator, List

from gplaymusic_provider.models.track import Song, Track


class RecentlyPlayedWindow:
    """
    Remembers the last `max_size` distinct songs, oldest first.

    Adding a song whose id is already in the window is a no-op; when the
    window is full, the oldest song is dropped.
    """

    MAX_SIZE = 200

    def __init__(self, max_size: int = MAX_SIZE):
        self.max_size = max_size
        self._songs: OrderedDict[str, Song] = OrderedDict()

    def __len__(self) -> int:
        return len(self._songs)

    def __contains__(self, song: Song) -> bool:
        return song.id in self._songs

    def __iter__(self) -> Iterator[Song]:
        return iter(list(self._songs.values()))

    def add(self, song: Song) -> bool:
        """Records a song. Returns False if it was already in the window."""
        if song.id in self._songs:
            return False
        self._songs[song.id] = song
        while len(self._songs) > self.max_size:
            self._songs.popitem(last=False)
        return True

    def as_track_stubs(self) -> List[Track]:
        """The window as id-only tracks, as sent to a station for context."""
        return [Track.stub(song_id) for song_id in self._songs]
