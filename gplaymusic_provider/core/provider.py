"""
The host-facing provider: song lookup, search and local song files.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import aiohttp

from gplaymusic_provider.api.auth import SessionManager
from gplaymusic_provider.api.base import CatalogClient
from gplaymusic_provider.api.client import GPlayMusicAPIClient
from gplaymusic_provider.exceptions import (
    GPlayMusicError,
    InitializationError,
    NoSuchTrackError,
)
from gplaymusic_provider.media.downloader import close_connection_pool
from gplaymusic_provider.media.song_loader import SongFileLoader
from gplaymusic_provider.models.config import ProviderConfig, StreamQuality
from gplaymusic_provider.models.track import Song, Track
from gplaymusic_provider.storage.config_manager import ConfigManager
from gplaymusic_provider.storage.song_cache import RemovalCause, TrackCache

log = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Hit and miss counters of the song cache."""

    hits: int = 0
    misses: int = 0

    def record(self, hit: bool) -> None:
        if hit:
            self.hits += 1
        else:
            self.misses += 1


class GPlayMusicProvider:
    """
    Provides songs from Google Play Music.

    Songs are resolved through a `TrackCache`; evicting a song from the cache
    deletes its downloaded file. All catalog calls go through the session
    manager, which refreshes a rejected token once and retries.
    """

    ID = "gplaymusic"
    NAME = "GPlayMusic"
    DESCRIPTION = "Provides songs from Google Play Music"
    SEARCH_PAGE_SIZE = 30

    def __init__(
        self,
        config: ProviderConfig,
        config_manager: Optional[ConfigManager] = None,
        client: Optional[CatalogClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.config_manager = config_manager
        self._client = client or GPlayMusicAPIClient()
        self._clock = clock
        self.session = SessionManager(self._client, config, config_manager, clock=clock)
        self.loader = SongFileLoader(config.songs_path, self._client, self.session)
        self.cache_stats = CacheStats()
        self._cache: Optional[TrackCache] = None

    @property
    def api(self) -> CatalogClient:
        """The authenticated catalog client."""
        return self._client

    @property
    def cache(self) -> TrackCache:
        if self._cache is None:
            raise InitializationError("Provider has not been initialized.")
        return self._cache

    async def initialize(self) -> None:
        """
        Prepares the song directory and the cache, then logs in.

        Raises:
            InitializationError: If the song directory cannot be created or the
            login fails.
        """
        log.debug(f"Using song directory '{self.loader.song_dir}'.")
        try:
            await asyncio.to_thread(
                self.loader.song_dir.mkdir, parents=True, exist_ok=True
            )
        except OSError as e:
            raise InitializationError("Unable to create song directory") from e
        await asyncio.to_thread(self.loader.cleanup_temp_files)

        self._cache = TrackCache(
            self._load_song,
            expire_after_access=self.config.cache_time_seconds,
            on_evict=self._on_song_evicted,
            stats_callback=self.cache_stats.record,
            clock=self._clock,
        )

        log.info("Logging into Google Play Music...")
        await self.session.ensure_authenticated()

    def song_from_track(self, track: Track) -> Song:
        return Song.from_track(track, provider_id=self.ID)

    async def get_track(self, track_id: str) -> Track:
        """Fetches a track from the catalog, with one token refresh on 401."""
        return await self.session.run_authorized(
            lambda: self._client.get_track(track_id)
        )

    async def lookup(self, track_id: str) -> Song:
        """
        Returns the song for a track id.

        Raises:
            NoSuchTrackError: If the track cannot be fetched.
        """
        try:
            return await self.cache.get(track_id)
        except Exception as e:
            raise NoSuchTrackError(track_id, str(e)) from e

    async def search(self, query: str, offset: int = 0) -> List[Song]:
        """
        Searches the catalog and returns one page of songs starting at `offset`.

        Up to two pages are retrieved. Every result is put into the cache, so
        a later lookup of a search result needs no remote call. Failures are
        logged and yield an empty list.
        """
        offset = max(0, offset)
        limit = self.SEARCH_PAGE_SIZE if offset < 20 else 2 * self.SEARCH_PAGE_SIZE
        try:
            tracks = await self.session.run_authorized(
                lambda: self._client.search_tracks(query, limit)
            )
        except (GPlayMusicError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.warning(f"Exception while searching with query '{query}': {e}")
            return []

        songs = [self.song_from_track(track) for track in tracks]
        for song in songs:
            await self.cache.put(song)
        return songs[offset : offset + self.SEARCH_PAGE_SIZE]

    async def ensure_local(
        self, song: Song, quality: Optional[StreamQuality] = None
    ) -> Path:
        """
        Returns the path of the song's audio file, downloading it if needed.

        Raises:
            SongLoadError: If the file could not be downloaded.
        """
        track = Track(
            id=song.id,
            title=song.title,
            artist=song.description,
            duration=song.duration,
            album_art_url=song.album_art_url,
        )
        return await self.loader.ensure_local(track, quality or self.config.quality)

    async def close(self) -> None:
        """Releases network resources; with `purge_on_close`, deletes all songs."""
        log.debug(
            f"Cache stats: {self.cache_stats.hits} hits, "
            f"{self.cache_stats.misses} misses."
        )
        if self.config.purge_on_close:
            if self._cache is not None:
                await self._cache.invalidate_all()
            await asyncio.to_thread(self.loader.purge)
        await self._client.close()
        await close_connection_pool()

    async def _load_song(self, track_id: str) -> Song:
        return self.song_from_track(await self.get_track(track_id))

    def _on_song_evicted(self, track_id: str, song: Song, cause: RemovalCause) -> None:
        self.loader.delete_local(track_id)
