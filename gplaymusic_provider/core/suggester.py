"""
Suggests songs from a radio station seeded on the last played song.
"""

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

import aiohttp

from gplaymusic_provider.exceptions import (
    ConfigurationError,
    GPlayMusicError,
    InitializationError,
    NoSuchTrackError,
    StationCreateError,
    SuggesterStateError,
)
from gplaymusic_provider.models.track import Song

from .recently_played import RecentlyPlayedWindow

if TYPE_CHECKING:
    from gplaymusic_provider.api.base import CatalogClient, Station
    from gplaymusic_provider.storage.config_manager import ConfigManager

    from .provider import GPlayMusicProvider

log = logging.getLogger(__name__)

NETWORK_ERRORS = (GPlayMusicError, aiohttp.ClientError, asyncio.TimeoutError)


class SuggesterState(Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    CLOSED = "closed"


class StationSuggester:
    """
    Suggests songs from a station based on the last played song.

    Suggestions are fetched from the station in batches and buffered. Each
    batch request sends the recently played songs so the station can avoid
    repeating them. When a different song is played, a new station is
    created on it before the old one is deleted, and the buffer is cleared.
    If the station has nothing to offer, the fallback song is suggested.
    """

    NAME = "GPlayMusic DefaultSuggester"
    DESCRIPTION = (
        "Suggest songs from a GPlayMusic station based on the last played song."
    )
    MAX_FETCH_ROUNDS = 10

    def __init__(
        self,
        provider: "GPlayMusicProvider",
        client_accessor: Callable[[], "CatalogClient"],
        fallback_song_id: str,
        base_song_id: Optional[str] = None,
        config_manager: Optional["ConfigManager"] = None,
    ):
        """
        Initializes the suggester.

        Args:
            provider: Provider used to resolve ids to songs and tracks.
            client_accessor: Returns the authenticated catalog client.
            fallback_song_id: Song suggested when the station yields nothing.
            base_song_id: Seed of the previous run, if any.
            config_manager: Store used to persist the current seed.
        """
        self._provider = provider
        self._client_accessor = client_accessor
        self._fallback_song_id = fallback_song_id
        self._base_song_id = base_song_id or None
        self._config_manager = config_manager

        self.state = SuggesterState.UNINITIALIZED
        self._recently_played = RecentlyPlayedWindow()
        self._suggestions: List[Song] = []
        self._station: Optional["Station"] = None
        self._seed_id: Optional[str] = None
        self._base_song: Optional[Song] = None
        self._fallback_song: Optional[Song] = None
        self._lock = asyncio.Lock()

    @property
    def subject(self) -> str:
        if self._base_song is not None:
            return f"Based on {self._base_song.title}"
        return self.NAME

    @property
    def seed_id(self) -> Optional[str]:
        return self._seed_id

    @property
    def recently_played(self) -> RecentlyPlayedWindow:
        return self._recently_played

    async def initialize(self) -> None:
        """
        Resolves the fallback song and creates the first station.

        Raises:
            InitializationError: If the fallback song cannot be found or no
            station can be created.
        """
        if self.state is not SuggesterState.UNINITIALIZED:
            raise SuggesterStateError(f"Suggester is already {self.state.value}.")

        try:
            self._fallback_song = await self._provider.lookup(self._fallback_song_id)
        except NoSuchTrackError as e:
            raise InitializationError("Could not find fallback song") from e

        seed = self._fallback_song
        if self._base_song_id and self._base_song_id != self._fallback_song_id:
            try:
                seed = await self._provider.lookup(self._base_song_id)
            except NoSuchTrackError as e:
                log.warning(f"Previous base song is gone, using fallback: {e}")

        async with self._lock:
            try:
                await self._create_station(seed)
            except StationCreateError as e:
                raise InitializationError(
                    f"Unable to create Station on song {seed.id}"
                ) from e
            self.state = SuggesterState.ACTIVE
        log.info(f"Suggester ready. {self.subject}.")

    async def suggest_next(self) -> Song:
        """
        Returns the next suggestion and records it as recently played.

        Falls back to the fallback song if the station yields nothing.
        """
        async with self._lock:
            self._check_active()
            suggestions = await self._fill(1)
            next_song = suggestions[0] if suggestions else self._fallback_song
            self._handle_recently_played(next_song)
            return next_song

    async def get_next_suggestions(self, max_length: int) -> List[Song]:
        """Returns up to `max_length` upcoming suggestions without consuming them."""
        async with self._lock:
            self._check_active()
            return await self._fill(max_length)

    async def notify_played(self, song: Song) -> None:
        """Records a played song and re-seeds the station on it."""
        async with self._lock:
            self._check_active()
            self._handle_recently_played(song)
            try:
                await self._create_station(song)
            except StationCreateError as e:
                log.error(f"{e}. Using old station.")

    async def remove_suggestion(self, song: Song) -> None:
        """
        Handles a disliked suggestion.

        The station API has no negative feedback, so the song is recorded as
        recently played, which keeps the station from suggesting it again.
        """
        async with self._lock:
            self._check_active()
            self._handle_recently_played(song)

    async def close(self) -> None:
        """Deletes the current station. Failures are logged."""
        async with self._lock:
            if self.state is SuggesterState.CLOSED:
                return
            self.state = SuggesterState.CLOSED
            station, self._station = self._station, None
            if station is not None:
                await self._delete_station(station)

    async def _fill(self, max_length: int) -> List[Song]:
        """Fetches station batches until `max_length` songs are buffered."""
        if max_length <= 0:
            return []

        rounds = 0
        while len(self._suggestions) < max_length and rounds < self.MAX_FETCH_ROUNDS:
            rounds += 1
            try:
                tracks = await self._station.get_tracks(
                    self._recently_played.as_track_stubs(), True, True
                )
            except NETWORK_ERRORS as e:
                log.error(f"Exception while fetching station songs: {e}")
                break

            buffered = {song.id for song in self._suggestions}
            added = 0
            for track in tracks:
                if track.id in buffered:
                    continue
                buffered.add(track.id)
                self._suggestions.append(self._provider.song_from_track(track))
                added += 1
            if added == 0:
                log.debug("Station returned no new songs.")
                break

        return list(self._suggestions[:max_length])

    async def _create_station(self, song: Song) -> None:
        """
        Seeds a new station on `song` unless it is the current seed.

        The new station is created before the old one is deleted.

        Raises:
            StationCreateError: If the station could not be created. The old
            station then stays in use.
        """
        if song.id == self._seed_id:
            return

        client = self._client_accessor()
        try:
            seed_track = await self._provider.get_track(song.id)
            station = await self._provider.session.run_authorized(
                lambda: client.create_station(
                    seed_track, f"Station on {song.title}", False
                )
            )
        except NETWORK_ERRORS as e:
            raise StationCreateError(
                f"Error while creating station on key {song.id}: {e}"
            ) from e

        old_station = self._station
        self._station = station
        self._seed_id = song.id
        self._base_song = song
        self._suggestions.clear()
        self._persist_base_song(song.id)
        log.debug(f"Station seeded on '{song.title}' ({song.id}).")

        if old_station is not None:
            await self._delete_station(old_station)

    async def _delete_station(self, station: "Station") -> None:
        try:
            await station.delete()
        except NETWORK_ERRORS as e:
            log.warning(f"Could not delete station {station.id}: {e}")

    def _handle_recently_played(self, song: Song) -> None:
        self._recently_played.add(song)
        if song in self._suggestions:
            self._suggestions.remove(song)

    def _persist_base_song(self, song_id: str) -> None:
        if self._config_manager is None:
            return
        try:
            self._config_manager.update_values(base_song_id=song_id)
        except ConfigurationError as e:
            log.warning(f"Could not persist base song: {e}")

    def _check_active(self) -> None:
        if self.state is not SuggesterState.ACTIVE:
            raise SuggesterStateError(f"Suggester is {self.state.value}.")
