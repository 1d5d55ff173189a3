"""
An in-memory loading cache for songs with time-to-idle expiry, a hard size
limit with LRU eviction, and an eviction listener.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from gplaymusic_provider.models.track import Song

log = logging.getLogger(__name__)


class RemovalCause(Enum):
    """Why an entry left the cache."""

    EXPIRED = "expired"  # Idle for longer than the expiry
    SIZE = "size"  # Least recently used entry made room for a new one
    EXPLICIT = "explicit"  # Removed by invalidate()


EvictionListener = Callable[[str, Song, RemovalCause], None]


@dataclass
class _CacheEntry:
    song: Song
    last_access: float


class TrackCache:
    """
    Maps track ids to their canonical Song.

    Entries expire once they have not been read or written for
    `expire_after_access` seconds, and the cache never holds more than
    `max_size` entries. Misses are loaded through `loader`; concurrent misses
    for the same id share a single in-flight load.

    The eviction listener runs synchronously on the evicting call for expired,
    size-evicted and invalidated entries, but not when `put` overwrites an
    entry. It must not block; its exceptions are logged and swallowed.
    """

    MAX_SIZE = 1024

    def __init__(
        self,
        loader: Callable[[str], Awaitable[Song]],
        expire_after_access: float,
        max_size: int = MAX_SIZE,
        on_evict: EvictionListener | None = None,
        stats_callback: Callable[[bool], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initializes the cache.

        Args:
            loader: Coroutine function resolving a track id to a Song.
            expire_after_access: Idle time in seconds after which an entry expires.
            max_size: Maximum number of live entries.
            on_evict: Listener called with (id, song, cause) for each eviction.
            stats_callback: Optional callback to report cache hits (True) or misses
            (False).
            clock: Monotonic time source, in seconds.
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1.")
        self._loader = loader
        self._expire_after = expire_after_access
        self._max_size = max_size
        self._on_evict = on_evict
        self._stats_callback = stats_callback
        self._clock = clock

        # Ordered by last access, least recently used first
        self._entries: OrderedDict[str, _CacheEntry] = OrderedDict()
        self._pending: dict[str, asyncio.Task] = {}
        # Bumped by invalidate_all so loads started before it are not installed
        self._generation = 0
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        """Membership test that neither refreshes nor expires the entry."""
        entry = self._entries.get(key)
        return entry is not None and not self._is_expired(entry, self._clock())

    async def get(self, key: str) -> Song:
        """
        Returns the song for `key`, loading it on a miss.

        Raises whatever the loader raises; failed loads are not cached.
        """
        async with self._lock:
            now = self._clock()
            self._expire_entries(now)

            entry = self._entries.get(key)
            if entry is not None:
                entry.last_access = now
                self._entries.move_to_end(key)
                self._report(True)
                return entry.song

            self._report(False)
            task = self._pending.get(key)
            if task is None:
                log.debug(f"Adding song with id '{key}' to cache.")
                task = asyncio.create_task(self._load(key, self._generation))
                self._pending[key] = task

        # Shielded so a cancelled waiter does not abort the load for the others
        return await asyncio.shield(task)

    async def put(self, song: Song) -> None:
        """Installs `song` as the canonical entry for its id."""
        async with self._lock:
            now = self._clock()
            self._expire_entries(now)
            self._install(song, now)

    async def invalidate(self, key: str) -> None:
        async with self._lock:
            entry = self._entries.pop(key, None)
            if entry is not None:
                self._notify(key, entry.song, RemovalCause.EXPLICIT)

    async def invalidate_all(self) -> None:
        """
        Removes every entry, notifying the listener for each.

        Loads still in flight complete for their callers but are not cached.
        """
        async with self._lock:
            self._generation += 1
            self._pending.clear()
            while self._entries:
                key, entry = self._entries.popitem(last=False)
                self._notify(key, entry.song, RemovalCause.EXPLICIT)

    async def cleanup(self) -> int:
        """Evicts all expired entries now and returns how many were removed."""
        async with self._lock:
            return self._expire_entries(self._clock())

    async def _load(self, key: str, generation: int) -> Song:
        task = asyncio.current_task()
        try:
            song = await self._loader(key)
            async with self._lock:
                if generation != self._generation:
                    log.debug(f"Discarding song '{key}' loaded before a cache clear.")
                    return song
                now = self._clock()
                self._expire_entries(now)
                self._install(song, now, key)
            return song
        finally:
            if self._pending.get(key) is task:
                del self._pending[key]

    def _install(self, song: Song, now: float, key: str | None = None) -> None:
        key = key or song.id
        entry = self._entries.get(key)
        if entry is not None:
            # Overwrite keeps the file on disk, so no eviction is reported
            entry.song = song
            entry.last_access = now
            self._entries.move_to_end(key)
            return

        while len(self._entries) >= self._max_size:
            old_key, old_entry = self._entries.popitem(last=False)
            self._notify(old_key, old_entry.song, RemovalCause.SIZE)

        self._entries[key] = _CacheEntry(song=song, last_access=now)

    def _is_expired(self, entry: _CacheEntry, now: float) -> bool:
        return now - entry.last_access >= self._expire_after

    def _expire_entries(self, now: float) -> int:
        removed = 0
        # Access order means expired entries are always at the front
        while self._entries:
            key, entry = next(iter(self._entries.items()))
            if not self._is_expired(entry, now):
                break
            del self._entries[key]
            self._notify(key, entry.song, RemovalCause.EXPIRED)
            removed += 1
        return removed

    def _notify(self, key: str, song: Song, cause: RemovalCause) -> None:
        log.debug(f"Removing song with id '{key}' from cache ({cause.value}).")
        if self._on_evict is None:
            return
        try:
            self._on_evict(key, song, cause)
        except Exception as e:
            log.warning(f"Eviction listener failed for song '{key}': {e}")

    def _report(self, hit: bool) -> None:
        if self._stats_callback:
            self._stats_callback(hit)
