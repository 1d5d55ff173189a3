"""Tests for TrackCache.

Covers load collapsing, idle expiry, LRU size eviction and the eviction
listener contract.
"""

import asyncio

import pytest

from gplaymusic_provider.exceptions import GPlayMusicError
from gplaymusic_provider.models.track import Song
from gplaymusic_provider.storage.song_cache import RemovalCause, TrackCache

from .conftest import FakeClock

MINUTE = 60.0


class RecordingLoader:
    """Loader that counts calls per id and can fail on demand."""

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.calls: list[str] = []
        self.failures: set[str] = set()

    async def __call__(self, key: str) -> Song:
        self.calls.append(key)
        if self.delay:
            await asyncio.sleep(self.delay)
        if key in self.failures:
            self.failures.discard(key)
            raise GPlayMusicError(f"Could not load '{key}'.")
        return Song(id=key, title=f"Title {key}")


def make_cache(loader, clock, max_size=1024, events=None):
    def listener(key, song, cause):
        if events is not None:
            events.append((key, cause))

    return TrackCache(
        loader,
        expire_after_access=MINUTE,
        max_size=max_size,
        on_evict=listener,
        clock=clock,
    )


class TestLoading:
    """Test loading on misses."""

    @pytest.mark.asyncio
    async def test_miss_loads_and_hit_does_not(self) -> None:
        """A second get for the same id is served from the cache."""
        loader = RecordingLoader()
        cache = make_cache(loader, FakeClock())

        first = await cache.get("T1")
        second = await cache.get("T1")

        assert first is second
        assert loader.calls == ["T1"]

    @pytest.mark.asyncio
    async def test_concurrent_misses_share_one_load(self) -> None:
        """Concurrent gets for one id trigger a single remote fetch."""
        loader = RecordingLoader(delay=0.01)
        cache = make_cache(loader, FakeClock())

        songs = await asyncio.gather(*(cache.get("T1") for _ in range(5)))

        assert loader.calls == ["T1"]
        assert all(song is songs[0] for song in songs)

    @pytest.mark.asyncio
    async def test_failed_load_is_not_cached(self) -> None:
        """A loader failure reaches the caller and the next get retries."""
        loader = RecordingLoader()
        loader.failures.add("T1")
        cache = make_cache(loader, FakeClock())

        with pytest.raises(GPlayMusicError):
            await cache.get("T1")
        assert "T1" not in cache

        song = await cache.get("T1")

        assert song.id == "T1"
        assert loader.calls == ["T1", "T1"]

    @pytest.mark.asyncio
    async def test_stats_callback_reports_hits_and_misses(self) -> None:
        """Each get reports exactly one hit or miss."""
        reports = []
        cache = TrackCache(
            RecordingLoader(),
            expire_after_access=MINUTE,
            stats_callback=reports.append,
            clock=FakeClock(),
        )

        await cache.get("T1")
        await cache.get("T1")

        assert reports == [False, True]


class TestExpiry:
    """Test time-to-idle expiry."""

    @pytest.mark.asyncio
    async def test_idle_entry_is_reloaded_after_expiry(self) -> None:
        """An entry idle past the expiry is evicted and fetched again."""
        clock = FakeClock()
        loader = RecordingLoader()
        events = []
        cache = make_cache(loader, clock, events=events)

        await cache.get("T1")
        clock.advance(MINUTE + 1)
        await cache.get("T1")

        assert loader.calls == ["T1", "T1"]
        assert events == [("T1", RemovalCause.EXPIRED)]

    @pytest.mark.asyncio
    async def test_access_resets_idle_time(self) -> None:
        """Reading an entry keeps it alive."""
        clock = FakeClock()
        loader = RecordingLoader()
        cache = make_cache(loader, clock)

        await cache.get("T1")
        clock.advance(MINUTE - 1)
        await cache.get("T1")
        clock.advance(MINUTE - 1)
        await cache.get("T1")

        assert loader.calls == ["T1"]

    @pytest.mark.asyncio
    async def test_cleanup_evicts_expired_entries(self) -> None:
        """cleanup() removes expired entries without a read."""
        clock = FakeClock()
        events = []
        cache = make_cache(RecordingLoader(), clock, events=events)
        await cache.put(Song(id="T1"))
        await cache.put(Song(id="T2"))

        clock.advance(MINUTE)

        assert await cache.cleanup() == 2
        assert len(cache) == 0
        assert {key for key, _ in events} == {"T1", "T2"}


class TestSizeEviction:
    """Test the size limit."""

    @pytest.mark.asyncio
    async def test_least_recently_used_is_evicted(self) -> None:
        """With A and B cached and A read again, loading C evicts B."""
        clock = FakeClock()
        loader = RecordingLoader()
        events = []
        cache = make_cache(loader, clock, max_size=2, events=events)

        await cache.get("A")
        clock.advance(1)
        await cache.get("B")
        clock.advance(1)
        await cache.get("A")
        clock.advance(1)
        await cache.get("C")

        assert events == [("B", RemovalCause.SIZE)]
        assert "A" in cache
        assert "B" not in cache
        assert "C" in cache

    @pytest.mark.asyncio
    async def test_size_never_exceeds_limit(self) -> None:
        """The cache holds at most max_size entries."""
        cache = make_cache(RecordingLoader(), FakeClock(), max_size=3)

        for i in range(10):
            await cache.get(f"T{i}")

        assert len(cache) == 3

    def test_max_size_must_be_positive(self) -> None:
        """A cache without room is rejected."""
        with pytest.raises(ValueError):
            TrackCache(RecordingLoader(), expire_after_access=MINUTE, max_size=0)


class TestPutAndInvalidate:
    """Test direct writes and removals."""

    @pytest.mark.asyncio
    async def test_put_overwrite_does_not_notify(self) -> None:
        """Replacing an entry keeps the file, so no eviction is reported."""
        loader = RecordingLoader()
        events = []
        cache = make_cache(loader, FakeClock(), events=events)

        await cache.put(Song(id="T1", title="Old"))
        await cache.put(Song(id="T1", title="New"))
        song = await cache.get("T1")

        assert song.title == "New"
        assert events == []
        assert loader.calls == []

    @pytest.mark.asyncio
    async def test_invalidate_notifies_explicit(self) -> None:
        """invalidate() reports EXPLICIT removals."""
        events = []
        cache = make_cache(RecordingLoader(), FakeClock(), events=events)
        await cache.put(Song(id="T1"))

        await cache.invalidate("T1")
        await cache.invalidate("T1")

        assert events == [("T1", RemovalCause.EXPLICIT)]

    @pytest.mark.asyncio
    async def test_invalidate_all(self) -> None:
        """invalidate_all() empties the cache and reports every entry."""
        events = []
        cache = make_cache(RecordingLoader(), FakeClock(), events=events)
        await cache.put(Song(id="T1"))
        await cache.put(Song(id="T2"))

        await cache.invalidate_all()

        assert len(cache) == 0
        assert events == [
            ("T1", RemovalCause.EXPLICIT),
            ("T2", RemovalCause.EXPLICIT),
        ]

    @pytest.mark.asyncio
    async def test_listener_exception_is_swallowed(self) -> None:
        """A failing listener does not break the evicting call."""

        def broken_listener(key, song, cause):
            raise RuntimeError("listener broke")

        cache = TrackCache(
            RecordingLoader(),
            expire_after_access=MINUTE,
            on_evict=broken_listener,
            clock=FakeClock(),
        )
        await cache.put(Song(id="T1"))

        await cache.invalidate("T1")

        assert "T1" not in cache


class TestClearDuringLoad:
    """Test invalidate_all() racing an in-flight load."""

    @pytest.mark.asyncio
    async def test_load_in_flight_is_not_installed_after_clear(self) -> None:
        """A load that finishes after invalidate_all() leaves the cache empty."""
        started = asyncio.Event()
        release = asyncio.Event()
        calls = []

        async def gated_loader(key):
            calls.append(key)
            started.set()
            await release.wait()
            return Song(id=key)

        cache = make_cache(gated_loader, FakeClock())
        pending = asyncio.create_task(cache.get("T1"))
        await started.wait()

        await cache.invalidate_all()
        release.set()
        song = await pending

        assert song.id == "T1"
        assert "T1" not in cache
        assert len(cache) == 0

        await cache.get("T1")

        assert calls == ["T1", "T1"]
        assert "T1" in cache
