"""Shared fixtures: a controllable clock and an in-memory catalog client."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from gplaymusic_provider.api.client import GPlayMusicAPIClient
from gplaymusic_provider.exceptions import AuthenticationError, GPlayMusicError
from gplaymusic_provider.models.config import DEFAULT_FALLBACK_SONG_ID, ProviderConfig
from gplaymusic_provider.models.track import Track

FALLBACK_ID = DEFAULT_FALLBACK_SONG_ID


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStation:
    """Station serving predefined batches, one per request."""

    def __init__(self, client: "FakeCatalogClient", station_id: str, seed_id: str):
        self._client = client
        self.id = station_id
        self.seed_id = seed_id
        self.batches = list(client.station_batches.get(seed_id, []))
        self.contexts: list[list[str]] = []

    async def get_tracks(self, context, want_fresh, exclude_recent):
        self.contexts.append([track.id for track in context])
        if self._client.fail_station_feed:
            raise GPlayMusicError("Station feed unavailable.")
        if not self.batches:
            return []
        return self.batches.pop(0)

    async def delete(self) -> None:
        self._client.events.append(("delete", self.id))


class FakeCatalogClient:
    """In-memory stand-in for the catalog client."""

    def __init__(self, tracks: list[Track] | None = None):
        self.tracks = {track.id: track for track in tracks or []}
        self.token: str | None = None
        self.valid_tokens: set[str] = set()
        self.station_batches: dict[str, list[list[Track]]] = {}
        self.events: list[tuple[str, str]] = []

        self.fail_credentials = False
        self.fail_search = False
        self.fail_download = False
        self.fail_create = False
        self.fail_station_feed = False

        self.credential_calls = 0
        self.existing_token_calls = 0
        self.get_track_calls = 0
        self.search_calls: list[tuple[str, int]] = []
        self.download_destinations: list[Path] = []
        self.closed = False
        self._station_count = 0

    async def exchange_credentials_for_token(self, username, password, device_id):
        self.credential_calls += 1
        if self.fail_credentials:
            raise AuthenticationError("BadAuthentication")
        token = f"token-{self.credential_calls}"
        self.valid_tokens.add(token)
        return token

    async def exchange_existing_token(self, token):
        self.existing_token_calls += 1
        if token not in self.valid_tokens:
            raise AuthenticationError("The provided token is invalid or has expired.")
        return token

    def change_token(self, token):
        self.token = token

    async def search_tracks(self, query, limit):
        self.search_calls.append((query, limit))
        if self.fail_search:
            raise GPlayMusicError("Search unavailable.")
        return list(self.tracks.values())[:limit]

    async def get_track(self, track_id):
        self.get_track_calls += 1
        try:
            return self.tracks[track_id]
        except KeyError:
            raise GPlayMusicError(f"Unknown track '{track_id}'.") from None

    async def download(self, track, quality, destination):
        self.download_destinations.append(Path(destination))
        Path(destination).write_bytes(b"partial")
        if self.fail_download:
            raise GPlayMusicError("Stream interrupted.")
        Path(destination).write_bytes(f"audio:{track.id}:{quality.name}".encode())

    async def create_station(self, seed, name, recommend_to_public):
        if self.fail_create:
            raise GPlayMusicError("Station service unavailable.")
        self._station_count += 1
        station = FakeStation(self, f"station-{self._station_count}", seed.id)
        self.events.append(("create", seed.id))
        return station

    async def close(self):
        self.closed = True


class ScriptedAPIClient(GPlayMusicAPIClient):
    """The real catalog client, answering API calls from canned JSON."""

    def __init__(self, responses: dict):
        super().__init__()
        self.responses = responses

    async def api_call(self, method, endpoint, params=None, json_body=None):
        response = self.responses.get(endpoint, {})
        if callable(response):
            return response(params or {})
        return response

    async def exchange_credentials_for_token(self, username, password, device_id):
        self.change_token("scripted-token")
        return "scripted-token"


def make_track(track_id: str, title: str | None = None) -> Track:
    return Track(
        id=track_id,
        title=title or f"Title {track_id}",
        artist=f"Artist {track_id}",
        duration=180,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def catalog() -> FakeCatalogClient:
    return FakeCatalogClient(
        [make_track(FALLBACK_ID, "Fallback")]
        + [make_track(f"T{i}") for i in range(1, 6)]
    )


@pytest.fixture
def config(tmp_path: Path) -> ProviderConfig:
    return ProviderConfig(
        username="user@example.com",
        password="secret",
        device_id="3a4b5c6d7e8f9012",
        config_path=str(tmp_path),
    )


@pytest.fixture
def config_manager() -> MagicMock:
    return MagicMock()
