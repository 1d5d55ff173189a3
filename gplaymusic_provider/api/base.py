"""
Interfaces the provider consumes from a remote catalog backend.
"""

from pathlib import Path
from typing import List, Protocol, runtime_checkable

from gplaymusic_provider.models.config import StreamQuality
from gplaymusic_provider.models.track import Track


@runtime_checkable
class Station(Protocol):
    """A server-side radio station seeded on a track."""

    id: str

    async def get_tracks(
        self, context: List[Track], want_fresh: bool, exclude_recent: bool
    ) -> List[Track]:
        """Fetches the next batch of recommended tracks."""
        ...

    async def delete(self) -> None:
        """Deletes the station on the server."""
        ...


@runtime_checkable
class CatalogClient(Protocol):
    """
    Operations of a remote catalog backend.

    Implementations raise `UnauthorizedError` when the service rejects the
    current token, so that the session manager can refresh and retry.
    """

    async def search_tracks(self, query: str, limit: int) -> List[Track]: ...

    async def get_track(self, track_id: str) -> Track: ...

    async def download(
        self, track: Track, quality: StreamQuality, destination: Path
    ) -> None: ...

    async def exchange_credentials_for_token(
        self, username: str, password: str, device_id: str
    ) -> str: ...

    async def exchange_existing_token(self, token: str) -> str: ...

    def change_token(self, token: str) -> None:
        """Installs a new token in place, without rebuilding the client."""
        ...

    async def create_station(
        self, seed: Track, name: str, recommend_to_public: bool
    ) -> Station: ...

    async def close(self) -> None: ...
