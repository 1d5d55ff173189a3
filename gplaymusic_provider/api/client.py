"""
Async client for the Google Play Music mobile catalog API ("sj" service).
"""

import logging
import time
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiohttp

from gplaymusic_provider.exceptions import (
    AuthenticationError,
    GPlayMusicError,
    UnauthorizedError,
)
from gplaymusic_provider.media.downloader import Downloader
from gplaymusic_provider.models.config import StreamQuality
from gplaymusic_provider.models.track import Track

log = logging.getLogger(__name__)

STATION_FEED_SIZE = 25


def parse_auth_response(body: str) -> Dict[str, str]:
    """Parses the 'Key=Value' lines returned by the auth endpoint."""
    values = {}
    for line in body.splitlines():
        key, sep, value = line.partition("=")
        if sep:
            values[key.strip()] = value.strip()
    return values


def parse_tracks(items: List[Dict[str, Any]], source: str) -> List[Track]:
    """Parses a list of track objects, skipping malformed entries."""
    tracks = []
    for item in items:
        try:
            tracks.append(Track.from_json(item))
        except ValueError as e:
            log.warning(
                f"[yellow]Skipping malformed track from {source}: {e}[/yellow]"
            )
    return tracks


class RadioStation:
    """A radio station owned by the logged-in account."""

    def __init__(
        self, client: "GPlayMusicAPIClient", station_id: str, seed_id: str, name: str
    ):
        self._client = client
        self.id = station_id
        self.seed_id = seed_id
        self.name = name

    def __repr__(self) -> str:
        return f"RadioStation(id={self.id!r}, seed_id={self.seed_id!r})"

    async def get_tracks(
        self, context: List[Track], want_fresh: bool, exclude_recent: bool
    ) -> List[Track]:
        """
        Fetches the next batch of tracks of this station.

        Args:
            context: Recently played tracks; only their ids are sent.
            want_fresh: Ask for tracks the account has not heard before.
            exclude_recent: Exclude the context tracks from the batch.
        """
        station_request = {
            "radioId": self.id,
            "numEntries": STATION_FEED_SIZE,
            "libraryContentOnly": False,
            "newContentOnly": want_fresh,
        }
        if exclude_recent:
            station_request["recentlyPlayed"] = [
                {"id": track.id, "type": 1} for track in context
            ]

        response = await self._client.api_call(
            "POST",
            "radio/stationfeed",
            json_body={"contentFilter": 1, "stations": [station_request]},
        )
        stations = response.get("data", {}).get("stations", [])
        if not stations:
            return []
        return parse_tracks(stations[0].get("tracks", []), f"station {self.id}")

    async def delete(self) -> None:
        await self._client.api_call(
            "POST",
            "radio/editstation",
            json_body={
                "mutations": [
                    {"delete": self.id, "includeFeed": False, "numEntries": 0}
                ]
            },
        )
        log.debug(f"Deleted station {self.id}.")


class GPlayMusicAPIClient:
    """
    Async client for the catalog, radio and streaming endpoints.

    Every call carries the current auth token; a 401 answer is raised as
    `UnauthorizedError` so the session manager can refresh the token.
    """

    BASE_URL = "https://mclients.googleapis.com/sj/v2.5/"
    STREAM_URL = "https://mclients.googleapis.com/music/mplay"
    AUTH_URL = "https://android.clients.google.com/auth"
    CLIENT_SIG = "38918a453d07199354f8b19af05ec6562ced5788"

    def __init__(self, locale: str = "en_US", downloader: Optional[Downloader] = None):
        """
        Initializes the API client.

        Args:
            locale: Locale sent with every catalog request.
            downloader: Downloader used to fetch audio streams.
        """
        self.locale = locale
        self.token: Optional[str] = None
        self._session: Optional[aiohttp.ClientSession] = None
        self._downloader = downloader or Downloader()

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": "Android-Music/8.x"},
                timeout=aiohttp.ClientTimeout(total=60, connect=15, sock_read=30),
            )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    def change_token(self, token: str) -> None:
        self.token = token

    def _auth_headers(self) -> Dict[str, str]:
        if not self.token:
            raise UnauthorizedError("No auth token has been installed.")
        return {"Authorization": f"GoogleLogin auth={self.token}"}

    async def api_call(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Makes an authenticated JSON call against the catalog API."""
        await self._initialize_session()

        query = {"alt": "json", "hl": self.locale, "tier": "aa"}
        if params:
            query.update(params)

        start_time = time.monotonic()
        async with self._session.request(
            method,
            self.BASE_URL + endpoint,
            params=query,
            json=json_body,
            headers=self._auth_headers(),
        ) as r:
            duration_ms = (time.monotonic() - start_time) * 1000
            log.debug(f"{method} {endpoint} -> {r.status} ({duration_ms:.0f} ms)")

            if r.status == 401:
                raise UnauthorizedError(f"Authorization rejected for '{endpoint}'.")
            r.raise_for_status()
            return await r.json()

    async def _auth_request(self, payload: Dict[str, Any]) -> Dict[str, str]:
        await self._initialize_session()
        async with self._session.post(self.AUTH_URL, data=payload) as r:
            values = parse_auth_response(await r.text())
            if r.status == 403 or "Error" in values:
                raise AuthenticationError(
                    f"Token request failed: {values.get('Error', r.status)}"
                )
            r.raise_for_status()
            return values

    async def exchange_credentials_for_token(
        self, username: str, password: str, device_id: str
    ) -> str:
        """Requests a new auth token for the account and installs it."""
        log.info(f"Requesting token for: {username}")
        values = await self._auth_request(
            {
                "accountType": "HOSTED_OR_GOOGLE",
                "Email": username,
                "Passwd": password,
                "has_permission": 1,
                "service": "sj",
                "source": "android",
                "androidId": device_id,
                "app": "com.google.android.music",
                "client_sig": self.CLIENT_SIG,
                "device_country": "us",
                "lang": "en",
                "sdk_version": 17,
            }
        )
        token = values.get("Auth")
        if not token:
            raise AuthenticationError("Token response did not contain a token.")
        self.change_token(token)
        return token

    async def exchange_existing_token(self, token: str) -> str:
        """
        Installs a saved token and checks that the service still accepts it.
        """
        log.info("Authenticating with existing token...")
        self.change_token(token)
        try:
            await self.api_call("GET", "config")
        except UnauthorizedError as e:
            self.token = None
            raise AuthenticationError(
                "The provided token is invalid or has expired."
            ) from e
        return token

    async def search_tracks(self, query: str, limit: int) -> List[Track]:
        response = await self.api_call(
            "GET", "query", params={"q": query, "ct": "1", "max-results": limit}
        )
        entries = response.get("entries", [])
        return parse_tracks(
            [entry["track"] for entry in entries if "track" in entry],
            f"search '{query}'",
        )

    async def get_track(self, track_id: str) -> Track:
        data = await self.api_call("GET", "fetchtrack", params={"nid": track_id})
        try:
            return Track.from_json(data)
        except ValueError as e:
            raise GPlayMusicError(f"Malformed track '{track_id}': {e}") from e

    async def fetch_stream_url(self, track_id: str, quality: StreamQuality) -> str:
        """Resolves the short-lived stream URL of a track."""
        await self._initialize_session()
        params = {"opt": quality.api_value, "net": "mob", "pt": "e", "mjck": track_id}
        async with self._session.get(
            self.STREAM_URL,
            params=params,
            headers={**self._auth_headers(), "X-Device-ID": "android"},
            allow_redirects=False,
        ) as r:
            if r.status == 401:
                raise UnauthorizedError(
                    f"Authorization rejected for stream '{track_id}'."
                )
            if r.status not in (301, 302):
                r.raise_for_status()
            location = r.headers.get("Location")
            if not location:
                raise GPlayMusicError(f"No stream URL returned for '{track_id}'.")
            return location

    async def download(
        self, track: Track, quality: StreamQuality, destination: Path
    ) -> None:
        url = await self.fetch_stream_url(track.id, quality)
        size = await self._downloader.download_file(url, str(destination))
        log.debug(f"Downloaded {size} bytes for '{track.id}'.")

    async def create_station(
        self, seed: Track, name: str, recommend_to_public: bool
    ) -> RadioStation:
        mutation = {
            "createOrGet": {
                "clientId": str(uuid.uuid4()),
                "deleted": False,
                "imageType": 1,
                "lastModifiedTimestamp": "-1",
                "name": name,
                "recentTimestamp": str(int(time.time() * 1e6)),
                "seed": {"trackId": seed.id, "seedType": 2},
                "tracks": [],
                "inLibrary": recommend_to_public,
            },
            "includeFeed": False,
            "numEntries": 0,
            "params": {"contentFilter": 1},
        }
        response = await self.api_call(
            "POST", "radio/editstation", json_body={"mutations": [mutation]}
        )
        try:
            station_id = response["mutate_response"][0]["id"]
        except (KeyError, IndexError) as e:
            raise GPlayMusicError(f"Station creation returned no id: {response}") from e
        log.debug(f"Created station {station_id} on '{seed.id}'.")
        return RadioStation(self, station_id, seed.id, name)
