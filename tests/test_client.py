"""Tests for the catalog client's response parsing and station requests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from gplaymusic_provider.api.client import RadioStation, parse_auth_response
from gplaymusic_provider.exceptions import GPlayMusicError
from gplaymusic_provider.models.track import Song, Track

from .conftest import ScriptedAPIClient


class TestTrackParsing:
    """Test Track.from_json()."""

    def test_store_track(self) -> None:
        """Store tracks use 'storeId' and millisecond durations."""
        track = Track.from_json(
            {
                "storeId": "Tabc",
                "nid": "Tnid",
                "id": "library-id",
                "title": "Song",
                "artist": "Band",
                "durationMillis": "215900",
                "albumArtRef": [{"url": "https://example.com/art.jpg"}],
            }
        )

        assert track.id == "Tabc"
        assert track.duration == 215
        assert track.album_art_url == "https://example.com/art.jpg"

    def test_falls_back_to_nid(self) -> None:
        """Tracks without 'storeId' are identified by 'nid'."""
        track = Track.from_json({"nid": "Tnid", "title": "Song"})

        assert track.id == "Tnid"
        assert track.duration == 0
        assert track.album_art_url is None

    def test_missing_id_raises(self) -> None:
        """A track object without any id is rejected."""
        with pytest.raises(ValueError):
            Track.from_json({"title": "Song"})

    def test_songs_compare_by_id(self) -> None:
        """Two observations of the same track are the same song."""
        first = Song.from_track(Track(id="T1", title="Old title"))
        second = Song.from_track(Track(id="T1", title="New title"))

        assert first == second
        assert len({first, second}) == 1


class TestAuthResponse:
    """Test parse_auth_response()."""

    def test_parses_key_value_lines(self) -> None:
        """Each 'Key=Value' line becomes one entry."""
        values = parse_auth_response("SID=sid\nLSID=lsid\nAuth=token=with=equals\n")

        assert values == {"SID": "sid", "LSID": "lsid", "Auth": "token=with=equals"}

    def test_ignores_garbage(self) -> None:
        """Lines without '=' are skipped."""
        assert parse_auth_response("oops\nError=BadAuthentication") == {
            "Error": "BadAuthentication"
        }


class TestRadioStation:
    """Test station feed requests."""

    @pytest.mark.asyncio
    async def test_get_tracks_sends_recently_played(self) -> None:
        """Recently played ids are excluded through the request body."""
        client = MagicMock()
        client.api_call = AsyncMock(
            return_value={
                "data": {
                    "stations": [{"tracks": [{"storeId": "T9", "title": "Next"}]}]
                }
            }
        )
        station = RadioStation(client, "station-1", "T1", "Station on Song")

        tracks = await station.get_tracks([Track.stub("T1")], True, True)

        assert [track.id for track in tracks] == ["T9"]
        body = client.api_call.await_args.kwargs["json_body"]
        request = body["stations"][0]
        assert request["radioId"] == "station-1"
        assert request["newContentOnly"] is True
        assert request["recentlyPlayed"] == [{"id": "T1", "type": 1}]

    @pytest.mark.asyncio
    async def test_get_tracks_without_stations(self) -> None:
        """An empty feed yields no tracks."""
        client = MagicMock()
        client.api_call = AsyncMock(return_value={"data": {}})
        station = RadioStation(client, "station-1", "T1", "Station on Song")

        assert await station.get_tracks([], True, False) == []


class TestMalformedTracks:
    """Test that bad track objects never escape the client as ValueError."""

    def test_non_numeric_duration_raises_value_error(self) -> None:
        """Every malformed field is reported as ValueError."""
        with pytest.raises(ValueError):
            Track.from_json({"storeId": "T9", "durationMillis": "n/a"})
        with pytest.raises(ValueError):
            Track.from_json({"storeId": "T9", "albumArtRef": ["not-a-dict"]})

    @pytest.mark.asyncio
    async def test_search_skips_malformed_entries(self) -> None:
        """Search results drop entries that cannot be parsed."""
        client = ScriptedAPIClient(
            {
                "query": {
                    "entries": [
                        {"track": {"title": "no id"}},
                        {"track": {"storeId": "T1", "title": "Good"}},
                        {"track": {"storeId": "T2", "durationMillis": "n/a"}},
                        {"album": {"name": "not a track"}},
                    ]
                }
            }
        )

        tracks = await client.search_tracks("query", 30)

        assert [track.id for track in tracks] == ["T1"]

    @pytest.mark.asyncio
    async def test_get_track_raises_catalog_error(self) -> None:
        """A malformed single track is a GPlayMusicError."""
        client = ScriptedAPIClient({"fetchtrack": {"title": "no id"}})

        with pytest.raises(GPlayMusicError):
            await client.get_track("T1")

    @pytest.mark.asyncio
    async def test_station_skips_malformed_tracks(self) -> None:
        """Station batches drop entries that cannot be parsed."""
        client = MagicMock()
        client.api_call = AsyncMock(
            return_value={
                "data": {
                    "stations": [
                        {
                            "tracks": [
                                {"storeId": "T9", "durationMillis": "n/a"},
                                {"storeId": "T8", "durationMillis": "1000"},
                            ]
                        }
                    ]
                }
            }
        )
        station = RadioStation(client, "station-1", "T1", "Station on Song")

        tracks = await station.get_tracks([], True, True)

        assert [track.id for track in tracks] == ["T8"]
