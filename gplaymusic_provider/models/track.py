"""
Immutable records for catalog tracks and their local song projection.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Track:
    """A read-only catalog record as returned by the remote service."""

    id: str
    title: str = ""
    artist: str = ""
    duration: int = 0
    album_art_url: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("Track id must not be empty.")

    @classmethod
    def stub(cls, track_id: str) -> "Track":
        """Builds a track carrying only its id, used as station context."""
        return cls(id=track_id)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Track":
        """
        Parses a track object from the catalog API.

        Store tracks carry their catalog id in 'storeId' (or 'nid'); library
        uploads only have 'id'. Durations arrive as millisecond strings.

        Raises:
            ValueError: If the object has no id or a malformed field.
        """
        try:
            track_id = data.get("storeId") or data.get("nid") or data.get("id")
            if not track_id:
                raise ValueError("Track object has no id.")

            album_art_url = None
            if art_refs := data.get("albumArtRef"):
                album_art_url = art_refs[0].get("url")

            return cls(
                id=str(track_id),
                title=data.get("title", ""),
                artist=data.get("artist", ""),
                duration=int(data.get("durationMillis", 0)) // 1000,
                album_art_url=album_art_url,
            )
        except (TypeError, AttributeError, KeyError, IndexError) as e:
            raise ValueError(f"Malformed track object: {e}") from e


@dataclass(frozen=True)
class Song:
    """
    Local, playable projection of a track.

    Songs compare and hash by id only, so two songs built from separate
    observations of the same track are interchangeable.
    """

    id: str
    title: str = field(default="", compare=False)
    description: str = field(default="", compare=False)
    duration: int = field(default=0, compare=False)
    album_art_url: Optional[str] = field(default=None, compare=False)
    provider_id: str = field(default="gplaymusic", compare=False)

    @classmethod
    def from_track(cls, track: Track, provider_id: str = "gplaymusic") -> "Song":
        return cls(
            id=track.id,
            title=track.title,
            description=track.artist,
            duration=track.duration,
            album_art_url=track.album_art_url,
            provider_id=provider_id,
        )
