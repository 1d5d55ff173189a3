"""
Pydantic model for provider configuration.
Provides robust validation for all settings.
"""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_FALLBACK_SONG_ID = "Tj6fhurtstzgdpvfm4xv6i5cei4"


class StreamQuality(str, Enum):
    """Stream and download fidelity tiers offered by the catalog."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def api_value(self) -> str:
        """The value of the 'opt' parameter of the stream endpoint."""
        return QUALITY_MAP[self]["opt"]

    @classmethod
    def from_name(cls, name: str) -> "StreamQuality":
        """Deserializes a quality from its (case-insensitive) name."""
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(
                f"Unknown quality '{name}'. Must be one of LOW, MEDIUM, HIGH."
            ) from None


QUALITY_MAP = {
    StreamQuality.LOW: {"name": "Low (128 kbps)", "opt": "low", "color": "yellow"},
    StreamQuality.MEDIUM: {"name": "Medium (160 kbps)", "opt": "med", "color": "cyan"},
    StreamQuality.HIGH: {"name": "High (320 kbps)", "opt": "hi", "color": "green"},
}

SECRET_KEYS = {"password", "device_id", "token"}


class ProviderConfig(BaseModel):
    """A validated configuration model for the provider."""

    # Authentication
    username: str = ""
    password: str = ""
    device_id: str = ""
    token: str = ""

    # Playback settings
    quality: StreamQuality = StreamQuality.HIGH
    cache_time: int = 60
    song_dir: str = ""
    purge_on_close: bool = False

    # Suggester settings
    fallback_song_id: str = DEFAULT_FALLBACK_SONG_ID
    base_song_id: str = ""

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("quality", mode="before")
    @classmethod
    def validate_quality(cls, v):
        """Accepts quality names in any case."""
        if isinstance(v, str):
            return StreamQuality.from_name(v)
        return v

    @field_validator("cache_time")
    @classmethod
    def validate_cache_time(cls, v: int) -> int:
        """Cached songs live between one minute and 60 hours."""
        if v < 1 or v > 3600:
            raise ValueError("Cache time must be between 1 and 3600 minutes.")
        return v

    @field_validator("fallback_song_id")
    @classmethod
    def validate_fallback_song_id(cls, v: str) -> str:
        if not v.startswith("T"):
            raise ValueError("Song IDs must start with 'T'.")
        return v

    @field_validator("base_song_id")
    @classmethod
    def validate_base_song_id(cls, v: str) -> str:
        if v and not v.startswith("T"):
            raise ValueError("Song IDs must start with 'T'.")
        return v

    @model_validator(mode="after")
    def validate_credentials(self) -> "ProviderConfig":
        """A credential login must always be possible, even with a saved token."""
        missing = [
            key
            for key in ("username", "password", "device_id")
            if not getattr(self, key)
        ]
        if missing:
            raise ValueError(
                f"Authentication not configured. Missing: {', '.join(missing)}."
            )
        return self

    @property
    def songs_path(self) -> Path:
        """Directory holding downloaded song files."""
        if self.song_dir:
            return Path(self.song_dir).expanduser()
        return Path(self.config_path) / "songs"

    @property
    def cache_time_seconds(self) -> float:
        return self.cache_time * 60.0

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
