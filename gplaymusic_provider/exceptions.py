"""
Defines custom exceptions for the provider to allow for more specific error handling.
"""


class GPlayMusicError(Exception):
    """Base exception for all provider-specific errors."""


class AuthenticationError(GPlayMusicError):
    """Raised when a token could not be obtained or was rejected for good."""


class UnauthorizedError(GPlayMusicError):
    """
    Raised by the catalog client when the service answers with HTTP 401.

    Callers are expected to go through the session manager, which refreshes
    the token once and retries.
    """


class NoSuchTrackError(GPlayMusicError):
    """Raised when a track id cannot be resolved to a song."""

    def __init__(self, track_id: str, reason: str | None = None):
        self.track_id = track_id
        message = f"No such track: '{track_id}'"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class SongLoadError(GPlayMusicError):
    """Raised when the audio file of a song could not be stored locally."""


class StationCreateError(GPlayMusicError):
    """Raised when a radio station could not be created on a seed track."""


class InitializationError(GPlayMusicError):
    """Raised when the provider or suggester cannot start."""


class ConfigurationError(GPlayMusicError):
    """Raised for issues related to configuration loading or validation."""


class SuggesterStateError(GPlayMusicError):
    """Raised when the suggester is used before initialization or after closing."""
