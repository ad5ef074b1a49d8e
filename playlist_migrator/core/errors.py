"""Migration error taxonomy.

Errors that abort a request carry the HTTP status they map to. FetchError and
SearchError are recovered inside the pipeline and never reach a client.
"""

from playlist_migrator.core.models import MigrationState


class MigrationError(Exception):
    """Base class for all migration failures."""
    status_code = 500
    state: MigrationState | None = None

    def payload(self) -> dict:
        return {"error": str(self)}


class ValidationError(MigrationError):
    """Request is malformed. Raised before any network call."""
    status_code = 400


class AuthError(MigrationError):
    """Credential for a provider is missing or cannot be refreshed."""
    status_code = 401

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider

    def payload(self) -> dict:
        return {"error": str(self), "provider": self.provider}


class FetchError(MigrationError):
    """A single source playlist could not be fetched."""

    def __init__(self, playlist_id: str, message: str):
        super().__init__(f"Failed to fetch playlist {playlist_id}: {message}")
        self.playlist_id = playlist_id


class SearchError(MigrationError):
    """A single destination search failed for a non-quota reason."""


class NoTracksFound(MigrationError):
    status_code = 400


class NoMatchesFound(MigrationError):
    status_code = 400


class QuotaExceededError(MigrationError):
    """Destination quota ran out before a single match was found."""
    status_code = 429

    def __init__(self, message: str, quota_exceeded_tracks: list[str],
                 unmatched_tracks: list[str] | None = None):
        super().__init__(message)
        self.quota_exceeded_tracks = quota_exceeded_tracks
        self.unmatched_tracks = unmatched_tracks or []

    def payload(self) -> dict:
        return {
            "error": str(self),
            "quotaExceeded": True,
            "quotaExceededTracks": self.quota_exceeded_tracks,
            "unmatchedTracks": self.unmatched_tracks,
        }


class BuildError(MigrationError):
    """Destination playlist creation or population failed."""

    def __init__(self, message: str, playlist_id: str | None = None, appended: int = 0):
        super().__init__(message)
        self.playlist_id = playlist_id
        self.appended = appended


class MigrationFailed(MigrationError):
    """The destination playlist could not be built. Nothing is rolled back."""
    status_code = 500

    def __init__(self, message: str, playlist_id: str | None = None, appended: int = 0):
        super().__init__(message)
        self.playlist_id = playlist_id
        self.appended = appended

    def payload(self) -> dict:
        return {"error": str(self), "playlistId": self.playlist_id, "appended": self.appended}


class MigrationCancelled(MigrationError):
    status_code = 499


class InternalError(MigrationError):
    status_code = 500
