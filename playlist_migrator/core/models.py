"""Data models for migration operations."""

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Union

SPOTIFY = "spotify"
GOOGLE = "google"
PROVIDERS = (SPOTIFY, GOOGLE)

LIMIT_ALL = "all"
LIMIT_LATEST = "latest"


@dataclass(frozen=True)
class Credential:
    """OAuth tokens for one provider and one user."""
    provider: str
    access_token: str | None
    refresh_token: str | None = None
    expires_at: float | None = None  # epoch seconds

    @property
    def is_connected(self) -> bool:
        return bool(self.access_token)

    def expires_within(self, now: float, buffer_seconds: float) -> bool:
        if self.expires_at is None:
            return False
        return now >= self.expires_at - buffer_seconds

    def cleared(self) -> "Credential":
        return Credential(provider=self.provider, access_token=None)


@dataclass(frozen=True)
class TokenGrant:
    """Result of a successful refresh-token exchange."""
    access_token: str
    expires_at: float | None = None
    refresh_token: str | None = None


@dataclass(frozen=True)
class CredentialSet:
    """Immutable snapshot of a user's credentials, keyed by provider."""
    user_id: str
    credentials: Mapping[str, Credential] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "credentials", MappingProxyType(dict(self.credentials)))

    def get(self, provider: str) -> Credential | None:
        return self.credentials.get(provider)

    def with_credential(self, credential: Credential) -> "CredentialSet":
        updated = dict(self.credentials)
        updated[credential.provider] = credential
        return CredentialSet(self.user_id, updated)

    def with_grant(self, provider: str, grant: TokenGrant) -> "CredentialSet":
        current = self.credentials.get(provider) or Credential(provider, None)
        refreshed = replace(
            current,
            access_token=grant.access_token,
            expires_at=grant.expires_at,
            refresh_token=grant.refresh_token or current.refresh_token,
        )
        return self.with_credential(refreshed)

    def without(self, provider: str) -> "CredentialSet":
        current = self.credentials.get(provider)
        if current is None:
            return self
        return self.with_credential(current.cleared())


@dataclass(frozen=True)
class Track:
    """A track from the source provider."""
    name: str
    artist: str
    duration_ms: int | None = None

    @property
    def label(self) -> str:
        return f"{self.name} - {self.artist}"


@dataclass(frozen=True)
class Window:
    """Restricts a fetched playlist to its most recent entries."""
    limit: int
    latest_first: bool = True


@dataclass(frozen=True)
class Matched:
    track: Track
    item_id: str


@dataclass(frozen=True)
class Unmatched:
    track: Track
    reason: str | None = None  # set when the search itself failed

    @property
    def label(self) -> str:
        if self.reason:
            return f"{self.track.label} (Search Error)"
        return self.track.label


@dataclass(frozen=True)
class QuotaExceeded:
    track: Track


MatchOutcome = Union[Matched, Unmatched, QuotaExceeded]


@dataclass(frozen=True)
class MigrationRequest:
    """A validated-shape request to migrate source playlists."""
    source_playlist_ids: tuple[str, ...]
    target_playlist_name: str
    track_limit: int | None = None
    limit_mode: str = LIMIT_ALL

    @property
    def window(self) -> Window | None:
        if self.limit_mode == LIMIT_LATEST and self.track_limit:
            return Window(limit=self.track_limit, latest_first=True)
        return None


class MigrationState(Enum):
    VALIDATING = "validating"
    FETCHING_SOURCE = "fetching_source"
    MATCHING = "matching"
    BUILDING = "building"
    DONE = "done"
    FAILED = "failed"


@dataclass
class MatchSummary:
    """Match outcomes split into the buckets the report needs."""
    matched_ids: list[str] = field(default_factory=list)
    unmatched: list[str] = field(default_factory=list)
    quota_exceeded: list[str] = field(default_factory=list)

    @classmethod
    def from_outcomes(cls, outcomes: list[MatchOutcome]) -> "MatchSummary":
        summary = cls()
        for outcome in outcomes:
            if isinstance(outcome, Matched):
                summary.matched_ids.append(outcome.item_id)
            elif isinstance(outcome, QuotaExceeded):
                summary.quota_exceeded.append(outcome.track.label)
            else:
                summary.unmatched.append(outcome.label)
        return summary


@dataclass
class MigrationReport:
    """Result of a completed migration."""
    destination_playlist_id: str
    total_tracks_processed: int
    total_videos_added: int
    unmatched_tracks: list[str]
    quota_exceeded_tracks: list[str]

    @property
    def quota_exceeded(self) -> bool:
        return len(self.quota_exceeded_tracks) > 0
