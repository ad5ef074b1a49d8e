"""Test configuration and fixtures"""

import threading
import time

import pytest

from playlist_migrator.clients.spotify import SpotifyAPIError
from playlist_migrator.clients.youtube import YouTubeAPIError, YouTubeQuotaExceededError
from playlist_migrator.core.builder import PlaylistBuilder
from playlist_migrator.core.context import SessionContext
from playlist_migrator.core.credentials import CredentialStore
from playlist_migrator.core.fetcher import SourceFetcher
from playlist_migrator.core.matcher import DestinationMatcher
from playlist_migrator.core.models import GOOGLE, SPOTIFY, Credential, TokenGrant, Track
from playlist_migrator.core.orchestrator import MigrationOrchestrator

USER = "user-1"
NOW = 1_000_000.0

QUOTA = "quota"
FAIL = "fail"


def make_tracks(prefix: str, count: int) -> list[Track]:
    return [Track(name=f"{prefix} Song {i}", artist=f"{prefix} Artist", duration_ms=180000)
            for i in range(1, count + 1)]


class FakeSource:
    """Source client serving playlists in pages of `page_size`."""

    def __init__(self, playlists: dict[str, list[Track]] | None = None,
                 failing: set[str] | None = None, page_size: int = 3, delay: float = 0.0):
        self.playlists = playlists or {}
        self.failing = failing or set()
        self.page_size = page_size
        self.delay = delay
        self.calls: list[tuple[str, str | None]] = []

    def get_tracks_page(self, access_token, playlist_id, cursor=None):
        self.calls.append((playlist_id, cursor))
        if self.delay:
            time.sleep(self.delay)
        if playlist_id in self.failing:
            raise SpotifyAPIError(f"Spotify returned 404 for {playlist_id}")
        tracks = self.playlists.get(playlist_id, [])
        start = int(cursor) if cursor else 0
        end = start + self.page_size
        next_cursor = str(end) if end < len(tracks) else None
        return tracks[start:end], next_cursor

    def get_playlists(self, access_token):
        return [{"id": pid, "name": pid.title(), "trackCount": len(t)}
                for pid, t in self.playlists.items()]


class FakeYouTube:
    """Destination client scripted per search call.

    `script` entries: a video id, None (no result), QUOTA or FAIL. Calls past
    the end of the script match with a generated id.
    """

    def __init__(self, script: list | None = None, fail_add_at: int | None = None,
                 fail_create: bool = False, search_delay: float = 0.0):
        self.script = list(script or [])
        self.fail_add_at = fail_add_at
        self.fail_create = fail_create
        self.search_delay = search_delay
        self.queries: list[str] = []
        self.created: list[tuple[str, str]] = []
        self.added: list[tuple[str, str]] = []

    def search_video(self, access_token, query):
        index = len(self.queries)
        self.queries.append(query)
        if self.search_delay:
            time.sleep(self.search_delay)
        entry = self.script[index] if index < len(self.script) else f"vid{index + 1}"
        if entry == QUOTA:
            raise YouTubeQuotaExceededError("Quota exceeded on search")
        if entry == FAIL:
            raise YouTubeAPIError("API error on search: 500")
        return entry

    def create_playlist(self, access_token, title, privacy):
        if self.fail_create:
            raise YouTubeAPIError("API error on create playlist: 500")
        self.created.append((title, privacy))
        return "PL123"

    def add_to_playlist(self, access_token, playlist_id, video_id):
        if self.fail_add_at is not None and len(self.added) == self.fail_add_at:
            raise YouTubeAPIError(f"API error on add {video_id}: 500")
        self.added.append((playlist_id, video_id))


class FakeRefresher:
    def __init__(self, grant: TokenGrant | None = None, error: Exception | None = None,
                 delay: float = 0.0):
        self.grant = grant or TokenGrant(access_token="fresh-token", expires_at=NOW + 3600)
        self.error = error
        self.delay = delay
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def refresh(self, refresh_token):
        with self._lock:
            self.calls.append(refresh_token)
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return self.grant


class RecordingLimiter:
    def __init__(self):
        self.acquired = 0

    async def acquire(self):
        self.acquired += 1


@pytest.fixture
def refreshers():
    return {SPOTIFY: FakeRefresher(), GOOGLE: FakeRefresher()}


@pytest.fixture
def store(refreshers):
    store = CredentialStore(refreshers, clock=lambda: NOW, timeout=1.0)
    store.link(USER, Credential(SPOTIFY, "spotify-token", "spotify-refresh", NOW + 3600))
    store.link(USER, Credential(GOOGLE, "google-token", "google-refresh", NOW + 3600))
    return store


@pytest.fixture
def ctx(store):
    return SessionContext(user_id=USER, store=store, timeout=1.0)


@pytest.fixture
def limiter():
    return RecordingLimiter()


@pytest.fixture
def make_orchestrator(store, limiter):
    def factory(source: FakeSource, youtube: FakeYouTube, timeout: float = 1.0):
        return MigrationOrchestrator(
            store=store,
            fetcher=SourceFetcher(source),
            matcher=DestinationMatcher(youtube, limiter_factory=lambda: limiter),
            builder=PlaylistBuilder(youtube),
            timeout=timeout,
        )
    return factory
