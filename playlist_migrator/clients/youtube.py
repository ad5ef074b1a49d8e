"""
YouTube Data API v3 Client

Search, playlist creation and playlist inserts on behalf of a user whose
access token is supplied per call. Google token refresh goes through
google-auth. Create and insert retry transient errors; search is never
retried.
"""

import functools
import logging
import time
from datetime import timezone
from typing import Any, Callable, TypeVar

import google.auth.exceptions
import httplib2
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from playlist_migrator.core.models import TokenGrant

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"
SCOPES = ["https://www.googleapis.com/auth/youtube"]
QUOTA_REASONS = ("quotaExceeded", "dailyLimitExceeded", "rateLimitExceeded", "userRateLimitExceeded")
PLAYLIST_DESCRIPTION = "Created by playlist-migrator"

T = TypeVar('T')


class YouTubeAuthError(Exception):
    """YouTube authentication failed."""
    pass


class YouTubeAPIError(Exception):
    """YouTube API operation failed."""
    pass


class YouTubeQuotaExceededError(Exception):
    """YouTube API quota exceeded."""
    pass


def _error_body(error: HttpError) -> str:
    content = error.content
    if isinstance(content, bytes):
        return content.decode("utf-8", "replace")
    return str(content or "")


def is_quota_error(error: HttpError) -> bool:
    status = error.resp.status if error.resp else 0
    if status not in (403, 429):
        return False
    body = _error_body(error)
    return any(reason in body for reason in QUOTA_REASONS)


def _default_service(access_token: str, timeout: float | None = None) -> Any:
    credentials = Credentials(token=access_token)
    http = AuthorizedHttp(credentials, http=httplib2.Http(timeout=timeout))
    return build("youtube", "v3", http=http, cache_discovery=False)


class YouTubeClient:
    """YouTube Data API client with retry logic."""

    def __init__(self, client_id: str, client_secret: str, timeout: float | None = 15.0,
                 service_factory: Callable[[str], Any] | None = None,
                 backoff: Callable[[float], None] = time.sleep):
        self._client_id = client_id
        self._client_secret = client_secret
        self._timeout = timeout
        self._service_factory = service_factory or functools.partial(_default_service, timeout=timeout)
        self._backoff = backoff

    def _retry(self, operation: Callable[[], T], name: str, max_retries: int = 3) -> T:
        """Execute operation, retrying server and network errors."""
        for attempt in range(max_retries):
            try:
                return operation()
            except HttpError as e:
                status = e.resp.status if e.resp else 0

                # Quota exceeded - don't retry
                if is_quota_error(e):
                    raise YouTubeQuotaExceededError(f"Quota exceeded on {name}: {_error_body(e)[:200]}")

                if status == 401:
                    raise YouTubeAuthError(f"Access token rejected on {name}")

                # Server error - retry with backoff
                if status >= 500 and attempt < max_retries - 1:
                    wait = 2 ** attempt
                    logger.warning(f"Server error on {name}, retrying in {wait}s...")
                    self._backoff(wait)
                    continue

                raise YouTubeAPIError(f"API error on {name}: {e}")

            except (ConnectionError, TimeoutError, OSError) as e:
                if attempt < max_retries - 1:
                    wait = 2 ** attempt
                    logger.warning(f"Network error on {name}, retrying in {wait}s...")
                    self._backoff(wait)
                    continue
                raise YouTubeAPIError(f"Network error on {name}: {e}")

        raise YouTubeAPIError(f"{name} failed after {max_retries} attempts")

    def search_video(self, access_token: str, query: str) -> str | None:
        """Return the id of the first video matching query, or None."""
        service = self._service_factory(access_token)

        def do_search():
            return service.search().list(
                part="id",
                q=query,
                type="video",
                maxResults=1,
            ).execute()

        response = self._retry(do_search, f"search '{query}'", max_retries=1)
        items = response.get("items") if isinstance(response, dict) else None
        if items is None:
            raise YouTubeAPIError(f"Malformed search response for '{query}'")
        if not items:
            return None

        try:
            return items[0]["id"]["videoId"]
        except (KeyError, TypeError):
            raise YouTubeAPIError(f"Search result without videoId for '{query}'")

    def create_playlist(self, access_token: str, title: str, privacy: str = "private") -> str:
        """Create a playlist and return its id."""
        service = self._service_factory(access_token)

        def do_insert():
            return service.playlists().insert(
                part="snippet,status",
                body={
                    "snippet": {"title": title, "description": PLAYLIST_DESCRIPTION},
                    "status": {"privacyStatus": privacy},
                },
            ).execute()

        response = self._retry(do_insert, f"create playlist '{title}'")
        playlist_id = response.get("id") if isinstance(response, dict) else None
        if not playlist_id:
            raise YouTubeAPIError(f"Playlist '{title}' created without an id")

        logger.info(f"Created playlist: {title} ({playlist_id})")
        return playlist_id

    def add_to_playlist(self, access_token: str, playlist_id: str, video_id: str) -> None:
        """Append video to the end of playlist."""
        service = self._service_factory(access_token)

        def do_insert():
            return service.playlistItems().insert(
                part="snippet",
                body={
                    "snippet": {
                        "playlistId": playlist_id,
                        "resourceId": {"kind": "youtube#video", "videoId": video_id},
                    }
                },
            ).execute()

        self._retry(do_insert, f"add {video_id}")
        logger.debug(f"Added: {video_id}")

    def refresh(self, refresh_token: str) -> TokenGrant:
        """Exchange a refresh token for a new access token via google-auth."""
        credentials = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=TOKEN_URI,
            client_id=self._client_id,
            client_secret=self._client_secret,
            scopes=SCOPES,
        )
        try:
            credentials.refresh(functools.partial(Request(), timeout=self._timeout))
        except google.auth.exceptions.GoogleAuthError as e:
            raise YouTubeAuthError(f"Failed to refresh Google token: {e}")

        expires_at = None
        if credentials.expiry is not None:
            expires_at = credentials.expiry.replace(tzinfo=timezone.utc).timestamp()

        new_refresh = credentials.refresh_token
        return TokenGrant(
            access_token=credentials.token,
            expires_at=expires_at,
            refresh_token=new_refresh if new_refresh != refresh_token else None,
        )
