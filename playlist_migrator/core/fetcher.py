"""Source Fetcher - reads complete playlists from the source provider"""

import asyncio
import logging
from typing import Protocol

from playlist_migrator.core.context import SessionContext
from playlist_migrator.core.errors import AuthError, FetchError, MigrationCancelled
from playlist_migrator.core.models import SPOTIFY, Track, Window

logger = logging.getLogger(__name__)


class SourceClientProtocol(Protocol):
    def get_tracks_page(self, access_token: str, playlist_id: str,
                        cursor: str | None = None) -> tuple[list[Track], str | None]: ...
    def get_playlists(self, access_token: str) -> list[dict]: ...


def apply_window(tracks: list[Track], window: Window | None) -> list[Track]:
    """Keep the `limit` most recently added tracks, newest first."""
    if window is None:
        return tracks
    if window.latest_first:
        tracks = list(reversed(tracks))
    return tracks[:window.limit]


class SourceFetcher:
    def __init__(self, client: SourceClientProtocol, provider: str = SPOTIFY):
        self._client = client
        self._provider = provider

    async def fetch_tracks(self, ctx: SessionContext, playlist_id: str,
                           window: Window | None = None) -> list[Track]:
        """Fetch every track of a playlist in source order, then apply window.

        The source only paginates forward, so a window still reads the whole
        playlist before truncating.
        """
        tracks: list[Track] = []
        cursor = None
        pages = 0

        try:
            while True:
                access_token = await ctx.access_token(self._provider)
                page, cursor = await ctx.call(
                    self._client.get_tracks_page, access_token, playlist_id, cursor
                )
                tracks.extend(page)
                pages += 1
                if not cursor:
                    break
        except (AuthError, MigrationCancelled):
            raise
        except asyncio.TimeoutError:
            raise FetchError(playlist_id, f"timed out after {ctx.timeout}s on page {pages + 1}")
        except Exception as e:
            raise FetchError(playlist_id, str(e))

        logger.info(f"Retrieved {len(tracks)} tracks from playlist {playlist_id} ({pages} pages)")
        return apply_window(tracks, window)

    async def list_playlists(self, ctx: SessionContext) -> list[dict]:
        access_token = await ctx.access_token(self._provider)
        return await ctx.call(self._client.get_playlists, access_token)
