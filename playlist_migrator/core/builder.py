"""Destination Playlist Builder"""

import asyncio
import logging
from typing import Protocol

from playlist_migrator.core.context import SessionContext
from playlist_migrator.core.errors import AuthError, BuildError, MigrationCancelled
from playlist_migrator.core.models import GOOGLE

logger = logging.getLogger(__name__)

PRIVACY = "private"


class PlaylistClientProtocol(Protocol):
    def create_playlist(self, access_token: str, title: str, privacy: str) -> str: ...
    def add_to_playlist(self, access_token: str, playlist_id: str, video_id: str) -> None: ...


class PlaylistBuilder:
    def __init__(self, client: PlaylistClientProtocol, provider: str = GOOGLE):
        self._client = client
        self._provider = provider

    async def create_playlist(self, ctx: SessionContext, title: str) -> str:
        try:
            access_token = await ctx.access_token(self._provider)
            return await ctx.call(self._client.create_playlist, access_token, title, PRIVACY)
        except (AuthError, MigrationCancelled):
            raise
        except asyncio.TimeoutError:
            raise BuildError(f"Creating playlist '{title}' timed out")
        except Exception as e:
            raise BuildError(f"Creating playlist '{title}' failed: {e}")

    async def append_items(self, ctx: SessionContext, playlist_id: str, item_ids: list[str]) -> None:
        """Append items one at a time, in order. Any failure aborts the build."""
        for appended, item_id in enumerate(item_ids):
            try:
                access_token = await ctx.access_token(self._provider)
                await ctx.call(self._client.add_to_playlist, access_token, playlist_id, item_id)
            except (AuthError, MigrationCancelled):
                raise
            except asyncio.TimeoutError:
                raise BuildError(
                    f"Adding {item_id} timed out after {appended}/{len(item_ids)} items",
                    playlist_id=playlist_id, appended=appended,
                )
            except Exception as e:
                raise BuildError(
                    f"Adding {item_id} failed after {appended}/{len(item_ids)} items: {e}",
                    playlist_id=playlist_id, appended=appended,
                )

        logger.info(f"Added {len(item_ids)} videos to playlist {playlist_id}")
