"""
Destination Matcher

Resolves source tracks to destination video ids, one search at a time and in
input order. Quota exhaustion ends the loop: the failing track and every
track after it come back as QuotaExceeded without further calls. Any other
search failure only affects its own track.

Quota costs:
- search.list: 100 units
"""

import asyncio
import logging
from typing import Callable, Protocol

from playlist_migrator.clients.youtube import YouTubeQuotaExceededError
from playlist_migrator.core.context import SessionContext
from playlist_migrator.core.errors import MigrationCancelled, SearchError
from playlist_migrator.core.models import (
    GOOGLE, MatchOutcome, Matched, QuotaExceeded, Track, Unmatched,
)
from playlist_migrator.core.ratelimit import RateLimiter

logger = logging.getLogger(__name__)


class SearchClientProtocol(Protocol):
    def search_video(self, access_token: str, query: str) -> str | None: ...


def build_query(track: Track) -> str:
    return f"{track.name} {track.artist}"


class DestinationMatcher:
    def __init__(self, client: SearchClientProtocol,
                 limiter_factory: Callable[[], RateLimiter] = RateLimiter,
                 provider: str = GOOGLE):
        self._client = client
        self._limiter_factory = limiter_factory
        self._provider = provider

    async def _search(self, ctx: SessionContext, track: Track) -> str | None:
        access_token = await ctx.access_token(self._provider)
        query = build_query(track)
        try:
            return await ctx.call(self._client.search_video, access_token, query)
        except (YouTubeQuotaExceededError, MigrationCancelled):
            raise
        except asyncio.TimeoutError:
            raise SearchError(f"Search timed out after {ctx.timeout}s: {query}")
        except Exception as e:
            raise SearchError(f"Search failed for '{query}': {e}")

    async def match_tracks(self, ctx: SessionContext, tracks: list[Track]) -> list[MatchOutcome]:
        outcomes: list[MatchOutcome] = []
        limiter = self._limiter_factory()

        for index, track in enumerate(tracks):
            ctx.checkpoint()
            await limiter.acquire()
            try:
                video_id = await self._search(ctx, track)
            except YouTubeQuotaExceededError as e:
                remaining = tracks[index:]
                logger.error(f"Quota exceeded at track {index + 1}/{len(tracks)}, "
                             f"skipping {len(remaining)} tracks: {e}")
                outcomes.extend(QuotaExceeded(t) for t in remaining)
                break
            except SearchError as e:
                logger.warning(str(e))
                outcomes.append(Unmatched(track, reason=str(e)))
                continue

            if video_id:
                outcomes.append(Matched(track, video_id))
            else:
                logger.info(f"No match found for: {track.label}")
                outcomes.append(Unmatched(track))

        matched = sum(1 for o in outcomes if isinstance(o, Matched))
        logger.info(f"Matching complete. Found: {matched}, Unmatched: {len(outcomes) - matched}")
        return outcomes
