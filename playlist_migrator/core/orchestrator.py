"""
Migration Orchestrator

Drives one migration request through a sequential pipeline:

    VALIDATING -> FETCHING_SOURCE -> MATCHING -> BUILDING -> DONE

with FAILED reachable from every state. Failures below playlist or track
granularity end up in the report; whole-request failures raise a
MigrationError that records the state it happened in.

Partial failure rules:
- a playlist that cannot be fetched is skipped
- a track whose search fails is reported as unmatched
- quota exhaustion moves the remaining tracks to their own bucket and is
  fatal only when nothing matched
- a build failure is fatal and the already matched work is discarded
"""

import asyncio
import logging
import time

from playlist_migrator.core.builder import PlaylistBuilder
from playlist_migrator.core.context import SessionContext
from playlist_migrator.core.credentials import CredentialStore
from playlist_migrator.core.errors import (
    BuildError, FetchError, InternalError, MigrationError, MigrationFailed,
    NoMatchesFound, NoTracksFound, QuotaExceededError, ValidationError,
)
from playlist_migrator.core.fetcher import SourceFetcher
from playlist_migrator.core.matcher import DestinationMatcher
from playlist_migrator.core.models import (
    GOOGLE, LIMIT_ALL, LIMIT_LATEST, SPOTIFY, MatchSummary, MigrationReport,
    MigrationRequest, MigrationState, Track,
)

logger = logging.getLogger(__name__)

LIMIT_MODES = (LIMIT_ALL, LIMIT_LATEST)


def parse_request(payload) -> MigrationRequest:
    """Build a MigrationRequest from a camelCase JSON body."""
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    playlist_ids = payload.get("sourcePlaylistIds")
    if not isinstance(playlist_ids, list) or not all(isinstance(p, str) for p in playlist_ids):
        raise ValidationError("sourcePlaylistIds must be an array of strings")

    name = payload.get("targetPlaylistName")
    if not isinstance(name, str):
        raise ValidationError("targetPlaylistName must be a string")

    track_limit = payload.get("trackLimit")
    if isinstance(track_limit, float) and track_limit.is_integer():
        track_limit = int(track_limit)
    if track_limit is not None and (isinstance(track_limit, bool) or not isinstance(track_limit, int)):
        raise ValidationError("trackLimit must be a whole number")

    limit_mode = payload.get("limitMode") or LIMIT_ALL

    return MigrationRequest(
        source_playlist_ids=tuple(playlist_ids),
        target_playlist_name=name,
        track_limit=track_limit,
        limit_mode=limit_mode,
    )


def validate_request(request: MigrationRequest) -> None:
    if not request.source_playlist_ids:
        raise ValidationError("sourcePlaylistIds must not be empty")
    if any(not p.strip() for p in request.source_playlist_ids):
        raise ValidationError("sourcePlaylistIds must not contain blank ids")
    if not request.target_playlist_name.strip():
        raise ValidationError("targetPlaylistName must not be blank")
    if request.limit_mode not in LIMIT_MODES:
        raise ValidationError(f"limitMode must be one of {', '.join(LIMIT_MODES)}")
    if request.track_limit is not None and request.track_limit <= 0:
        raise ValidationError("trackLimit must be positive")
    if request.limit_mode == LIMIT_LATEST and not request.track_limit:
        raise ValidationError("limitMode 'latest' requires a positive trackLimit")


class MigrationOrchestrator:
    """Composes fetcher, matcher and builder into one migration."""

    def __init__(self, store: CredentialStore, fetcher: SourceFetcher,
                 matcher: DestinationMatcher, builder: PlaylistBuilder,
                 timeout: float | None = 15.0):
        self._store = store
        self._fetcher = fetcher
        self._matcher = matcher
        self._builder = builder
        self._timeout = timeout

    @property
    def store(self) -> CredentialStore:
        return self._store

    async def list_source_playlists(self, ctx: SessionContext) -> list[dict]:
        return await self._fetcher.list_playlists(ctx)

    def context(self, user_id: str, cancel_event: asyncio.Event | None = None) -> SessionContext:
        ctx = SessionContext(user_id=user_id, store=self._store, timeout=self._timeout)
        if cancel_event is not None:
            ctx.cancel_event = cancel_event
        return ctx

    async def _fetch_all(self, ctx: SessionContext, request: MigrationRequest) -> list[Track]:
        tracks: list[Track] = []
        for playlist_id in request.source_playlist_ids:
            try:
                fetched = await self._fetcher.fetch_tracks(ctx, playlist_id, request.window)
            except FetchError as e:
                logger.error(f"{e} - skipping")
                continue
            logger.info(f"  - Fetched {len(fetched)} tracks from playlist {playlist_id}")
            tracks.extend(fetched)
        return tracks

    async def migrate(self, user_id: str, request: MigrationRequest,
                      cancel_event: asyncio.Event | None = None) -> MigrationReport:
        """Run a full migration. Returns MigrationReport or raises MigrationError."""
        start = time.time()
        state = MigrationState.VALIDATING
        ctx = self.context(user_id, cancel_event)

        logger.info("=" * 50)
        logger.info(f"Starting migration of {len(request.source_playlist_ids)} playlists "
                    f"to '{request.target_playlist_name}' for user {user_id}")

        try:
            validate_request(request)
            await ctx.access_token(SPOTIFY)
            await ctx.access_token(GOOGLE)

            state = self._enter(MigrationState.FETCHING_SOURCE)
            tracks = await self._fetch_all(ctx, request)
            logger.info(f"Source: {len(tracks)} tracks")
            if not tracks:
                raise NoTracksFound("No tracks found in the selected source playlists")

            state = self._enter(MigrationState.MATCHING)
            outcomes = await self._matcher.match_tracks(ctx, tracks)
            summary = MatchSummary.from_outcomes(outcomes)

            if not summary.matched_ids:
                if summary.quota_exceeded:
                    raise QuotaExceededError(
                        "Destination quota exceeded before any track was matched",
                        summary.quota_exceeded, summary.unmatched,
                    )
                raise NoMatchesFound("Could not find any matching videos for the selected tracks")

            state = self._enter(MigrationState.BUILDING)
            try:
                playlist_id = await self._builder.create_playlist(ctx, request.target_playlist_name.strip())
                await self._builder.append_items(ctx, playlist_id, summary.matched_ids)
            except BuildError as e:
                raise MigrationFailed(f"Migration Failed: {e}", e.playlist_id, e.appended) from e

            state = self._enter(MigrationState.DONE)

        except MigrationError as e:
            e.state = state
            self._enter(MigrationState.FAILED)
            logger.error(f"Migration failed during {state.value}: {e}")
            logger.info("=" * 50)
            raise
        except asyncio.CancelledError:
            logger.warning(f"Migration task cancelled during {state.value}")
            raise
        except Exception as e:
            logger.exception(f"Unexpected error during {state.value}: {e}")
            error = InternalError(f"Migration Failed: {e}")
            error.state = state
            raise error from e

        report = MigrationReport(
            destination_playlist_id=playlist_id,
            total_tracks_processed=len(tracks),
            total_videos_added=len(summary.matched_ids),
            unmatched_tracks=summary.unmatched,
            quota_exceeded_tracks=summary.quota_exceeded,
        )

        logger.info(f"Completed in {time.time() - start:.1f}s: "
                    f"{report.total_videos_added}/{report.total_tracks_processed} added"
                    + (" (QUOTA EXCEEDED)" if report.quota_exceeded else ""))
        logger.info("=" * 50)
        return report

    def _enter(self, state: MigrationState) -> MigrationState:
        logger.info(f"State: {state.value}")
        return state
