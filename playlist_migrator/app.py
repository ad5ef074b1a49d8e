"""HTTP API for playlist migration"""

import logging
import time

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse

from playlist_migrator.clients.spotify import SpotifyClient
from playlist_migrator.clients.youtube import YouTubeClient
from playlist_migrator.config import Settings
from playlist_migrator.core.builder import PlaylistBuilder
from playlist_migrator.core.credential_file import CREDENTIALS_FILE
from playlist_migrator.core.credentials import CredentialStore
from playlist_migrator.core.errors import MigrationError
from playlist_migrator.core.fetcher import SourceFetcher
from playlist_migrator.core.matcher import DestinationMatcher
from playlist_migrator.core.models import GOOGLE, PROVIDERS, SPOTIFY, Credential
from playlist_migrator.core.orchestrator import MigrationOrchestrator, parse_request
from playlist_migrator.core.ratelimit import RateLimiter
from playlist_migrator.core.report import error_payload, report_payload

logger = logging.getLogger(__name__)


def build_orchestrator(settings: Settings) -> MigrationOrchestrator:
    """Wire provider clients, credential store and pipeline from settings."""
    timeout = settings.request_timeout_seconds
    spotify = SpotifyClient(settings.spotify_client_id, settings.spotify_client_secret, timeout=timeout)
    youtube = YouTubeClient(settings.google_client_id, settings.google_client_secret, timeout=timeout)

    store = CredentialStore(
        refreshers={SPOTIFY: spotify, GOOGLE: youtube},
        refresh_buffer=settings.refresh_buffer_seconds,
        timeout=timeout,
        path=settings.data_dir / CREDENTIALS_FILE if settings.data_dir else None,
    )

    def limiter() -> RateLimiter:
        return RateLimiter(settings.search_calls_per_period, settings.search_period_seconds)

    return MigrationOrchestrator(
        store=store,
        fetcher=SourceFetcher(spotify),
        matcher=DestinationMatcher(youtube, limiter_factory=limiter),
        builder=PlaylistBuilder(youtube),
        timeout=timeout,
    )


def _error(status: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message, **extra})


async def _json_body(request: Request):
    try:
        return await request.json()
    except ValueError:
        return None


def create_app(orchestrator: MigrationOrchestrator) -> FastAPI:
    app = FastAPI(title="playlist-migrator")
    app.state.orchestrator = orchestrator
    store = orchestrator.store

    @app.post("/migrate")
    async def migrate(request: Request, x_user_id: str | None = Header(default=None)):
        logger.info("POST /migrate: Received request")
        if not x_user_id:
            return _error(401, "Authentication required.")

        payload = await _json_body(request)
        if payload is None:
            return _error(400, "Invalid request body")

        start = time.time()
        try:
            migration = parse_request(payload)
            report = await orchestrator.migrate(x_user_id, migration)
        except MigrationError as e:
            logger.warning(f"POST /migrate: {type(e).__name__} ({e.status_code}): {e}")
            return JSONResponse(status_code=e.status_code, content=error_payload(e))
        except Exception as e:
            logger.exception(f"POST /migrate: Unexpected error: {e}")
            return _error(500, f"Migration Failed: {e}")

        logger.info(f"POST /migrate: Completed in {time.time() - start:.1f}s")
        return report_payload(report)

    @app.post("/connect")
    async def connect(request: Request, x_user_id: str | None = Header(default=None)):
        if not x_user_id:
            return _error(401, "Authentication required.")

        payload = await _json_body(request)
        if not isinstance(payload, dict):
            return _error(400, "Invalid request body")

        provider = payload.get("provider")
        access_token = payload.get("accessToken")
        expires_in = payload.get("expiresIn")
        if provider not in PROVIDERS:
            return _error(400, f"Invalid provider specified. Must be one of: {', '.join(PROVIDERS)}.")
        if not isinstance(access_token, str) or not access_token:
            return _error(400, "accessToken is required.")
        if expires_in is not None and (isinstance(expires_in, bool) or not isinstance(expires_in, (int, float))):
            return _error(400, "expiresIn must be a number.")

        store.link(x_user_id, Credential(
            provider=provider,
            access_token=access_token,
            refresh_token=payload.get("refreshToken") or None,
            expires_at=time.time() + expires_in if expires_in is not None else None,
        ))
        return {"success": True}

    @app.post("/disconnect")
    async def disconnect(request: Request, x_user_id: str | None = Header(default=None)):
        if not x_user_id:
            return _error(401, "Authentication required.")

        payload = await _json_body(request)
        provider = payload.get("provider") if isinstance(payload, dict) else None
        if provider not in PROVIDERS:
            return _error(400, f"Invalid provider specified. Must be one of: {', '.join(PROVIDERS)}.")

        store.clear(x_user_id, provider)
        return {"success": True}

    @app.get("/playlists")
    async def playlists(x_user_id: str | None = Header(default=None)):
        if not x_user_id:
            return _error(401, "Authentication required.")

        ctx = orchestrator.context(x_user_id)
        try:
            items = await orchestrator.list_source_playlists(ctx)
        except MigrationError as e:
            return JSONResponse(status_code=e.status_code, content=error_payload(e))
        except Exception as e:
            logger.error(f"GET /playlists: {e}")
            return _error(500, f"Internal Server Error: {e}")
        return {"playlists": items}

    return app
