"""Service configuration from environment variables"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

logger = logging.getLogger(__name__)

CLIENT_SECRETS_FILE = "client_secrets.json"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class Settings:
    spotify_client_id: str
    spotify_client_secret: str
    google_client_id: str
    google_client_secret: str
    data_dir: Path | None = None
    log_level: str = "INFO"
    refresh_buffer_seconds: float = 60.0
    search_calls_per_period: int = 1
    search_period_seconds: float = 1.1
    request_timeout_seconds: float = 15.0
    host: str = "0.0.0.0"
    port: int = 8080


def _load_google_secrets(data_dir: Path | None) -> tuple[str, str] | None:
    """Read OAuth client credentials from client_secrets.json in data_dir."""
    if data_dir is None:
        return None
    secrets_file = data_dir / CLIENT_SECRETS_FILE
    if not secrets_file.exists():
        return None
    try:
        secrets = json.loads(secrets_file.read_text())
        creds = secrets.get("installed") or secrets.get("web")
        if creds:
            return creds["client_id"], creds["client_secret"]
    except Exception as e:
        logger.warning(f"Failed to parse {CLIENT_SECRETS_FILE}: {e}")
    return None


def _number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def load_config(env: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if env is None else env
    data_dir = Path(env["MIGRATOR_DATA_DIR"]) if env.get("MIGRATOR_DATA_DIR") else None

    google_id = env.get("GOOGLE_CLIENT_ID")
    google_secret = env.get("GOOGLE_CLIENT_SECRET")
    if not (google_id and google_secret):
        secrets = _load_google_secrets(data_dir)
        if secrets:
            google_id, google_secret = secrets

    values = {
        "SPOTIFY_CLIENT_ID": env.get("SPOTIFY_CLIENT_ID"),
        "SPOTIFY_CLIENT_SECRET": env.get("SPOTIFY_CLIENT_SECRET"),
        "GOOGLE_CLIENT_ID": google_id,
        "GOOGLE_CLIENT_SECRET": google_secret,
    }
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise ConfigError(f"Missing config: {', '.join(missing)}")

    settings = Settings(
        spotify_client_id=values["SPOTIFY_CLIENT_ID"],
        spotify_client_secret=values["SPOTIFY_CLIENT_SECRET"],
        google_client_id=values["GOOGLE_CLIENT_ID"],
        google_client_secret=values["GOOGLE_CLIENT_SECRET"],
        data_dir=data_dir,
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        refresh_buffer_seconds=_number(env, "TOKEN_REFRESH_BUFFER_SECONDS", 60.0, float),
        search_calls_per_period=_number(env, "SEARCH_CALLS_PER_PERIOD", 1, int),
        search_period_seconds=_number(env, "SEARCH_PERIOD_SECONDS", 1.1, float),
        request_timeout_seconds=_number(env, "REQUEST_TIMEOUT_SECONDS", 15.0, float),
        host=env.get("HOST", "0.0.0.0"),
        port=_number(env, "PORT", 8080, int),
    )

    if settings.search_calls_per_period < 1:
        raise ConfigError("SEARCH_CALLS_PER_PERIOD must be at least 1")
    return settings
