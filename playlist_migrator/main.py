#!/usr/bin/env python3
"""Playlist Migrator - Service Entry Point"""

import logging
import os
import sys

import uvicorn

from playlist_migrator.app import build_orchestrator, create_app
from playlist_migrator.config import ConfigError, Settings, load_config

LOG_FILE = "playlist_migrator.log"

logger = logging.getLogger(__name__)


def setup_logging(settings: Settings | None = None) -> None:
    level_name = settings.log_level if settings else os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings and settings.data_dir:
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        handlers.insert(0, logging.FileHandler(settings.data_dir / LOG_FILE, encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True,
    )


def main() -> int:
    try:
        settings = load_config()
    except ConfigError as e:
        setup_logging()
        logger.error(str(e))
        return 1

    setup_logging(settings)

    logger.info("Initializing migration service...")
    app = create_app(build_orchestrator(settings))

    logger.info(f"Listening on {settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
