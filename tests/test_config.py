"""Tests for environment configuration."""

import json
from pathlib import Path

import pytest

from playlist_migrator.config import ConfigError, load_config

REQUIRED = {
    "SPOTIFY_CLIENT_ID": "sid",
    "SPOTIFY_CLIENT_SECRET": "ssecret",
    "GOOGLE_CLIENT_ID": "gid",
    "GOOGLE_CLIENT_SECRET": "gsecret",
}


def test_defaults():
    settings = load_config(REQUIRED)
    assert settings.refresh_buffer_seconds == 60.0
    assert settings.search_calls_per_period == 1
    assert settings.search_period_seconds == 1.1
    assert settings.request_timeout_seconds == 15.0
    assert settings.data_dir is None
    assert settings.port == 8080


def test_overrides():
    settings = load_config({
        **REQUIRED,
        "MIGRATOR_DATA_DIR": "/tmp/migrator",
        "LOG_LEVEL": "debug",
        "SEARCH_CALLS_PER_PERIOD": "5",
        "SEARCH_PERIOD_SECONDS": "2.5",
        "PORT": "9000",
    })
    assert settings.data_dir == Path("/tmp/migrator")
    assert settings.log_level == "DEBUG"
    assert settings.search_calls_per_period == 5
    assert settings.search_period_seconds == 2.5
    assert settings.port == 9000


def test_missing_values_are_all_reported():
    with pytest.raises(ConfigError) as exc:
        load_config({"SPOTIFY_CLIENT_ID": "sid"})
    message = str(exc.value)
    for name in ("SPOTIFY_CLIENT_SECRET", "GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET"):
        assert name in message


def test_google_secrets_file_fallback(tmp_path):
    (tmp_path / "client_secrets.json").write_text(json.dumps(
        {"web": {"client_id": "file-id", "client_secret": "file-secret"}}
    ))
    settings = load_config({
        "SPOTIFY_CLIENT_ID": "sid",
        "SPOTIFY_CLIENT_SECRET": "ssecret",
        "MIGRATOR_DATA_DIR": str(tmp_path),
    })
    assert settings.google_client_id == "file-id"
    assert settings.google_client_secret == "file-secret"


@pytest.mark.parametrize("name,value", [
    ("REQUEST_TIMEOUT_SECONDS", "soon"),
    ("SEARCH_CALLS_PER_PERIOD", "1.5"),
    ("SEARCH_CALLS_PER_PERIOD", "0"),
])
def test_bad_numbers(name, value):
    with pytest.raises(ConfigError):
        load_config({**REQUIRED, name: value})
