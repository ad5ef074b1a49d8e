"""Token field persistence for the credential store"""

import json
import logging
import os
import tempfile
from pathlib import Path

from playlist_migrator.core.models import Credential, CredentialSet

logger = logging.getLogger(__name__)

CREDENTIALS_FILE = ".credentials.json"


def load_credentials(path: Path) -> dict[str, CredentialSet]:
    if not path.exists():
        return {}

    snapshots = {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        for user_id, providers in data.items():
            credentials = {
                provider: Credential(
                    provider=provider,
                    access_token=fields.get("access_token"),
                    refresh_token=fields.get("refresh_token"),
                    expires_at=fields.get("expires_at"),
                )
                for provider, fields in providers.items()
            }
            snapshots[user_id] = CredentialSet(user_id, credentials)
        logger.debug(f"Loaded credentials for {len(snapshots)} users")
    except Exception as e:
        logger.warning(f"Credential file load failed: {e}")
        return {}

    return snapshots


def save_credentials(path: Path, snapshots: dict[str, CredentialSet]) -> None:
    data = {
        user_id: {
            provider: {
                "access_token": cred.access_token,
                "refresh_token": cred.refresh_token,
                "expires_at": cred.expires_at,
            }
            for provider, cred in snapshot.credentials.items()
        }
        for user_id, snapshot in snapshots.items()
    }

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=".credentials_", suffix=".tmp")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
            os.replace(temp_path, path)
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise
    except Exception as e:
        logger.error(f"Credential file save failed: {e}")
