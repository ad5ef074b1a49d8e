"""
Credential Store

Holds one immutable CredentialSet snapshot per user. Reads never lock; every
mutation builds a new snapshot and swaps it in. Token refresh is single-flight
per (user, provider): concurrent callers await the same pending refresh, since
a provider may invalidate a refresh token after its first use.
"""

import asyncio
import logging
import threading
import time
from pathlib import Path
from typing import Callable, Protocol

from playlist_migrator.core.credential_file import load_credentials, save_credentials
from playlist_migrator.core.errors import AuthError
from playlist_migrator.core.models import Credential, CredentialSet, TokenGrant

logger = logging.getLogger(__name__)

REFRESH_BUFFER_SECONDS = 60


class TokenRefresher(Protocol):
    def refresh(self, refresh_token: str) -> TokenGrant: ...


class CredentialStore:
    def __init__(self, refreshers: dict[str, TokenRefresher],
                 refresh_buffer: float = REFRESH_BUFFER_SECONDS,
                 timeout: float | None = None,
                 path: Path | None = None,
                 clock: Callable[[], float] = time.time):
        self._refreshers = refreshers
        self._buffer = refresh_buffer
        self._timeout = timeout
        self._path = path
        self._clock = clock
        self._snapshots: dict[str, CredentialSet] = load_credentials(path) if path else {}
        self._inflight: dict[tuple[str, str], asyncio.Future] = {}
        self._save_lock = threading.Lock()

    def snapshot(self, user_id: str) -> CredentialSet:
        return self._snapshots.get(user_id) or CredentialSet(user_id)

    def _publish(self, snapshot: CredentialSet, persist: bool = True) -> None:
        self._snapshots[snapshot.user_id] = snapshot
        if persist:
            self._persist()

    def _persist(self) -> None:
        if not self._path:
            return
        with self._save_lock:
            save_credentials(self._path, dict(self._snapshots))

    def link(self, user_id: str, credential: Credential) -> CredentialSet:
        """Store a credential obtained from a provider's authorization flow."""
        snapshot = self.snapshot(user_id).with_credential(credential)
        self._publish(snapshot)
        logger.info(f"Linked {credential.provider} for user {user_id}")
        return snapshot

    def clear(self, user_id: str, provider: str) -> CredentialSet:
        """Drop the token fields for one provider."""
        snapshot = self.snapshot(user_id).without(provider)
        self._publish(snapshot)
        logger.info(f"Cleared {provider} credential for user {user_id}")
        return snapshot

    async def get_valid_credential(self, user_id: str, provider: str) -> Credential:
        credential = self.snapshot(user_id).get(provider)
        if credential is None or not credential.is_connected:
            raise AuthError(provider, "not connected")

        if not credential.expires_within(self._clock(), self._buffer):
            return credential

        key = (user_id, provider)
        pending = self._inflight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._refresh(user_id, credential))
            self._inflight[key] = pending
            pending.add_done_callback(lambda done: self._forget(key, done))
        # waiters share one refresh; a cancelled waiter leaves it running
        return await asyncio.shield(pending)

    def _forget(self, key: tuple[str, str], done: asyncio.Future) -> None:
        if self._inflight.get(key) is done:
            del self._inflight[key]
        if not done.cancelled():
            done.exception()  # mark retrieved when every waiter went away

    def _superseded(self, user_id: str, started: Credential) -> Credential | None:
        """Return the current credential if it was linked or cleared since `started` was read.

        A refresh result only applies to the credential it began from; a
        disconnect or relink in the meantime wins.
        """
        current = self.snapshot(user_id).get(started.provider)
        if current == started:
            return None

        logger.info(f"{started.provider} credential for user {user_id} changed during refresh, result discarded")
        if current is None or not current.is_connected:
            raise AuthError(started.provider, "disconnected during token refresh")
        return current

    async def _refresh(self, user_id: str, credential: Credential) -> Credential:
        provider = credential.provider

        current = self._superseded(user_id, credential)
        if current is not None:
            return current

        if not credential.refresh_token:
            logger.warning(f"{provider} token expired without refresh token for user {user_id}")
            self.clear(user_id, provider)
            raise AuthError(provider, "token expired and no refresh token is available")

        refresher = self._refreshers.get(provider)
        if refresher is None:
            raise AuthError(provider, "no token refresher configured")

        logger.info(f"Refreshing {provider} token for user {user_id}")
        try:
            call = asyncio.to_thread(refresher.refresh, credential.refresh_token)
            grant = await asyncio.wait_for(call, self._timeout)
        except Exception as e:
            current = self._superseded(user_id, credential)
            if current is not None:
                return current
            logger.error(f"{provider} token refresh failed for user {user_id}: {e}")
            self.clear(user_id, provider)
            raise AuthError(provider, f"token refresh failed: {e}")

        current = self._superseded(user_id, credential)
        if current is not None:
            return current

        snapshot = self.snapshot(user_id).with_grant(provider, grant)
        self._publish(snapshot, persist=False)
        await asyncio.to_thread(self._persist)
        logger.info(f"{provider} token refreshed for user {user_id}")
        return snapshot.get(provider)
