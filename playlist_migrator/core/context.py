"""Per-request session context threaded through fetcher, matcher and builder."""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from playlist_migrator.core.credentials import CredentialStore
from playlist_migrator.core.errors import MigrationCancelled

T = TypeVar('T')


@dataclass
class SessionContext:
    """Who the request runs for, how long each call may take, and whether to stop."""
    user_id: str
    store: CredentialStore
    timeout: float | None = 15.0
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    def checkpoint(self) -> None:
        if self.cancel_event.is_set():
            raise MigrationCancelled("Migration cancelled")

    async def access_token(self, provider: str) -> str:
        self.checkpoint()
        credential = await self.store.get_valid_credential(self.user_id, provider)
        return credential.access_token

    async def call(self, fn: Callable[..., T], *args: Any) -> T:
        """Run a blocking provider call off the loop under the request deadline.

        Raises asyncio.TimeoutError when the deadline passes and
        MigrationCancelled when cancellation was requested before or during
        the call.
        """
        self.checkpoint()
        result = await asyncio.wait_for(asyncio.to_thread(fn, *args), self.timeout)
        self.checkpoint()
        return result
