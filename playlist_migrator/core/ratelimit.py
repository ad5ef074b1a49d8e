"""Call-rate limiter for destination searches"""

from asyncio_throttle import Throttler

DEFAULT_CALLS = 1
DEFAULT_PERIOD = 1.1


class RateLimiter:
    """Allows at most `calls` acquisitions in any `period` seconds.

    The first acquisitions go through immediately; later ones wait for the
    oldest to age out of the window, so no wait follows the last call.
    """

    def __init__(self, calls: int = DEFAULT_CALLS, period: float = DEFAULT_PERIOD):
        if calls < 1:
            raise ValueError("calls must be at least 1")
        if period < 0:
            raise ValueError("period must not be negative")
        self.calls = calls
        self.period = period
        self._throttler = Throttler(rate_limit=calls, period=period)

    async def acquire(self) -> None:
        await self._throttler.acquire()

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None

    def __repr__(self) -> str:
        return f"RateLimiter(calls={self.calls}, period={self.period})"
