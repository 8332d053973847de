"""In-memory fixed-window rate limiting.

Each route class (auth, dashboard, chat) gets its own limiter instance with
its own limit and window. A visitor record tracks how many requests a client
made since it was last seen; the count resets once a full window has passed
without traffic from that client. A background sweeper evicts idle records so
one-off clients do not accumulate forever.

Limiters are owned by the application lifespan (see ``saasboard.main``); they
are never module-level singletons.
"""

from __future__ import annotations

import asyncio
import contextlib
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from starlette.requests import Request

from saasboard.config import Settings
from saasboard.core.errors import RateLimitedError
from saasboard.core.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]


@dataclass
class Visitor:
    """Per-client request counter."""

    last_seen: float
    count: int


class FixedWindowRateLimiter:
    """Per-client request counter guarded by a short-held lock."""

    def __init__(
        self,
        name: str,
        limit: int,
        window_seconds: float,
        clock: Clock = time.monotonic,
    ):
        self.name = name
        self.limit = int(limit)
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._visitors: dict[str, Visitor] = {}
        self._lock = threading.Lock()
        self._sweeper: asyncio.Task | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._visitors)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._visitors

    def admit(self, key: str) -> bool:
        """Count a request from ``key`` and report whether it may proceed.

        A denied request leaves the visitor record untouched. A limit of zero
        or less disables the limiter.
        """
        if self.limit <= 0:
            return True

        with self._lock:
            now = self._clock()
            visitor = self._visitors.get(key)
            if visitor is None:
                self._visitors[key] = Visitor(last_seen=now, count=1)
                return True

            if now - visitor.last_seen > self.window_seconds:
                visitor.count = 1
                visitor.last_seen = now
                return True

            if visitor.count >= self.limit:
                return False

            visitor.count += 1
            visitor.last_seen = now
            return True

    def sweep(self) -> int:
        """Evict visitors idle for longer than the window. Returns the number removed."""
        with self._lock:
            now = self._clock()
            stale = [
                key
                for key, visitor in self._visitors.items()
                if now - visitor.last_seen > self.window_seconds
            ]
            for key in stale:
                del self._visitors[key]
        return len(stale)

    async def _sweep_forever(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            removed = self.sweep()
            if removed:
                logger.debug(
                    "Evicted idle rate-limit visitors",
                    data={"scope": self.name, "removed": removed},
                )

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start_sweeper(self, interval_seconds: float) -> asyncio.Task:
        """Start the periodic sweep on the running event loop (idempotent)."""
        if not self.sweeper_running:
            self._sweeper = asyncio.create_task(
                self._sweep_forever(interval_seconds),
                name=f"rate-limit-sweeper:{self.name}",
            )
        return self._sweeper

    async def stop_sweeper(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


class RateLimiterRegistry:
    """The set of limiters owned by one application instance."""

    def __init__(
        self,
        limiters: dict[str, FixedWindowRateLimiter],
        trust_proxy_headers: bool = True,
    ):
        self._limiters = dict(limiters)
        self.trust_proxy_headers = trust_proxy_headers

    @classmethod
    def from_settings(
        cls, settings: Settings, clock: Clock = time.monotonic
    ) -> RateLimiterRegistry:
        return cls(
            {
                name: FixedWindowRateLimiter(name, limit, window, clock=clock)
                for name, (limit, window) in settings.rate_limits.items()
            },
            trust_proxy_headers=settings.trust_proxy_headers,
        )

    def get(self, name: str) -> FixedWindowRateLimiter:
        return self._limiters[name]

    def __iter__(self):
        return iter(self._limiters.values())

    def start(self, interval_seconds: float) -> None:
        for limiter in self._limiters.values():
            limiter.start_sweeper(interval_seconds)

    async def stop(self) -> None:
        for limiter in self._limiters.values():
            await limiter.stop_sweeper()


def get_client_ip(request: Request, trust_proxy_headers: bool = True) -> str:
    """
    Extract the client address used as the rate-limit key.

    With ``trust_proxy_headers`` the first ``X-Forwarded-For`` entry, then
    ``X-Real-IP``, wins over the socket peer. Without a proxy in front those
    headers are client-controlled, so turn it off there.
    """
    if trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()
    if request.client:
        return request.client.host
    return "unknown"


def rate_limit(name: str) -> Callable[[Request], Awaitable[None]]:
    """Build a FastAPI dependency enforcing the named limiter.

    Usage:
        router = APIRouter(dependencies=[Depends(rate_limit("chat"))])
    """

    async def enforce_rate_limit(request: Request) -> None:
        registry: RateLimiterRegistry = request.app.state.rate_limiters
        limiter = registry.get(name)
        client_ip = get_client_ip(request, registry.trust_proxy_headers)
        if not limiter.admit(client_ip):
            logger.warning(
                "Rate limit exceeded",
                data={"scope": name, "ip": client_ip, "limit": limiter.limit},
            )
            raise RateLimitedError(
                details={"limit": limiter.limit, "window_seconds": limiter.window_seconds}
            )

    enforce_rate_limit.__name__ = f"rate_limit_{name}"
    return enforce_rate_limit
