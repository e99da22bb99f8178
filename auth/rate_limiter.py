"""Fixed-window rate limiting per client IP.

Two policies share one window store:

- general: every admin API request, 100 per 15 minutes
- auth: login and refresh, 5 per 15 minutes, keyed ``auth:<ip>`` so the two
  policies never share a counter

Windows start on the first request and reset at a fixed time; they do not
slide. The limiter runs as a FastAPI dependency, so a rejected request never
reaches credential checks or database work.

Only the first rejection in a window is recorded as a security event; later
rejections in the same window go to the debug log.

InMemoryWindowStore is per-process and resets on restart. ValkeyWindowStore
shares windows between instances.
"""

import asyncio
import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from fastapi import Request

from auth.config import AuthConfig
from auth.exceptions import RateLimitedError
from auth.security_logger import SecurityLogger, SecurityEvent
from clients.valkey_client import ValkeyClient

logger = logging.getLogger(__name__)

GENERAL_MESSAGE = "Too many requests. Please try again later."
AUTH_MESSAGE = "Too many login attempts. Please try again in 15 minutes."


@dataclass
class RateLimitWindow:
    """Request count for one key and when its window resets (epoch seconds)."""

    count: int
    reset_at: float
    rejected: int = 0


@dataclass(frozen=True)
class Rejection:
    """A request over the cap. Only the first one in a window is reported as a security event."""

    retry_after: int
    first_in_window: bool


@dataclass(frozen=True)
class RateLimitPolicy:
    """A cap on requests per window."""

    name: str
    limit: int
    window_seconds: int
    message: str
    key_prefix: str = ""

    def key(self, client_ip: str) -> str:
        return f"{self.key_prefix}{client_ip}"


class WindowStore(ABC):
    """Storage for rate-limit windows."""

    @abstractmethod
    def hit(self, key: str, limit: int, window_seconds: int) -> Rejection | None:
        """
        Count one request against ``key``.

        Returns:
            None if the request is allowed, otherwise a Rejection carrying the
            seconds until the window resets.
        """

    def sweep(self) -> int:
        """Discard expired windows. Returns how many were removed."""
        return 0


class InMemoryWindowStore(WindowStore):
    """
    Windows held in a dict in this process.

    All access happens on the event loop thread, so no lock is needed and the
    sweep never contends with request handling.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._windows: dict[str, RateLimitWindow] = {}

    def get(self, key: str) -> RateLimitWindow | None:
        return self._windows.get(key)

    def hit(self, key: str, limit: int, window_seconds: int) -> Rejection | None:
        now = self._clock()
        window = self._windows.get(key)

        if window is None or now >= window.reset_at:
            self._windows[key] = RateLimitWindow(count=1, reset_at=now + window_seconds)
            return None

        if window.count >= limit:
            window.rejected += 1
            return Rejection(
                retry_after=max(math.ceil(window.reset_at - now), 1),
                first_in_window=window.rejected == 1,
            )

        window.count += 1
        return None

    def sweep(self) -> int:
        now = self._clock()
        expired = [key for key, window in self._windows.items() if now >= window.reset_at]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._windows)


class ValkeyWindowStore(WindowStore):
    """
    Windows held in Valkey, shared by every app instance.

    Valkey expires closed windows itself, so sweep() has nothing to do.
    """

    KEY_PREFIX = "ratelimit:"

    def __init__(self, valkey: ValkeyClient):
        self._valkey = valkey

    def hit(self, key: str, limit: int, window_seconds: int) -> Rejection | None:
        count, ttl = self._valkey.count_in_window(f"{self.KEY_PREFIX}{key}", window_seconds)
        if count <= limit:
            return None
        return Rejection(retry_after=max(ttl, 1), first_in_window=count == limit + 1)


def client_ip(request: Request) -> str:
    """First X-Forwarded-For entry, else the socket peer address."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client:
        return request.client.host
    return "unknown"


class RateLimiter:
    """Applies the general and auth policies against a window store."""

    def __init__(
        self,
        store: WindowStore,
        config: AuthConfig,
        security_logger: SecurityLogger | None = None,
    ):
        self._store = store
        self._config = config
        self._security_logger = security_logger

        window_seconds = config.rate_limit_window_minutes * 60
        self.general = RateLimitPolicy(
            name="general",
            limit=config.general_rate_limit,
            window_seconds=window_seconds,
            message=GENERAL_MESSAGE,
        )
        self.auth = RateLimitPolicy(
            name="auth",
            limit=config.auth_rate_limit,
            window_seconds=window_seconds,
            message=AUTH_MESSAGE,
            key_prefix="auth:",
        )

    @property
    def store(self) -> WindowStore:
        return self._store

    def check(self, policy: RateLimitPolicy, ip_address: str) -> None:
        """
        Count a request from ``ip_address`` under ``policy``.

        Raises:
            RateLimitedError: If the window's cap has been reached.
        """
        rejection = self._store.hit(policy.key(ip_address), policy.limit, policy.window_seconds)
        if rejection is None:
            return

        if rejection.first_in_window and self._security_logger:
            self._security_logger.log(
                SecurityEvent.RATE_LIMITED,
                ip_address=ip_address,
                details={"policy": policy.name, "retry_after": rejection.retry_after},
            )
        else:
            logger.debug("Rate limited %s under %s policy", ip_address, policy.name)
        raise RateLimitedError(retry_after_seconds=rejection.retry_after, message=policy.message)

    def dependency(self, policy: RateLimitPolicy):
        """FastAPI dependency enforcing ``policy`` before the handler runs."""

        async def enforce(request: Request) -> None:
            self.check(policy, client_ip(request))

        return enforce

    def sweep(self) -> int:
        removed = self._store.sweep()
        if removed:
            logger.debug("Swept %d expired rate-limit windows", removed)
        return removed

    async def run_sweeper(self) -> None:
        """Sweep expired windows forever at the configured interval. Cancel to stop."""
        interval = self._config.rate_limit_sweep_minutes * 60
        while True:
            await asyncio.sleep(interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("Rate-limit sweep failed")
