"""Valkey connection for rate-limit windows shared between app instances."""

import logging

import redis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Thin redis-py wrapper exposing the one operation the rate limiter needs.

    The connection is checked on construction; an unreachable server raises
    instead of silently falling back to per-process windows.
    """

    def __init__(self, url: str):
        self._client = redis.from_url(url, decode_responses=True)
        self._client.ping()
        logger.info("Connected to Valkey")

    def count_in_window(self, key: str, window_seconds: int) -> tuple[int, int]:
        """
        Add one hit to a fixed window counter.

        INCR, EXPIRE NX and TTL run in a single MULTI/EXEC, so the first hit
        opens the window and later hits never extend it.

        Returns:
            (hits so far in the window, seconds until the window closes)
        """
        with self._client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, window_seconds, nx=True)
            pipe.ttl(key)
            count, _, ttl = pipe.execute()
        return count, ttl

    def ping(self) -> bool:
        """True if the server answers; raises redis.RedisError otherwise."""
        return bool(self._client.ping())

    def close(self) -> None:
        self._client.close()
        logger.info("Valkey connection closed")
