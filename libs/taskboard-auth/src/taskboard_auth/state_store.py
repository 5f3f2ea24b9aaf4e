"""OAuth2 CSRF state storage protocol with in-memory and Redis implementations."""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from redis.asyncio import Redis

from taskboard_auth.credentials import now_ms

logger = logging.getLogger(__name__)

STATE_TTL_SECONDS = 10 * 60


def generate_state() -> str:
    """Return a fresh URL-safe state token with 256 bits of entropy."""
    return secrets.token_urlsafe(32)


def _hint(state: str) -> str:
    return state[:8] + "..."


@runtime_checkable
class OAuthStateStore(Protocol):
    """Protocol for issuing and single-use consuming OAuth2 state tokens.

    A state token is valid for strictly less than :data:`STATE_TTL_SECONDS`
    after issuance (the same boundary as a native Redis TTL) and can be
    consumed at most once. Absence (never issued, already consumed, expired)
    is reported as ``False``, never raised.
    """

    async def create(self) -> str:
        """Issue, record and return a new state token."""
        ...

    async def consume(self, state: str) -> bool:
        """Atomically validate and delete *state*.

        Returns:
            ``True`` exactly once for a live token, ``False`` otherwise.
        """
        ...


class InMemoryOAuthStateStore:
    """Process-local :class:`OAuthStateStore`.

    Stale entries are swept opportunistically on every :meth:`create`. Suitable
    for single-process deployments; use :class:`RedisOAuthStateStore` when more
    than one server process handles callbacks.
    """

    def __init__(
        self,
        *,
        ttl_seconds: int = STATE_TTL_SECONDS,
        clock: Callable[[], int] = now_ms,
        token_factory: Callable[[], str] = generate_state,
    ) -> None:
        self._store: dict[str, int] = {}
        self._ttl_ms = ttl_seconds * 1000
        self._clock = clock
        self._token_factory = token_factory
        self._lock = asyncio.Lock()

    def _is_stale(self, issued_at: int, now: int) -> bool:
        return issued_at <= now - self._ttl_ms

    async def create(self) -> str:
        state = self._token_factory()
        now = self._clock()
        async with self._lock:
            self._store[state] = now
            stale = [key for key, issued_at in self._store.items() if self._is_stale(issued_at, now)]
            for key in stale:
                del self._store[key]
        if stale:
            logger.debug("State store sweep: discarded %d stale entries", len(stale))
        logger.info("OAuth2 state issued: state=%s", _hint(state), extra={"event": "state_issued"})
        return state

    async def consume(self, state: str) -> bool:
        async with self._lock:
            issued_at = self._store.pop(state, None)
        if issued_at is None:
            return False
        if self._is_stale(issued_at, self._clock()):
            logger.warning("OAuth2 state expired: state=%s", _hint(state), extra={"event": "state_expired"})
            return False
        return True

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, state: object) -> bool:
        return state in self._store


class RedisOAuthStateStore:
    """Redis-backed :class:`OAuthStateStore`.

    Each token lives under ``<prefix><token>`` with a native TTL, so no sweep
    is needed. :meth:`consume` uses ``GETDEL``, which makes single use atomic
    across server processes.
    """

    def __init__(
        self,
        redis: Redis,
        *,
        key_prefix: str = "oauth:state:",
        ttl_seconds: int = STATE_TTL_SECONDS,
        clock: Callable[[], int] = now_ms,
        token_factory: Callable[[], str] = generate_state,
    ) -> None:
        self._redis = redis
        self._prefix = key_prefix
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._token_factory = token_factory

    def _key(self, state: str) -> str:
        return f"{self._prefix}{state}"

    async def create(self) -> str:
        state = self._token_factory()
        await self._redis.set(self._key(state), str(self._clock()), ex=self._ttl_seconds)
        logger.info("OAuth2 state issued: state=%s", _hint(state), extra={"event": "state_issued"})
        return state

    async def consume(self, state: str) -> bool:
        value = await self._redis.getdel(self._key(state))
        return value is not None
