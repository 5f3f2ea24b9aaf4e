"""Shared fixtures for taskboard-auth tests."""

from __future__ import annotations

import fnmatch
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest
from taskboard_auth.credentials import CredentialRecord

T0 = 1_700_000_000_000
HOUR_MS = 60 * 60 * 1000


class FakeClock:
    """Controllable epoch-millisecond clock."""

    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeRedis:
    """In-process stand-in for the ``redis.asyncio.Redis`` commands the stores use.

    Behaves like a client created with ``decode_responses=False``: values and
    scanned keys come back as ``bytes``. Keys with a TTL disappear once the
    shared clock passes their deadline.
    """

    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self.data: dict[str, bytes] = {}
        self.expiry_ms: dict[str, int] = {}
        self.closed = False
        self.eval_calls = 0

    @staticmethod
    def _name(key: str | bytes) -> str:
        return key.decode() if isinstance(key, bytes) else key

    def _expire(self, key: str) -> None:
        deadline = self.expiry_ms.get(key)
        if deadline is not None and self._clock() >= deadline:
            self.data.pop(key, None)
            self.expiry_ms.pop(key, None)

    async def set(self, key: str | bytes, value: str | bytes, ex: int | None = None) -> bool:
        name = self._name(key)
        self.data[name] = value.encode() if isinstance(value, str) else value
        if ex is not None:
            self.expiry_ms[name] = self._clock() + ex * 1000
        else:
            self.expiry_ms.pop(name, None)
        return True

    async def get(self, key: str | bytes) -> bytes | None:
        name = self._name(key)
        self._expire(name)
        return self.data.get(name)

    async def getdel(self, key: str | bytes) -> bytes | None:
        name = self._name(key)
        self._expire(name)
        self.expiry_ms.pop(name, None)
        return self.data.pop(name, None)

    async def delete(self, *keys: str | bytes) -> int:
        removed = 0
        for key in keys:
            name = self._name(key)
            self._expire(name)
            if self.data.pop(name, None) is not None:
                removed += 1
            self.expiry_ms.pop(name, None)
        return removed

    async def ttl(self, key: str | bytes) -> int:
        name = self._name(key)
        self._expire(name)
        if name not in self.data:
            return -2
        deadline = self.expiry_ms.get(name)
        if deadline is None:
            return -1
        return (deadline - self._clock()) // 1000

    async def scan_iter(self, match: str | None = None, count: int | None = None) -> AsyncIterator[bytes]:
        for name in list(self.data):
            self._expire(name)
            if name in self.data and (match is None or fnmatch.fnmatchcase(name, match)):
                yield name.encode()

    async def eval(self, script: str, numkeys: int, *keys_and_args: Any) -> int:
        # Only the compare-and-delete script is used by the stores.
        self.eval_calls += 1
        key, expected = keys_and_args[0], keys_and_args[1]
        if isinstance(expected, str):
            expected = expected.encode()
        if await self.get(key) == expected:
            return await self.delete(key)
        return 0

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis(clock: FakeClock) -> FakeRedis:
    return FakeRedis(clock)


@pytest.fixture
def make_record(clock: FakeClock) -> Callable[..., CredentialRecord]:
    """Factory for records created "now" with a given lifetime."""

    def _make(
        *,
        provider: str = "linear",
        access_token: str = "lin_oauth_abc",
        lifetime_ms: int = HOUR_MS,
        created_at: int | None = None,
    ) -> CredentialRecord:
        created = clock() if created_at is None else created_at
        return CredentialRecord(
            access_token=access_token,
            provider=provider,
            created_at=created,
            expires_at=created + lifetime_ms,
        )

    return _make
