"""In-process credential storage."""

from __future__ import annotations

import logging
from collections.abc import Callable

from taskboard_auth.credentials import CredentialRecord, now_ms
from taskboard_auth.storage.protocols import DEFAULT_PROVIDER, StorageStats

logger = logging.getLogger(__name__)


class InMemoryCredentialStorage:
    """Non-persistent :class:`~taskboard_auth.storage.protocols.CredentialStorage`.

    Every method body runs without an ``await`` between reading and mutating
    the map, so each operation is a single atomic step on the event loop and
    no lock is needed.

    .. warning::
        Credentials are lost on restart and are not shared between server
        processes. Use :class:`~taskboard_auth.storage.redis_store.RedisCredentialStorage`
        in production.
    """

    def __init__(self, *, clock: Callable[[], int] = now_ms) -> None:
        self._tokens: dict[str, CredentialRecord] = {}
        self._clock = clock

    async def store_token(self, record: CredentialRecord) -> None:
        self._tokens[record.provider] = record.model_copy()
        logger.info(
            "Stored token for %s (expires at %s)",
            record.provider,
            record.expires_at_datetime.isoformat(),
            extra={"event": "token_stored", "provider": record.provider},
        )

    async def get_token(self, provider: str = DEFAULT_PROVIDER) -> CredentialRecord | None:
        record = self._tokens.get(provider)
        return record.model_copy() if record is not None else None

    async def get_valid_token(self, provider: str = DEFAULT_PROVIDER) -> CredentialRecord | None:
        record = self._tokens.get(provider)
        if record is None:
            return None
        if record.is_expired(self._clock()):
            del self._tokens[provider]
            logger.info("Evicted expired token for %s", provider, extra={"event": "token_evicted", "provider": provider})
            return None
        return record.model_copy()

    async def has_valid_token(self, provider: str = DEFAULT_PROVIDER) -> bool:
        return await self.get_valid_token(provider) is not None

    async def clear_tokens(self, provider: str | None = None) -> None:
        if provider is not None:
            self._tokens.pop(provider, None)
            logger.info("Cleared tokens for %s", provider, extra={"event": "token_cleared", "provider": provider})
            return
        count = len(self._tokens)
        self._tokens.clear()
        logger.info("Cleared %d tokens", count, extra={"event": "token_cleared"})

    async def cleanup_expired_tokens(self) -> int:
        now = self._clock()
        expired = [provider for provider, record in self._tokens.items() if record.is_expired(now)]
        for provider in expired:
            del self._tokens[provider]
        if expired:
            logger.info("Cleaned up %d expired tokens", len(expired), extra={"event": "token_cleanup"})
        return len(expired)

    async def list_tokens(self) -> dict[str, CredentialRecord]:
        return {provider: record.model_copy() for provider, record in self._tokens.items()}

    async def stats(self) -> StorageStats:
        now = self._clock()
        expired = sum(1 for record in self._tokens.values() if record.is_expired(now))
        return StorageStats(
            total_tokens=len(self._tokens),
            valid_tokens=len(self._tokens) - expired,
            expired_tokens=expired,
        )

    async def close(self) -> None:
        self._tokens.clear()
