"""Redis-backed credential storage with native per-key expiration.

Key schema:
- ``cred:token:{provider}`` -> JSON-serialized :class:`CredentialRecord`,
  TTL ``max(1, floor((expires_at - now) / 1000))`` seconds.

The client must not decode responses: values are read as raw bytes so that an
entry which is not even valid UTF-8 still parses as corrupt and gets deleted.

Deletions that depend on a value just read (expired or corrupt entries) go
through a compare-and-delete script, so a concurrent ``store_token`` for the
same provider is never lost to an eviction based on the older value.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from pydantic import ValidationError
from redis.asyncio import Redis

from taskboard_auth.credentials import CredentialRecord, now_ms
from taskboard_auth.storage.protocols import DEFAULT_PROVIDER, StorageStats

logger = logging.getLogger(__name__)

# KEYS[1] = key, ARGV[1] = value previously read.
_DELETE_IF_EQUAL = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""

_SCAN_BATCH = 100


class RedisCredentialStorage:
    """:class:`~taskboard_auth.storage.protocols.CredentialStorage` on top of ``redis.asyncio``.

    Args:
        redis: The client to use, created with ``decode_responses=False``.
            Pass ``owns_connection=True`` only when this service created the
            client; :meth:`close` then closes it.
        key_prefix: Private namespace for credential keys. Keys outside it
            are never read or deleted.
        clock: Source of the current time in epoch milliseconds.
    """

    def __init__(
        self,
        redis: Redis,
        *,
        key_prefix: str = "cred:token:",
        owns_connection: bool = False,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._redis = redis
        self._prefix = key_prefix
        self._owns_connection = owns_connection
        self._clock = clock

    @classmethod
    def from_url(cls, url: str, *, key_prefix: str = "cred:token:") -> RedisCredentialStorage:
        """Create a storage service that owns a new connection pool to *url*."""
        client = Redis.from_url(url, decode_responses=False)
        return cls(client, key_prefix=key_prefix, owns_connection=True)

    def _key(self, provider: str) -> str:
        return f"{self._prefix}{provider}"

    def _provider(self, key: str | bytes) -> str:
        if isinstance(key, bytes):
            key = key.decode("utf-8", errors="replace")
        return key[len(self._prefix) :]

    async def _owned_keys(self) -> list[str | bytes]:
        return [key async for key in self._redis.scan_iter(match=f"{self._prefix}*", count=_SCAN_BATCH)]

    async def _delete_if_unchanged(self, key: str | bytes, raw: str | bytes) -> bool:
        deleted = await self._redis.eval(_DELETE_IF_EQUAL, 1, key, raw)
        return bool(deleted)

    async def _read(self, key: str | bytes) -> tuple[CredentialRecord | None, str | bytes | None]:
        """Fetch and parse *key*, healing corrupt entries.

        Returns the parsed record (``None`` when absent or corrupt) and the raw
        value that was read.
        """
        raw = await self._redis.get(key)
        if raw is None:
            return None, None
        try:
            return CredentialRecord.from_json(raw), raw
        except ValidationError as exc:
            logger.error(
                "Failed to deserialize token at %s: %d validation error(s)",
                key,
                exc.error_count(),
                extra={"event": "token_corrupt", "key": key},
            )
            await self._delete_if_unchanged(key, raw)
            return None, raw

    async def store_token(self, record: CredentialRecord) -> None:
        key = self._key(record.provider)
        ttl_seconds = max(1, (record.expires_at - self._clock()) // 1000)
        await self._redis.set(key, record.to_json(), ex=ttl_seconds)
        logger.info(
            "Stored token for %s at %s (expires at %s)",
            record.provider,
            key,
            record.expires_at_datetime.isoformat(),
            extra={"event": "token_stored", "provider": record.provider},
        )

    async def get_token(self, provider: str = DEFAULT_PROVIDER) -> CredentialRecord | None:
        record, _ = await self._read(self._key(provider))
        return record

    async def get_valid_token(self, provider: str = DEFAULT_PROVIDER) -> CredentialRecord | None:
        key = self._key(provider)
        record, raw = await self._read(key)
        if record is None or raw is None:
            return None
        if record.is_expired(self._clock()):
            await self._delete_if_unchanged(key, raw)
            logger.info("Evicted expired token for %s", provider, extra={"event": "token_evicted", "provider": provider})
            return None
        return record

    async def has_valid_token(self, provider: str = DEFAULT_PROVIDER) -> bool:
        return await self.get_valid_token(provider) is not None

    async def clear_tokens(self, provider: str | None = None) -> None:
        if provider is not None:
            await self._redis.delete(self._key(provider))
            logger.info("Cleared tokens for %s", provider, extra={"event": "token_cleared", "provider": provider})
            return
        keys = await self._owned_keys()
        if keys:
            await self._redis.delete(*keys)
        logger.info("Cleared %d tokens", len(keys), extra={"event": "token_cleared"})

    async def cleanup_expired_tokens(self) -> int:
        now = self._clock()
        cleaned = 0
        for key in await self._owned_keys():
            raw = await self._redis.get(key)
            if raw is None:
                # Expired natively between SCAN and GET.
                continue
            try:
                expired = CredentialRecord.from_json(raw).is_expired(now)
            except ValidationError:
                expired = True
            if expired and await self._delete_if_unchanged(key, raw):
                cleaned += 1
        if cleaned:
            logger.info("Cleaned up %d expired/corrupted tokens", cleaned, extra={"event": "token_cleanup"})
        return cleaned

    async def list_tokens(self) -> dict[str, CredentialRecord]:
        tokens: dict[str, CredentialRecord] = {}
        for key in await self._owned_keys():
            raw = await self._redis.get(key)
            if raw is None:
                continue
            try:
                tokens[self._provider(key)] = CredentialRecord.from_json(raw)
            except ValidationError:
                logger.error("Failed to deserialize token from key %s", key, extra={"event": "token_corrupt", "key": key})
        return tokens

    async def stats(self) -> StorageStats:
        keys = await self._owned_keys()
        now = self._clock()
        valid = 0
        for key in keys:
            raw = await self._redis.get(key)
            if raw is None:
                continue
            try:
                record = CredentialRecord.from_json(raw)
            except ValidationError:
                continue
            if not record.is_expired(now):
                valid += 1
        return StorageStats(total_tokens=len(keys), valid_tokens=valid, expired_tokens=len(keys) - valid)

    async def close(self) -> None:
        if self._owns_connection:
            await self._redis.aclose()
