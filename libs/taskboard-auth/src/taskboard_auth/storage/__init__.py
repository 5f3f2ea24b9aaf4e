"""Credential storage backends and the startup factory that selects one."""

from __future__ import annotations

from redis.asyncio import Redis

from taskboard_auth.config import StorageConfig
from taskboard_auth.storage.memory import InMemoryCredentialStorage
from taskboard_auth.storage.protocols import DEFAULT_PROVIDER, CredentialStorage, StorageStats
from taskboard_auth.storage.redis_store import RedisCredentialStorage


def create_credential_storage(config: StorageConfig, *, redis: Redis | None = None) -> CredentialStorage:
    """Build the backend named by ``config.backend``.

    When *redis* is given it is shared with the caller and left open on
    ``close()``; otherwise the Redis backend opens (and owns) its own pool.
    """
    if config.backend == "redis":
        if redis is not None:
            return RedisCredentialStorage(redis, key_prefix=config.key_prefix)
        return RedisCredentialStorage.from_url(config.redis_url, key_prefix=config.key_prefix)
    return InMemoryCredentialStorage()


__all__ = [
    "DEFAULT_PROVIDER",
    "CredentialStorage",
    "InMemoryCredentialStorage",
    "RedisCredentialStorage",
    "StorageStats",
    "create_credential_storage",
]
