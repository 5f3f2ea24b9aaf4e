"""Credential storage protocol shared by all backends."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from taskboard_auth.config import LINEAR_PROVIDER
from taskboard_auth.credentials import CredentialRecord

DEFAULT_PROVIDER = LINEAR_PROVIDER


class StorageStats(BaseModel):
    """Counts of the credentials a storage service currently owns."""

    total_tokens: int = 0
    valid_tokens: int = 0
    expired_tokens: int = 0


@runtime_checkable
class CredentialStorage(Protocol):
    """Keyed store of :class:`CredentialRecord` values, one per provider.

    Implementations must:

    - upsert atomically on :meth:`store_token` (last write wins);
    - treat undeserializable stored data as absent and delete it;
    - never touch keys outside their own namespace;
    - leave shared connections they did not create open on :meth:`close`.
    """

    async def store_token(self, record: CredentialRecord) -> None:
        """Persist *record*, replacing any credential for the same provider."""
        ...

    async def get_token(self, provider: str = DEFAULT_PROVIDER) -> CredentialRecord | None:
        """Return the stored credential even if it is past its expiry."""
        ...

    async def get_valid_token(self, provider: str = DEFAULT_PROVIDER) -> CredentialRecord | None:
        """Return the stored credential, evicting and hiding it once expired."""
        ...

    async def has_valid_token(self, provider: str = DEFAULT_PROVIDER) -> bool:
        ...

    async def clear_tokens(self, provider: str | None = None) -> None:
        """Delete one provider's credential, or every owned credential when *provider* is ``None``."""
        ...

    async def cleanup_expired_tokens(self) -> int:
        """Delete expired (and corrupt) credentials and return how many were removed."""
        ...

    async def list_tokens(self) -> dict[str, CredentialRecord]:
        """Return every readable credential keyed by provider."""
        ...

    async def stats(self) -> StorageStats:
        ...

    async def close(self) -> None:
        """Release resources owned by this service."""
        ...
