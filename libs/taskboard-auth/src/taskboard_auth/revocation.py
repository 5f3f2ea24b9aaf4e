"""Credential revocation: best-effort remote invalidation plus unconditional local cleanup.

Revoking never leaves the application "still authorized": the remote call may
fail, time out or return an error status, and the stored credential is
cleared regardless. The issue-tracker client is built per request from the
stored credential, so removing the credential also drops every client tied
to it.
"""

from __future__ import annotations

import logging

import httpx

from taskboard_auth.config import LinearOAuthConfig
from taskboard_auth.credentials import CredentialRecord
from taskboard_auth.storage.protocols import CredentialStorage

logger = logging.getLogger(__name__)


class RevocationService:
    """Revokes credentials at the provider and clears them from storage.

    Args:
        config: Provides the revoke endpoint, default provider and timeout.
        storage: The credential store to clear.
        transport: Optional ``httpx`` transport for tests.
    """

    def __init__(
        self,
        config: LinearOAuthConfig,
        storage: CredentialStorage,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._storage = storage
        self._transport = transport

    async def _revoke_remote(self, record: CredentialRecord) -> bool:
        """Ask the provider to invalidate *record*. Failures are logged, not raised."""
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.config.timeout_seconds,
            ) as client:
                resp = await client.post(
                    self.config.revoke_url,
                    headers={
                        "Authorization": f"Bearer {record.access_token}",
                        "Content-Type": "application/x-www-form-urlencoded",
                    },
                )
        except httpx.HTTPError as exc:
            logger.error(
                "Error revoking token at provider: provider=%s error=%s",
                record.provider,
                type(exc).__name__,
                extra={"event": "remote_revoke_failed", "provider": record.provider},
            )
            return False

        if not resp.is_success:
            logger.warning(
                "Provider rejected token revocation: provider=%s status=%d",
                record.provider,
                resp.status_code,
                extra={"event": "remote_revoke_failed", "provider": record.provider},
            )
            return False
        return True

    async def revoke(self, record: CredentialRecord | None) -> None:
        """Revoke *record* remotely (best effort) and clear it locally.

        With ``record=None`` no remote call is made; the default provider's
        stored credential is still cleared.
        """
        provider = record.provider if record is not None else self.config.provider
        remote_ok = False
        try:
            if record is not None:
                remote_ok = await self._revoke_remote(record)
        finally:
            await self._storage.clear_tokens(provider)
        logger.info(
            "Revoked authorization: provider=%s remote=%s",
            provider,
            "ok" if remote_ok else "skipped" if record is None else "failed",
            extra={"event": "token_revoked", "provider": provider},
        )
