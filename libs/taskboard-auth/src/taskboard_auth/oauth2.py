"""OAuth2 authorization code handshake for Linear's ``actor=app`` flow."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any
from urllib.parse import urlencode

import httpx

from taskboard_auth import expiry
from taskboard_auth.config import LinearOAuthConfig
from taskboard_auth.credentials import CredentialRecord, now_ms
from taskboard_auth.errors import OAuthConfigurationError, TokenExchangeError
from taskboard_auth.state_store import generate_state

logger = logging.getLogger(__name__)

# Used when the token response omits ``expires_in``: app-actor tokens do not
# expire, so the record is given an effectively permanent (~10 year) window.
FALLBACK_TOKEN_LIFETIME_SECONDS = 315_705_599


class LinearOAuth2Strategy:
    """Builds authorization URLs and exchanges codes for :class:`CredentialRecord` values.

    Every authorization request carries ``actor=app`` so the integration acts
    as itself rather than as the admin who approved it.

    Args:
        config: Client credentials and provider endpoints.
        transport: Optional ``httpx`` transport, e.g. ``httpx.MockTransport``
            in tests. ``None`` uses the default network transport.
        clock: Source of the current time in epoch milliseconds.
    """

    def __init__(
        self,
        config: LinearOAuthConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.config = config
        self._transport = transport
        self._clock = clock

    @property
    def provider(self) -> str:
        return self.config.provider

    def _require_config(self) -> None:
        if not self.config.is_configured:
            raise OAuthConfigurationError("OAuth configuration not set")

    @staticmethod
    def random_state() -> str:
        return generate_state()

    def build_authorization_url(self, redirect_uri: str, state: str) -> str:
        """Return the provider URL the admin is redirected to.

        Raises:
            OAuthConfigurationError: If the client id or secret is missing.
        """
        self._require_config()
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": ",".join(self.config.scopes),
            "state": state,
            "actor": self.config.actor,
        }
        return f"{self.config.authorize_url}?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: str) -> CredentialRecord:
        """Exchange an authorization code for a credential.

        Raises:
            OAuthConfigurationError: If the client id or secret is missing.
            TokenExchangeError: If the provider answers with a non-success
                status, an unusable body, or cannot be reached.
        """
        self._require_config()
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.config.timeout_seconds,
            ) as client:
                resp = await client.post(
                    self.config.token_url,
                    data={
                        "code": code,
                        "redirect_uri": redirect_uri,
                        "client_id": self.config.client_id,
                        "client_secret": self.config.client_secret,
                        "grant_type": "authorization_code",
                    },
                    headers={"Accept": "application/json"},
                )
        except httpx.TransportError as exc:
            raise TokenExchangeError(f"Token endpoint unreachable: {type(exc).__name__}") from exc

        if not resp.is_success:
            raise TokenExchangeError(
                f"Token exchange failed: {resp.status_code} {resp.reason_phrase}",
                status_code=resp.status_code,
            )

        try:
            payload: dict[str, Any] = resp.json()
        except ValueError as exc:
            raise TokenExchangeError("Token response is not JSON", status_code=resp.status_code) from exc

        return self._to_record(payload, status_code=resp.status_code)

    def is_near_expiry(self, record: CredentialRecord) -> bool:
        return expiry.is_near_expiry(record, self._clock())

    def describe_expiration(self, record: CredentialRecord) -> expiry.ExpirationInfo:
        return expiry.describe_expiration(record, self._clock())

    def _to_record(self, payload: dict[str, Any], *, status_code: int) -> CredentialRecord:
        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not isinstance(access_token, str) or not access_token:
            raise TokenExchangeError("Token response has no access_token", status_code=status_code)

        lifetime = payload.get("expires_in") or FALLBACK_TOKEN_LIFETIME_SECONDS
        # JSON numbers may arrive as floats (``3600.0``).
        if isinstance(lifetime, float) and lifetime.is_integer():
            lifetime = int(lifetime)
        if not isinstance(lifetime, int) or isinstance(lifetime, bool) or lifetime < 0:
            raise TokenExchangeError(f"Invalid expires_in: {lifetime!r}", status_code=status_code)

        now = self._clock()
        record = CredentialRecord(
            access_token=access_token,
            provider=self.provider,
            expires_at=now + lifetime * 1000,
            created_at=now,
        )
        logger.info(
            "Token exchange succeeded: provider=%s expires_at=%s",
            record.provider,
            record.expires_at_datetime.isoformat(),
            extra={"event": "token_exchanged", "provider": record.provider},
        )
        return record
