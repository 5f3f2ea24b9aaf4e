"""FastAPI router factory for the admin-driven Linear OAuth flow."""

from __future__ import annotations

import logging
import re
from typing import Any
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from taskboard_auth.errors import (
    InvalidStateError,
    OAuthConfigurationError,
    TokenExchangeError,
)
from taskboard_auth.oauth2 import LinearOAuth2Strategy
from taskboard_auth.revocation import RevocationService
from taskboard_auth.sessions import AdminSessionManager
from taskboard_auth.state_store import OAuthStateStore
from taskboard_auth.storage.protocols import CredentialStorage

logger = logging.getLogger(__name__)

CALLBACK_ROUTE_NAME = "oauth_callback"

# Provider error codes are echoed back to the admin page; anything that is not
# a plain code is replaced so no free text reaches the UI.
_PROVIDER_ERROR_RE = re.compile(r"^[a-z0-9_]{1,64}$")


def _redirect(status_page: str, **params: str) -> RedirectResponse:
    return RedirectResponse(url=f"{status_page}?{urlencode(params)}", status_code=303)


def provider_error_code(raw: str) -> str:
    return raw if _PROVIDER_ERROR_RE.match(raw) else "provider_error"


async def auth_error_handler(request: Request, exc: Exception) -> Response:
    """Turn :class:`AuthenticationError` into a login redirect (browsers) or a 401 (API clients)."""
    login_path = getattr(request.app.state, "login_path", "/admin/login")
    if "text/html" in request.headers.get("accept", ""):
        return RedirectResponse(url=login_path, status_code=303)
    return JSONResponse(status_code=401, content={"detail": "Unauthorized"})


def create_auth_router(
    oauth: LinearOAuth2Strategy,
    *,
    state_store: OAuthStateStore,
    storage: CredentialStorage,
    revocation: RevocationService,
    sessions: AdminSessionManager,
    prefix: str = "/auth",
) -> APIRouter:
    """Create the router exposing the OAuth status page and flow endpoints.

    - ``GET {prefix}`` returns the integration status.
    - ``POST {prefix}/authorize`` issues a state token and redirects to the provider.
    - ``GET {prefix}/callback`` consumes the state, exchanges the code and stores the credential.
    - ``POST {prefix}/revoke`` revokes and clears the stored credential.

    Every endpoint requires an admin session cookie; the app mounting this
    router must register :func:`auth_error_handler` for
    :class:`AuthenticationError`. Expected failures never raise: they redirect
    to ``{prefix}?error=<code>``.
    """
    router = APIRouter(prefix=prefix, tags=["auth"])
    status_page = prefix or "/"

    def require_admin(request: Request) -> str:
        return sessions.require(request.cookies.get(sessions.config.cookie_name))

    @router.get("", dependencies=[Depends(require_admin)])
    async def status() -> dict[str, Any]:
        """Report configuration and stored-credential status."""
        record = await storage.get_token(oauth.provider)
        expiration = oauth.describe_expiration(record) if record is not None else None
        return {
            "has_oauth_config": oauth.config.is_configured,
            "client_id_hint": oauth.config.client_id_hint,
            "has_access_token": record is not None and not expiration.is_expired,
            "expiration": expiration.model_dump(mode="json") if expiration is not None else None,
            "needs_reauthorization": record is None or oauth.is_near_expiry(record),
        }

    @router.post("/authorize")
    async def authorize(request: Request, admin: str = Depends(require_admin)) -> RedirectResponse:
        """Issue a CSRF state token and redirect the admin to the provider."""
        if not oauth.config.is_configured:
            logger.error("OAuth authorization error: client credentials not configured", extra={"event": "oauth_config_error"})
            return _redirect(status_page, error="oauth_config_error")

        redirect_uri = str(request.url_for(CALLBACK_ROUTE_NAME))
        state = await state_store.create()
        url = oauth.build_authorization_url(redirect_uri, state)

        logger.info("OAuth2 authorize: redirecting admin=%s to provider=%s", admin, oauth.provider)
        return RedirectResponse(url=url, status_code=303)

    async def _consume_state(state: str | None) -> None:
        if not state or not await state_store.consume(state):
            raise InvalidStateError("Invalid or expired OAuth2 state token")

    @router.get("/callback", name=CALLBACK_ROUTE_NAME)
    async def callback(
        request: Request,
        code: str | None = None,
        state: str | None = None,
        error: str | None = None,
        admin: str = Depends(require_admin),
    ) -> RedirectResponse:
        """Handle the provider redirect after the admin approved (or denied) access."""
        if error:
            code_out = provider_error_code(error)
            logger.error("OAuth error from provider: %s", code_out, extra={"event": "provider_error"})
            return _redirect(status_page, error=code_out)

        if not code or not state:
            logger.error("Missing code or state parameter", extra={"event": "state_rejected"})
            return _redirect(status_page, error="missing_parameters")

        try:
            await _consume_state(state)
        except InvalidStateError:
            logger.error("Invalid or expired state", extra={"event": "state_rejected"})
            return _redirect(status_page, error="invalid_state")

        redirect_uri = str(request.url_for(CALLBACK_ROUTE_NAME))
        try:
            record = await oauth.exchange_code(code, redirect_uri)
        except OAuthConfigurationError:
            return _redirect(status_page, error="oauth_config_error")
        except TokenExchangeError as exc:
            logger.error(
                "Token exchange error: provider=%s status=%s",
                oauth.provider,
                exc.status_code,
                extra={"event": "token_exchange_failed", "status_code": exc.status_code},
            )
            return _redirect(status_page, error="token_exchange_failed")

        await storage.store_token(record)
        logger.info("Successfully authorized %s client with actor=app (admin=%s)", oauth.provider, admin)
        return _redirect(status_page, success="authorized")

    @router.post("/revoke", dependencies=[Depends(require_admin)])
    async def revoke() -> RedirectResponse:
        """Revoke the stored credential at the provider and locally."""
        record = await storage.get_token(oauth.provider)
        await revocation.revoke(record)
        return _redirect(status_page, success="revoked")

    return router
