"""FastAPI app factory — the thin composition shell for Taskboard.

Wires together:
- ``taskboard_auth`` for the OAuth handshake, state store, credential storage,
  revocation and admin sessions
- ``taskboard_api.linear`` for the volunteer-facing issue list
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from redis.asyncio import Redis
from taskboard_auth import (
    AdminSessionManager,
    AuthenticationError,
    CredentialStorage,
    InMemoryOAuthStateStore,
    LinearOAuth2Strategy,
    OAuthStateStore,
    RedisOAuthStateStore,
    RevocationService,
    auth_error_handler,
    create_auth_router,
    create_credential_storage,
    verify_admin_credentials,
)

from taskboard_api.linear import LinearAPIError, LinearClient
from taskboard_api.settings import Settings

logger = logging.getLogger(__name__)

LOGIN_PATH = "/admin/login"


class LoginRequest(BaseModel):
    """Payload for ``POST /admin/login``."""

    username: str
    password: str


def create_app(
    settings: Settings | None = None,
    *,
    storage: CredentialStorage | None = None,
    state_store: OAuthStateStore | None = None,
    redis: Redis | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Construct the Taskboard application.

    Args:
        settings: Validated settings. Defaults to :meth:`Settings.from_env`,
            which fails closed on missing configuration.
        storage: Override the credential storage backend.
        state_store: Override the CSRF state store.
        redis: A shared Redis client created with ``decode_responses=False``;
            the app does not close it. When ``None`` and the backend is
            ``redis``, the app opens its own client and closes it on shutdown.
        http_transport: ``httpx`` transport for outbound calls to Linear
            (token exchange, revocation, GraphQL). Used by tests.
    """
    settings = settings or Settings.from_env()
    owned_redis: Redis | None = None

    if settings.credential_backend == "redis" and (storage is None or state_store is None) and redis is None:
        owned_redis = Redis.from_url(settings.redis_url, decode_responses=False)
    shared_redis = redis or owned_redis

    owns_storage = storage is None
    if storage is None:
        storage = create_credential_storage(settings.storage_config(), redis=shared_redis)
    if state_store is None:
        if shared_redis is not None:
            state_store = RedisOAuthStateStore(shared_redis, key_prefix=settings.storage_config().state_key_prefix)
        else:
            state_store = InMemoryOAuthStateStore()

    oauth = LinearOAuth2Strategy(settings.oauth_config(), transport=http_transport)
    revocation = RevocationService(oauth.config, storage, transport=http_transport)
    sessions = AdminSessionManager(settings.session_config())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Taskboard API ready: credential backend=%s env=%s",
            settings.credential_backend,
            settings.env,
        )
        yield
        if owns_storage:
            await storage.close()
        if owned_redis is not None:
            await owned_redis.aclose()

    app = FastAPI(
        title="Taskboard API",
        description="Volunteer issue board backed by a Linear actor=app integration",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.storage = storage
    app.state.state_store = state_store
    app.state.oauth = oauth
    app.state.sessions = sessions
    app.state.login_path = LOGIN_PATH

    app.add_exception_handler(AuthenticationError, auth_error_handler)
    app.include_router(
        create_auth_router(
            oauth,
            state_store=state_store,
            storage=storage,
            revocation=revocation,
            sessions=sessions,
        )
    )

    # --- Routes ------------------------------------------------------------

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "credential_backend": settings.credential_backend}

    @app.post(LOGIN_PATH)
    async def login(payload: LoginRequest) -> Response:
        """Validate admin credentials and set the session cookie."""
        if not verify_admin_credentials(
            payload.username,
            payload.password,
            expected_username=settings.admin_username,
            expected_password=settings.admin_password,
        ):
            logger.warning("Admin login failed", extra={"event": "admin_login_failed"})
            return JSONResponse(status_code=401, content={"detail": "Invalid username or password"})

        response = JSONResponse(content={"status": "ok", "user_id": payload.username})
        response.set_cookie(
            key=sessions.config.cookie_name,
            value=sessions.issue(payload.username),
            max_age=sessions.config.max_age_seconds,
            httponly=True,
            samesite=sessions.config.same_site,
            secure=sessions.config.secure,
            path="/",
        )
        return response

    @app.post("/admin/logout")
    async def logout() -> Response:
        response = JSONResponse(content={"status": "ok"})
        response.delete_cookie(key=sessions.config.cookie_name, path="/")
        return response

    @app.get("/")
    async def home() -> dict[str, Any]:
        """Volunteer-facing list of open issues assigned to the app."""
        issues: list[dict[str, Any]] = []
        record = await storage.get_valid_token(oauth.provider)
        if record is not None:
            client = LinearClient.for_credential(record, transport=http_transport)
            try:
                issues = [issue.model_dump() for issue in await client.list_app_issues()]
            except LinearAPIError as exc:
                logger.error("Failed to fetch issues from Linear: %s", exc, extra={"event": "issue_fetch_failed"})
        return {
            "org_name": settings.org_name,
            "linear_org_url": settings.linear_org_url,
            "open_issue_url": settings.open_issue_url,
            "issues": issues,
        }

    return app
