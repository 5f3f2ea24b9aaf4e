"""Configuration models for the Linear OAuth integration, credential storage and admin sessions."""

from __future__ import annotations

from typing import Literal
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator

LINEAR_PROVIDER = "linear"


class LinearOAuthConfig(BaseModel):
    """OAuth2 client configuration for the Linear ``actor=app`` flow.

    ``client_id`` and ``client_secret`` may be left empty so that the status
    page can report a missing configuration; the handshake refuses to run
    until both are set (see :attr:`is_configured`).
    """

    client_id: str = ""
    client_secret: str = Field(default="", repr=False)
    provider: str = LINEAR_PROVIDER
    authorize_url: str = "https://linear.app/oauth/authorize"
    token_url: str = "https://api.linear.app/oauth/token"
    revoke_url: str = "https://api.linear.app/oauth/revoke"
    scopes: list[str] = Field(default_factory=lambda: ["read", "write"])
    actor: str = "app"
    timeout_seconds: float = 10.0

    @field_validator("authorize_url", "token_url", "revoke_url")
    @classmethod
    def _check_endpoint(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(f"OAuth endpoint must be an absolute HTTP(S) URL, got: '{v}'")
        return v

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @property
    def client_id_hint(self) -> str:
        """A non-secret prefix of the client id for status display."""
        if not self.client_id:
            return "Not set"
        return f"{self.client_id[:8]}..."


class StorageConfig(BaseModel):
    """Selects and configures the credential storage backend."""

    backend: Literal["memory", "redis"] = "memory"
    redis_url: str = ""
    key_prefix: str = "cred:token:"
    state_key_prefix: str = "oauth:state:"

    @model_validator(mode="after")
    def _check_redis_url(self) -> StorageConfig:
        if self.backend == "redis" and not self.redis_url:
            raise ValueError("StorageConfig.redis_url must be set when backend is 'redis'.")
        if not self.key_prefix:
            raise ValueError("StorageConfig.key_prefix must not be empty.")
        return self


class SessionConfig(BaseModel):
    """Signed admin session cookie settings."""

    secret: str = Field(min_length=1, repr=False)
    cookie_name: str = "__admin_session"
    max_age_seconds: int = Field(default=60 * 60 * 24, gt=0)
    secure: bool = True
    same_site: Literal["lax", "strict"] = "lax"
