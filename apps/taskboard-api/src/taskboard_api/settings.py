"""Process configuration read from environment variables.

Validated eagerly at startup: a missing required value raises
``pydantic.ValidationError`` and the app refuses to start.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from taskboard_auth.config import LinearOAuthConfig, SessionConfig, StorageConfig


def _env(environ: Mapping[str, str], *names: str) -> str | None:
    """Return the first non-empty value among *names* (empty strings count as unset)."""
    for name in names:
        value = environ.get(name, "").strip()
        if value:
            return value
    return None


class Settings(BaseModel):
    """Validated application settings."""

    model_config = ConfigDict(extra="forbid")

    env: Literal["development", "production"] = "production"
    admin_username: str = Field(min_length=1)
    admin_password: str = Field(min_length=1, repr=False)
    linear_client_id: str = Field(min_length=1)
    linear_client_secret: str = Field(min_length=1, repr=False)
    session_secret: str = Field(min_length=1, repr=False)
    credential_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = Field(default="", repr=False)
    org_name: str | None = None
    linear_org_url: str = "https://linear.app/org"
    open_issue_url: str = "https://t.me/bot?text=%2Ftask%20%20"

    @model_validator(mode="after")
    def _check_backend(self) -> Settings:
        if self.credential_backend == "redis" and not self.redis_url:
            raise ValueError("REDIS_URL must be set when CREDENTIAL_BACKEND=redis")
        return self

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from ``os.environ`` (or *environ*)."""
        source = os.environ if environ is None else environ
        raw = {
            "env": _env(source, "TASKBOARD_ENV", "NODE_ENV"),
            "admin_username": _env(source, "ADMIN_USERNAME"),
            "admin_password": _env(source, "ADMIN_PASSWORD"),
            "linear_client_id": _env(source, "LINEAR_CLIENT_ID"),
            "linear_client_secret": _env(source, "LINEAR_CLIENT_SECRET"),
            "session_secret": _env(source, "SESSION_SECRET"),
            "credential_backend": _env(source, "CREDENTIAL_BACKEND"),
            "redis_url": _env(source, "REDIS_URL", "KV_URL"),
            "org_name": _env(source, "PUBLIC_ORG_NAME"),
            "linear_org_url": _env(source, "PUBLIC_LINEAR_ORG_URL"),
            "open_issue_url": _env(source, "PUBLIC_OPEN_ISSUE_URL"),
        }
        # Unset optional values fall back to field defaults; unset required
        # values are reported as missing by validation.
        return cls.model_validate({key: value for key, value in raw.items() if value is not None})

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    def oauth_config(self) -> LinearOAuthConfig:
        return LinearOAuthConfig(client_id=self.linear_client_id, client_secret=self.linear_client_secret)

    def storage_config(self) -> StorageConfig:
        return StorageConfig(backend=self.credential_backend, redis_url=self.redis_url)

    def session_config(self) -> SessionConfig:
        return SessionConfig(secret=self.session_secret, secure=self.is_production)
