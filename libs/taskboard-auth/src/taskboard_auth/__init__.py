"""Taskboard Auth — Linear OAuth (actor=app) credential lifecycle."""

from taskboard_auth.config import LINEAR_PROVIDER, LinearOAuthConfig, SessionConfig, StorageConfig
from taskboard_auth.credentials import CredentialRecord, now_ms
from taskboard_auth.errors import (
    AuthenticationError,
    InvalidStateError,
    OAuthConfigurationError,
    TaskboardAuthError,
    TokenExchangeError,
)
from taskboard_auth.expiry import ExpirationInfo, describe_expiration, is_expired, is_near_expiry
from taskboard_auth.oauth2 import FALLBACK_TOKEN_LIFETIME_SECONDS, LinearOAuth2Strategy
from taskboard_auth.revocation import RevocationService
from taskboard_auth.router import auth_error_handler, create_auth_router
from taskboard_auth.sessions import AdminSessionManager, verify_admin_credentials
from taskboard_auth.state_store import InMemoryOAuthStateStore, OAuthStateStore, RedisOAuthStateStore
from taskboard_auth.storage import (
    CredentialStorage,
    InMemoryCredentialStorage,
    RedisCredentialStorage,
    StorageStats,
    create_credential_storage,
)

__all__ = [
    "AdminSessionManager",
    "AuthenticationError",
    "CredentialRecord",
    "CredentialStorage",
    "ExpirationInfo",
    "FALLBACK_TOKEN_LIFETIME_SECONDS",
    "InMemoryCredentialStorage",
    "InMemoryOAuthStateStore",
    "InvalidStateError",
    "LINEAR_PROVIDER",
    "LinearOAuth2Strategy",
    "LinearOAuthConfig",
    "OAuthConfigurationError",
    "OAuthStateStore",
    "RedisCredentialStorage",
    "RedisOAuthStateStore",
    "RevocationService",
    "SessionConfig",
    "StorageConfig",
    "StorageStats",
    "TaskboardAuthError",
    "TokenExchangeError",
    "auth_error_handler",
    "create_auth_router",
    "create_credential_storage",
    "describe_expiration",
    "is_expired",
    "is_near_expiry",
    "now_ms",
    "verify_admin_credentials",
]
