"""Admin authentication: credential check and signed session cookie tokens."""

from __future__ import annotations

import hmac
import logging
import uuid
from datetime import datetime, timedelta, timezone

import jwt

from taskboard_auth.config import SessionConfig
from taskboard_auth.errors import AuthenticationError

logger = logging.getLogger(__name__)

_ALGORITHM = "HS256"


def verify_admin_credentials(username: str, password: str, *, expected_username: str, expected_password: str) -> bool:
    """Constant-time check of submitted admin credentials.

    Returns ``False`` when admin credentials are not configured.
    """
    if not expected_username or not expected_password:
        logger.warning("Admin credentials not configured", extra={"event": "admin_not_configured"})
        return False
    user_ok = hmac.compare_digest(username.encode(), expected_username.encode())
    password_ok = hmac.compare_digest(password.encode(), expected_password.encode())
    return user_ok and password_ok


class AdminSessionManager:
    """Issues and validates the HS256 JWT stored in the admin session cookie."""

    def __init__(self, config: SessionConfig) -> None:
        self.config = config

    def issue(self, user_id: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "adm": True,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + timedelta(seconds=self.config.max_age_seconds),
        }
        token = jwt.encode(payload, self.config.secret, algorithm=_ALGORITHM)
        logger.info("Admin session issued: user_id=%s", user_id, extra={"event": "admin_login", "user_id": user_id})
        return token

    def validate(self, token: str | None) -> str | None:
        """Return the admin user id for a valid session token, else ``None``."""
        if not token:
            return None
        try:
            payload = jwt.decode(token, self.config.secret, algorithms=[_ALGORITHM])
        except jwt.PyJWTError:
            return None
        if payload.get("adm") is not True or not payload.get("sub"):
            return None
        return str(payload["sub"])

    def require(self, token: str | None) -> str:
        """Like :meth:`validate` but raises for a missing or invalid session.

        Raises:
            AuthenticationError: If the token is missing, expired or forged.
        """
        user_id = self.validate(token)
        if user_id is None:
            raise AuthenticationError("Unauthorized")
        return user_id
