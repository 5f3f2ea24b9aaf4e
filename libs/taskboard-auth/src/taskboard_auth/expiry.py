"""Expiration and re-authorization policy for stored credentials.

Pure functions: every one takes an optional ``now`` (epoch milliseconds) and
performs no I/O, so results are deterministic given the clock. The provider
issues no refresh tokens; "near expiry" only prompts an admin to re-run the
authorization flow.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from taskboard_auth.credentials import CredentialRecord, now_ms

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

NEAR_EXPIRY_WINDOW_MS = DAY_MS
EXPIRED_LABEL = "Expired"


class ExpirationInfo(BaseModel):
    """Presentation view of a credential's remaining lifetime."""

    expires_at: datetime
    time_until_expiration: str
    is_expired: bool


def is_expired(record: CredentialRecord, now: int | None = None) -> bool:
    return record.is_expired(now)


def is_near_expiry(record: CredentialRecord, now: int | None = None) -> bool:
    """True when fewer than 24 hours remain before ``record.expires_at``.

    Exactly 24 hours remaining is not near expiry.
    """
    current = now_ms() if now is None else now
    return record.expires_at - current < NEAR_EXPIRY_WINDOW_MS


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def format_remaining(ms: int) -> str:
    """Coarse countdown string; every unit is floored.

    >>> format_remaining(90_000)
    '1 minute'
    >>> format_remaining(DAY_MS + 3 * HOUR_MS)
    '1 day, 3 hours'
    """
    days, rest = divmod(ms, DAY_MS)
    hours = rest // HOUR_MS
    if days > 0:
        text = _plural(days, "day")
        if hours > 0:
            text += f", {_plural(hours, 'hour')}"
        return text
    if hours > 0:
        return _plural(hours, "hour")
    return _plural((rest % HOUR_MS) // MINUTE_MS, "minute")


def describe_expiration(record: CredentialRecord, now: int | None = None) -> ExpirationInfo:
    current = now_ms() if now is None else now
    remaining = record.expires_at - current
    if remaining <= 0:
        return ExpirationInfo(
            expires_at=record.expires_at_datetime,
            time_until_expiration=EXPIRED_LABEL,
            is_expired=True,
        )
    return ExpirationInfo(
        expires_at=record.expires_at_datetime,
        time_until_expiration=format_remaining(remaining),
        is_expired=False,
    )
