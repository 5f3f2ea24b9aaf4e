"""The stored representation of one provider access token and its validity window."""

from __future__ import annotations

import time
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, StrictInt, model_validator

from taskboard_auth.config import LINEAR_PROVIDER


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


class CredentialRecord(BaseModel):
    """An access credential issued by an OAuth provider.

    Instances are immutable. Storage backends hand out copies, so a caller can
    never mutate the record a backend holds.

    Timestamps are epoch milliseconds.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    access_token: str = Field(min_length=1, repr=False)
    provider: str = Field(default=LINEAR_PROVIDER, min_length=1)
    expires_at: StrictInt
    created_at: StrictInt

    @model_validator(mode="after")
    def _check_window(self) -> CredentialRecord:
        if self.created_at > self.expires_at:
            raise ValueError("created_at must not be later than expires_at")
        return self

    @property
    def expires_at_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.expires_at / 1000, tz=timezone.utc)

    def is_expired(self, now: int | None = None) -> bool:
        current = now_ms() if now is None else now
        return current >= self.expires_at

    def to_json(self) -> str:
        """Serialize to the self-describing JSON form used by storage backends."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, raw: str | bytes) -> CredentialRecord:
        """Parse a stored record.

        Raises:
            pydantic.ValidationError: If *raw* is not a well-formed record.
        """
        return cls.model_validate_json(raw)
