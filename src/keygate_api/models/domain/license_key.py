"""License key domain model."""

from datetime import datetime
from enum import StrEnum

from pydantic import Field

from keygate_api.models.base import CamelModel


class KeyStatus(StrEnum):
    """License key status enum."""

    ACTIVE = "active"
    EXPIRED = "expired"


class LicenseKey(CamelModel):
    """License key record.

    ``used_by``/``used_at``/``used_email`` describe the first user ever bound and
    are informational only; the binding table is authoritative.
    """

    id: int
    key: str
    note: str = ""
    created_by: str = "admin"
    created_at: datetime
    expiry: datetime
    status: KeyStatus = KeyStatus.ACTIVE
    max_users: int = Field(default=1, ge=1)
    used_by: str | None = None
    used_at: datetime | None = None
    used_email: str | None = None

    def is_past_expiry(self, now: datetime) -> bool:
        """Check whether ``now`` is beyond the expiry timestamp."""
        return now > self.expiry

    def clear_usage(self) -> None:
        """Forget the first-binding stamp."""
        self.used_by = None
        self.used_at = None
        self.used_email = None
