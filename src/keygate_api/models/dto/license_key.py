"""License key DTOs."""

from datetime import datetime
from typing import Any

from pydantic import Field, field_validator

from keygate_api.models.base import CamelModel
from keygate_api.models.domain.license_key import KeyStatus, LicenseKey


def coerce_int(value: Any, default: int = 1) -> int:
    """Coerce loosely typed numeric input, falling back to ``default``.

    Args:
        value: Raw value from the request body
        default: Value used when ``value`` is not numeric

    Returns:
        Integer value
    """
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


class GenerateKeyRequest(CamelModel):
    """Request to generate a license key."""

    note: str = Field(default="", max_length=500)
    # None falls back to the configured defaults
    expiry_days: int | None = None
    max_users: int | None = None

    @field_validator("expiry_days", "max_users", mode="before")
    @classmethod
    def coerce_numeric(cls, value: Any) -> int | None:
        """Non-numeric values are treated as 1."""
        if value is None:
            return None
        return coerce_int(value)


class UpdateMaxUsersRequest(CamelModel):
    """Request to resize a key's capacity."""

    max_users: int


class KeyStatusSnapshot(CamelModel):
    """Result of a successful key verification."""

    key: str
    status: KeyStatus
    note: str
    created_at: datetime
    expiry: datetime
    max_users: int
    current_users: int


class KeyWithBindings(LicenseKey):
    """License key joined with its live bindings."""

    bound_users: list[str] = []
    current_users: int = 0


class DeleteKeyResult(CamelModel):
    """Result of a key deletion."""

    key: str
    released_users: list[str]
