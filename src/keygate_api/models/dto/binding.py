"""Binding DTOs."""

from datetime import datetime

from pydantic import Field

from keygate_api.models.base import CamelModel
from keygate_api.models.domain.license_key import KeyStatus


class BindKeyRequest(CamelModel):
    """Request to bind a user to a license key."""

    user_id: str = Field(min_length=1, max_length=128)
    email: str | None = Field(default=None, max_length=320)
    key: str = Field(min_length=1, max_length=64)


class UnbindKeyRequest(CamelModel):
    """Request to remove a user's binding."""

    user_id: str = Field(min_length=1, max_length=128)
    key: str | None = Field(default=None, max_length=64)


class BindResult(CamelModel):
    """Result of a successful bind."""

    key: str
    user_id: str
    current_users: int
    max_users: int


class UnbindResult(CamelModel):
    """Result of a successful unbind."""

    key: str
    user_id: str
    current_users: int
    max_users: int | None = None


class UserBinding(CamelModel):
    """A user's current key and its occupancy."""

    key: str
    status: KeyStatus
    note: str
    expiry: datetime
    current_users: int
    max_users: int
