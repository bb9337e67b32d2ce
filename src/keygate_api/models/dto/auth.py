"""Authentication DTOs."""

from datetime import datetime

from pydantic import Field

from keygate_api.models.base import CamelModel
from keygate_api.models.domain.session import SessionRole
from keygate_api.models.dto.binding import UserBinding


class VerifyKeyRequest(CamelModel):
    """Request to verify a license key or the admin key."""

    key: str = Field(min_length=1, max_length=256)


class VerifyAdminKeyRequest(CamelModel):
    """Admin login request."""

    admin_key: str = Field(min_length=1, max_length=256)


class LoginRequest(CamelModel):
    """Login through the external account service."""

    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1, max_length=256)
    license_key: str | None = Field(default=None, max_length=64)


class AdminSessionResponse(CamelModel):
    """Admin session issued by the admin key."""

    is_admin: bool = True
    session_id: str
    role: SessionRole = SessionRole.ADMIN


class LoginResponse(CamelModel):
    """Session issued after external sign-in."""

    session_id: str
    role: SessionRole
    user_id: str
    email: str
    id_token: str
    binding: UserBinding | None = None


class SessionInfo(CamelModel):
    """Validation result for a session id."""

    valid: bool = True
    session_id: str
    user_id: str
    email: str | None = None
    role: SessionRole
    last_activity: datetime
