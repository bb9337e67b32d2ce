"""Session domain model."""

from datetime import datetime, timedelta
from enum import StrEnum

from keygate_api.models.base import CamelModel


class SessionRole(StrEnum):
    """Session role enum."""

    ADMIN = "admin"
    USER = "user"


class Session(CamelModel):
    """Authenticated session record. The role never changes after creation."""

    session_id: str
    user_id: str
    email: str | None = None
    role: SessionRole
    start_time: datetime
    last_activity: datetime

    def is_admin(self) -> bool:
        """Check if the session carries the admin role."""
        return self.role == SessionRole.ADMIN

    def is_idle_beyond(self, now: datetime, max_age: timedelta) -> bool:
        """Check whether the session has been idle longer than ``max_age``."""
        return now - self.last_activity > max_age
