"""Session registry for authenticated sessions."""

import logging
import secrets
from datetime import datetime, timedelta, timezone

from keygate_api.models.domain.session import Session, SessionRole
from keygate_api.repositories.state_store import StateStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = timedelta(hours=24)


def new_session_id(role: SessionRole, now: datetime | None = None) -> str:
    """Build a unique, role-namespaced session id.

    Format: ``<role>_session_<epoch millis>_<random hex>``.
    """
    now = now or datetime.now(timezone.utc)
    millis = int(now.timestamp() * 1000)
    return f"{role.value}_session_{millis}_{secrets.token_hex(8)}"


class SessionRegistry:
    """Service for session records.

    Expired sessions stay valid until the next ``sweep_expired`` run.
    """

    def __init__(self, state: StateStore, max_age: timedelta = DEFAULT_MAX_AGE) -> None:
        """Initialize session registry.

        Args:
            state: Shared in-memory state
            max_age: Idle time after which a session is swept
        """
        self.state = state
        self.max_age = max_age

    def _create(
        self,
        user_id: str,
        email: str | None,
        role: SessionRole,
        now: datetime | None = None,
    ) -> Session:
        now = now or datetime.now(timezone.utc)
        session_id = new_session_id(role, now)
        while session_id in self.state.active_sessions:
            session_id = new_session_id(role, now)

        session = Session(
            session_id=session_id,
            user_id=user_id,
            email=email,
            role=role,
            start_time=now,
            last_activity=now,
        )
        self.state.active_sessions[session_id] = session
        self.state.mark_dirty()
        return session

    def create_admin(self, now: datetime | None = None) -> Session:
        """Create an admin session from the dedicated admin key."""
        session = self._create("admin", None, SessionRole.ADMIN, now)
        logger.info("Admin session created")
        return session

    def create_user(
        self,
        user_id: str,
        email: str | None,
        role: SessionRole = SessionRole.USER,
        now: datetime | None = None,
    ) -> Session:
        """Create a session for an externally authenticated user.

        Args:
            user_id: External account id
            email: Account email
            role: Role decided by the caller from the admin allowlist
            now: Creation time
        """
        return self._create(user_id, email, role, now)

    def get(self, session_id: str) -> Session | None:
        """Get a session or None."""
        return self.state.active_sessions.get(session_id)

    def touch(self, session_id: str, now: datetime | None = None) -> Session | None:
        """Refresh a session's last activity.

        Returns:
            The session, or None if unknown
        """
        session = self.get(session_id)
        if session is None:
            return None
        session.last_activity = now or datetime.now(timezone.utc)
        self.state.mark_dirty()
        return session

    def remove(self, session_id: str) -> bool:
        """Remove a session. Returns True if it existed."""
        if self.state.active_sessions.pop(session_id, None) is None:
            return False
        self.state.mark_dirty()
        return True

    def sweep_expired(self, now: datetime | None = None, max_age: timedelta | None = None) -> int:
        """Remove sessions idle beyond ``max_age``.

        Returns:
            Number of sessions removed
        """
        now = now or datetime.now(timezone.utc)
        max_age = max_age or self.max_age
        expired = [
            session_id
            for session_id, session in self.state.active_sessions.items()
            if session.is_idle_beyond(now, max_age)
        ]
        for session_id in expired:
            del self.state.active_sessions[session_id]

        if expired:
            self.state.mark_dirty()
            logger.info("Swept %d expired session(s)", len(expired))
        return len(expired)

    def count(self) -> int:
        """Number of live session records."""
        return len(self.state.active_sessions)
