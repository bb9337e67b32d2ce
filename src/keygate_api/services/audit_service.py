"""Audit service for the operation log."""

import logging
from datetime import datetime, timezone
from typing import Any

from keygate_api.models.domain.operation_log import LogEntry
from keygate_api.repositories.state_store import StateStore

logger = logging.getLogger(__name__)


class AuditAction:
    """Standard audit action types."""

    # Authentication
    LOGIN = "login"
    ADMIN_LOGIN = "admin_login"
    LOGOUT = "logout"

    # License keys
    KEY_GENERATE = "key_generate"
    KEY_DELETE = "key_delete"
    KEY_UPDATE_MAX_USERS = "key_update_max_users"

    # Bindings
    KEY_BIND = "key_bind"
    KEY_UNBIND = "key_unbind"


class AuditService:
    """Service appending to the capped, in-memory operation log.

    When the log grows past ``cap`` entries, the oldest ``trim`` are dropped.
    """

    # Sensitive fields that should be masked in audit logs
    SENSITIVE_FIELDS = frozenset({
        "password",
        "admin_key",
        "adminkey",
        "id_token",
        "idtoken",
        "access_token",
        "refresh_token",
        "auth_token",
        "secret",
    })

    def __init__(self, state: StateStore, cap: int = 1000, trim: int = 100) -> None:
        """Initialize audit service.

        Args:
            state: Shared in-memory state
            cap: Maximum number of entries before trimming
            trim: Number of oldest entries dropped when the cap is exceeded
        """
        self.state = state
        self.cap = cap
        self.trim = trim

    @classmethod
    def _mask_sensitive_data(cls, data: dict[str, Any] | None) -> dict[str, Any] | None:
        """Mask sensitive fields in audit data to prevent credential leakage.

        Args:
            data: Dictionary that may contain sensitive fields

        Returns:
            Dictionary with sensitive values replaced by "[REDACTED]"
        """
        if data is None:
            return None

        masked = {}
        for key, value in data.items():
            if key.lower() in cls.SENSITIVE_FIELDS:
                masked[key] = "[REDACTED]"
            elif isinstance(value, dict):
                masked[key] = cls._mask_sensitive_data(value)
            else:
                masked[key] = value
        return masked

    def log(
        self,
        action: str,
        user: str | None = None,
        key: str | None = None,
        details: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> LogEntry:
        """Append an audit entry.

        Args:
            action: Action performed (use AuditAction constants)
            user: User or session owner performing the action
            key: License key involved, if any
            details: Extra context, sensitive fields are masked

        Returns:
            The appended LogEntry
        """
        entry = LogEntry(
            id=self.state.allocate_log_id(),
            action=action,
            user=user,
            key=key,
            details=self._mask_sensitive_data(details),
            time=now or datetime.now(timezone.utc),
        )
        logs = self.state.operation_logs
        logs.append(entry)
        if len(logs) > self.cap:
            del logs[: self.trim]
        self.state.mark_dirty()

        logger.debug("Audit logged: action=%s user=%s", action, user)
        return entry

    def recent(self, limit: int = 100) -> list[LogEntry]:
        """Most recent entries, newest first."""
        return list(reversed(self.state.operation_logs[-limit:])) if limit > 0 else []
