"""Domain models."""

from keygate_api.models.domain.license_key import KeyStatus, LicenseKey
from keygate_api.models.domain.operation_log import LogEntry
from keygate_api.models.domain.session import Session, SessionRole

__all__ = [
    "KeyStatus",
    "LicenseKey",
    "LogEntry",
    "Session",
    "SessionRole",
]
