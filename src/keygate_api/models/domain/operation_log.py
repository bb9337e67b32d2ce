"""Operation log domain model."""

from datetime import datetime
from typing import Any

from keygate_api.models.base import CamelModel


class LogEntry(CamelModel):
    """Single audit entry."""

    id: int
    action: str
    user: str | None = None
    key: str | None = None
    details: dict[str, Any] | None = None
    time: datetime
