"""Security package."""

from keygate_api.security.session_auth import (
    extract_session_id,
    get_current_session,
    matches_admin_key,
    require_admin,
)

__all__ = [
    "extract_session_id",
    "get_current_session",
    "matches_admin_key",
    "require_admin",
]
