"""Session-based authentication and authorization utilities."""

import hmac
from collections.abc import Callable, Mapping
from typing import Annotated

from fastapi import Depends, Request

from keygate_api.config import Settings
from keygate_api.dependencies import get_session_registry
from keygate_api.exceptions import ForbiddenError, SessionInvalidError, UnauthorizedError
from keygate_api.models.domain.session import Session
from keygate_api.services.session_registry import SessionRegistry

SessionIdExtractor = Callable[[Mapping[str, str]], str | None]

BEARER_PREFIX = "bearer "


def from_session_header(headers: Mapping[str, str]) -> str | None:
    """Read the dedicated ``X-Session-Id`` header."""
    return headers.get("x-session-id")


def from_authorization_header(headers: Mapping[str, str]) -> str | None:
    """Read ``Authorization``, accepting a bare id or a ``Bearer <id>`` value."""
    value = headers.get("authorization")
    if value and value[: len(BEARER_PREFIX)].lower() == BEARER_PREFIX:
        return value[len(BEARER_PREFIX):]
    return value


def from_legacy_header(headers: Mapping[str, str]) -> str | None:
    """Read the legacy ``sessionid`` header."""
    return headers.get("sessionid")


# Tried in order; the first non-empty value wins
SESSION_ID_EXTRACTORS: tuple[SessionIdExtractor, ...] = (
    from_session_header,
    from_authorization_header,
    from_legacy_header,
)


def extract_session_id(
    headers: Mapping[str, str],
    extractors: tuple[SessionIdExtractor, ...] = SESSION_ID_EXTRACTORS,
) -> str | None:
    """Find the session id among the accepted transport locations.

    Args:
        headers: Request headers (case-insensitive mapping)
        extractors: Strategies tried in order

    Returns:
        The first non-empty session id, or None
    """
    for extractor in extractors:
        value = extractor(headers)
        if value and value.strip():
            return value.strip()
    return None


def matches_admin_key(candidate: str, settings: Settings) -> bool:
    """Constant-time comparison against the configured admin key.

    Always False when no admin key is configured.
    """
    if not settings.admin_key:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), settings.admin_key.encode("utf-8"))


async def get_current_session(
    request: Request,
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> Session:
    """Resolve and refresh the caller's session.

    Raises:
        UnauthorizedError: If no session id was supplied
        SessionInvalidError: If the session id is unknown
    """
    session_id = extract_session_id(request.headers)
    if not session_id:
        raise UnauthorizedError()

    session = registry.touch(session_id)
    if session is None:
        raise SessionInvalidError()
    return session


async def require_admin(
    session: Annotated[Session, Depends(get_current_session)],
) -> Session:
    """Require the current session to have the admin role.

    Raises:
        ForbiddenError: If the session is not an admin session
    """
    if not session.is_admin():
        raise ForbiddenError()
    return session
