"""Domain-specific exceptions for the key gate API.

These exceptions provide a clean separation between core errors and HTTP
responses. The status code for each family is resolved in
``keygate_api.middleware.error_handler``.
"""

from typing import Any


class KeyGateError(Exception):
    """Base exception for all key gate errors."""

    def __init__(self, message: str = "An error occurred", details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


# =============================================================================
# Validation Errors (400)
# =============================================================================


class ValidationError(KeyGateError):
    """Base class for malformed or inconsistent input."""

    pass


class InvalidCapacityError(ValidationError):
    """Raised when a key capacity is below 1 or below its bound-user count."""

    def __init__(self, requested: int, bound: int) -> None:
        if requested < 1:
            message = "Max users must be at least 1"
        else:
            message = f"Max users cannot be lower than current bound users ({bound})"
        super().__init__(message, {"requested": requested, "bound": bound})


class KeyMismatchError(ValidationError):
    """Raised when an unbind names a key the user is not bound to."""

    def __init__(self, user_id: str) -> None:
        super().__init__("User is not bound to this key", {"user_id": user_id})


# =============================================================================
# Not Found Errors (400 on the wire)
# =============================================================================


class NotFoundError(KeyGateError):
    """Base class for resource not found errors."""

    pass


class KeyNotFoundError(NotFoundError):
    """Raised when a license key does not exist."""

    def __init__(self, key: str | None = None) -> None:
        details = {"key": key} if key else {}
        super().__init__("License key not found", details)


class NotBoundError(NotFoundError):
    """Raised when a user has no key binding."""

    def __init__(self, user_id: str | None = None) -> None:
        details = {"user_id": user_id} if user_id else {}
        super().__init__("User has no bound key", details)


# =============================================================================
# Conflict Errors (400 on the wire)
# =============================================================================


class ConflictError(KeyGateError):
    """Base class for binding conflicts."""

    pass


class AlreadyBoundElsewhereError(ConflictError):
    """Raised when a user bound to one key tries to bind another."""

    def __init__(self, user_id: str, bound_key: str) -> None:
        super().__init__(
            "User is already bound to another key, unbind it first",
            {"user_id": user_id, "bound_key": bound_key},
        )


class AlreadyBoundHereError(ConflictError):
    """Raised when a user is already bound to the requested key."""

    def __init__(self, user_id: str, key: str) -> None:
        super().__init__("User is already bound to this key", {"user_id": user_id, "key": key})


class CapacityFullError(ConflictError):
    """Raised when a key has no free user slots."""

    def __init__(self, key: str, max_users: int) -> None:
        super().__init__(
            f"License key has reached its user limit ({max_users})",
            {"key": key, "max_users": max_users},
        )


# =============================================================================
# Key State Errors (400)
# =============================================================================


class KeyStateError(KeyGateError):
    """Base class for keys that exist but cannot be used."""

    pass


class KeyInactiveError(KeyStateError):
    """Raised when a key is not active."""

    def __init__(self, key: str) -> None:
        super().__init__("License key is not active", {"key": key})


class KeyExpiredError(KeyStateError):
    """Raised when a key is past its expiry."""

    def __init__(self, key: str) -> None:
        super().__init__("License key has expired", {"key": key})


# =============================================================================
# Authentication / Authorization Errors (401 / 403)
# =============================================================================


class UnauthorizedError(KeyGateError):
    """Raised when no credentials were supplied."""

    def __init__(self, message: str = "Session required") -> None:
        super().__init__(message)


class SessionInvalidError(UnauthorizedError):
    """Raised when a session id is not known to the registry."""

    def __init__(self) -> None:
        super().__init__("Session is invalid or has expired")


class InvalidAdminKeyError(UnauthorizedError):
    """Raised when the admin key does not match."""

    def __init__(self) -> None:
        super().__init__("Invalid admin key")


class ForbiddenError(KeyGateError):
    """Raised when a session lacks the required role."""

    def __init__(self, message: str = "Admin access required") -> None:
        super().__init__(message)


# =============================================================================
# External Collaborators
# =============================================================================


class AccountServiceError(KeyGateError):
    """Raised when the external account service rejects or fails a call."""

    pass
