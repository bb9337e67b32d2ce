"""Binding table: user <-> license key associations."""

import logging
from datetime import datetime, timezone

from keygate_api.exceptions import (
    AlreadyBoundElsewhereError,
    AlreadyBoundHereError,
    CapacityFullError,
    KeyExpiredError,
    KeyMismatchError,
    KeyNotFoundError,
    NotBoundError,
)
from keygate_api.models.domain.license_key import KeyStatus
from keygate_api.models.dto.binding import BindResult, UnbindResult, UserBinding
from keygate_api.repositories.state_store import StateStore
from keygate_api.services.key_store import KeyStore

logger = logging.getLogger(__name__)


class BindingTable:
    """Service maintaining both directions of the user/key mapping.

    Invariants kept by every method:
    - ``user_key_bindings[u] == k`` iff ``u in key_user_bindings[k]``
    - ``len(key_user_bindings[k]) <= license_keys[k].max_users``
    - a user is bound to at most one key
    """

    def __init__(self, state: StateStore, key_store: KeyStore) -> None:
        """Initialize binding table.

        Args:
            state: Shared in-memory state
            key_store: Key store used for expiry transitions
        """
        self.state = state
        self.key_store = key_store

    def bind(
        self,
        user_id: str,
        email: str | None,
        key: str,
        now: datetime | None = None,
    ) -> BindResult:
        """Bind a user to a key.

        Raises:
            KeyNotFoundError: If the key or its binding list does not exist
            KeyExpiredError: If the key is expired
            AlreadyBoundElsewhereError: If the user is bound to a different key
            AlreadyBoundHereError: If the user is already bound to this key
            CapacityFullError: If the key has no free slot
        """
        now = now or datetime.now(timezone.utc)
        record = self.state.license_keys.get(key)
        users = self.state.key_user_bindings.get(key)
        if record is None or users is None:
            raise KeyNotFoundError(key)

        self.key_store.mark_expired_if_due(record, now)
        if record.status == KeyStatus.EXPIRED:
            raise KeyExpiredError(key)

        current = self.state.user_key_bindings.get(user_id)
        if current is not None and current != key:
            raise AlreadyBoundElsewhereError(user_id, current)
        if user_id in users:
            raise AlreadyBoundHereError(user_id, key)
        if len(users) >= record.max_users:
            raise CapacityFullError(key, record.max_users)

        users.append(user_id)
        self.state.user_key_bindings[user_id] = key
        if record.used_by is None:
            record.used_by = user_id
            record.used_at = now
            record.used_email = email
        self.state.mark_dirty()

        return BindResult(
            key=key,
            user_id=user_id,
            current_users=len(users),
            max_users=record.max_users,
        )

    def unbind(self, user_id: str, key: str | None = None) -> UnbindResult:
        """Remove a user's binding.

        Raises:
            NotBoundError: If the user has no binding
            KeyMismatchError: If ``key`` is given and differs from the bound key
        """
        bound_key = self.state.user_key_bindings.get(user_id)
        if bound_key is None:
            raise NotBoundError(user_id)
        if key and key != bound_key:
            raise KeyMismatchError(user_id)

        del self.state.user_key_bindings[user_id]
        users = self.state.key_user_bindings.get(bound_key)
        if users is not None and user_id in users:
            users.remove(user_id)

        record = self.state.license_keys.get(bound_key)
        if record is not None and not users:
            record.clear_usage()
        self.state.mark_dirty()

        return UnbindResult(
            key=bound_key,
            user_id=user_id,
            current_users=len(users or []),
            max_users=record.max_users if record else None,
        )

    def lookup_by_user(self, user_id: str, now: datetime | None = None) -> UserBinding | None:
        """Get the key a user is bound to.

        A binding whose key record no longer exists is removed on the way.
        """
        bound_key = self.state.user_key_bindings.get(user_id)
        if bound_key is None:
            return None

        record = self.state.license_keys.get(bound_key)
        if record is None:
            self._drop_dangling(user_id, bound_key)
            return None

        self.key_store.mark_expired_if_due(record, now)
        return UserBinding(
            key=record.key,
            status=record.status,
            note=record.note,
            expiry=record.expiry,
            current_users=len(self.state.key_user_bindings.get(bound_key, [])),
            max_users=record.max_users,
        )

    def _drop_dangling(self, user_id: str, key: str) -> None:
        self.state.user_key_bindings.pop(user_id, None)
        users = self.state.key_user_bindings.get(key)
        if users is not None:
            if user_id in users:
                users.remove(user_id)
            if not users:
                del self.state.key_user_bindings[key]
        self.state.mark_dirty()
        logger.warning("Removed dangling binding for user %s to missing key", user_id)

    def users_for(self, key: str) -> list[str]:
        """Users currently bound to ``key``, in binding order."""
        return list(self.state.key_user_bindings.get(key, []))

    def cascade_delete_key(self, key: str) -> list[str]:
        """Release every user bound to ``key`` and drop the key's list.

        Must run before or together with ``KeyStore.delete``.

        Returns:
            The user ids that were released
        """
        users = self.state.key_user_bindings.pop(key, [])
        for user_id in users:
            if self.state.user_key_bindings.get(user_id) == key:
                del self.state.user_key_bindings[user_id]
        self.state.mark_dirty()

        if users:
            logger.info("Released %d binding(s) of deleted key", len(users))
        return list(users)

    def bound_user_count(self) -> int:
        """Total number of bound users."""
        return len(self.state.user_key_bindings)
