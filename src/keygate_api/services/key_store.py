"""Key store: license key records and their lifecycle."""

import logging
import secrets
import string
from datetime import datetime, timedelta, timezone

from keygate_api.exceptions import (
    InvalidCapacityError,
    KeyExpiredError,
    KeyInactiveError,
    KeyNotFoundError,
    ValidationError,
)
from keygate_api.models.domain.license_key import KeyStatus, LicenseKey
from keygate_api.models.dto.license_key import KeyStatusSnapshot, KeyWithBindings
from keygate_api.repositories.state_store import StateStore

logger = logging.getLogger(__name__)

KEY_ALPHABET = string.ascii_uppercase + string.digits
DEFAULT_KEY_LENGTH = 10
DEFAULT_MAX_EXPIRY_DAYS = 36500


def generate_key_string(length: int = DEFAULT_KEY_LENGTH) -> str:
    """Generate a random alphanumeric key."""
    return "".join(secrets.choice(KEY_ALPHABET) for _ in range(length))


class KeyStore:
    """Service for license key records.

    Authorization is the caller's concern. Binding cleanup before ``delete`` is
    too; see ``BindingTable.cascade_delete_key``.
    """

    def __init__(
        self,
        state: StateStore,
        key_length: int = DEFAULT_KEY_LENGTH,
        max_expiry_days: int = DEFAULT_MAX_EXPIRY_DAYS,
    ) -> None:
        """Initialize key store.

        Args:
            state: Shared in-memory state
            key_length: Length of generated keys
            max_expiry_days: Largest accepted key lifetime in days
        """
        self.state = state
        self.key_length = key_length
        self.max_expiry_days = max_expiry_days

    def _new_unique_key(self) -> str:
        key = generate_key_string(self.key_length)
        while key in self.state.license_keys:
            logger.warning("Generated key collided with an existing key, retrying")
            key = generate_key_string(self.key_length)
        return key

    def generate(
        self,
        note: str = "",
        expiry_days: int = 30,
        max_users: int = 1,
        created_by: str = "admin",
        now: datetime | None = None,
    ) -> LicenseKey:
        """Create a new active license key with an empty binding list.

        Args:
            note: Free-form description
            expiry_days: Days until the key expires
            max_users: Number of users that may bind the key
            created_by: Who issued the key
            now: Creation time (defaults to current UTC time)

        Returns:
            The new LicenseKey

        Raises:
            InvalidCapacityError: If max_users is below 1
            ValidationError: If expiry_days is below 1 or above max_expiry_days
        """
        if max_users < 1:
            raise InvalidCapacityError(max_users, 0)
        if expiry_days < 1:
            raise ValidationError("Expiry days must be at least 1", {"expiry_days": expiry_days})
        if expiry_days > self.max_expiry_days:
            raise ValidationError(
                "Expiry days out of range",
                {"expiry_days": expiry_days, "max_expiry_days": self.max_expiry_days},
            )

        now = now or datetime.now(timezone.utc)
        record = LicenseKey(
            id=self.state.allocate_key_id(),
            key=self._new_unique_key(),
            note=note,
            created_by=created_by,
            created_at=now,
            expiry=now + timedelta(days=expiry_days),
            status=KeyStatus.ACTIVE,
            max_users=max_users,
        )
        self.state.license_keys[record.key] = record
        self.state.key_user_bindings[record.key] = []
        self.state.mark_dirty()

        logger.info("Generated license key id=%s max_users=%s", record.id, record.max_users)
        return record

    def lookup(self, key: str) -> LicenseKey | None:
        """Get a key record or None."""
        return self.state.license_keys.get(key)

    def get_or_raise(self, key: str) -> LicenseKey:
        """Get a key record.

        Raises:
            KeyNotFoundError: If the key does not exist
        """
        record = self.lookup(key)
        if record is None:
            raise KeyNotFoundError(key)
        return record

    def bound_count(self, key: str) -> int:
        """Number of users currently bound to ``key``."""
        return len(self.state.key_user_bindings.get(key, []))

    def mark_expired_if_due(self, record: LicenseKey, now: datetime | None = None) -> bool:
        """Flip an active key to expired once its expiry has passed.

        Args:
            record: Key record to check
            now: Reference time (defaults to current UTC time)

        Returns:
            True if the key transitioned on this call
        """
        now = now or datetime.now(timezone.utc)
        if record.status != KeyStatus.ACTIVE or not record.is_past_expiry(now):
            return False

        record.status = KeyStatus.EXPIRED
        self.state.mark_dirty()
        logger.info("License key id=%s expired", record.id)
        return True

    def verify(self, key: str, now: datetime | None = None) -> KeyStatusSnapshot:
        """Check that a key is usable and report its occupancy.

        Raises:
            KeyNotFoundError: If the key does not exist
            KeyExpiredError: If the key is (or has just become) expired
            KeyInactiveError: If the key is in any other non-active state
        """
        record = self.get_or_raise(key)
        self.mark_expired_if_due(record, now)

        if record.status == KeyStatus.EXPIRED:
            raise KeyExpiredError(key)
        if record.status != KeyStatus.ACTIVE:
            raise KeyInactiveError(key)

        return KeyStatusSnapshot(
            key=record.key,
            status=record.status,
            note=record.note,
            created_at=record.created_at,
            expiry=record.expiry,
            max_users=record.max_users,
            current_users=self.bound_count(key),
        )

    def set_max_users(self, key: str, new_max: int) -> LicenseKey:
        """Resize a key's capacity in place.

        Raises:
            KeyNotFoundError: If the key does not exist
            InvalidCapacityError: If new_max is below 1 or below the bound-user count
        """
        record = self.get_or_raise(key)
        bound = self.bound_count(key)
        if new_max < 1 or new_max < bound:
            raise InvalidCapacityError(new_max, bound)

        record.max_users = new_max
        self.state.mark_dirty()
        return record

    def delete(self, key: str) -> LicenseKey:
        """Remove a key record.

        Raises:
            KeyNotFoundError: If the key does not exist
        """
        record = self.state.license_keys.pop(key, None)
        if record is None:
            raise KeyNotFoundError(key)

        self.state.mark_dirty()
        logger.info("Deleted license key id=%s", record.id)
        return record

    def list_with_bindings(self, now: datetime | None = None) -> list[KeyWithBindings]:
        """List every key joined with its live binding list, ordered by id."""
        results = []
        for record in sorted(self.state.license_keys.values(), key=lambda r: r.id):
            self.mark_expired_if_due(record, now)
            users = list(self.state.key_user_bindings.get(record.key, []))
            results.append(
                KeyWithBindings(
                    **record.model_dump(),
                    bound_users=users,
                    current_users=len(users),
                )
            )
        return results
