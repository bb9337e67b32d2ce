"""In-memory state shared by the key store, binding table and session registry."""

from datetime import datetime

from pydantic import Field

from keygate_api.models.base import CamelModel
from keygate_api.models.domain.license_key import LicenseKey
from keygate_api.models.domain.operation_log import LogEntry
from keygate_api.models.domain.session import Session


class StateDocument(CamelModel):
    """Persisted layout of the whole state, one JSON document."""

    license_keys: dict[str, LicenseKey] = Field(default_factory=dict)
    user_key_bindings: dict[str, str] = Field(default_factory=dict)
    key_user_bindings: dict[str, list[str]] = Field(default_factory=dict)
    operation_logs: list[LogEntry] = Field(default_factory=list)
    active_sessions: dict[str, Session] = Field(default_factory=dict)
    next_key_id: int = 1
    next_log_id: int = 1
    last_save: datetime | None = None


class StateStore:
    """Owner of every mutable structure of the process.

    All mutations happen synchronously on the event loop; callers mark the store
    dirty and the persistence gateway decides when to write it out.
    """

    def __init__(self) -> None:
        """Initialize an empty store with counters at 1."""
        self.license_keys: dict[str, LicenseKey] = {}
        self.user_key_bindings: dict[str, str] = {}
        self.key_user_bindings: dict[str, list[str]] = {}
        self.operation_logs: list[LogEntry] = []
        self.active_sessions: dict[str, Session] = {}
        self.next_key_id = 1
        self.next_log_id = 1
        self.last_save: datetime | None = None
        self._dirty = False

    @property
    def is_dirty(self) -> bool:
        """Whether there are changes not yet written out."""
        return self._dirty

    def mark_dirty(self) -> None:
        """Record that the state changed."""
        self._dirty = True

    def mark_clean(self) -> None:
        """Record that the current state has been captured for writing."""
        self._dirty = False

    def allocate_key_id(self) -> int:
        """Take the next license key id."""
        key_id = self.next_key_id
        self.next_key_id += 1
        return key_id

    def allocate_log_id(self) -> int:
        """Take the next operation log id."""
        log_id = self.next_log_id
        self.next_log_id += 1
        return log_id

    def to_document(self, last_save: datetime | None = None) -> StateDocument:
        """Snapshot the state into its persisted layout.

        Args:
            last_save: Timestamp stamped into ``lastSave``

        Returns:
            Deep copy of the state as a StateDocument
        """
        document = StateDocument(
            license_keys=self.license_keys,
            user_key_bindings=self.user_key_bindings,
            key_user_bindings=self.key_user_bindings,
            operation_logs=self.operation_logs,
            active_sessions=self.active_sessions,
            next_key_id=self.next_key_id,
            next_log_id=self.next_log_id,
            last_save=last_save or self.last_save,
        )
        # Detach from live objects so later mutations do not leak into the snapshot
        return StateDocument.model_validate(document.model_dump(mode="json", by_alias=True))

    @classmethod
    def from_document(cls, document: StateDocument) -> "StateStore":
        """Build a store from a persisted document."""
        store = cls()
        store.license_keys = dict(document.license_keys)
        store.user_key_bindings = dict(document.user_key_bindings)
        store.key_user_bindings = {
            key: list(users) for key, users in document.key_user_bindings.items()
        }
        store.operation_logs = list(document.operation_logs)
        store.active_sessions = dict(document.active_sessions)
        store.next_key_id = document.next_key_id
        store.next_log_id = document.next_log_id
        store.last_save = document.last_save
        return store
