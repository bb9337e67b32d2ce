"""Persistence gateway: the only reader and writer of the state file."""

import asyncio
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from keygate_api.repositories.state_store import StateDocument, StateStore
from keygate_api.utils.secure_logging import describe_error

logger = logging.getLogger(__name__)


class PersistenceGateway:
    """Loads and saves the whole state as a single JSON document.

    Saves are full overwrites, serialized by a lock and written through a
    temporary file that is renamed over the target.
    """

    def __init__(self, path: Path | str, debug: bool = False) -> None:
        """Initialize gateway.

        Args:
            path: Location of the JSON state document
            debug: Log full error details instead of sanitized ones
        """
        self.path = Path(path)
        self.debug = debug
        self._lock = asyncio.Lock()

    def load(self) -> StateStore:
        """Load state from disk.

        A missing file yields an empty state. An unreadable or corrupt file is
        moved aside to ``<name>.corrupt-<timestamp>`` before starting empty, so
        the next save cannot overwrite it.

        Raises:
            OSError: If a bad file cannot be moved aside
        """
        if not self.path.exists():
            logger.info("No state file found at %s, starting empty", self.path)
            return StateStore()

        try:
            document = StateDocument.model_validate_json(self.path.read_bytes())
        except (OSError, PydanticValidationError) as e:
            logger.error("Failed to load state: %s", describe_error(e, self.debug))
            preserved = self._quarantine()
            logger.error("Unreadable state file moved to %s, starting empty", preserved)
            return StateStore()

        store = StateStore.from_document(document)
        logger.info(
            "Loaded state: %d key(s), %d binding(s), %d session(s), %d log entr(ies)",
            len(store.license_keys),
            len(store.user_key_bindings),
            len(store.active_sessions),
            len(store.operation_logs),
        )
        return store

    def _quarantine(self) -> Path:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        target = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")
        os.replace(self.path, target)
        return target

    def _write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        os.replace(tmp_path, self.path)

    async def flush(self, state: StateStore, force: bool = False) -> bool:
        """Write the state out if it changed since the last write.

        The snapshot is taken synchronously before the write is awaited, so
        mutations made while the write is in flight mark the state dirty again.
        Write failures are logged and not raised.

        Args:
            state: State to persist
            force: Write even when nothing changed

        Returns:
            True if a write happened and succeeded
        """
        async with self._lock:
            if not (force or state.is_dirty):
                return False

            saved_at = datetime.now(timezone.utc)
            payload = state.to_document(last_save=saved_at).model_dump_json(by_alias=True, indent=2)
            state.mark_clean()

            try:
                await asyncio.to_thread(self._write, payload)
            except OSError as e:
                state.mark_dirty()
                logger.error("Failed to save state: %s", describe_error(e, self.debug))
                return False

            state.last_save = saved_at
            logger.debug("State saved to %s", self.path)
            return True

    async def save(self, state: StateStore) -> bool:
        """Write the state out unconditionally."""
        return await self.flush(state, force=True)
