"""Persistence gateway tests."""

import asyncio
import json
from datetime import datetime, timezone

from keygate_api.repositories.state_store import StateStore
from keygate_api.services.audit_service import AuditAction, AuditService
from keygate_api.services.binding_table import BindingTable
from keygate_api.services.key_store import KeyStore
from keygate_api.services.persistence_gateway import PersistenceGateway
from keygate_api.services.session_registry import SessionRegistry

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def populated_store() -> StateStore:
    store = StateStore()
    key_store = KeyStore(store)
    record = key_store.generate(note="team", max_users=2, now=NOW)
    BindingTable(store, key_store).bind("u1", "u1@example.com", record.key, now=NOW)
    SessionRegistry(store).create_user("u1", "u1@example.com", now=NOW)
    AuditService(store).log(AuditAction.KEY_BIND, user="u1", key=record.key, now=NOW)
    return store


class TestPersistenceGateway:
    def test_missing_file_starts_empty(self, tmp_path):
        store = PersistenceGateway(tmp_path / "missing.json").load()

        assert store.license_keys == {}
        assert store.next_key_id == 1
        assert store.next_log_id == 1

    def test_corrupt_file_starts_empty_and_is_kept(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")

        store = PersistenceGateway(path).load()

        assert store.license_keys == {}
        assert not path.exists()
        kept = list(tmp_path.glob("state.json.corrupt-*"))
        assert [p.read_text(encoding="utf-8") for p in kept] == ["{not json"]

    def test_invalid_record_is_not_overwritten_by_next_save(self, tmp_path):
        path = tmp_path / "state.json"
        gateway = PersistenceGateway(path)
        document = populated_store().to_document().model_dump(mode="json", by_alias=True)
        next(iter(document["licenseKeys"].values()))["note"] = None
        original = json.dumps(document).encode("utf-8")
        path.write_bytes(original)

        store = gateway.load()
        asyncio.run(gateway.save(store))

        kept = list(tmp_path.glob("state.json.corrupt-*"))
        assert len(kept) == 1
        assert kept[0].read_bytes() == original
        assert json.loads(path.read_text(encoding="utf-8"))["licenseKeys"] == {}

    def test_round_trip(self, tmp_path):
        gateway = PersistenceGateway(tmp_path / "nested" / "state.json")
        original = populated_store()

        assert asyncio.run(gateway.save(original))
        loaded = gateway.load()

        exclude = {"last_save"}
        assert loaded.to_document().model_dump(exclude=exclude) == original.to_document().model_dump(
            exclude=exclude
        )
        assert loaded.next_key_id == 2
        assert loaded.last_save is not None

    def test_document_uses_camel_case(self, tmp_path):
        path = tmp_path / "state.json"
        asyncio.run(PersistenceGateway(path).save(populated_store()))

        raw = json.loads(path.read_text(encoding="utf-8"))

        assert {"licenseKeys", "userKeyBindings", "keyUserBindings", "operationLogs",
                "activeSessions", "nextKeyId", "nextLogId", "lastSave"} <= raw.keys()
        record = next(iter(raw["licenseKeys"].values()))
        assert record["maxUsers"] == 2
        assert record["usedBy"] == "u1"

    def test_flush_skips_clean_state(self, tmp_path):
        path = tmp_path / "state.json"
        gateway = PersistenceGateway(path)
        store = StateStore()

        assert not asyncio.run(gateway.flush(store))
        assert not path.exists()

        store.mark_dirty()
        assert asyncio.run(gateway.flush(store))
        assert not store.is_dirty
        assert path.exists()

    def test_failed_write_keeps_state_dirty(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")
        gateway = PersistenceGateway(blocker / "state.json")
        store = StateStore()
        store.mark_dirty()

        assert not asyncio.run(gateway.flush(store))
        assert store.is_dirty
