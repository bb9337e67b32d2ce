"""Session registry tests."""

from datetime import datetime, timedelta, timezone

from keygate_api.models.domain.session import SessionRole
from keygate_api.services.session_registry import SessionRegistry, new_session_id

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


class TestSessionIds:
    def test_role_prefix(self):
        assert new_session_id(SessionRole.ADMIN, NOW).startswith("admin_session_")
        assert new_session_id(SessionRole.USER, NOW).startswith("user_session_")

    def test_unique(self):
        ids = {new_session_id(SessionRole.USER, NOW) for _ in range(100)}
        assert len(ids) == 100


class TestSessionRegistry:
    def test_create_admin(self, state):
        registry = SessionRegistry(state)

        session = registry.create_admin(now=NOW)

        assert session.is_admin()
        assert session.user_id == "admin"
        assert registry.get(session.session_id) is session

    def test_create_user(self, state):
        registry = SessionRegistry(state)

        session = registry.create_user("uid-1", "a@example.com", now=NOW)

        assert session.role == SessionRole.USER
        assert not session.is_admin()
        assert session.start_time == session.last_activity == NOW

    def test_touch_refreshes_activity(self, state):
        registry = SessionRegistry(state)
        session = registry.create_user("uid-1", None, now=NOW)
        later = NOW + timedelta(hours=1)

        assert registry.touch(session.session_id, now=later) is session
        assert session.last_activity == later
        assert registry.touch("unknown") is None

    def test_remove(self, state):
        registry = SessionRegistry(state)
        session = registry.create_admin(now=NOW)

        assert registry.remove(session.session_id)
        assert not registry.remove(session.session_id)
        assert registry.count() == 0

    def test_sweep_removes_only_idle_sessions(self, state):
        registry = SessionRegistry(state, max_age=timedelta(hours=24))
        stale = registry.create_user("old", None, now=NOW)
        fresh = registry.create_user("new", None, now=NOW + timedelta(hours=20))

        removed = registry.sweep_expired(now=NOW + timedelta(hours=25))

        assert removed == 1
        assert registry.get(stale.session_id) is None
        assert registry.get(fresh.session_id) is fresh

    def test_expired_session_valid_until_swept(self, state):
        registry = SessionRegistry(state, max_age=timedelta(hours=1))
        session = registry.create_user("uid", None, now=NOW)

        assert registry.get(session.session_id) is session
        registry.sweep_expired(now=NOW + timedelta(hours=2))
        assert registry.get(session.session_id) is None
