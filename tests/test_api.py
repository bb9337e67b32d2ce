"""HTTP scenario tests through the FastAPI test client."""

import json

from conftest import ADMIN_EMAIL, ADMIN_KEY


def generate(client, headers, **body):
    response = client.post("/api/generate-key", json=body, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()["data"]


def login(client, email="player@example.com", password="hunter22", **extra):
    return client.post("/api/login", json={"email": email, "password": password, **extra})


class TestAdminAuthentication:
    def test_verify_admin_key(self, client):
        response = client.post("/api/verify-admin-key", json={"adminKey": ADMIN_KEY})

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["data"]["isAdmin"] is True
        assert body["data"]["sessionId"].startswith("admin_session_")

    def test_wrong_admin_key(self, client):
        response = client.post("/api/verify-admin-key", json={"adminKey": "nope"})

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Invalid admin key"}

    def test_verify_key_accepts_admin_key(self, client):
        response = client.post("/api/verify-key", json={"key": ADMIN_KEY})

        assert response.status_code == 200
        assert response.json()["data"]["sessionId"].startswith("admin_session_")


class TestAdminKeyManagement:
    def test_generate_ids_increment(self, client, admin_headers):
        first = generate(client, admin_headers, note="first", expiryDays=10, maxUsers=2)
        second = generate(client, admin_headers, note="second")

        assert first["id"] == 1
        assert second["id"] == 2
        assert len(first["key"]) == 10
        assert first["maxUsers"] == 2
        assert first["status"] == "active"
        assert first["usedBy"] is None

    def test_non_numeric_inputs_coerced_to_one(self, client, admin_headers):
        record = generate(client, admin_headers, expiryDays="soon", maxUsers="many")

        assert record["maxUsers"] == 1

    def test_zero_capacity_rejected(self, client, admin_headers):
        response = client.post("/api/generate-key", json={"maxUsers": 0}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_expiry_out_of_range_rejected(self, client, admin_headers):
        response = client.post(
            "/api/generate-key",
            json={"expiryDays": 100000000, "maxUsers": 1},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Expiry days out of range"}
        assert client.get("/api/keys", headers=admin_headers).json()["data"] == []

    def test_missing_session(self, client):
        response = client.post("/api/generate-key", json={})

        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_unknown_session(self, client):
        response = client.get("/api/keys", headers={"X-Session-Id": "admin_session_0_dead"})

        assert response.status_code == 401

    def test_user_session_forbidden(self, client):
        session_id = login(client).json()["data"]["sessionId"]

        response = client.post("/api/generate-key", json={}, headers={"X-Session-Id": session_id})

        assert response.status_code == 403
        assert response.json() == {"success": False, "message": "Admin access required"}

    def test_bearer_and_legacy_headers(self, client, admin_headers):
        session_id = admin_headers["X-Session-Id"]

        bearer = client.get("/api/keys", headers={"Authorization": f"Bearer {session_id}"})
        legacy = client.get("/api/keys", headers={"sessionid": session_id})

        assert bearer.status_code == 200
        assert legacy.status_code == 200

    def test_update_max_users(self, client, admin_headers):
        record = generate(client, admin_headers, maxUsers=2)
        for user in ("u1", "u2"):
            client.post("/api/bind-key", json={"userId": user, "key": record["key"]})

        too_low = client.put(
            f"/api/keys/{record['key']}/max-users", json={"maxUsers": 1}, headers=admin_headers
        )
        unchanged = client.get("/api/keys", headers=admin_headers).json()["data"][0]
        raised = client.put(
            f"/api/keys/{record['key']}/max-users", json={"maxUsers": 5}, headers=admin_headers
        )

        assert too_low.status_code == 400
        assert too_low.json()["success"] is False
        assert unchanged["maxUsers"] == 2
        assert unchanged["currentUsers"] == 2
        assert raised.status_code == 200
        assert raised.json()["data"]["maxUsers"] == 5

    def test_delete_releases_bound_users(self, client, admin_headers):
        record = generate(client, admin_headers, maxUsers=2)
        client.post("/api/bind-key", json={"userId": "u1", "key": record["key"]})
        client.post("/api/bind-key", json={"userId": "u2", "key": record["key"]})

        response = client.delete(f"/api/keys/{record['key']}", headers=admin_headers)

        assert response.status_code == 200
        assert sorted(response.json()["data"]["releasedUsers"]) == ["u1", "u2"]
        assert client.get("/api/user-key/u1").json()["data"] is None
        assert client.get("/api/keys", headers=admin_headers).json()["data"] == []

    def test_delete_unknown_key(self, client, admin_headers):
        response = client.delete("/api/keys/NOPE", headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["message"] == "License key not found"

    def test_logs_newest_first(self, client, admin_headers):
        generate(client, admin_headers, note="one")

        response = client.get("/api/logs", params={"limit": 2}, headers=admin_headers)

        actions = [entry["action"] for entry in response.json()["data"]]
        assert actions == ["key_generate", "admin_login"]


class TestBindingEndpoints:
    def test_capacity_scenario(self, client, admin_headers):
        key = generate(client, admin_headers, maxUsers=2)["key"]

        assert client.post("/api/bind-key", json={"userId": "user1", "key": key}).status_code == 200
        assert client.post("/api/bind-key", json={"userId": "user2", "key": key}).status_code == 200

        full = client.post("/api/bind-key", json={"userId": "user3", "key": key})
        assert full.status_code == 400
        assert "user limit" in full.json()["message"]

        assert client.post("/api/unbind-key", json={"userId": "user1"}).status_code == 200
        assert client.post("/api/bind-key", json={"userId": "user3", "key": key}).status_code == 200

        listed = client.get("/api/keys", headers=admin_headers).json()["data"]
        assert set(listed[0]["boundUsers"]) == {"user2", "user3"}
        assert listed[0]["currentUsers"] == 2

    def test_verify_key_reports_occupancy(self, client, admin_headers):
        key = generate(client, admin_headers, maxUsers=3)["key"]
        client.post("/api/bind-key", json={"userId": "u1", "key": key})

        response = client.post("/api/verify-key", json={"key": key})

        data = response.json()["data"]
        assert data["currentUsers"] == 1
        assert data["maxUsers"] == 3

    def test_verify_unknown_key(self, client):
        response = client.post("/api/verify-key", json={"key": "NOPE"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "License key not found"}

    def test_user_key_lookup(self, client, admin_headers):
        key = generate(client, admin_headers, note="team")["key"]
        client.post("/api/bind-key", json={"userId": "u1", "email": "u1@example.com", "key": key})

        bound = client.get("/api/user-key/u1").json()
        unbound = client.get("/api/user-key/nobody").json()

        assert bound["data"]["key"] == key
        assert bound["data"]["note"] == "team"
        assert unbound == {"success": True, "data": None, "message": "User has no bound key"}

    def test_unbind_not_bound(self, client):
        response = client.post("/api/unbind-key", json={"userId": "ghost"})

        assert response.status_code == 400
        assert response.json()["message"] == "User has no bound key"

    def test_malformed_body(self, client):
        response = client.post("/api/bind-key", json={"key": "ABC"})

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert "userId" in response.json()["message"]


class TestUserSessions:
    def test_login_and_validate(self, client):
        data = login(client).json()["data"]

        assert data["role"] == "user"
        assert data["userId"] == "uid-player"
        assert data["sessionId"].startswith("user_session_")

        response = client.post("/api/validate-session", headers={"X-Session-Id": data["sessionId"]})
        assert response.json()["data"]["userId"] == "uid-player"

    def test_allowlisted_email_gets_admin_role(self, client):
        data = login(client, email=ADMIN_EMAIL, password="boss-pass").json()["data"]

        assert data["role"] == "admin"
        response = client.get("/api/keys", headers={"X-Session-Id": data["sessionId"]})
        assert response.status_code == 200

    def test_login_rejected(self, client):
        response = login(client, password="wrong")

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_login_auto_binds_license_key(self, client, admin_headers):
        key = generate(client, admin_headers)["key"]

        data = login(client, licenseKey=key).json()["data"]

        assert data["binding"]["key"] == key

    def test_login_auto_bind_failure_does_not_fail_login(self, client):
        response = login(client, licenseKey="NOPE")

        assert response.status_code == 200
        assert response.json()["data"]["binding"] is None

    def test_logout_invalidates_session(self, client):
        session_id = login(client).json()["data"]["sessionId"]
        headers = {"X-Session-Id": session_id}

        assert client.post("/api/logout", headers=headers).status_code == 200
        assert client.post("/api/validate-session", headers=headers).status_code == 401


class TestHealthAndPersistence:
    def test_health_counts(self, client, admin_headers):
        generate(client, admin_headers)

        data = client.get("/health").json()["data"]

        assert data["status"] == "ok"
        assert data["keys"] == 1
        assert data["sessions"] == 1

    def test_mutations_are_written_to_disk(self, client, admin_headers, settings):
        key = generate(client, admin_headers)["key"]

        raw = json.loads(settings.data_file.read_text(encoding="utf-8"))

        assert key in raw["licenseKeys"]
        assert raw["nextKeyId"] == 2

    def test_state_survives_restart(self, settings, account_service):
        from fastapi.testclient import TestClient

        from keygate_api.main import create_app

        with TestClient(create_app(settings=settings, account_service=account_service)) as first:
            response = first.post("/api/verify-admin-key", json={"adminKey": ADMIN_KEY})
            headers = {"X-Session-Id": response.json()["data"]["sessionId"]}
            key = generate(first, headers)["key"]
            first.post("/api/bind-key", json={"userId": "u1", "key": key})

        with TestClient(create_app(settings=settings, account_service=account_service)) as second:
            binding = second.get("/api/user-key/u1").json()["data"]
            assert binding["key"] == key
            assert second.get("/api/keys", headers=headers).status_code == 200

    def test_unreadable_state_file_is_preserved(self, settings, account_service):
        from fastapi.testclient import TestClient

        from keygate_api.main import create_app

        record = {
            "createdAt": "2026-01-01T00:00:00Z",
            "expiry": "2099-01-01T00:00:00Z",
            "status": "active",
            "maxUsers": 1,
        }
        document = {
            "licenseKeys": {
                "ABCDEFGHIJ": {**record, "id": 1, "key": "ABCDEFGHIJ", "note": None},
                "KLMNOPQRST": {**record, "id": 2, "key": "KLMNOPQRST", "note": "valid"},
            },
            "keyUserBindings": {"ABCDEFGHIJ": [], "KLMNOPQRST": []},
            "nextKeyId": 3,
        }
        original = json.dumps(document).encode("utf-8")
        settings.data_file.write_bytes(original)

        with TestClient(create_app(settings=settings, account_service=account_service)) as client:
            assert client.get("/health").json()["data"]["keys"] == 0

        preserved = list(settings.data_file.parent.glob(f"{settings.data_file.name}.corrupt-*"))
        assert len(preserved) == 1
        assert preserved[0].read_bytes() == original


class TestRequestLogging:
    def test_failed_mutation_logged_as_warning(self, client, caplog):
        import logging

        with caplog.at_level(logging.INFO, logger="keygate_api.middleware.request_logging"):
            client.post("/api/unbind-key", json={"userId": "ghost"})

        records = [r for r in caplog.records if r.name == "keygate_api.middleware.request_logging"]
        assert records[-1].levelno == logging.WARNING
        assert records[-1].getMessage() == "POST /api/unbind-key status=400 ip=testclient"
