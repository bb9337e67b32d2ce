"""Shared fixtures for the key gate test suite."""

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from keygate_api.config import Settings
from keygate_api.exceptions import AccountServiceError
from keygate_api.repositories.state_store import StateStore
from keygate_api.services.account_service import AccountIdentity
from keygate_api.services.binding_table import BindingTable
from keygate_api.services.key_store import KeyStore

ADMIN_KEY = "test-admin-key-0123456789"
ADMIN_EMAIL = "boss@example.com"


class FakeAccountService:
    """In-memory stand-in for the external account service."""

    def __init__(self) -> None:
        self.accounts = {
            "player@example.com": ("hunter22", "uid-player"),
            "other@example.com": ("secret", "uid-other"),
            ADMIN_EMAIL: ("boss-pass", "uid-boss"),
        }
        self.closed = False

    async def sign_in(self, email: str, password: str) -> AccountIdentity:
        account = self.accounts.get(email)
        if account is None or account[0] != password:
            raise AccountServiceError("INVALID_PASSWORD")
        return AccountIdentity(user_id=account[1], email=email, id_token=f"token-{account[1]}")

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def disable_rate_limits() -> Iterator[None]:
    from keygate_api.security.rate_limit import limiter

    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
def state() -> StateStore:
    return StateStore()


@pytest.fixture
def key_store(state: StateStore) -> KeyStore:
    return KeyStore(state)


@pytest.fixture
def bindings(state: StateStore, key_store: KeyStore) -> BindingTable:
    return BindingTable(state, key_store)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        data_file=tmp_path / "state.json",
        admin_key=ADMIN_KEY,
        admin_emails=ADMIN_EMAIL,
        account_service_api_key="test-api-key",
        cors_origins="http://localhost:3000",
    )


@pytest.fixture
def account_service() -> FakeAccountService:
    return FakeAccountService()


@pytest.fixture
def client(settings: Settings, account_service: FakeAccountService) -> Iterator[TestClient]:
    from keygate_api.main import create_app

    app = create_app(settings=settings, account_service=account_service)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers(client: TestClient) -> dict[str, str]:
    response = client.post("/api/verify-admin-key", json={"adminKey": ADMIN_KEY})
    assert response.status_code == 200
    return {"X-Session-Id": response.json()["data"]["sessionId"]}
