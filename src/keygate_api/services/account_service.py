"""Client for the external account service (identity-toolkit sign-in)."""

import logging

import httpx

from keygate_api.config import Settings
from keygate_api.exceptions import AccountServiceError

logger = logging.getLogger(__name__)


class AccountIdentity:
    """Identity returned by a successful sign-in."""

    def __init__(self, user_id: str, email: str, id_token: str) -> None:
        self.user_id = user_id
        self.email = email
        self.id_token = id_token


class AccountServiceClient:
    """Signs users in against the external account service.

    Only authentication goes through here; game-state calls are not modelled.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize client.

        Args:
            url: Sign-in endpoint
            api_key: API key sent as the ``key`` query parameter
            timeout: Request timeout in seconds
            transport: Optional transport (used by tests)
        """
        self.url = url
        self.api_key = api_key
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AccountServiceClient":
        """Build a client from application settings."""
        return cls(
            url=settings.account_service_url,
            api_key=settings.account_service_api_key,
            timeout=settings.account_service_timeout_seconds,
        )

    async def sign_in(self, email: str, password: str) -> AccountIdentity:
        """Sign a user in with email and password.

        Args:
            email: Account email
            password: Account password

        Returns:
            AccountIdentity with the external user id and id token

        Raises:
            AccountServiceError: If the service rejects the credentials or is unreachable
        """
        try:
            response = await self._client.post(
                self.url,
                params={"key": self.api_key},
                json={"email": email, "password": password, "returnSecureToken": True},
            )
        except httpx.HTTPError as e:
            logger.warning("Account service request failed: %s", type(e).__name__)
            raise AccountServiceError("Account service unavailable") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.is_success:
            error = data.get("error") if isinstance(data, dict) else None
            message = error.get("message") if isinstance(error, dict) else None
            raise AccountServiceError(message or "Sign-in failed, check email and password")

        user_id = data.get("localId")
        id_token = data.get("idToken")
        if not user_id or not id_token:
            raise AccountServiceError("Account service returned an incomplete identity")

        return AccountIdentity(
            user_id=user_id,
            email=data.get("email") or email,
            id_token=id_token,
        )

    async def close(self) -> None:
        """Release the underlying HTTP connections."""
        await self._client.aclose()
