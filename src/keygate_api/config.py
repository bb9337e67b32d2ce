"""Application configuration."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Minimum length for the dedicated admin key in production
MIN_ADMIN_KEY_LENGTH = 16


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "KeyGate API"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # Persistence
    data_file: Path = Path("data/keygate_state.json")
    persist_interval_minutes: int = Field(default=5, ge=1)

    # Admin access
    # Empty disables admin-key login entirely
    admin_key: str = ""
    admin_emails: str = ""  # Comma-separated allowlist

    # License keys
    key_length: int = Field(default=10, ge=6, le=64)
    default_expiry_days: int = 30
    max_expiry_days: int = Field(default=36500, ge=1, le=365000)
    default_max_users: int = 1

    # Sessions
    session_max_age_hours: int = Field(default=24, ge=1)
    session_sweep_interval_minutes: int = Field(default=60, ge=1)

    # Operation log trimming
    log_cap: int = 1000
    log_trim: int = 100

    # External account service (identity-toolkit style sign-in)
    account_service_url: str = (
        "https://www.googleapis.com/identitytoolkit/v3/relyingparty/verifyPassword"
    )
    account_service_api_key: str = ""
    account_service_timeout_seconds: float = 15.0

    # CORS settings
    cors_origins: str = "http://localhost:3000"  # Comma-separated list

    # Trusted proxies for client IP resolution (comma-separated IP/CIDR ranges)
    trusted_proxies: str = ""

    # Rate limiting
    rate_limit_admin_login: str = "5/minute"
    rate_limit_login: str = "20/minute"
    rate_limit_storage_uri: str | None = None

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """Validate settings for security requirements."""
        if self.environment == "production" and self.debug:
            raise ValueError(
                "DEBUG mode cannot be enabled in production environment. "
                "This would expose API documentation and detailed error messages."
            )

        if (
            self.environment == "production"
            and self.admin_key
            and len(self.admin_key) < MIN_ADMIN_KEY_LENGTH
        ):
            raise ValueError(
                f"ADMIN_KEY must be at least {MIN_ADMIN_KEY_LENGTH} characters in production"
            )

        if self.log_trim >= self.log_cap:
            raise ValueError("LOG_TRIM must be smaller than LOG_CAP")

        return self

    @property
    def admin_emails_list(self) -> list[str]:
        """Get the admin allowlist as lower-cased emails."""
        return [email.strip().lower() for email in self.admin_emails.split(",") if email.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def trusted_proxies_list(self) -> list[str]:
        """Get trusted proxies as a list."""
        if not self.trusted_proxies:
            return []
        return [proxy.strip() for proxy in self.trusted_proxies.split(",") if proxy.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
