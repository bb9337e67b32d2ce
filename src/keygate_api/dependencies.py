"""Centralized dependency injection factories for FastAPI.

The state store and the long-lived collaborators live on ``app.state``; the
services wrapping them are cheap and built per request.
"""

from datetime import timedelta

from fastapi import Depends, Request

from keygate_api.config import Settings
from keygate_api.repositories.state_store import StateStore
from keygate_api.services.account_service import AccountServiceClient
from keygate_api.services.audit_service import AuditService
from keygate_api.services.binding_table import BindingTable
from keygate_api.services.key_store import KeyStore
from keygate_api.services.persistence_gateway import PersistenceGateway
from keygate_api.services.session_registry import SessionRegistry


# =============================================================================
# Application-scoped objects
# =============================================================================


def get_app_settings(request: Request) -> Settings:
    """Get the settings the application was built with."""
    return request.app.state.settings


def get_state(request: Request) -> StateStore:
    """Get the shared state store."""
    return request.app.state.store


def get_persistence(request: Request) -> PersistenceGateway:
    """Get the persistence gateway."""
    return request.app.state.persistence


def get_account_service(request: Request) -> AccountServiceClient:
    """Get the external account service client."""
    return request.app.state.account_service


# =============================================================================
# Core Service Factories
# =============================================================================


def get_key_store(
    state: StateStore = Depends(get_state),
    settings: Settings = Depends(get_app_settings),
) -> KeyStore:
    """Get KeyStore instance."""
    return KeyStore(
        state,
        key_length=settings.key_length,
        max_expiry_days=settings.max_expiry_days,
    )


def get_binding_table(
    state: StateStore = Depends(get_state),
    key_store: KeyStore = Depends(get_key_store),
) -> BindingTable:
    """Get BindingTable instance."""
    return BindingTable(state, key_store)


def get_session_registry(
    state: StateStore = Depends(get_state),
    settings: Settings = Depends(get_app_settings),
) -> SessionRegistry:
    """Get SessionRegistry instance."""
    return SessionRegistry(state, max_age=timedelta(hours=settings.session_max_age_hours))


def get_audit_service(
    state: StateStore = Depends(get_state),
    settings: Settings = Depends(get_app_settings),
) -> AuditService:
    """Get AuditService instance."""
    return AuditService(state, cap=settings.log_cap, trim=settings.log_trim)
