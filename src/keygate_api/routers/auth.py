"""Authentication router."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from keygate_api.config import Settings
from keygate_api.dependencies import (
    get_account_service,
    get_app_settings,
    get_audit_service,
    get_binding_table,
    get_persistence,
    get_session_registry,
    get_state,
)
from keygate_api.exceptions import InvalidAdminKeyError, KeyGateError
from keygate_api.models.domain.session import Session, SessionRole
from keygate_api.models.dto.auth import (
    AdminSessionResponse,
    LoginRequest,
    LoginResponse,
    SessionInfo,
    VerifyAdminKeyRequest,
)
from keygate_api.models.dto.envelope import ApiResponse
from keygate_api.repositories.state_store import StateStore
from keygate_api.security.rate_limit import ADMIN_LOGIN_LIMIT, LOGIN_LIMIT, limiter
from keygate_api.security.session_auth import get_current_session, matches_admin_key
from keygate_api.services.account_service import AccountServiceClient
from keygate_api.services.audit_service import AuditAction, AuditService
from keygate_api.services.binding_table import BindingTable
from keygate_api.services.persistence_gateway import PersistenceGateway
from keygate_api.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/verify-admin-key", response_model=ApiResponse[AdminSessionResponse])
@limiter.limit(ADMIN_LOGIN_LIMIT)
async def verify_admin_key(
    request: Request,
    body: VerifyAdminKeyRequest,
    settings: Annotated[Settings, Depends(get_app_settings)],
    state: Annotated[StateStore, Depends(get_state)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
    audit: Annotated[AuditService, Depends(get_audit_service)],
    persistence: Annotated[PersistenceGateway, Depends(get_persistence)],
) -> ApiResponse[AdminSessionResponse]:
    """Admin login with the dedicated admin key."""
    if not matches_admin_key(body.admin_key, settings):
        raise InvalidAdminKeyError()

    session = registry.create_admin()
    audit.log(AuditAction.ADMIN_LOGIN, user=session.user_id, details={"via": "verify-admin-key"})
    await persistence.flush(state)
    return ApiResponse(
        data=AdminSessionResponse(session_id=session.session_id),
        message="Admin login successful",
    )


@router.post("/login", response_model=ApiResponse[LoginResponse])
@limiter.limit(LOGIN_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    settings: Annotated[Settings, Depends(get_app_settings)],
    state: Annotated[StateStore, Depends(get_state)],
    account_service: Annotated[AccountServiceClient, Depends(get_account_service)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
    bindings: Annotated[BindingTable, Depends(get_binding_table)],
    audit: Annotated[AuditService, Depends(get_audit_service)],
    persistence: Annotated[PersistenceGateway, Depends(get_persistence)],
) -> ApiResponse[LoginResponse]:
    """Sign in through the account service and open a session.

    When a license key is supplied and the user is unbound, a bind is attempted.
    Its failure is logged and does not fail the login.
    """
    identity = await account_service.sign_in(body.email, body.password)

    # Everything below runs without suspension until the final flush
    role = SessionRole.ADMIN if identity.email.lower() in settings.admin_emails_list else SessionRole.USER
    session = registry.create_user(identity.user_id, identity.email, role)
    audit.log(
        AuditAction.LOGIN,
        user=identity.user_id,
        details={"email": identity.email, "role": role.value},
    )

    if body.license_key and bindings.lookup_by_user(identity.user_id) is None:
        try:
            bindings.bind(identity.user_id, identity.email, body.license_key)
        except KeyGateError as e:
            logger.warning("Auto-bind during login failed for user %s: %s", identity.user_id, e.message)
        else:
            audit.log(
                AuditAction.KEY_BIND,
                user=identity.user_id,
                key=body.license_key,
                details={"email": identity.email, "via": "login"},
            )

    binding = bindings.lookup_by_user(identity.user_id)
    await persistence.flush(state)

    return ApiResponse(
        data=LoginResponse(
            session_id=session.session_id,
            role=role,
            user_id=identity.user_id,
            email=identity.email,
            id_token=identity.id_token,
            binding=binding,
        ),
        message="Login successful",
    )


@router.post("/validate-session", response_model=ApiResponse[SessionInfo])
async def validate_session(
    session: Annotated[Session, Depends(get_current_session)],
) -> ApiResponse[SessionInfo]:
    """Report the caller's session. Unknown sessions are rejected with 401."""
    return ApiResponse(
        data=SessionInfo(
            session_id=session.session_id,
            user_id=session.user_id,
            email=session.email,
            role=session.role,
            last_activity=session.last_activity,
        )
    )


@router.post("/logout", response_model=ApiResponse[None])
async def logout(
    session: Annotated[Session, Depends(get_current_session)],
    state: Annotated[StateStore, Depends(get_state)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
    audit: Annotated[AuditService, Depends(get_audit_service)],
    persistence: Annotated[PersistenceGateway, Depends(get_persistence)],
) -> ApiResponse[None]:
    """End the caller's session."""
    registry.remove(session.session_id)
    audit.log(AuditAction.LOGOUT, user=session.user_id, details={"role": session.role.value})
    await persistence.flush(state)
    return ApiResponse(message="Logged out")
