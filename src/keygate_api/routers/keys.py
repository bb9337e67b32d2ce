"""Public license key and binding router."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path

from keygate_api.config import Settings
from keygate_api.dependencies import (
    get_app_settings,
    get_audit_service,
    get_binding_table,
    get_key_store,
    get_persistence,
    get_session_registry,
    get_state,
)
from keygate_api.exceptions import KeyGateError
from keygate_api.models.dto.auth import AdminSessionResponse, VerifyKeyRequest
from keygate_api.models.dto.binding import (
    BindKeyRequest,
    BindResult,
    UnbindKeyRequest,
    UnbindResult,
    UserBinding,
)
from keygate_api.models.dto.envelope import ApiResponse
from keygate_api.models.dto.license_key import KeyStatusSnapshot
from keygate_api.repositories.state_store import StateStore
from keygate_api.security.session_auth import matches_admin_key
from keygate_api.services.audit_service import AuditAction, AuditService
from keygate_api.services.binding_table import BindingTable
from keygate_api.services.key_store import KeyStore
from keygate_api.services.persistence_gateway import PersistenceGateway
from keygate_api.services.session_registry import SessionRegistry

router = APIRouter()


@router.post(
    "/verify-key",
    response_model=ApiResponse[KeyStatusSnapshot | AdminSessionResponse],
)
async def verify_key(
    body: VerifyKeyRequest,
    settings: Annotated[Settings, Depends(get_app_settings)],
    state: Annotated[StateStore, Depends(get_state)],
    key_store: Annotated[KeyStore, Depends(get_key_store)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
    audit: Annotated[AuditService, Depends(get_audit_service)],
    persistence: Annotated[PersistenceGateway, Depends(get_persistence)],
) -> ApiResponse:
    """Verify a license key, or open an admin session when given the admin key."""
    if matches_admin_key(body.key, settings):
        session = registry.create_admin()
        audit.log(AuditAction.ADMIN_LOGIN, user=session.user_id, details={"via": "verify-key"})
        await persistence.flush(state)
        return ApiResponse(
            data=AdminSessionResponse(session_id=session.session_id),
            message="Admin key verified",
        )

    try:
        snapshot = key_store.verify(body.key)
    finally:
        # Verification may have flipped the key to expired
        await persistence.flush(state)
    return ApiResponse(data=snapshot, message="License key is valid")


@router.post("/bind-key", response_model=ApiResponse[BindResult])
async def bind_key(
    body: BindKeyRequest,
    state: Annotated[StateStore, Depends(get_state)],
    bindings: Annotated[BindingTable, Depends(get_binding_table)],
    audit: Annotated[AuditService, Depends(get_audit_service)],
    persistence: Annotated[PersistenceGateway, Depends(get_persistence)],
) -> ApiResponse[BindResult]:
    """Bind a user to a license key."""
    try:
        result = bindings.bind(body.user_id, body.email, body.key)
    except KeyGateError:
        # A rejected bind may still have expired the key
        await persistence.flush(state)
        raise

    audit.log(
        AuditAction.KEY_BIND,
        user=body.user_id,
        key=body.key,
        details={"email": body.email, "current_users": result.current_users},
    )
    await persistence.flush(state)
    return ApiResponse(data=result, message="License key bound")


@router.get("/user-key/{user_id}", response_model=ApiResponse[UserBinding])
async def get_user_key(
    user_id: Annotated[str, Path(min_length=1, max_length=128)],
    state: Annotated[StateStore, Depends(get_state)],
    bindings: Annotated[BindingTable, Depends(get_binding_table)],
    persistence: Annotated[PersistenceGateway, Depends(get_persistence)],
) -> ApiResponse[UserBinding]:
    """Look up the key a user is bound to."""
    binding = bindings.lookup_by_user(user_id)
    # Lookup may have healed a dangling binding or expired the key
    await persistence.flush(state)

    if binding is None:
        return ApiResponse(data=None, message="User has no bound key")
    return ApiResponse(data=binding)


@router.post("/unbind-key", response_model=ApiResponse[UnbindResult])
async def unbind_key(
    body: UnbindKeyRequest,
    state: Annotated[StateStore, Depends(get_state)],
    bindings: Annotated[BindingTable, Depends(get_binding_table)],
    audit: Annotated[AuditService, Depends(get_audit_service)],
    persistence: Annotated[PersistenceGateway, Depends(get_persistence)],
) -> ApiResponse[UnbindResult]:
    """Remove a user's binding."""
    result = bindings.unbind(body.user_id, body.key)
    audit.log(
        AuditAction.KEY_UNBIND,
        user=body.user_id,
        key=result.key,
        details={"current_users": result.current_users},
    )
    await persistence.flush(state)
    return ApiResponse(data=result, message="License key unbound")
