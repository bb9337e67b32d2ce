"""Admin router: license key management and the operation log.

Every route requires an admin session.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query

from keygate_api.config import Settings
from keygate_api.dependencies import (
    get_app_settings,
    get_audit_service,
    get_binding_table,
    get_key_store,
    get_persistence,
    get_state,
)
from keygate_api.models.domain.license_key import LicenseKey
from keygate_api.models.domain.operation_log import LogEntry
from keygate_api.models.domain.session import Session
from keygate_api.models.dto.envelope import ApiResponse
from keygate_api.models.dto.license_key import (
    DeleteKeyResult,
    GenerateKeyRequest,
    KeyWithBindings,
    UpdateMaxUsersRequest,
)
from keygate_api.repositories.state_store import StateStore
from keygate_api.security.session_auth import require_admin
from keygate_api.services.audit_service import AuditAction, AuditService
from keygate_api.services.binding_table import BindingTable
from keygate_api.services.key_store import KeyStore
from keygate_api.services.persistence_gateway import PersistenceGateway

router = APIRouter()

KeyPath = Annotated[str, Path(min_length=1, max_length=64)]


@router.post("/generate-key", response_model=ApiResponse[LicenseKey])
async def generate_key(
    body: GenerateKeyRequest,
    session: Annotated[Session, Depends(require_admin)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    state: Annotated[StateStore, Depends(get_state)],
    key_store: Annotated[KeyStore, Depends(get_key_store)],
    audit: Annotated[AuditService, Depends(get_audit_service)],
    persistence: Annotated[PersistenceGateway, Depends(get_persistence)],
) -> ApiResponse[LicenseKey]:
    """Generate a new license key."""
    expiry_days = body.expiry_days if body.expiry_days is not None else settings.default_expiry_days
    max_users = body.max_users if body.max_users is not None else settings.default_max_users
    record = key_store.generate(
        note=body.note,
        expiry_days=expiry_days,
        max_users=max_users,
        created_by=session.email or session.user_id,
    )
    audit.log(
        AuditAction.KEY_GENERATE,
        user=session.user_id,
        key=record.key,
        details={"note": record.note, "expiry_days": expiry_days, "max_users": record.max_users},
    )
    await persistence.flush(state)
    return ApiResponse(data=record, message="License key generated")


@router.get("/keys", response_model=ApiResponse[list[KeyWithBindings]])
async def list_keys(
    session: Annotated[Session, Depends(require_admin)],
    state: Annotated[StateStore, Depends(get_state)],
    key_store: Annotated[KeyStore, Depends(get_key_store)],
    persistence: Annotated[PersistenceGateway, Depends(get_persistence)],
) -> ApiResponse[list[KeyWithBindings]]:
    """List every key with its live bindings."""
    keys = key_store.list_with_bindings()
    await persistence.flush(state)
    return ApiResponse(data=keys)


@router.delete("/keys/{key}", response_model=ApiResponse[DeleteKeyResult])
async def delete_key(
    key: KeyPath,
    session: Annotated[Session, Depends(require_admin)],
    state: Annotated[StateStore, Depends(get_state)],
    key_store: Annotated[KeyStore, Depends(get_key_store)],
    bindings: Annotated[BindingTable, Depends(get_binding_table)],
    audit: Annotated[AuditService, Depends(get_audit_service)],
    persistence: Annotated[PersistenceGateway, Depends(get_persistence)],
) -> ApiResponse[DeleteKeyResult]:
    """Delete a key and release every user bound to it."""
    key_store.get_or_raise(key)
    released = bindings.cascade_delete_key(key)
    key_store.delete(key)

    audit.log(
        AuditAction.KEY_DELETE,
        user=session.user_id,
        key=key,
        details={"released_users": released},
    )
    await persistence.flush(state)
    return ApiResponse(
        data=DeleteKeyResult(key=key, released_users=released),
        message="License key deleted",
    )


@router.put("/keys/{key}/max-users", response_model=ApiResponse[LicenseKey])
async def update_max_users(
    key: KeyPath,
    body: UpdateMaxUsersRequest,
    session: Annotated[Session, Depends(require_admin)],
    state: Annotated[StateStore, Depends(get_state)],
    key_store: Annotated[KeyStore, Depends(get_key_store)],
    audit: Annotated[AuditService, Depends(get_audit_service)],
    persistence: Annotated[PersistenceGateway, Depends(get_persistence)],
) -> ApiResponse[LicenseKey]:
    """Resize a key's capacity."""
    previous = key_store.get_or_raise(key).max_users
    record = key_store.set_max_users(key, body.max_users)
    audit.log(
        AuditAction.KEY_UPDATE_MAX_USERS,
        user=session.user_id,
        key=key,
        details={"old": previous, "new": record.max_users},
    )
    await persistence.flush(state)
    return ApiResponse(data=record, message="Max users updated")


@router.get("/logs", response_model=ApiResponse[list[LogEntry]])
async def list_logs(
    session: Annotated[Session, Depends(require_admin)],
    audit: Annotated[AuditService, Depends(get_audit_service)],
    limit: int = Query(default=100, ge=1, le=1000),
) -> ApiResponse[list[LogEntry]]:
    """Most recent operation log entries, newest first."""
    return ApiResponse(data=audit.recent(limit))
