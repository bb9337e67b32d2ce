"""Services package."""

from keygate_api.services.account_service import AccountIdentity, AccountServiceClient
from keygate_api.services.audit_service import AuditAction, AuditService
from keygate_api.services.binding_table import BindingTable
from keygate_api.services.key_store import KeyStore
from keygate_api.services.persistence_gateway import PersistenceGateway
from keygate_api.services.session_registry import SessionRegistry

__all__ = [
    "AccountIdentity",
    "AccountServiceClient",
    "AuditAction",
    "AuditService",
    "BindingTable",
    "KeyStore",
    "PersistenceGateway",
    "SessionRegistry",
]
