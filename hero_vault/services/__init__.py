"""Services package."""

from hero_vault.services.auth import AuthSignal
from hero_vault.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsPlayerGateway,
    CorruptDocumentError,
    IdentityCollisionError,
    InMemoryAuditStorage,
    InMemoryPlayerGateway,
    NotFoundError,
    PlayerSyncGateway,
    StaleWriteError,
    Subscription,
    SyncError,
    SyncFailureError,
)

__all__ = [
    # Authentication collaborator
    "AuthSignal",
    # Storage services
    "AuditStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsPlayerGateway",
    "CorruptDocumentError",
    "IdentityCollisionError",
    "InMemoryAuditStorage",
    "InMemoryPlayerGateway",
    "NotFoundError",
    "PlayerSyncGateway",
    "StaleWriteError",
    "Subscription",
    "SyncError",
    "SyncFailureError",
]
