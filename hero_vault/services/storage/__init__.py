"""
Storage Services Package

Provides the sync gateway interface and concrete implementations.
Google Sheets is the remote backend; the in-memory backend is used for
tests and offline runs.
"""

from hero_vault.services.storage.interface import (
    AuditStorageInterface,
    CorruptDocumentError,
    IdentityCollisionError,
    NotFoundError,
    PlayerSyncGateway,
    SnapshotCallback,
    StaleWriteError,
    Subscription,
    SyncError,
    SyncFailureError,
)
from hero_vault.services.storage.keys import (
    ILLEGAL_KEY_CHARACTERS,
    normalize_email,
)
from hero_vault.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryPlayerGateway,
)
from hero_vault.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsPlayerGateway,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "PlayerSyncGateway",
    "SnapshotCallback",
    "Subscription",
    # Exceptions
    "CorruptDocumentError",
    "IdentityCollisionError",
    "NotFoundError",
    "StaleWriteError",
    "SyncError",
    "SyncFailureError",
    # Keys
    "ILLEGAL_KEY_CHARACTERS",
    "normalize_email",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryPlayerGateway",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsPlayerGateway",
]
