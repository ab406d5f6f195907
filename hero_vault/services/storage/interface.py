"""
Abstract Sync Gateway Interface

DESIGN DECISION: We define an abstract interface for the remote store.
This allows us to:
1. Swap Google Sheets for a real document database later
2. Use in-memory storage for testing
3. Keep the session controller decoupled from the backend

The interface is intentionally small: one document per player,
read it, write it whole, watch it.

KNOWN GAPS (accepted, not hidden):
- create_if_absent is read-then-write on remote backends; two first-time
  binds of the same identity can race
- save failures are reported, never retried or queued
- snapshots and saves are not sequenced; the version counter lets the
  caller detect a stale snapshot but nothing prevents one being delivered

A save names the version it was derived from (`base_version`) and is
refused unless storage still holds exactly that version. A refused writer
must adopt the stored record before saving again.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Callable, Optional

from hero_vault.models.audit import AuditEvent
from hero_vault.models.player import PlayerState
from hero_vault.services.storage.keys import normalize_email


SnapshotCallback = Callable[[PlayerState], None]


class Subscription(ABC):
    """Handle returned by subscribe(). Cancel it to stop delivery."""

    @abstractmethod
    def cancel(self) -> None:
        """Stop delivering snapshots. Safe to call more than once."""
        pass

    @property
    @abstractmethod
    def active(self) -> bool:
        pass


class PlayerSyncGateway(ABC):
    """
    Abstract interface for player document storage.

    Any backend (Google Sheets, a document database, memory)
    must implement these methods.
    """

    def __init__(self, key_placeholder: str = "_"):
        self._key_placeholder = key_placeholder

    def key_for(self, email: str) -> str:
        """Storage key for an email."""
        return normalize_email(email, self._key_placeholder)

    @abstractmethod
    async def load(self, email: str) -> PlayerState:
        """
        Fetch the stored record for an email.

        Raises:
            NotFoundError: No record under the normalized key
            SyncFailureError: The remote call failed
        """
        pass

    @abstractmethod
    async def create_if_absent(
        self,
        email: str,
        name: str,
        today: Optional[date] = None,
    ) -> PlayerState:
        """
        Return the existing record, or persist and return a new default one.

        An existing record is returned unchanged, even if `name` differs.

        Raises:
            SyncFailureError: The remote call failed
        """
        pass

    @abstractmethod
    async def save(
        self,
        state: PlayerState,
        *,
        base_version: Optional[int] = None,
        overwrite: bool = False,
    ) -> PlayerState:
        """
        Persist the full record, replacing what is stored.

        `base_version` is the version of the stored record `state` was
        derived from; it defaults to `state.version - 1`. Unless `overwrite`
        is set, the write is refused when the stored record's version is
        not exactly `base_version`.

        Returns:
            The state as written

        Raises:
            StaleWriteError: Stored version != base_version
            SyncFailureError: The remote call failed
        """
        pass

    @abstractmethod
    def subscribe(
        self,
        email: str,
        on_change: SnapshotCallback,
    ) -> Subscription:
        """
        Watch the record for an email.

        `on_change` is called asynchronously with a full snapshot: once with
        the current record (if any) and then on every change, including
        changes made through this gateway. Deletions are not delivered.
        """
        pass

    @abstractmethod
    async def delete(self, email: str) -> bool:
        """
        Delete the record for an email.

        Returns:
            True if a record was deleted
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_player(
        self,
        player_key: str,
    ) -> list[AuditEvent]:
        """
        Get all events for one player document.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class SyncError(Exception):
    """Base exception for sync gateway operations."""
    pass


class NotFoundError(SyncError):
    """No player record under the requested key."""
    pass


class SyncFailureError(SyncError):
    """The remote store could not be reached or rejected the call."""
    pass


class CorruptDocumentError(SyncError):
    """A stored document exists but cannot be parsed. Retrying will not help."""
    pass


class StaleWriteError(SyncError):
    """The stored record is not the one the write was derived from."""

    def __init__(
        self,
        key: str,
        stored_version: int,
        attempted_version: int,
        base_version: Optional[int] = None,
    ):
        self.key = key
        self.stored_version = stored_version
        self.attempted_version = attempted_version
        self.base_version = base_version
        super().__init__(
            f"Refusing to overwrite {key}: stored version {stored_version}, "
            f"attempted version {attempted_version} derived from {base_version}"
        )


class IdentityCollisionError(SyncError):
    """Two different emails normalize to the same storage key."""

    def __init__(self, key: str, submitted_email: str, stored_email: str):
        self.key = key
        self.submitted_email = submitted_email
        self.stored_email = stored_email
        super().__init__(
            f"Email {submitted_email} maps to key {key}, "
            f"which already belongs to {stored_email}"
        )


def resolve_base_version(state: PlayerState, base_version: Optional[int]) -> int:
    """The version a save expects to find in storage."""
    if base_version is None:
        return state.version - 1
    return base_version
