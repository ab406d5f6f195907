"""
Audit Models for Hero Vault

Every session transition, applied action and sync outcome is logged
for audit purposes. This provides:
1. A trail of what the player did and what reached the remote store
2. Debugging information when saves fail or snapshots race
3. Visibility into the known gaps (stale snapshots, key collisions)

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of the session lifecycle has its own event type.
    """
    # Session lifecycle
    SESSION_BOUND = "session_bound"
    SESSION_BIND_FAILED = "session_bind_failed"
    SIGNED_OUT = "signed_out"
    PLAYER_CREATED = "player_created"
    ACCOUNT_DELETED = "account_deleted"

    # Identity
    IDENTITY_REJECTED = "identity_rejected"
    IDENTITY_COLLISION = "identity_collision"

    # Actions
    ACTION_APPLIED = "action_applied"
    ACTION_REJECTED = "action_rejected"

    # Persistence
    SAVE_SUCCEEDED = "save_succeeded"
    SAVE_FAILED = "save_failed"

    # Remote snapshots
    SNAPSHOT_APPLIED = "snapshot_applied"
    SNAPSHOT_DISCARDED = "snapshot_discarded"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - which player document is this about?
    player_key: Optional[str] = Field(
        default=None,
        description="Normalized storage key of the player"
    )
    state_version: Optional[int] = Field(
        default=None,
        ge=0,
        description="PlayerState version the event refers to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one session)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    # Additional data (event-specific)
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    # User action tracking
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "player_key": self.player_key,
            "state_version": self.state_version,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, player_key, state_version,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.player_key or "",
            str(self.state_version) if self.state_version is not None else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.session_bound(player_key, version, created, correlation_id)
        event = AuditEventBuilder.save_failed(player_key, version, error, correlation_id)
    """

    @staticmethod
    def session_bound(
        player_key: str,
        version: int,
        created: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_BOUND,
            player_key=player_key,
            state_version=version,
            correlation_id=correlation_id,
            description="Session bound to new player" if created else "Session bound to existing player",
            details={
                "created": created,
            },
            is_user_action=True,
        )

    @staticmethod
    def session_bind_failed(
        player_key: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_BIND_FAILED,
            severity=AuditSeverity.ERROR,
            player_key=player_key,
            correlation_id=correlation_id,
            description="Could not bind session to player record",
            error_message=error_message,
        )

    @staticmethod
    def player_created(
        player_key: str,
        name: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PLAYER_CREATED,
            player_key=player_key,
            state_version=0,
            correlation_id=correlation_id,
            description=f"Player record created: {name}",
            details={
                "name": name,
            },
        )

    @staticmethod
    def identity_rejected(
        player_key: Optional[str],
        issues: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IDENTITY_REJECTED,
            severity=AuditSeverity.WARNING,
            player_key=player_key,
            correlation_id=correlation_id,
            description=f"Identity rejected with {len(issues)} issues",
            details={
                "issues": issues,
            },
            is_user_action=True,
        )

    @staticmethod
    def identity_collision(
        player_key: str,
        submitted_email: str,
        stored_email: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IDENTITY_COLLISION,
            severity=AuditSeverity.WARNING,
            player_key=player_key,
            correlation_id=correlation_id,
            description="Email normalizes to a key owned by a different email",
            details={
                "submitted_email": submitted_email,
                "stored_email": stored_email,
            },
            is_user_action=True,
        )

    @staticmethod
    def action_applied(
        player_key: str,
        action_kind: str,
        version: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTION_APPLIED,
            player_key=player_key,
            state_version=version,
            correlation_id=correlation_id,
            description=f"Action applied: {action_kind}",
            details={
                "kind": action_kind,
            },
            is_user_action=True,
        )

    @staticmethod
    def action_rejected(
        player_key: str,
        action_kind: str,
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            player_key=player_key,
            correlation_id=correlation_id,
            description=f"Action rejected: {action_kind}",
            error_message=reason,
            details={
                "kind": action_kind,
            },
            is_user_action=True,
        )

    @staticmethod
    def save_succeeded(
        player_key: str,
        version: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_SUCCEEDED,
            player_key=player_key,
            state_version=version,
            correlation_id=correlation_id,
            description=f"Player document saved at version {version}",
        )

    @staticmethod
    def save_failed(
        player_key: str,
        version: int,
        error_type: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            player_key=player_key,
            state_version=version,
            correlation_id=correlation_id,
            description=f"Save failed at version {version}, local state kept",
            error_code=error_type,
            error_message=error_message,
        )

    @staticmethod
    def snapshot_applied(
        player_key: str,
        local_version: int,
        remote_version: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_APPLIED,
            severity=AuditSeverity.DEBUG,
            player_key=player_key,
            state_version=remote_version,
            correlation_id=correlation_id,
            description="Remote snapshot replaced local state",
            details={
                "local_version": local_version,
                "remote_version": remote_version,
            },
        )

    @staticmethod
    def snapshot_discarded(
        player_key: str,
        local_version: int,
        remote_version: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_DISCARDED,
            severity=AuditSeverity.WARNING,
            player_key=player_key,
            state_version=remote_version,
            correlation_id=correlation_id,
            description="Stale remote snapshot discarded",
            details={
                "local_version": local_version,
                "remote_version": remote_version,
            },
        )

    @staticmethod
    def signed_out(
        player_key: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNED_OUT,
            player_key=player_key,
            correlation_id=correlation_id,
            description="Session unbound",
            is_user_action=True,
        )

    @staticmethod
    def account_deleted(
        player_key: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETED,
            severity=AuditSeverity.WARNING,
            player_key=player_key,
            correlation_id=correlation_id,
            description="Player record deleted",
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
