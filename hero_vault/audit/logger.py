"""
Audit Logger

DESIGN DECISION: Every session transition and sync outcome is logged.
This provides:
1. Complete traceability of what reached the remote store
2. Visibility into failed saves and discarded snapshots
3. A record of identity collisions

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace one session's events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from hero_vault.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from hero_vault.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), if configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("hero_vault.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_session_bound(
        self,
        player_key: str,
        version: int,
        created: bool,
        correlation_id: UUID,
    ) -> None:
        """Log a successful bind."""
        await self.log(AuditEventBuilder.session_bound(
            player_key=player_key,
            version=version,
            created=created,
            correlation_id=correlation_id,
        ))

    async def log_session_bind_failed(
        self,
        player_key: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a bind that failed on I/O."""
        await self.log(AuditEventBuilder.session_bind_failed(
            player_key=player_key,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_player_created(
        self,
        player_key: str,
        name: str,
        correlation_id: UUID,
    ) -> None:
        """Log creation of a new player record."""
        await self.log(AuditEventBuilder.player_created(
            player_key=player_key,
            name=name,
            correlation_id=correlation_id,
        ))

    async def log_identity_rejected(
        self,
        player_key: Optional[str],
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log an identity that failed validation."""
        await self.log(AuditEventBuilder.identity_rejected(
            player_key=player_key,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_identity_collision(
        self,
        player_key: str,
        submitted_email: str,
        stored_email: str,
        correlation_id: UUID,
    ) -> None:
        """Log a storage key collision."""
        await self.log(AuditEventBuilder.identity_collision(
            player_key=player_key,
            submitted_email=submitted_email,
            stored_email=stored_email,
            correlation_id=correlation_id,
        ))

    async def log_action_applied(
        self,
        player_key: str,
        action_kind: str,
        version: int,
        correlation_id: UUID,
    ) -> None:
        """Log an applied action."""
        await self.log(AuditEventBuilder.action_applied(
            player_key=player_key,
            action_kind=action_kind,
            version=version,
            correlation_id=correlation_id,
        ))

    async def log_action_rejected(
        self,
        player_key: str,
        action_kind: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        """Log a rejected action."""
        await self.log(AuditEventBuilder.action_rejected(
            player_key=player_key,
            action_kind=action_kind,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_save_succeeded(
        self,
        player_key: str,
        version: int,
        correlation_id: UUID,
    ) -> None:
        """Log a successful save."""
        await self.log(AuditEventBuilder.save_succeeded(
            player_key=player_key,
            version=version,
            correlation_id=correlation_id,
        ))

    async def log_save_failed(
        self,
        player_key: str,
        version: int,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a failed save."""
        await self.log(AuditEventBuilder.save_failed(
            player_key=player_key,
            version=version,
            error_type=error_type,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_snapshot_applied(
        self,
        player_key: str,
        local_version: int,
        remote_version: int,
        correlation_id: UUID,
    ) -> None:
        """Log a remote snapshot that replaced local state."""
        await self.log(AuditEventBuilder.snapshot_applied(
            player_key=player_key,
            local_version=local_version,
            remote_version=remote_version,
            correlation_id=correlation_id,
        ))

    async def log_snapshot_discarded(
        self,
        player_key: str,
        local_version: int,
        remote_version: int,
        correlation_id: UUID,
    ) -> None:
        """Log a stale remote snapshot."""
        await self.log(AuditEventBuilder.snapshot_discarded(
            player_key=player_key,
            local_version=local_version,
            remote_version=remote_version,
            correlation_id=correlation_id,
        ))

    async def log_signed_out(
        self,
        player_key: str,
        correlation_id: UUID,
    ) -> None:
        """Log a sign-out."""
        await self.log(AuditEventBuilder.signed_out(
            player_key=player_key,
            correlation_id=correlation_id,
        ))

    async def log_account_deleted(
        self,
        player_key: str,
        correlation_id: UUID,
    ) -> None:
        """Log an account deletion."""
        await self.log(AuditEventBuilder.account_deleted(
            player_key=player_key,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this when a session is bound.
    Pass it through all subsequent operations of that session.
    """
    return uuid4()
