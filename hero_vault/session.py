"""
Session Controller for Hero Vault

This module ties together the reducer, the sync gateway and the audit
trail for one client. It is the only place that holds a live PlayerState.

STATES:
- UNBOUND: no player. Only bind() is allowed.
- BOUND: a PlayerState is loaded and its remote document is subscribed.

FLOW (bound):
1. apply(action) runs the pure reducer
2. The new state replaces local state immediately (optimistic)
3. Listeners are notified
4. The state is saved; the outcome drives save_status
5. Remote snapshots may replace local state at any time

SAVES:
- Saves run one at a time. A save whose state was superseded is skipped.
- Each save names the stored version it was derived from. Storage refuses
  it if another client wrote in between.
- A refused session adopts the stored record before its next save, so the
  other client's change is never overwritten.

KNOWN LIMITATION: a snapshot and a save are not sequenced. Snapshots older
than local state are dropped, and a save in flight when a newer snapshot
lands is refused and then resolved by adopting the stored record.
"""

import asyncio
from datetime import date
from enum import Enum
from typing import Any, Callable, Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from hero_vault.audit import AuditLogger, create_correlation_id
from hero_vault.config import Settings, get_settings
from hero_vault.game import InvalidActionError, LevelProgress, describe_progress, reduce
from hero_vault.models.actions import BaseAction, parse_action
from hero_vault.models.player import PlayerState
from hero_vault.models.validation import IdentityValidationResult
from hero_vault.services.auth import AuthSignal
from hero_vault.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsPlayerGateway,
    IdentityCollisionError,
    InMemoryAuditStorage,
    InMemoryPlayerGateway,
    PlayerSyncGateway,
    StaleWriteError,
    Subscription,
    SyncError,
)
from hero_vault.validation import IdentityValidator


logger = structlog.get_logger(__name__)


StateListener = Callable[[PlayerState], None]


class SessionStatus(str, Enum):
    """Whether a player is bound to the session."""
    UNBOUND = "unbound"
    BOUND = "bound"


class SaveStatus(str, Enum):
    """The 'saving' indicator shown to the player."""
    IDLE = "idle"
    SAVING = "saving"
    SUCCESS = "success"
    FAILED = "failed"


class SessionError(Exception):
    """Base exception for session misuse."""
    pass


class NotBoundError(SessionError):
    """The operation needs a bound player."""
    pass


class AlreadyBoundError(SessionError):
    """bind() was called on a bound session."""
    pass


class NotAuthenticatedError(SessionError):
    """The auth service has not signalled an authenticated client yet."""
    pass


class IdentityRejectedError(SessionError):
    """The submitted name/email failed validation."""

    def __init__(self, result: IdentityValidationResult):
        self.result = result
        messages = "; ".join(issue.message for issue in result.issues)
        super().__init__(f"Identity rejected: {messages}")


class SessionController:
    """
    Owns the active PlayerState and keeps it in sync with the remote store.

    Everything runs on one event loop. Local actions and remote snapshots
    both write the same state slot; whichever lands last wins, except that
    snapshots older than the local version are discarded.
    """

    def __init__(
        self,
        gateway: PlayerSyncGateway,
        audit_logger: Optional[AuditLogger] = None,
        auth: Optional[AuthSignal] = None,
        validator: Optional[IdentityValidator] = None,
        last_writer_wins: Optional[bool] = None,
        save_status_reset_seconds: Optional[float] = None,
    ):
        app_settings = get_settings().app
        self._gateway = gateway
        self._audit_logger = audit_logger
        self._auth = auth
        self._validator = validator or IdentityValidator(gateway)
        self._last_writer_wins = (
            app_settings.last_writer_wins if last_writer_wins is None else last_writer_wins
        )
        self._save_status_reset_seconds = (
            app_settings.save_status_reset_seconds
            if save_status_reset_seconds is None
            else save_status_reset_seconds
        )

        self._status = SessionStatus.UNBOUND
        self._state: Optional[PlayerState] = None
        self._email: Optional[str] = None
        self._player_key: Optional[str] = None
        self._subscription: Optional[Subscription] = None
        self._correlation_id: Optional[UUID] = None

        self._save_status = SaveStatus.IDLE
        self._save_seq = 0
        self._save_lock = asyncio.Lock()
        # Version of the stored record local state was last derived from
        self._confirmed_version: Optional[int] = None
        self._last_sync_error: Optional[Exception] = None

        self._listeners: list[StateListener] = []
        self._background: set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # Read-only projection
    # -------------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_bound(self) -> bool:
        return self._status == SessionStatus.BOUND

    @property
    def state(self) -> Optional[PlayerState]:
        return self._state

    @property
    def player_key(self) -> Optional[str]:
        return self._player_key

    @property
    def save_status(self) -> SaveStatus:
        return self._save_status

    @property
    def last_sync_error(self) -> Optional[Exception]:
        return self._last_sync_error

    def progress(self) -> LevelProgress:
        """Level, title and progress bar data for the bound player."""
        return describe_progress(self._require_bound())

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """
        Register for every new local state.

        Returns a function that removes the listener.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # -------------------------------------------------------------------------
    # Unbound -> Bound
    # -------------------------------------------------------------------------

    async def bind(
        self,
        name: str,
        email: str,
        today: Optional[date] = None,
    ) -> PlayerState:
        """
        Bind the session to a player, creating the record on first visit.

        Raises:
            AlreadyBoundError: The session is already bound
            NotAuthenticatedError: No authenticated signal yet
            IdentityRejectedError: Name or email failed validation
            IdentityCollisionError: The email's key belongs to another email
            SyncError: The remote store failed; the session stays unbound
        """
        if self._status == SessionStatus.BOUND:
            raise AlreadyBoundError(f"Session already bound to {self._player_key}")
        if self._auth is not None and not self._auth.is_authenticated:
            raise NotAuthenticatedError("Cannot reach the player store before authentication")

        correlation_id = create_correlation_id()

        try:
            result = await self._validator.validate(name, email)
        except SyncError as e:
            await self._audit_bind_failed(email, e, correlation_id)
            raise

        if not result.is_valid:
            if result.is_collision:
                await self._audit_collision(result.player_key, result.email, result.stored_email, correlation_id)
                raise IdentityCollisionError(result.player_key, result.email, result.stored_email)
            if self._audit_logger:
                await self._audit_logger.log_identity_rejected(
                    player_key=result.player_key,
                    issues=[
                        {"field": i.field, "type": i.issue_type, "message": i.message}
                        for i in result.issues
                    ],
                    correlation_id=correlation_id,
                )
            raise IdentityRejectedError(result)

        player_key = self._gateway.key_for(result.email)

        try:
            state = await self._gateway.create_if_absent(result.email, result.name, today)
        except SyncError as e:
            await self._audit_bind_failed(result.email, e, correlation_id)
            raise

        # Someone else may have created the key between validation and creation
        if state.email != result.email:
            await self._audit_collision(player_key, result.email, state.email, correlation_id)
            raise IdentityCollisionError(player_key, result.email, state.email)

        created = not result.record_exists
        if created and self._audit_logger:
            await self._audit_logger.log_player_created(
                player_key=player_key,
                name=result.name,
                correlation_id=correlation_id,
            )

        try:
            subscription = self._gateway.subscribe(result.email, self._on_remote_snapshot)
        except SyncError as e:
            await self._audit_bind_failed(result.email, e, correlation_id)
            raise

        self._email = result.email
        self._player_key = player_key
        self._correlation_id = correlation_id
        self._subscription = subscription
        self._status = SessionStatus.BOUND
        self._save_status = SaveStatus.IDLE
        self._last_sync_error = None
        self._confirmed_version = state.version
        self._set_state(state)

        if self._audit_logger:
            await self._audit_logger.log_session_bound(
                player_key=player_key,
                version=state.version,
                created=created,
                correlation_id=correlation_id,
            )

        return state

    # -------------------------------------------------------------------------
    # Bound behaviour
    # -------------------------------------------------------------------------

    async def apply(self, action: BaseAction) -> PlayerState:
        """
        Apply an action locally and save the result.

        Save failures do not raise; they set save_status to FAILED and
        last_sync_error. The optimistic local state is kept, unless the save
        was refused as stale, in which case the stored record is adopted.

        Raises:
            NotBoundError: No player bound
            InvalidActionError: The reducer rejected the action; state unchanged
        """
        current = self._require_bound()
        kind = getattr(action, "kind", type(action).__name__)

        try:
            next_state = reduce(current, action)
        except InvalidActionError as e:
            if self._audit_logger:
                await self._audit_logger.log_action_rejected(
                    player_key=self._player_key,
                    action_kind=kind,
                    reason=str(e),
                    correlation_id=self._correlation_id,
                )
            raise

        if next_state is current:
            return current

        self._set_state(next_state)

        if self._audit_logger:
            await self._audit_logger.log_action_applied(
                player_key=self._player_key,
                action_kind=kind,
                version=next_state.version,
                correlation_id=self._correlation_id,
            )

        await self._save(next_state)
        return next_state

    async def submit(self, payload: dict[str, Any]) -> PlayerState:
        """
        Apply an action given as a loose payload, e.g. {"kind": "deposit", ...}.

        Raises:
            InvalidActionError: The payload is not a valid action
        """
        try:
            action = parse_action(payload)
        except ValidationError as e:
            raise InvalidActionError(f"Malformed action: {e.error_count()} invalid field(s)") from e
        return await self.apply(action)

    async def _save(self, state: PlayerState) -> bool:
        self._save_seq += 1
        seq = self._save_seq
        self._save_status = SaveStatus.SAVING

        async with self._save_lock:
            if state is not self._state:
                # Superseded locally or by a snapshot; the newer state is what counts
                if seq == self._save_seq:
                    self._save_status = SaveStatus.IDLE
                return False

            try:
                if self._auth is not None and not self._auth.is_authenticated:
                    raise NotAuthenticatedError("Lost authentication before save")
                await self._gateway.save(
                    state,
                    base_version=self._confirmed_version,
                    overwrite=self._last_writer_wins,
                )
            except (SyncError, NotAuthenticatedError) as e:
                # Reported, not retried
                if seq == self._save_seq:
                    self._save_status = SaveStatus.FAILED
                self._last_sync_error = e
                if self._audit_logger:
                    await self._audit_logger.log_save_failed(
                        player_key=self._player_key,
                        version=state.version,
                        error_type=type(e).__name__,
                        error_message=str(e),
                        correlation_id=self._correlation_id,
                    )
                else:
                    logger.error("save_failed", player_key=self._player_key, error=str(e))
                if isinstance(e, StaleWriteError):
                    await self._adopt_stored()
                return False

            self._confirmed_version = state.version

        if seq == self._save_seq:
            self._save_status = SaveStatus.SUCCESS
            self._last_sync_error = None
            asyncio.get_running_loop().call_later(
                self._save_status_reset_seconds, self._reset_save_status, seq
            )
        if self._audit_logger:
            await self._audit_logger.log_save_succeeded(
                player_key=self._player_key,
                version=state.version,
                correlation_id=self._correlation_id,
            )
        return True

    async def _adopt_stored(self) -> None:
        """Replace local state with the stored record after a refused save."""
        try:
            stored = await self._gateway.load(self._email)
        except SyncError as e:
            # Keep local state; the next snapshot brings the stored record
            logger.warning("adopt_stored_failed", player_key=self._player_key, error=str(e))
            return
        if self._status != SessionStatus.BOUND or stored.email != self._email:
            return
        self._confirmed_version = stored.version
        if stored != self._state:
            self._set_state(stored)

    def _reset_save_status(self, seq: int) -> None:
        if seq == self._save_seq and self._save_status == SaveStatus.SUCCESS:
            self._save_status = SaveStatus.IDLE

    def _on_remote_snapshot(self, snapshot: PlayerState) -> None:
        """Subscription callback: arbitrate between remote and local state."""
        if self._status != SessionStatus.BOUND or self._state is None:
            return
        if snapshot.email != self._email:
            return

        local = self._state
        if snapshot == local:
            self._confirmed_version = snapshot.version
            return

        if snapshot.version < local.version and not self._last_writer_wins:
            self._spawn_audit(
                "log_snapshot_discarded",
                player_key=self._player_key,
                local_version=local.version,
                remote_version=snapshot.version,
                correlation_id=self._correlation_id,
            )
            return

        self._confirmed_version = snapshot.version
        self._set_state(snapshot)
        self._spawn_audit(
            "log_snapshot_applied",
            player_key=self._player_key,
            local_version=local.version,
            remote_version=snapshot.version,
            correlation_id=self._correlation_id,
        )

    # -------------------------------------------------------------------------
    # Bound -> Unbound
    # -------------------------------------------------------------------------

    async def sign_out(self) -> None:
        """Stop syncing and forget the player. No-op when unbound."""
        if self._status != SessionStatus.BOUND:
            return

        player_key = self._player_key
        correlation_id = self._correlation_id
        if self._subscription is not None:
            self._subscription.cancel()

        self._status = SessionStatus.UNBOUND
        self._state = None
        self._email = None
        self._player_key = None
        self._subscription = None
        self._correlation_id = None
        self._confirmed_version = None
        self._save_status = SaveStatus.IDLE

        if self._audit_logger:
            await self._audit_logger.log_signed_out(
                player_key=player_key,
                correlation_id=correlation_id,
            )

    async def delete_account(self) -> None:
        """
        Delete the bound player's remote record and sign out.

        Raises:
            NotBoundError: No player bound
            SyncError: The delete failed; the session stays bound
        """
        self._require_bound()
        if self._subscription is not None:
            self._subscription.cancel()

        try:
            await self._gateway.delete(self._email)
        except SyncError as e:
            self._last_sync_error = e
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"operation": "delete", "player_key": self._player_key},
                    correlation_id=self._correlation_id,
                )
            self._subscription = self._gateway.subscribe(self._email, self._on_remote_snapshot)
            raise

        if self._audit_logger:
            await self._audit_logger.log_account_deleted(
                player_key=self._player_key,
                correlation_id=self._correlation_id,
            )
        await self.sign_out()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _require_bound(self) -> PlayerState:
        if self._status != SessionStatus.BOUND or self._state is None:
            raise NotBoundError("No player is bound to this session")
        return self._state

    def _set_state(self, state: PlayerState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error("state_listener_failed", player_key=self._player_key, error=str(e))

    def _spawn_audit(self, method: str, **kwargs) -> None:
        """Run an audit call from a synchronous callback."""
        if not self._audit_logger:
            return
        task = asyncio.get_running_loop().create_task(
            getattr(self._audit_logger, method)(**kwargs)
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _audit_bind_failed(self, email: str, error: Exception, correlation_id: UUID) -> None:
        if not self._audit_logger:
            logger.error("bind_failed", email=email, error=str(error))
            return
        try:
            player_key = self._gateway.key_for(email)
        except ValueError:
            player_key = email
        await self._audit_logger.log_session_bind_failed(
            player_key=player_key,
            error_message=str(error),
            correlation_id=correlation_id,
        )

    async def _audit_collision(
        self,
        player_key: str,
        submitted_email: str,
        stored_email: str,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_identity_collision(
                player_key=player_key,
                submitted_email=submitted_email,
                stored_email=stored_email,
                correlation_id=correlation_id,
            )


def create_app_components(
    settings: Optional[Settings] = None,
    auth: Optional[AuthSignal] = None,
) -> tuple[SessionController, PlayerSyncGateway, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    The backend is chosen by `storage_backend` in the app settings.

    Returns:
        (session_controller, gateway, sheets_client)
    """
    settings = settings or get_settings()
    app_settings = settings.app
    sheets_client = None

    if app_settings.storage_backend == "google_sheets":
        sheets_client = GoogleSheetsClient()
        gateway = GoogleSheetsPlayerGateway(
            sheets_client,
            key_placeholder=app_settings.key_placeholder,
            poll_interval=app_settings.sync_poll_interval_seconds,
        )
        audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
    else:
        gateway = InMemoryPlayerGateway(key_placeholder=app_settings.key_placeholder)
        audit_logger = AuditLogger(InMemoryAuditStorage())

    session = SessionController(
        gateway=gateway,
        audit_logger=audit_logger,
        auth=auth,
        last_writer_wins=app_settings.last_writer_wins,
        save_status_reset_seconds=app_settings.save_status_reset_seconds,
    )

    return session, gateway, sheets_client
