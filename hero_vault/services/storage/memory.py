"""
In-Memory Storage Implementation

Keeps player documents as serialized JSON in a dict, so nothing handed out
by the gateway aliases what is stored. Used for tests and for local runs
without a Google spreadsheet.

Unlike the remote backends, create_if_absent is atomic here: there is no
suspension point between the existence check and the write.
"""

import asyncio
import json
from datetime import date
from typing import Optional

import structlog

from hero_vault.models.audit import AuditEvent
from hero_vault.models.player import PlayerState, new_player_state
from hero_vault.services.storage.interface import (
    AuditStorageInterface,
    NotFoundError,
    PlayerSyncGateway,
    SnapshotCallback,
    StaleWriteError,
    Subscription,
    resolve_base_version,
)


logger = structlog.get_logger(__name__)


class InMemorySubscription(Subscription):
    """Subscription whose snapshots are scheduled on the running event loop."""

    def __init__(self, gateway: "InMemoryPlayerGateway", key: str, on_change: SnapshotCallback):
        self._gateway = gateway
        self._key = key
        self._on_change = on_change
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if self._active:
            self._active = False
            self._gateway._remove_subscription(self._key, self)

    def _deliver(self, document: str) -> None:
        # Snapshots already queued when cancel() ran are dropped
        if not self._active:
            return
        try:
            self._on_change(PlayerState.from_document(json.loads(document)))
        except Exception as e:
            logger.error(
                "snapshot_callback_failed",
                player_key=self._key,
                error=str(e),
            )


class InMemoryPlayerGateway(PlayerSyncGateway):
    """Dictionary-backed sync gateway."""

    def __init__(self, key_placeholder: str = "_"):
        super().__init__(key_placeholder)
        self._documents: dict[str, str] = {}
        self._subscriptions: dict[str, list[InMemorySubscription]] = {}

    def _read(self, key: str) -> Optional[PlayerState]:
        document = self._documents.get(key)
        if document is None:
            return None
        return PlayerState.from_document(json.loads(document))

    def _write(self, key: str, state: PlayerState) -> None:
        document = json.dumps(state.to_document())
        self._documents[key] = document
        self._notify(key, document)

    def _notify(self, key: str, document: str) -> None:
        subscriptions = self._subscriptions.get(key)
        if not subscriptions:
            return
        loop = asyncio.get_running_loop()
        for subscription in list(subscriptions):
            loop.call_soon(subscription._deliver, document)

    def _remove_subscription(self, key: str, subscription: InMemorySubscription) -> None:
        subscriptions = self._subscriptions.get(key, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)
        if not subscriptions:
            self._subscriptions.pop(key, None)

    async def load(self, email: str) -> PlayerState:
        key = self.key_for(email)
        state = self._read(key)
        if state is None:
            raise NotFoundError(f"No player record for key: {key}")
        return state

    async def create_if_absent(
        self,
        email: str,
        name: str,
        today: Optional[date] = None,
    ) -> PlayerState:
        key = self.key_for(email)
        existing = self._read(key)
        if existing is not None:
            return existing

        state = new_player_state(name=name, email=email, today=today)
        self._write(key, state)
        return state

    async def save(
        self,
        state: PlayerState,
        *,
        base_version: Optional[int] = None,
        overwrite: bool = False,
    ) -> PlayerState:
        key = self.key_for(state.email)
        if not overwrite:
            base = resolve_base_version(state, base_version)
            stored = self._read(key)
            if stored is not None and stored.version != base:
                raise StaleWriteError(key, stored.version, state.version, base)

        self._write(key, state)
        return state

    def subscribe(
        self,
        email: str,
        on_change: SnapshotCallback,
    ) -> Subscription:
        key = self.key_for(email)
        subscription = InMemorySubscription(self, key, on_change)
        self._subscriptions.setdefault(key, []).append(subscription)

        document = self._documents.get(key)
        if document is not None:
            asyncio.get_running_loop().call_soon(subscription._deliver, document)
        return subscription

    async def delete(self, email: str) -> bool:
        return self._documents.pop(self.key_for(email), None) is not None

    def subscriber_count(self, email: str) -> int:
        """Number of live subscriptions for an email."""
        return len(self._subscriptions.get(self.key_for(email), []))


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_player(
        self,
        player_key: str,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.player_key == player_key]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
