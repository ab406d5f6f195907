"""
Tests for the in-memory sync gateway and audit storage.
"""

import asyncio
import pytest
from datetime import date
from uuid import uuid4

from hero_vault.game import reduce
from hero_vault.models.actions import Deposit
from hero_vault.models.audit import AuditEventBuilder
from hero_vault.services.storage import (
    InMemoryAuditStorage,
    InMemoryPlayerGateway,
    NotFoundError,
    StaleWriteError,
    normalize_email,
)


TODAY = date(2024, 3, 1)


async def settle():
    """Let call_soon deliveries run."""
    await asyncio.sleep(0)
    await asyncio.sleep(0)


class TestKeyNormalization:
    """Test email to key mapping."""

    def test_illegal_characters_replaced(self):
        assert normalize_email("a.b$c#d[e]@x.com") == "a_b_c_d_e_@x_com"

    def test_custom_placeholder(self):
        assert normalize_email("ada@example.com", placeholder="-") == "ada@example-com"

    def test_lossy_mapping_collides(self):
        """Two different emails can share a key."""
        assert normalize_email("a.b@x.com") == normalize_email("a_b@x.com")

    def test_empty_email_rejected(self):
        with pytest.raises(ValueError):
            normalize_email("")


@pytest.mark.asyncio
class TestInMemoryPlayerGateway:
    """Test load / create / save / delete."""

    async def test_load_missing_raises_not_found(self):
        gateway = InMemoryPlayerGateway()
        with pytest.raises(NotFoundError):
            await gateway.load("nobody@example.com")

    async def test_create_if_absent_twice_returns_same_record(self):
        """The second call returns the stored record, not a new one."""
        gateway = InMemoryPlayerGateway()
        first = await gateway.create_if_absent("ada@example.com", "Ada", today=TODAY)
        second = await gateway.create_if_absent("ada@example.com", "Someone Else", today=date(2025, 1, 1))

        assert first == second
        assert second.name == "Ada"
        assert await gateway.load("ada@example.com") == first

    async def test_concurrent_first_creation(self):
        gateway = InMemoryPlayerGateway()
        results = await asyncio.gather(*[
            gateway.create_if_absent("ada@example.com", "Ada", today=TODAY)
            for _ in range(5)
        ])
        assert all(result == results[0] for result in results)

    async def test_save_then_load_round_trip(self):
        """A saved state is loaded back equal in all fields."""
        gateway = InMemoryPlayerGateway()
        created = await gateway.create_if_absent("ada@example.com", "Ada", today=TODAY)
        updated = reduce(created, Deposit(vault_id="v1", amount=250))

        await gateway.save(updated)
        assert await gateway.load("ada@example.com") == updated

    async def test_stale_write_rejected(self):
        gateway = InMemoryPlayerGateway()
        created = await gateway.create_if_absent("ada@example.com", "Ada", today=TODAY)
        newer = reduce(created, Deposit(vault_id="v1", amount=500))
        await gateway.save(newer)

        competing = reduce(created, Deposit(vault_id="v2", amount=100))
        with pytest.raises(StaleWriteError) as exc_info:
            await gateway.save(competing)
        assert exc_info.value.stored_version == 1
        assert exc_info.value.attempted_version == 1
        assert await gateway.load("ada@example.com") == newer

    async def test_higher_version_from_old_base_rejected(self):
        """A branch that outran the stored version still derives from an old base."""
        gateway = InMemoryPlayerGateway()
        created = await gateway.create_if_absent("ada@example.com", "Ada", today=TODAY)
        newer = reduce(created, Deposit(vault_id="v1", amount=700))
        await gateway.save(newer, base_version=0)

        branch = reduce(created, Deposit(vault_id="v2", amount=300))
        branch = reduce(branch, Deposit(vault_id="v2", amount=100))
        assert branch.version == 2

        with pytest.raises(StaleWriteError) as exc_info:
            await gateway.save(branch, base_version=0)
        assert exc_info.value.base_version == 0
        assert (await gateway.load("ada@example.com")).find_vault("v1").amount == 700

    async def test_save_with_matching_base_version(self):
        gateway = InMemoryPlayerGateway()
        created = await gateway.create_if_absent("ada@example.com", "Ada", today=TODAY)
        first = reduce(created, Deposit(vault_id="v1", amount=100))
        second = reduce(first, Deposit(vault_id="v1", amount=100))

        # Skipping a version is fine when the stored record is the base
        await gateway.save(second, base_version=0)
        assert await gateway.load("ada@example.com") == second

    async def test_overwrite_skips_version_check(self):
        gateway = InMemoryPlayerGateway()
        created = await gateway.create_if_absent("ada@example.com", "Ada", today=TODAY)
        await gateway.save(reduce(created, Deposit(vault_id="v1", amount=500)))

        competing = reduce(created, Deposit(vault_id="v2", amount=100))
        await gateway.save(competing, overwrite=True)
        assert await gateway.load("ada@example.com") == competing

    async def test_loaded_state_is_not_aliased(self):
        """Stored documents are serialized; two loads give equal, separate objects."""
        gateway = InMemoryPlayerGateway()
        await gateway.create_if_absent("ada@example.com", "Ada", today=TODAY)
        first = await gateway.load("ada@example.com")
        second = await gateway.load("ada@example.com")
        assert first == second
        assert first is not second

    async def test_delete(self):
        gateway = InMemoryPlayerGateway()
        await gateway.create_if_absent("ada@example.com", "Ada", today=TODAY)
        assert await gateway.delete("ada@example.com") is True
        assert await gateway.delete("ada@example.com") is False
        with pytest.raises(NotFoundError):
            await gateway.load("ada@example.com")


@pytest.mark.asyncio
class TestInMemorySubscriptions:
    """Test snapshot delivery."""

    async def test_subscribe_delivers_current_then_changes(self):
        gateway = InMemoryPlayerGateway()
        created = await gateway.create_if_absent("ada@example.com", "Ada", today=TODAY)
        received = []

        gateway.subscribe("ada@example.com", received.append)
        await settle()
        assert received == [created]

        updated = reduce(created, Deposit(vault_id="v1", amount=250))
        await gateway.save(updated)
        await settle()
        assert received == [created, updated]

    async def test_subscribe_before_creation(self):
        gateway = InMemoryPlayerGateway()
        received = []
        gateway.subscribe("ada@example.com", received.append)
        await settle()
        assert received == []

        created = await gateway.create_if_absent("ada@example.com", "Ada", today=TODAY)
        await settle()
        assert received == [created]

    async def test_cancel_stops_delivery(self):
        gateway = InMemoryPlayerGateway()
        created = await gateway.create_if_absent("ada@example.com", "Ada", today=TODAY)
        received = []

        subscription = gateway.subscribe("ada@example.com", received.append)
        assert gateway.subscriber_count("ada@example.com") == 1
        subscription.cancel()
        subscription.cancel()
        assert subscription.active is False
        assert gateway.subscriber_count("ada@example.com") == 0

        await gateway.save(reduce(created, Deposit(vault_id="v1", amount=250)))
        await settle()
        assert received == []

    async def test_failing_callback_does_not_break_others(self):
        gateway = InMemoryPlayerGateway()
        created = await gateway.create_if_absent("ada@example.com", "Ada", today=TODAY)
        received = []

        def broken(_state):
            raise RuntimeError("listener bug")

        gateway.subscribe("ada@example.com", broken)
        gateway.subscribe("ada@example.com", received.append)
        await settle()
        assert received == [created]

    async def test_snapshots_are_independent_copies(self):
        gateway = InMemoryPlayerGateway()
        await gateway.create_if_absent("ada@example.com", "Ada", today=TODAY)
        first, second = [], []
        gateway.subscribe("ada@example.com", first.append)
        gateway.subscribe("ada@example.com", second.append)
        await settle()
        assert first[0] == second[0]
        assert first[0] is not second[0]


@pytest.mark.asyncio
class TestInMemoryAuditStorage:
    """Test the append-only audit list."""

    async def test_events_by_player_and_recent(self):
        storage = InMemoryAuditStorage()
        correlation_id = uuid4()

        await storage.append_event(AuditEventBuilder.save_succeeded("ada@example_com", 1, correlation_id))
        await storage.append_event(AuditEventBuilder.save_succeeded("bob@example_com", 1, correlation_id))
        await storage.append_event(AuditEventBuilder.save_succeeded("ada@example_com", 2, correlation_id))

        ada_events = await storage.get_events_by_player("ada@example_com")
        assert [e.state_version for e in ada_events] == [1, 2]

        recent = await storage.get_recent_events(limit=2)
        assert len(recent) == 2
        assert recent[0].timestamp >= recent[1].timestamp
