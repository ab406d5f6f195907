"""
Tests for Hero Vault models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (with the in-memory gateway or fake sheets)
3. No real API calls in tests
"""

import pytest
from datetime import date, datetime
from uuid import uuid4

from pydantic import ValidationError

from hero_vault.models.player import (
    DEFAULT_VAULTS,
    DailyStatus,
    DebtContract,
    DebtStatus,
    HistoryEntry,
    HistoryType,
    PlayerState,
    Quest,
    SkillName,
    Skills,
    Vault,
    new_player_state,
)
from hero_vault.models.actions import (
    DailySignIn,
    Deposit,
    MedalCheck,
    SkillUpgrade,
    Spend,
    SpendingCategory,
    parse_action,
)
from hero_vault.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from hero_vault.models.validation import (
    IdentityValidationResult,
    ValidationIssue,
)


class TestPlayerModels:
    """Tests for the player document models."""

    def test_new_player_state_defaults(self):
        """A new player starts with two empty vaults and zeroed counters."""
        state = new_player_state("Ada", "ada@example.com", today=date(2024, 3, 1))
        assert state.version == 0
        assert state.level == 0
        assert state.current_progress_points == 0
        assert state.total_progress_points == 0
        assert [v.id for v in state.vaults] == ["v1", "v2"]
        assert all(v.amount == 0 for v in state.vaults)
        assert state.history == ()
        assert state.debts == ()
        assert state.medals == ()
        assert state.skills == Skills()
        assert state.daily.last_reset_date == date(2024, 3, 1)
        assert state.daily.signed_in_today is False
        assert state.profile_picture is None

    def test_default_vaults_names(self):
        """Test the starting vault names."""
        assert [v.name for v in DEFAULT_VAULTS] == ["Cash", "Bank Account"]

    def test_vault_rejects_negative_amount(self):
        """Test that negative balances are rejected."""
        with pytest.raises(ValueError):
            Vault(id="v1", name="Cash", amount=-1)

    def test_vault_strips_whitespace(self):
        """Test that whitespace is stripped from vault name."""
        vault = Vault(id="v1", name="  Cash  ")
        assert vault.name == "Cash"

    def test_models_are_frozen(self):
        """Test that document models cannot be mutated."""
        vault = Vault(id="v1", name="Cash")
        with pytest.raises(ValidationError):
            vault.amount = 10

    def test_open_debt_needs_outstanding_amount(self):
        """Test that an open debt cannot be at zero."""
        with pytest.raises(ValueError, match="Open debt must have an outstanding amount"):
            DebtContract(id="d1", amount=0, counterpart="Bob")

    def test_repaid_debt_has_nothing_outstanding(self):
        """Test that a repaid debt must be at zero."""
        with pytest.raises(ValueError, match="Repaid debt cannot have an outstanding amount"):
            DebtContract(id="d1", amount=5, counterpart="Bob", status=DebtStatus.REPAID)

    def test_quest_completed_flag_matches_progress(self):
        """Test quest completion consistency."""
        with pytest.raises(ValueError):
            Quest(id="q1", title="Save up", target=3, progress=3, completed=False)
        with pytest.raises(ValueError):
            Quest(id="q1", title="Save up", target=3, progress=4, completed=True)
        quest = Quest(id="q1", title="Save up", target=3, progress=3, completed=True)
        assert quest.completed is True

    def test_skills_raised_returns_copy(self):
        """Test raising a skill leaves the original untouched."""
        skills = Skills()
        raised = skills.raised(SkillName.MANA_BOOST)
        assert skills.mana_boost == 0
        assert raised.mana_boost == 1
        assert raised.level_of(SkillName.MANA_BOOST) == 1
        assert raised.total == 1

    def test_duplicate_vault_ids_rejected(self):
        """Test that vault ids must be unique."""
        with pytest.raises(ValueError, match="Vault ids must be unique"):
            PlayerState(
                name="Ada",
                email="ada@example.com",
                vaults=(Vault(id="v1", name="Cash"), Vault(id="v1", name="Other")),
                daily=DailyStatus(last_reset_date=date(2024, 3, 1)),
            )

    def test_current_points_cannot_exceed_total(self):
        """Test spendable points never exceed lifetime points."""
        with pytest.raises(ValueError, match="cannot exceed lifetime total"):
            PlayerState(
                name="Ada",
                email="ada@example.com",
                current_progress_points=5,
                total_progress_points=4,
                daily=DailyStatus(last_reset_date=date(2024, 3, 1)),
            )

    def test_document_uses_camel_case_keys(self):
        """Test the stored document shape."""
        state = new_player_state("Ada", "ada@example.com", today=date(2024, 3, 1))
        document = state.to_document()
        assert "currentProgressPoints" in document
        assert "totalProgressPoints" in document
        assert "mainQuests" in document
        assert "profilePicture" in document
        assert document["skills"] == {"frugality": 0, "manaBoost": 0, "repayBless": 0}
        assert document["daily"] == {"lastResetDate": "2024-03-01", "signedInToday": False}

    def test_document_round_trip(self):
        """Test a populated state survives serialization unchanged."""
        state = new_player_state("Ada", "ada@example.com", today=date(2024, 3, 1)).model_copy(update={
            "version": 4,
            "history": (HistoryEntry(type=HistoryType.INFLOW, amount=500, note="To Cash", timestamp="2024/03/01 10:00:00"),),
            "debts": (DebtContract(id="d1", amount=300, counterpart="Bob"),),
            "medals": ("m1",),
            "main_quests": (Quest(id="q1", title="Save up", target=3, progress=1),),
            "profile_picture": "https://example.com/ada.png",
        })
        assert PlayerState.from_document(state.to_document()) == state

    def test_from_document_rejects_malformed(self):
        """Test that a document missing required fields is rejected."""
        with pytest.raises(ValidationError):
            PlayerState.from_document({"name": "Ada"})


class TestActionModels:
    """Tests for the action union."""

    def test_deposit_rejects_zero_amount(self):
        """Test that actions validate their own fields."""
        with pytest.raises(ValueError):
            Deposit(vault_id="v1", amount=0)

    def test_parse_action_dispatches_on_kind(self):
        """Test payloads are parsed to the right variant."""
        action = parse_action({"kind": "spend", "vault_id": "v2", "amount": 250, "category": "food"})
        assert isinstance(action, Spend)
        assert action.category == SpendingCategory.FOOD

        assert isinstance(parse_action({"kind": "medal_check"}), MedalCheck)
        upgrade = parse_action({"kind": "skill_upgrade", "skill": "repayBless"})
        assert isinstance(upgrade, SkillUpgrade)
        assert upgrade.skill == SkillName.REPAY_BLESS

    def test_parse_action_rejects_unknown_kind(self):
        """Test an unknown kind is a validation error."""
        with pytest.raises(ValidationError):
            parse_action({"kind": "teleport"})

    def test_daily_sign_in_day_defaults_to_occurred_at(self):
        """Test the claimed day falls back to the action timestamp."""
        action = DailySignIn(occurred_at=datetime(2024, 3, 5, 9, 30))
        assert action.day == date(2024, 3, 5)
        explicit = DailySignIn(on=date(2024, 3, 6), occurred_at=datetime(2024, 3, 5, 9, 30))
        assert explicit.day == date(2024, 3, 6)


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.SESSION_BOUND,
            description="Session bound",
        )
        assert event.event_type == AuditEventType.SESSION_BOUND
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.SAVE_SUCCEEDED,
            description="Saved",
            player_key="ada@example_com",
            state_version=3,
            details={"attempt": 1},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "save_succeeded"
        assert log_dict["state_version"] == 3
        assert log_dict["details"]["attempt"] == 1

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.ACTION_APPLIED,
            description="Action applied: deposit",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 11  # Expected number of columns
        assert row[2] == "action_applied"
        assert row[5] == ""  # no state version
        assert row[10] == "True"

    def test_audit_event_builder_save_failed(self):
        """Test AuditEventBuilder.save_failed."""
        correlation_id = uuid4()
        event = AuditEventBuilder.save_failed(
            player_key="ada@example_com",
            version=7,
            error_type="StaleWriteError",
            error_message="stored version 8",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.SAVE_FAILED
        assert event.severity == AuditSeverity.ERROR
        assert event.state_version == 7
        assert event.error_code == "StaleWriteError"
        assert event.correlation_id == correlation_id

    def test_audit_event_builder_snapshot_discarded(self):
        """Test AuditEventBuilder.snapshot_discarded."""
        event = AuditEventBuilder.snapshot_discarded(
            player_key="ada@example_com",
            local_version=5,
            remote_version=3,
            correlation_id=uuid4(),
        )
        assert event.event_type == AuditEventType.SNAPSHOT_DISCARDED
        assert event.details == {"local_version": 5, "remote_version": 3}
        assert event.is_user_action is False


class TestValidationResult:
    """Tests for IdentityValidationResult model."""

    def test_validation_result_collision(self):
        """Test has_errors and is_collision properties."""
        result = IdentityValidationResult(
            name="Ada",
            email="a.b@example.com",
            player_key="a_b@example_com",
            schema_valid=True,
            semantic_valid=False,
            is_valid=False,
            record_exists=True,
            stored_email="a_b@example.com",
            issues=[
                ValidationIssue(
                    field="email",
                    issue_type="identity_collision",
                    message="Key taken",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.is_collision is True

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = IdentityValidationResult(
            name="Ada",
            email="ada@example.com",
            schema_valid=True,
            semantic_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="name",
                    issue_type="unusual",
                    message="Name looks odd",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.is_collision is False

    def test_validation_issue_severity_pattern(self):
        """Test severity is restricted."""
        with pytest.raises(ValidationError):
            ValidationIssue(field="name", issue_type="missing", message="x", severity="fatal")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
