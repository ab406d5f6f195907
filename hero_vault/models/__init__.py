"""
Data Models Package

This package contains all Pydantic models used in Hero Vault.
The player document, the actions that change it, and the audit trail.
"""

from hero_vault.models.player import (
    DEFAULT_VAULTS,
    SCHEMA_VERSION,
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
    AcceptQuest,
    Action,
    BaseAction,
    DailySignIn,
    Deposit,
    MedalCheck,
    QuestProgress,
    RecordDebt,
    Repay,
    SetProfilePicture,
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

__all__ = [
    # Player document
    "DEFAULT_VAULTS",
    "SCHEMA_VERSION",
    "DailyStatus",
    "DebtContract",
    "DebtStatus",
    "HistoryEntry",
    "HistoryType",
    "PlayerState",
    "Quest",
    "SkillName",
    "Skills",
    "Vault",
    "new_player_state",
    # Actions
    "AcceptQuest",
    "Action",
    "BaseAction",
    "DailySignIn",
    "Deposit",
    "MedalCheck",
    "QuestProgress",
    "RecordDebt",
    "Repay",
    "SetProfilePicture",
    "SkillUpgrade",
    "Spend",
    "SpendingCategory",
    "parse_action",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Validation models
    "IdentityValidationResult",
    "ValidationIssue",
]
