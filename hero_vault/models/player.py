"""
Player State Models for Hero Vault

These models define the document that is synchronized to the remote store,
one per player. They are designed to:
1. Be immutable, so deriving a new state never aliases the old one
2. Serialize to the camelCase document shape used by the remote store
3. Reject impossible states (negative balances, duplicate ids) at construction

DESIGN DECISION: Every model is frozen and every collection is a tuple.
A transition builds a new PlayerState with model_copy(update=...) and
the previous value stays valid for comparison, logging and rollback.
"""

from datetime import date
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)
from pydantic.alias_generators import to_camel


SCHEMA_VERSION = 1


class DocumentModel(BaseModel):
    """Base for every model that is part of the stored player document."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# ENUMS
# =============================================================================

class HistoryType(str, Enum):
    """Tag for each entry in the player's activity log."""
    INFLOW = "inflow"
    OUTFLOW = "outflow"
    DEBT = "debt"
    REPAYMENT = "repayment"
    SKILL = "skill"
    QUEST = "quest"
    DAILY = "daily"
    MEDAL = "medal"
    PROFILE = "profile"


class DebtStatus(str, Enum):
    """Lifecycle of a debt contract."""
    OPEN = "open"
    REPAID = "repaid"


class SkillName(str, Enum):
    """
    The fixed skill set.

    Values match the keys used in the stored document.
    """
    FRUGALITY = "frugality"
    MANA_BOOST = "manaBoost"
    REPAY_BLESS = "repayBless"


# =============================================================================
# DOCUMENT PARTS
# =============================================================================

class Vault(DocumentModel):
    """A named balance bucket, amounts in minor currency units."""

    id: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=100)
    amount: int = Field(default=0, ge=0)


class HistoryEntry(DocumentModel):
    """One line of the activity log. Never modified after it is appended."""

    type: HistoryType
    amount: int = Field(default=0, ge=0)
    note: str = Field(default="", max_length=500)
    timestamp: str = Field(
        ...,
        description="Local time the action was issued, formatted for display"
    )


class DebtContract(DocumentModel):
    """
    A debt owed to a counterpart.

    `amount` is what is still outstanding; it reaches 0 when repaid.
    """

    id: str = Field(..., min_length=1, max_length=50)
    amount: int = Field(..., ge=0)
    counterpart: str = Field(..., min_length=1, max_length=100)
    status: DebtStatus = DebtStatus.OPEN

    @model_validator(mode='after')
    def validate_status(self) -> 'DebtContract':
        """An open contract with nothing left to pay is inconsistent."""
        if self.status == DebtStatus.OPEN and self.amount == 0:
            raise ValueError("Open debt must have an outstanding amount")
        if self.status == DebtStatus.REPAID and self.amount != 0:
            raise ValueError("Repaid debt cannot have an outstanding amount")
        return self


class Quest(DocumentModel):
    """A main quest with a step target."""

    id: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=200)
    target: int = Field(..., gt=0)
    progress: int = Field(default=0, ge=0)
    completed: bool = False

    @model_validator(mode='after')
    def validate_progress(self) -> 'Quest':
        if self.progress > self.target:
            raise ValueError("Quest progress cannot exceed its target")
        if self.completed != (self.progress == self.target):
            raise ValueError("Quest is completed exactly when progress reaches target")
        return self


class Skills(DocumentModel):
    """Skill levels. The key set is fixed."""

    frugality: int = Field(default=0, ge=0)
    mana_boost: int = Field(default=0, ge=0)
    repay_bless: int = Field(default=0, ge=0)

    def level_of(self, skill: SkillName) -> int:
        return getattr(self, _SKILL_FIELDS[skill])

    def raised(self, skill: SkillName) -> 'Skills':
        """Return a copy with `skill` one level higher."""
        field = _SKILL_FIELDS[skill]
        return self.model_copy(update={field: getattr(self, field) + 1})

    @property
    def total(self) -> int:
        return self.frugality + self.mana_boost + self.repay_bless


_SKILL_FIELDS = {
    SkillName.FRUGALITY: "frugality",
    SkillName.MANA_BOOST: "mana_boost",
    SkillName.REPAY_BLESS: "repay_bless",
}


class DailyStatus(DocumentModel):
    """Once-per-day sign-in tracking."""

    last_reset_date: date
    signed_in_today: bool = False


# =============================================================================
# ROOT DOCUMENT
# =============================================================================

class PlayerState(DocumentModel):
    """
    The canonical record for one player.

    CRITICAL: Never mutate a PlayerState. The reducer derives a new one
    for every action and bumps `version`, which the sync gateway uses to
    refuse stale writes and the session uses to discard stale snapshots.
    """

    schema_version: int = Field(
        default=SCHEMA_VERSION,
        ge=1,
        description="Shape of this document"
    )
    version: int = Field(
        default=0,
        ge=0,
        description="Revision counter, incremented by every applied action"
    )

    # Identity
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=254)

    # Progression
    level: int = Field(default=0, ge=0)
    current_progress_points: int = Field(
        default=0,
        ge=0,
        description="Spendable progress points"
    )
    total_progress_points: int = Field(
        default=0,
        ge=0,
        description="Lifetime progress points, never decreases"
    )

    # Finances
    vaults: tuple[Vault, ...] = ()
    history: tuple[HistoryEntry, ...] = Field(
        default=(),
        description="Most recent first"
    )
    debts: tuple[DebtContract, ...] = ()

    # Achievements
    medals: tuple[str, ...] = Field(
        default=(),
        description="Unlocked medal ids in unlock order"
    )
    skills: Skills = Field(default_factory=Skills)
    main_quests: tuple[Quest, ...] = ()
    daily: DailyStatus

    profile_picture: Optional[str] = Field(
        default=None,
        max_length=200_000,
        description="Opaque URL or data reference"
    )

    @model_validator(mode='after')
    def validate_consistency(self) -> 'PlayerState':
        """Validate cross-field invariants."""
        vault_ids = [v.id for v in self.vaults]
        if len(vault_ids) != len(set(vault_ids)):
            raise ValueError("Vault ids must be unique")

        debt_ids = [d.id for d in self.debts]
        if len(debt_ids) != len(set(debt_ids)):
            raise ValueError("Debt ids must be unique")

        quest_ids = [q.id for q in self.main_quests]
        if len(quest_ids) != len(set(quest_ids)):
            raise ValueError("Quest ids must be unique")

        if len(self.medals) != len(set(self.medals)):
            raise ValueError("Medals cannot be unlocked twice")

        if self.current_progress_points > self.total_progress_points:
            raise ValueError("Current progress points cannot exceed lifetime total")

        return self

    def find_vault(self, vault_id: str) -> Optional[Vault]:
        for vault in self.vaults:
            if vault.id == vault_id:
                return vault
        return None

    def find_debt(self, debt_id: str) -> Optional[DebtContract]:
        for debt in self.debts:
            if debt.id == debt_id:
                return debt
        return None

    def find_quest(self, quest_id: str) -> Optional[Quest]:
        for quest in self.main_quests:
            if quest.id == quest_id:
                return quest
        return None

    def to_document(self) -> dict[str, Any]:
        """Serialize to the JSON document stored remotely."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> 'PlayerState':
        """Parse a stored document."""
        return cls.model_validate(document)


# Vaults every new player starts with
DEFAULT_VAULTS = (
    Vault(id="v1", name="Cash"),
    Vault(id="v2", name="Bank Account"),
)


def new_player_state(name: str, email: str, today: Optional[date] = None) -> PlayerState:
    """
    Build the record for a player who has never been seen before.

    Two empty vaults, zeroed counters, nothing unlocked.
    """
    return PlayerState(
        name=name,
        email=email,
        vaults=DEFAULT_VAULTS,
        daily=DailyStatus(last_reset_date=today or date.today()),
    )
