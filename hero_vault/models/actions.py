"""
Action Models for Hero Vault

An action is a validated intent to change a PlayerState. The presentation
layer builds one of these and hands it to the session; the reducer turns
(state, action) into the next state.

DESIGN DECISION: Actions form a closed, tagged union on `kind`.
Each variant carries exactly the typed fields it needs, so a malformed
request fails here, before it ever reaches the reducer.
"""

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from hero_vault.models.player import SkillName


class SpendingCategory(str, Enum):
    """Categories a spend can be filed under."""
    FOOD = "food"
    CLOTHING = "clothing"
    HOUSING = "housing"
    TRANSPORT = "transport"
    EDUCATION = "education"
    LEISURE = "leisure"
    HEALTH = "health"
    OTHER = "other"


class BaseAction(BaseModel):
    """Fields shared by every action."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    occurred_at: datetime = Field(
        default_factory=datetime.now,
        description="When the player issued the action (local time)"
    )


class Deposit(BaseAction):
    """Put money into a vault. Earns progress points."""

    kind: Literal["deposit"] = "deposit"
    vault_id: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0, description="Minor currency units")


class Spend(BaseAction):
    """Take money out of a vault."""

    kind: Literal["spend"] = "spend"
    vault_id: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0)
    category: SpendingCategory = SpendingCategory.OTHER
    note: str = Field(default="", max_length=200)


class RecordDebt(BaseAction):
    """Sign a new debt contract."""

    kind: Literal["record_debt"] = "record_debt"
    debt_id: str = Field(..., min_length=1, max_length=50)
    counterpart: str = Field(..., min_length=1, max_length=100)
    amount: int = Field(..., gt=0)


class Repay(BaseAction):
    """Pay down a debt from a vault."""

    kind: Literal["repay"] = "repay"
    debt_id: str = Field(..., min_length=1)
    vault_id: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0)


class SkillUpgrade(BaseAction):
    """Spend progress points to raise a skill by one level."""

    kind: Literal["skill_upgrade"] = "skill_upgrade"
    skill: SkillName


class AcceptQuest(BaseAction):
    """Add a main quest to the log."""

    kind: Literal["accept_quest"] = "accept_quest"
    quest_id: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=200)
    target: int = Field(..., gt=0)


class QuestProgress(BaseAction):
    """Advance a quest."""

    kind: Literal["quest_progress"] = "quest_progress"
    quest_id: str = Field(..., min_length=1)
    steps: int = Field(default=1, gt=0)


class DailySignIn(BaseAction):
    """Claim the once-per-day sign-in bonus."""

    kind: Literal["daily_sign_in"] = "daily_sign_in"
    on: Optional[date] = Field(
        default=None,
        description="Calendar day being claimed; defaults to the day of occurred_at"
    )

    @property
    def day(self) -> date:
        return self.on or self.occurred_at.date()


class MedalCheck(BaseAction):
    """Unlock every medal whose requirement is now met."""

    kind: Literal["medal_check"] = "medal_check"


class SetProfilePicture(BaseAction):
    """Replace (or clear) the profile picture reference."""

    kind: Literal["set_profile_picture"] = "set_profile_picture"
    reference: Optional[str] = Field(default=None, max_length=200_000)


Action = Annotated[
    Union[
        Deposit,
        Spend,
        RecordDebt,
        Repay,
        SkillUpgrade,
        AcceptQuest,
        QuestProgress,
        DailySignIn,
        MedalCheck,
        SetProfilePicture,
    ],
    Field(discriminator="kind"),
]

_action_adapter = TypeAdapter(Action)


def parse_action(payload: dict[str, Any]) -> Action:
    """
    Build an action from a loose payload (e.g. a submitted form).

    Raises:
        pydantic.ValidationError: unknown kind or invalid fields
    """
    return _action_adapter.validate_python(payload)
