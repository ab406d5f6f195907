"""
Player State Reducer

DESIGN DECISION: Every transition is a pure function
(PlayerState, Action) -> PlayerState.

GUARANTEES:
- No I/O and no clock reads: the timestamp comes from the action
- Either the whole transition succeeds and a new state is returned,
  or an InvalidActionError is raised and the input is untouched
- Every successful change bumps `version` by exactly one
- `level` always matches `total_progress_points`

This is what makes saving safe to retry: the same (state, action)
always yields the same next state.
"""

from typing import Optional

from hero_vault.game.catalog import (
    DAILY_SIGN_IN_POINTS,
    HISTORY_TIME_FORMAT,
    MEDAL_LEVEL,
    MEDAL_REPAID_CONTRACTS,
    MEDAL_SKILL_TOTAL,
    MEDAL_STARTER_POINTS,
    MEDAL_WEALTH_POINTS,
    MEDALS,
    MINOR_UNITS_PER_POINT,
)
from hero_vault.game.leveling import level_for_points, progress_to_next_level
from hero_vault.models.actions import (
    AcceptQuest,
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
)
from hero_vault.models.player import (
    DebtContract,
    DebtStatus,
    HistoryEntry,
    HistoryType,
    PlayerState,
    Quest,
    Vault,
)


class ActionError(Exception):
    """Base exception for rejected actions."""
    pass


class InvalidActionError(ActionError):
    """The action is malformed or its preconditions do not hold."""
    pass


class VaultNotFoundError(InvalidActionError):
    """No vault with the requested id."""

    def __init__(self, vault_id: str):
        self.vault_id = vault_id
        super().__init__(f"Vault not found: {vault_id}")


class DebtNotFoundError(InvalidActionError):
    """No debt contract with the requested id."""

    def __init__(self, debt_id: str):
        self.debt_id = debt_id
        super().__init__(f"Debt not found: {debt_id}")


class QuestNotFoundError(InvalidActionError):
    """No quest with the requested id."""

    def __init__(self, quest_id: str):
        self.quest_id = quest_id
        super().__init__(f"Quest not found: {quest_id}")


class InsufficientFundsError(InvalidActionError):
    """A vault holds less than the amount requested."""
    pass


class InsufficientPointsError(InvalidActionError):
    """Not enough spendable progress points."""
    pass


class AlreadySignedInError(InvalidActionError):
    """The daily bonus was already claimed for that day."""
    pass


# =============================================================================
# HELPERS
# =============================================================================

def points_for_deposit(amount: int) -> int:
    """Progress points earned by depositing `amount` minor units."""
    return amount // MINOR_UNITS_PER_POINT


def _require_positive(amount: int, what: str) -> None:
    # Actions built with model_construct skip field validation
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise InvalidActionError(f"{what} must be a positive integer, got {amount!r}")


def _require_vault(state: PlayerState, vault_id: str) -> Vault:
    vault = state.find_vault(vault_id)
    if vault is None:
        raise VaultNotFoundError(vault_id)
    return vault


def _entry(action: BaseAction, type_: HistoryType, amount: int, note: str) -> HistoryEntry:
    return HistoryEntry(
        type=type_,
        amount=amount,
        note=note,
        timestamp=action.occurred_at.strftime(HISTORY_TIME_FORMAT),
    )


def _replace_vault(state: PlayerState, vault: Vault, new_amount: int) -> tuple[Vault, ...]:
    updated = vault.model_copy(update={"amount": new_amount})
    return tuple(updated if v.id == vault.id else v for v in state.vaults)


def _replace_debt(state: PlayerState, debt: DebtContract) -> tuple[DebtContract, ...]:
    return tuple(debt if d.id == debt.id else d for d in state.debts)


def _replace_quest(state: PlayerState, quest: Quest) -> tuple[Quest, ...]:
    return tuple(quest if q.id == quest.id else q for q in state.main_quests)


def _award_points(state: PlayerState, points: int) -> dict:
    """Field updates for earning `points` (both counters, level recomputed)."""
    total = state.total_progress_points + points
    return {
        "current_progress_points": state.current_progress_points + points,
        "total_progress_points": total,
        "level": level_for_points(total),
    }


def _commit(state: PlayerState, entry: Optional[HistoryEntry], **updates) -> PlayerState:
    """Build the next state: prepend the history entry and bump the version."""
    if entry is not None:
        updates["history"] = (entry,) + state.history
    updates["version"] = state.version + 1
    return state.model_copy(update=updates)


def medal_requirement_met(medal_id: str, state: PlayerState) -> bool:
    """Check one medal's requirement against the state."""
    if medal_id == "m1":
        return state.total_progress_points >= MEDAL_STARTER_POINTS
    if medal_id == "m2":
        return state.total_progress_points >= MEDAL_WEALTH_POINTS
    if medal_id == "m3":
        repaid = sum(1 for d in state.debts if d.status == DebtStatus.REPAID)
        return repaid >= MEDAL_REPAID_CONTRACTS
    if medal_id == "m4":
        return state.skills.total >= MEDAL_SKILL_TOTAL
    if medal_id == "m5":
        return state.level >= MEDAL_LEVEL
    raise InvalidActionError(f"Unknown medal: {medal_id}")


def pending_medals(state: PlayerState) -> list[str]:
    """Medals whose requirement holds but are not yet unlocked."""
    return [
        medal.id for medal in MEDALS
        if medal.id not in state.medals and medal_requirement_met(medal.id, state)
    ]


# =============================================================================
# REDUCER
# =============================================================================

def _apply_deposit(state: PlayerState, action: Deposit) -> PlayerState:
    _require_positive(action.amount, "Deposit amount")
    vault = _require_vault(state, action.vault_id)

    return _commit(
        state,
        _entry(action, HistoryType.INFLOW, action.amount, f"To {vault.name}"),
        vaults=_replace_vault(state, vault, vault.amount + action.amount),
        **_award_points(state, points_for_deposit(action.amount)),
    )


def _apply_spend(state: PlayerState, action: Spend) -> PlayerState:
    _require_positive(action.amount, "Spend amount")
    vault = _require_vault(state, action.vault_id)
    if vault.amount < action.amount:
        raise InsufficientFundsError(
            f"Vault {vault.id} holds {vault.amount}, cannot spend {action.amount}"
        )

    note = action.category.value
    if action.note:
        note = f"{note}: {action.note}"

    return _commit(
        state,
        _entry(action, HistoryType.OUTFLOW, action.amount, note),
        vaults=_replace_vault(state, vault, vault.amount - action.amount),
    )


def _apply_record_debt(state: PlayerState, action: RecordDebt) -> PlayerState:
    _require_positive(action.amount, "Debt amount")
    if state.find_debt(action.debt_id) is not None:
        raise InvalidActionError(f"Debt id already in use: {action.debt_id}")

    debt = DebtContract(
        id=action.debt_id,
        amount=action.amount,
        counterpart=action.counterpart,
    )
    return _commit(
        state,
        _entry(action, HistoryType.DEBT, action.amount, f"Owed to {action.counterpart}"),
        debts=state.debts + (debt,),
    )


def _apply_repay(state: PlayerState, action: Repay) -> PlayerState:
    _require_positive(action.amount, "Repayment amount")
    debt = state.find_debt(action.debt_id)
    if debt is None:
        raise DebtNotFoundError(action.debt_id)
    if debt.status != DebtStatus.OPEN:
        raise InvalidActionError(f"Debt {debt.id} is already repaid")
    if action.amount > debt.amount:
        raise InvalidActionError(
            f"Repayment {action.amount} exceeds outstanding {debt.amount} on {debt.id}"
        )
    vault = _require_vault(state, action.vault_id)
    if vault.amount < action.amount:
        raise InsufficientFundsError(
            f"Vault {vault.id} holds {vault.amount}, cannot repay {action.amount}"
        )

    remaining = debt.amount - action.amount
    updated = debt.model_copy(update={
        "amount": remaining,
        "status": DebtStatus.REPAID if remaining == 0 else DebtStatus.OPEN,
    })

    return _commit(
        state,
        _entry(action, HistoryType.REPAYMENT, action.amount, f"To {debt.counterpart} from {vault.name}"),
        vaults=_replace_vault(state, vault, vault.amount - action.amount),
        debts=_replace_debt(state, updated),
    )


def _apply_skill_upgrade(state: PlayerState, action: SkillUpgrade) -> PlayerState:
    current = state.skills.level_of(action.skill)
    cost = progress_to_next_level(current)
    if state.current_progress_points < cost:
        raise InsufficientPointsError(
            f"Raising {action.skill.value} to {current + 1} costs {cost}, "
            f"have {state.current_progress_points}"
        )

    return _commit(
        state,
        _entry(action, HistoryType.SKILL, cost, f"{action.skill.value} LV.{current + 1}"),
        skills=state.skills.raised(action.skill),
        current_progress_points=state.current_progress_points - cost,
    )


def _apply_accept_quest(state: PlayerState, action: AcceptQuest) -> PlayerState:
    _require_positive(action.target, "Quest target")
    if state.find_quest(action.quest_id) is not None:
        raise InvalidActionError(f"Quest id already in use: {action.quest_id}")

    quest = Quest(id=action.quest_id, title=action.title, target=action.target)
    return _commit(
        state,
        _entry(action, HistoryType.QUEST, 0, f"Accepted: {action.title}"),
        main_quests=state.main_quests + (quest,),
    )


def _apply_quest_progress(state: PlayerState, action: QuestProgress) -> PlayerState:
    _require_positive(action.steps, "Quest steps")
    quest = state.find_quest(action.quest_id)
    if quest is None:
        raise QuestNotFoundError(action.quest_id)
    if quest.completed:
        raise InvalidActionError(f"Quest {quest.id} is already completed")

    progress = min(quest.target, quest.progress + action.steps)
    completed = progress == quest.target
    updated = quest.model_copy(update={"progress": progress, "completed": completed})

    note = f"{quest.title} {progress}/{quest.target}"
    if completed:
        note = f"Completed: {quest.title}"

    return _commit(
        state,
        _entry(action, HistoryType.QUEST, progress - quest.progress, note),
        main_quests=_replace_quest(state, updated),
    )


def _apply_daily_sign_in(state: PlayerState, action: DailySignIn) -> PlayerState:
    day = action.day
    daily = state.daily
    if daily.last_reset_date == day and daily.signed_in_today:
        raise AlreadySignedInError(f"Already signed in on {day.isoformat()}")
    if day < daily.last_reset_date:
        raise InvalidActionError(
            f"Cannot sign in for {day.isoformat()}, "
            f"last reset was {daily.last_reset_date.isoformat()}"
        )

    return _commit(
        state,
        _entry(action, HistoryType.DAILY, DAILY_SIGN_IN_POINTS, f"Signed in {day.isoformat()}"),
        daily=daily.model_copy(update={"last_reset_date": day, "signed_in_today": True}),
        **_award_points(state, DAILY_SIGN_IN_POINTS),
    )


def _apply_medal_check(state: PlayerState, action: MedalCheck) -> PlayerState:
    unlocked = pending_medals(state)
    if not unlocked:
        return state

    return _commit(
        state,
        _entry(action, HistoryType.MEDAL, 0, "Unlocked " + ", ".join(unlocked)),
        medals=state.medals + tuple(unlocked),
    )


def _apply_set_profile_picture(state: PlayerState, action: SetProfilePicture) -> PlayerState:
    if action.reference == state.profile_picture:
        return state

    note = "Profile picture updated" if action.reference else "Profile picture removed"
    return _commit(
        state,
        _entry(action, HistoryType.PROFILE, 0, note),
        profile_picture=action.reference,
    )


_HANDLERS = {
    Deposit: _apply_deposit,
    Spend: _apply_spend,
    RecordDebt: _apply_record_debt,
    Repay: _apply_repay,
    SkillUpgrade: _apply_skill_upgrade,
    AcceptQuest: _apply_accept_quest,
    QuestProgress: _apply_quest_progress,
    DailySignIn: _apply_daily_sign_in,
    MedalCheck: _apply_medal_check,
    SetProfilePicture: _apply_set_profile_picture,
}


def reduce(state: PlayerState, action: BaseAction) -> PlayerState:
    """
    Derive the next PlayerState from `state` and `action`.

    Returns `state` itself when a valid action changes nothing
    (a medal check with nothing new, an unchanged profile picture).

    Raises:
        InvalidActionError: the action cannot be applied; `state` is unchanged
    """
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise InvalidActionError(f"Unsupported action: {type(action).__name__}")
    return handler(state, action)
