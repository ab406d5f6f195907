"""
Game rules package.

Pure functions only: leveling arithmetic, static catalog data and the
state reducer. Nothing in here touches the network or the clock.
"""

from hero_vault.game.leveling import (
    InvalidArgumentError,
    LevelProgress,
    cumulative_threshold,
    describe_progress,
    level_for_points,
    progress_to_next_level,
    title_for_level,
)
from hero_vault.game.reducer import (
    ActionError,
    AlreadySignedInError,
    DebtNotFoundError,
    InsufficientFundsError,
    InsufficientPointsError,
    InvalidActionError,
    QuestNotFoundError,
    VaultNotFoundError,
    pending_medals,
    points_for_deposit,
    reduce,
)

__all__ = [
    # Leveling
    "InvalidArgumentError",
    "LevelProgress",
    "cumulative_threshold",
    "describe_progress",
    "level_for_points",
    "progress_to_next_level",
    "title_for_level",
    # Reducer
    "ActionError",
    "AlreadySignedInError",
    "DebtNotFoundError",
    "InsufficientFundsError",
    "InsufficientPointsError",
    "InvalidActionError",
    "QuestNotFoundError",
    "VaultNotFoundError",
    "pending_medals",
    "points_for_deposit",
    "reduce",
]
