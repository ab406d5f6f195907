"""
Leveling Calculator

Pure functions over progress points. The threshold to leave level n is
100 * 2^n points, so the total needed to *reach* level n is
100 * (2^n - 1).
"""

from pydantic import BaseModel, Field

from hero_vault.game.catalog import TITLES, TitleTier
from hero_vault.models.player import PlayerState


BASE_THRESHOLD = 100


class InvalidArgumentError(ValueError):
    """A leveling function was called outside its domain."""
    pass


class LevelProgress(BaseModel):
    """Read-only projection of a player's progression for display."""

    level: int = Field(ge=0)
    title_key: str
    title: str
    total_points: int = Field(ge=0)
    next_threshold: int = Field(gt=0)
    ratio: float = Field(ge=0.0, le=1.0)


def progress_to_next_level(level: int) -> int:
    """Points needed to advance from `level` to `level + 1`."""
    if level < 0:
        raise InvalidArgumentError(f"Level cannot be negative: {level}")
    return BASE_THRESHOLD * 2 ** level


def cumulative_threshold(level: int) -> int:
    """Lifetime points needed to reach `level` from zero."""
    if level < 0:
        raise InvalidArgumentError(f"Level cannot be negative: {level}")
    return BASE_THRESHOLD * (2 ** level - 1)


def level_for_points(total_points: int) -> int:
    """Largest level whose cumulative threshold is <= `total_points`."""
    if total_points < 0:
        raise InvalidArgumentError(f"Points cannot be negative: {total_points}")
    level = 0
    while cumulative_threshold(level + 1) <= total_points:
        level += 1
    return level


def title_tier_for_level(level: int) -> TitleTier:
    for tier in TITLES:
        if level >= tier.min_level:
            return tier
    # The lowest tier starts at 0, so only a negative level gets here
    raise InvalidArgumentError(f"No title for level {level}")


def title_for_level(level: int) -> str:
    """Title key for `level` (e.g. "title1")."""
    return title_tier_for_level(level).key


def describe_progress(state: PlayerState) -> LevelProgress:
    """
    Summarize where the player stands on the level curve.

    `ratio` is the share of the current level's span already covered.
    """
    tier = title_tier_for_level(state.level)
    floor = cumulative_threshold(state.level)
    span = progress_to_next_level(state.level)
    covered = min(max(state.total_progress_points - floor, 0), span)

    return LevelProgress(
        level=state.level,
        title_key=tier.key,
        title=tier.display_name,
        total_points=state.total_progress_points,
        next_threshold=floor + span,
        ratio=covered / span,
    )
