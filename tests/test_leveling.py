"""
Tests for the leveling calculator and game catalog.
"""

import pytest
from datetime import date

from hero_vault.game.catalog import MEDALS, MEDALS_BY_ID, TITLES
from hero_vault.game.leveling import (
    InvalidArgumentError,
    cumulative_threshold,
    describe_progress,
    level_for_points,
    progress_to_next_level,
    title_for_level,
)
from hero_vault.models.player import new_player_state


class TestProgressToNextLevel:
    """Test the per-level threshold curve."""

    def test_level_zero_needs_one_hundred(self):
        """The first level-up costs 100 points."""
        assert progress_to_next_level(0) == 100

    def test_threshold_doubles_each_level(self):
        """Each threshold is twice the previous one."""
        for level in range(0, 60):
            assert progress_to_next_level(level + 1) == 2 * progress_to_next_level(level)

    def test_threshold_never_below_base(self):
        for level in range(0, 30):
            assert progress_to_next_level(level) >= 100

    def test_negative_level_rejected(self):
        """Negative levels are outside the domain."""
        with pytest.raises(InvalidArgumentError):
            progress_to_next_level(-1)

    def test_invalid_argument_is_value_error(self):
        with pytest.raises(ValueError):
            cumulative_threshold(-3)


class TestLevelForPoints:
    """Test level derivation from lifetime points."""

    @pytest.mark.parametrize(
        "points,expected",
        [
            (0, 0),
            (99, 0),
            (100, 1),
            (299, 1),
            (300, 2),
            (700, 3),
            (102_299, 9),
            (102_300, 10),
        ],
    )
    def test_level_boundaries(self, points, expected):
        """Level n is reached at 100 * (2^n - 1) points."""
        assert level_for_points(points) == expected

    def test_level_matches_cumulative_threshold(self):
        for level in range(0, 25):
            assert level_for_points(cumulative_threshold(level)) == level
            if level > 0:
                assert level_for_points(cumulative_threshold(level) - 1) == level - 1

    def test_negative_points_rejected(self):
        with pytest.raises(InvalidArgumentError):
            level_for_points(-1)


class TestTitles:
    """Test title lookup."""

    @pytest.mark.parametrize(
        "level,expected",
        [
            (0, "title1"),
            (9, "title1"),
            (10, "title2"),
            (19, "title2"),
            (20, "title3"),
            (49, "title3"),
            (50, "title4"),
            (500, "title4"),
        ],
    )
    def test_title_tiers(self, level, expected):
        assert title_for_level(level) == expected

    def test_titles_are_monotonic(self):
        """Tier never goes down as level goes up."""
        keys = [tier.key for tier in reversed(TITLES)]
        previous = 0
        for level in range(0, 80):
            rank = keys.index(title_for_level(level))
            assert rank >= previous
            previous = rank

    def test_negative_level_has_no_title(self):
        """A non-matching level is an error, not a silent default."""
        with pytest.raises(InvalidArgumentError):
            title_for_level(-1)


class TestDescribeProgress:
    """Test the progress projection used for display."""

    def test_new_player_progress(self):
        state = new_player_state("Ada", "ada@example.com", today=date(2024, 3, 1))
        progress = describe_progress(state)
        assert progress.level == 0
        assert progress.title_key == "title1"
        assert progress.next_threshold == 100
        assert progress.ratio == 0.0

    def test_progress_ratio_within_level(self):
        state = new_player_state("Ada", "ada@example.com", today=date(2024, 3, 1)).model_copy(
            update={"total_progress_points": 200, "current_progress_points": 200, "level": 1}
        )
        progress = describe_progress(state)
        assert progress.level == 1
        assert progress.next_threshold == 300
        assert progress.ratio == pytest.approx(0.5)


class TestCatalog:
    """Test static catalog content."""

    def test_medal_ids(self):
        assert [medal.id for medal in MEDALS] == ["m1", "m2", "m3", "m4", "m5"]
        assert MEDALS_BY_ID["m5"].name == "Tycoon"

    def test_titles_descending(self):
        levels = [tier.min_level for tier in TITLES]
        assert levels == sorted(levels, reverse=True)
        assert levels[-1] == 0
