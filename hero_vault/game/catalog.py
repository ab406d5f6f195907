"""
Static game data: titles, medals and point conversion.

Everything here is fixed content shipped with the app. Thresholds
are the only numbers the game rules depend on, so they live in one place.
"""

from pydantic import BaseModel, ConfigDict, Field


class TitleTier(BaseModel):
    """A display title granted from `min_level` upwards."""

    model_config = ConfigDict(frozen=True)

    min_level: int = Field(..., ge=0)
    key: str
    display_name: str


class MedalDefinition(BaseModel):
    """A one-time achievement."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    requirement: str
    icon: str


# Descending by min_level; lookup takes the first match.
TITLES: tuple[TitleTier, ...] = (
    TitleTier(min_level=50, key="title4", display_name="Lord of the Realm"),
    TitleTier(min_level=20, key="title3", display_name="Master of Coin"),
    TitleTier(min_level=10, key="title2", display_name="Savings Adept"),
    TitleTier(min_level=0, key="title1", display_name="Novice Adventurer"),
)

MEDALS: tuple[MedalDefinition, ...] = (
    MedalDefinition(
        id="m1",
        name="The Journey Begins",
        requirement="Lifetime progress points reach 100",
        icon="🌱",
    ),
    MedalDefinition(
        id="m2",
        name="Ten Thousand Club",
        requirement="Lifetime progress points reach 10,000",
        icon="💰",
    ),
    MedalDefinition(
        id="m3",
        name="Debt Free Spirit",
        requirement="Fully repay one contract",
        icon="🕊️",
    ),
    MedalDefinition(
        id="m4",
        name="Skill Master",
        requirement="Skill levels add up to 5",
        icon="📜",
    ),
    MedalDefinition(
        id="m5",
        name="Tycoon",
        requirement="Reach LV.10",
        icon="👑",
    ),
)

MEDALS_BY_ID = {medal.id: medal for medal in MEDALS}

# Requirement thresholds
MEDAL_STARTER_POINTS = 100
MEDAL_WEALTH_POINTS = 10_000
MEDAL_REPAID_CONTRACTS = 1
MEDAL_SKILL_TOTAL = 5
MEDAL_LEVEL = 10

# One progress point per this many minor units deposited
MINOR_UNITS_PER_POINT = 100

# Points granted by the daily sign-in
DAILY_SIGN_IN_POINTS = 1

# History timestamps use local time in this format
HISTORY_TIME_FORMAT = "%Y/%m/%d %H:%M:%S"
