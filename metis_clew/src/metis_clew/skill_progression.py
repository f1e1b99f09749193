"""
Skill Progression Rules

Maps a cumulative explanation count to a skill tier and to the progress
made towards the next tier. Thresholds are fixed and non-overlapping:

    beginner       0 - 9
    intermediate  10 - 49
    advanced      50+
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class SkillLevel(str, Enum):
    """Skill tiers, ordered from lowest to highest."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


SKILL_LEVELS = [SkillLevel.BEGINNER, SkillLevel.INTERMEDIATE, SkillLevel.ADVANCED]

# Minimum explanation count for each tier (advanced has no maximum)
SKILL_THRESHOLDS = {
    SkillLevel.BEGINNER: 0,
    SkillLevel.INTERMEDIATE: 10,
    SkillLevel.ADVANCED: 50,
}


@dataclass(frozen=True)
class NextTierInfo:
    """What it takes to reach the next tier."""
    next_tier: SkillLevel
    threshold: int
    remaining: int


def parse_tier(value: Union[str, SkillLevel, None]) -> SkillLevel:
    """
    Coerce a stored or user-supplied value into a SkillLevel.

    Unknown values fall back to beginner so a hand-edited record still loads.
    """
    if isinstance(value, SkillLevel):
        return value
    try:
        return SkillLevel(str(value).strip().lower())
    except ValueError:
        return SkillLevel.BEGINNER


def next_tier(tier: Union[str, SkillLevel]) -> Optional[SkillLevel]:
    """Return the tier above `tier`, or None at the top."""
    idx = SKILL_LEVELS.index(parse_tier(tier))
    if idx < len(SKILL_LEVELS) - 1:
        return SKILL_LEVELS[idx + 1]
    return None


def tier_for(explanations: int) -> SkillLevel:
    """
    Return the tier whose range contains `explanations`.

    Checked from the top down. Negative counts are clamped to zero.
    """
    explanations = max(0, explanations)
    if explanations >= SKILL_THRESHOLDS[SkillLevel.ADVANCED]:
        return SkillLevel.ADVANCED
    if explanations >= SKILL_THRESHOLDS[SkillLevel.INTERMEDIATE]:
        return SkillLevel.INTERMEDIATE
    return SkillLevel.BEGINNER


def progress_to_next(explanations: int, current_tier: Union[str, SkillLevel]) -> Optional[int]:
    """
    Percentage (0-100) of the way from the current tier's floor to the next
    tier's floor, or None when already advanced.

    Args:
        explanations: Cumulative explanation count
        current_tier: Tier the count is measured against

    Returns:
        Rounded percentage, capped at 100
    """
    current = parse_tier(current_tier)
    upcoming = next_tier(current)
    if upcoming is None:
        return None

    floor = SKILL_THRESHOLDS[current]
    span = SKILL_THRESHOLDS[upcoming] - floor
    progress = max(0, explanations) - floor

    # Half-up rounding; round() would send 2.5 to 2
    return max(0, min(100, math.floor(progress * 100 / span + 0.5)))


def remaining_to_next(explanations: int, current_tier: Union[str, SkillLevel]) -> Optional[NextTierInfo]:
    """Explanations still needed for the next tier, or None when advanced."""
    upcoming = next_tier(current_tier)
    if upcoming is None:
        return None

    threshold = SKILL_THRESHOLDS[upcoming]
    return NextTierInfo(
        next_tier=upcoming,
        threshold=threshold,
        remaining=max(0, threshold - max(0, explanations)),
    )
