"""Season pass tier thresholds and computation.

Index ``k`` holds the cumulative XP needed to reach tier ``k``. The table
is shared with the season reward seed data, whose ``xp_required`` values
must stay in step with it.
"""

from __future__ import annotations

TIER_THRESHOLDS: list[int] = [0, 100, 250, 500, 800, 1200, 1700, 2300, 3000, 4000, 5000]

MAX_TIER = len(TIER_THRESHOLDS) - 1


def calculate_tier_from_xp(xp: int) -> int:
    """Return the tier (0..MAX_TIER) implied by cumulative season XP."""
    tier = 0
    for k, threshold in enumerate(TIER_THRESHOLDS):
        if xp >= threshold:
            tier = k
        else:
            break
    return tier


def xp_required_for_tier(tier: int) -> int:
    """Cumulative XP needed to reach ``tier``."""
    if tier < 0 or tier > MAX_TIER:
        msg = f"Tier must be between 0 and {MAX_TIER}"
        raise ValueError(msg)
    return TIER_THRESHOLDS[tier]


def xp_for_next_tier(xp: int) -> int | None:
    """XP still missing to reach the next tier, or None at the cap."""
    tier = calculate_tier_from_xp(xp)
    if tier >= MAX_TIER:
        return None
    return TIER_THRESHOLDS[tier + 1] - xp


def tiers_crossed(old_xp: int, new_xp: int) -> list[int]:
    """Every tier whose threshold lies in (old_xp, new_xp]."""
    old_tier = calculate_tier_from_xp(old_xp)
    new_tier = calculate_tier_from_xp(new_xp)
    return list(range(old_tier + 1, new_tier + 1))
