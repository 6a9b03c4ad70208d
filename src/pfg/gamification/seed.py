"""Seed data: challenge templates, cosmetics, achievements, season 1.

Safe to run repeatedly: each section is skipped when rows already exist.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone

from pfg.gamification.tier_thresholds import xp_required_for_tier
from pfg.models import (
    Achievement,
    AchievementCategory,
    ChallengeGoalType,
    ChallengeTemplate,
    ChallengeType,
    Cosmetic,
    CosmeticRarity,
    CosmeticType,
    RewardType,
    Season,
    SeasonReward,
)
from pfg.repositories import GamificationRepository

logger = logging.getLogger(__name__)

SEASON_LENGTH = timedelta(days=90)

# (name, description, target, xp, goal type)
DAILY_TEMPLATES = [
    ("Daily Grind", "Complete 3 games today", 3, 50, ChallengeGoalType.GAME_COUNT),
    ("Score Hunter", "Score 500 total points today", 500, 60, ChallengeGoalType.SCORE_TOTAL),
    ("Precision Player", "Complete 2 games with 90%+ accuracy", 2, 100, ChallengeGoalType.ACCURACY),
    ("Steady Scorer", "Score at least 5 points in each of 5 games", 5, 75, ChallengeGoalType.SCORE_SINGLE_GAME),
    ("Marathon", "Play for a total of 15 minutes today", 15, 70, ChallengeGoalType.TIME_BASED),
]

WEEKLY_TEMPLATES = [
    ("Point Accumulator", "Score 5000 total points this week", 5000, 350, ChallengeGoalType.SCORE_TOTAL),
    ("Game Master", "Complete 50 games this week", 50, 400, ChallengeGoalType.GAME_COUNT),
    ("Win Streak Master", "Win 5 games in a row", 5, 500, ChallengeGoalType.WIN_STREAK),
    ("Endurance", "Play for a total of 2 hours this week", 120, 300, ChallengeGoalType.TIME_BASED),
]

# (code, name, type, rarity, is_default)
COSMETICS = [
    ("theme_classic", "Classic", CosmeticType.BOARD_THEME, CosmeticRarity.COMMON, True),
    ("theme_ocean", "Ocean", CosmeticType.BOARD_THEME, CosmeticRarity.RARE, False),
    ("theme_galaxy", "Galaxy", CosmeticType.BOARD_THEME, CosmeticRarity.EPIC, False),
    ("frame_bronze", "Bronze Frame", CosmeticType.AVATAR_FRAME, CosmeticRarity.COMMON, True),
    ("frame_silver", "Silver Frame", CosmeticType.AVATAR_FRAME, CosmeticRarity.RARE, False),
    ("badge_rookie", "Rookie", CosmeticType.BADGE, CosmeticRarity.COMMON, True),
    ("badge_elite", "Elite", CosmeticType.BADGE, CosmeticRarity.EPIC, False),
    ("badge_season_champion", "Season Champion", CosmeticType.BADGE, CosmeticRarity.LEGENDARY, False),
]

_ASSET_DIRS = {
    CosmeticType.BOARD_THEME: "themes",
    CosmeticType.AVATAR_FRAME: "frames",
    CosmeticType.BADGE: "badges",
}

# (name, description, category, condition type, value, reward xp)
ACHIEVEMENTS = [
    ("First Game", "Finish your first game", AchievementCategory.GAMES, "games", 1, 50),
    ("Regular", "Finish 50 games", AchievementCategory.GAMES, "games", 50, 250),
    ("Century", "Score 1000 points in a single game", AchievementCategory.SCORE, "score", 1000, 200),
    ("On Fire", "Keep a 7 day streak", AchievementCategory.STREAK, "streak", 7, 300),
    ("Challenger", "Complete 10 challenges", AchievementCategory.CHALLENGE, "challenges", 10, 400),
]

# tier -> (reward type, value or cosmetic code)
SEASON_REWARDS: dict[int, tuple[RewardType, int | str]] = {
    1: (RewardType.STREAK_FREEZE, 1),
    2: (RewardType.XP_BOOST, 100),
    3: (RewardType.COSMETIC, "theme_ocean"),
    4: (RewardType.STREAK_FREEZE, 2),
    5: (RewardType.XP_BOOST, 200),
    6: (RewardType.COSMETIC, "frame_silver"),
    7: (RewardType.STREAK_FREEZE, 3),
    8: (RewardType.COSMETIC, "badge_elite"),
    9: (RewardType.XP_BOOST, 500),
    10: (RewardType.COSMETIC, "badge_season_champion"),
}


async def seed_challenge_templates(gamification: GamificationRepository) -> int:
    if await gamification.get_challenge_templates():
        return 0
    count = 0
    for challenge_type, rows in ((ChallengeType.DAILY, DAILY_TEMPLATES), (ChallengeType.WEEKLY, WEEKLY_TEMPLATES)):
        for name, description, target, xp, goal_type in rows:
            await gamification.add_challenge_template(
                ChallengeTemplate.create(name, description, challenge_type, target, xp, goal_type)
            )
            count += 1
    return count


async def seed_cosmetics(gamification: GamificationRepository) -> int:
    if await gamification.get_all_cosmetics():
        return 0
    for code, name, cosmetic_type, rarity, is_default in COSMETICS:
        folder = _ASSET_DIRS[cosmetic_type]
        await gamification.add_cosmetic(
            Cosmetic.create(
                code=code,
                name=name,
                description=f"{name} {cosmetic_type.value.replace('_', ' ')}",
                cosmetic_type=cosmetic_type,
                asset_url=f"/{folder}/{code}.json",
                preview_url=f"/{folder}/previews/{code}.png",
                rarity=rarity,
                is_default=is_default,
            )
        )
    return len(COSMETICS)


async def seed_achievements(gamification: GamificationRepository) -> int:
    if await gamification.get_all_achievements():
        return 0
    for order, (name, description, category, condition_type, value, reward) in enumerate(ACHIEVEMENTS, start=1):
        await gamification.add_achievement(
            Achievement.create(
                name=name,
                description=description,
                category=category,
                unlock_condition=json.dumps({"type": condition_type, "value": value}),
                reward_type=RewardType.XP_BOOST,
                reward_value=reward,
                display_order=order,
            )
        )
    return len(ACHIEVEMENTS)


async def seed_first_season(gamification: GamificationRepository, now: datetime) -> Season | None:
    if await gamification.get_all_seasons():
        return None
    season = await gamification.add_season(
        Season.create("Season 1: Origins", 1, "origins", now, now + SEASON_LENGTH)
    )
    for tier, (reward_type, value) in SEASON_REWARDS.items():
        if isinstance(value, str):
            cosmetic = await gamification.get_cosmetic_by_code(value)
            if cosmetic is None:
                logger.warning("Skipping tier %d reward: cosmetic %s is not seeded", tier, value)
                continue
            value = cosmetic.id
        await gamification.add_season_reward(
            SeasonReward.create(season.id, tier, reward_type, value, xp_required_for_tier(tier))
        )
    return season


async def seed_gamification(gamification: GamificationRepository, now: datetime | None = None) -> None:
    """Insert every seed section that is still empty."""
    if now is None:
        now = datetime.now(timezone.utc)
    templates = await seed_challenge_templates(gamification)
    cosmetics = await seed_cosmetics(gamification)
    achievements = await seed_achievements(gamification)
    season = await seed_first_season(gamification, now)
    logger.info(
        "Seeded %d templates, %d cosmetics, %d achievements, season=%s",
        templates, cosmetics, achievements, season.name if season else None,
    )
