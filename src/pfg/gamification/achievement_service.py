"""Achievement unlock conditions and progress.

Unlock conditions are stored as JSON objects such as
``{"type": "streak", "value": 7}``. Supported types:

    score       best single-game score
    streak      current daily streak
    games       games played
    challenges  challenges completed

Malformed or unknown conditions never unlock.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime

from pfg.gamification.schemas import AchievementUnlockResult
from pfg.models import Achievement, User, UserAchievement
from pfg.repositories import GamificationRepository

logger = logging.getLogger(__name__)


def parse_unlock_condition(raw: str) -> tuple[str, int] | None:
    """Return ``(type, value)`` from a condition document, or None if unusable."""
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None
    if not isinstance(data, dict):
        return None
    # Keys are matched case-insensitively
    data = {str(k).lower(): v for k, v in data.items()}
    condition_type = data.get("type")
    value = data.get("value")
    if not isinstance(condition_type, str) or isinstance(value, bool) or not isinstance(value, int):
        return None
    return condition_type.lower(), value


class AchievementService:
    def __init__(self, gamification: GamificationRepository) -> None:
        self.gamification = gamification

    async def _current_value(self, user: User, condition_type: str) -> int:
        if condition_type == "score":
            return user.high_score
        if condition_type == "streak":
            return user.current_streak
        if condition_type == "games":
            return user.games_played
        if condition_type == "challenges":
            return await self.gamification.get_completed_challenge_count(user.id)
        return 0

    async def calculate_progress(self, user: User, achievement: Achievement) -> int:
        """Percentage (0-100) of the way to unlocking ``achievement``."""
        condition = parse_unlock_condition(achievement.unlock_condition)
        if condition is None:
            return 0
        condition_type, target = condition
        if target <= 0:
            return 0
        current = await self._current_value(user, condition_type)
        return min(current * 100 // target, 100)

    async def check_and_unlock_achievements(
        self,
        user: User,
        now: datetime | None = None,
    ) -> AchievementUnlockResult:
        """Unlock every achievement whose condition the user now meets."""
        achievements = await self.gamification.get_all_achievements()
        tracked = {ua.achievement_id: ua for ua in await self.gamification.get_user_achievements(user.id)}

        result = AchievementUnlockResult()
        for achievement in achievements:
            user_achievement = tracked.get(achievement.id)
            if user_achievement is not None and user_achievement.is_unlocked:
                continue

            condition = parse_unlock_condition(achievement.unlock_condition)
            if condition is None:
                continue
            condition_type, target = condition
            current = await self._current_value(user, condition_type)
            progress = min(current * 100 // target, 100) if target > 0 else 0

            if current >= target:
                if user_achievement is None:
                    user_achievement = UserAchievement.create(user.id, achievement.id)
                    user_achievement.unlock(now)
                    await self.gamification.add_user_achievement(user_achievement)
                else:
                    user_achievement.unlock(now)
                    await self.gamification.update_user_achievement(user_achievement)
                result.unlocked_achievement_ids.append(achievement.id)
                result.unlocked_achievement_names.append(achievement.name)
                result.total_reward_value += achievement.reward_value
                logger.info("User %s unlocked achievement %s", user.id, achievement.name)
            elif progress > 0:
                if user_achievement is None:
                    user_achievement = UserAchievement.create(user.id, achievement.id)
                    user_achievement.update_progress(progress)
                    await self.gamification.add_user_achievement(user_achievement)
                elif user_achievement.progress != progress:
                    user_achievement.update_progress(progress)
                    await self.gamification.update_user_achievement(user_achievement)

        return result
