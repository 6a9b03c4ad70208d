"""Short-lived personal goals derived from a player's own history."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from pfg.gamification.schemas import PersonalGoalResult, UserStats
from pfg.models import GameSession, PersonalGoal, PersonalGoalType, User
from pfg.repositories import GamificationRepository, GameSessionRepository

logger = logging.getLogger(__name__)

GOAL_LIFETIME = timedelta(hours=24)
STATS_SAMPLE_SIZE = 50

DEFAULT_AVERAGE_SCORE_TARGET = 100
DEFAULT_ACCURACY_TARGET = 70
AVERAGE_IMPROVEMENT_FACTOR = 1.1
ACCURACY_IMPROVEMENT_POINTS = 10


class PersonalGoalService:
    def __init__(self, gamification: GamificationRepository, game_sessions: GameSessionRepository) -> None:
        self.gamification = gamification
        self.game_sessions = game_sessions

    async def get_active_goals(self, user_id: int, now: datetime | None = None) -> Sequence[PersonalGoal]:
        return await self.gamification.get_active_personal_goals(user_id, now)

    async def calculate_user_stats(self, user_id: int) -> UserStats:
        """Average and best figures over the user's most recent finished games."""
        sessions = await self.game_sessions.get_by_user(user_id, limit=STATS_SAMPLE_SIZE)
        if not sessions:
            return UserStats(games_played=0, average_score=0.0, best_score=0, average_accuracy=0.0)

        scores = [s.score for s in sessions]
        with_moves = [s for s in sessions if s.move_count > 0]
        average_accuracy = (
            sum(s.lines_cleared * 100 / s.move_count for s in with_moves) / len(with_moves) if with_moves else 0.0
        )
        return UserStats(
            games_played=len(sessions),
            average_score=sum(scores) / len(scores),
            best_score=max(scores),
            average_accuracy=average_accuracy,
        )

    async def create_goal(
        self,
        user: User,
        goal_type: PersonalGoalType,
        now: datetime | None = None,
    ) -> PersonalGoal:
        """Create a 24 hour goal of ``goal_type`` sized from the user's stats."""
        if now is None:
            now = datetime.now(timezone.utc)
        stats = await self.calculate_user_stats(user.id)

        if goal_type is PersonalGoalType.BEAT_AVERAGE:
            target = (
                round(stats.average_score * AVERAGE_IMPROVEMENT_FACTOR)
                if stats.games_played
                else DEFAULT_AVERAGE_SCORE_TARGET
            )
            description = f"Score {target} points in a single game"
        elif goal_type is PersonalGoalType.NEW_PERSONAL_BEST:
            target = max(stats.best_score, user.high_score) + 1
            description = f"Beat your personal best of {target - 1} points"
        else:
            target = (
                min(round(stats.average_accuracy) + ACCURACY_IMPROVEMENT_POINTS, 100)
                if stats.games_played
                else DEFAULT_ACCURACY_TARGET
            )
            description = f"Finish a game with {target}% accuracy"

        goal = PersonalGoal.create(
            user_id=user.id,
            goal_type=goal_type,
            description=description,
            target_value=target,
            expires_at=now + GOAL_LIFETIME,
        )
        goal = await self.gamification.add_personal_goal(goal)
        logger.info("Created %s goal for user %s (target %d)", goal_type.value, user.id, target)
        return goal

    async def update_goal_progress(
        self,
        goal: PersonalGoal,
        value: int,
        now: datetime | None = None,
    ) -> PersonalGoalResult:
        goal.update_progress(value, now)
        await self.gamification.update_personal_goal(goal)
        return PersonalGoalResult(
            goal_id=goal.id,
            goal_type=goal.type,
            new_value=goal.current_value,
            progress_percentage=goal.progress_percentage,
            is_completed=goal.is_completed,
        )

    @staticmethod
    def progress_from_session(goal: PersonalGoal, session: GameSession) -> int:
        """Best single-game figure so far, including ``session``."""
        if goal.type is PersonalGoalType.IMPROVE_ACCURACY:
            return max(goal.current_value, session.accuracy)
        return max(goal.current_value, session.score)
