"""Game-end pipeline.

One finished game feeds, in order: the streak, active challenges,
achievements, season XP and personal goals. Every step works on the same
loaded ``User`` object so later steps see earlier mutations.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from pfg.config import Settings, get_settings
from pfg.exceptions import EntityNotFoundError, OwnershipError
from pfg.gamification.achievement_service import AchievementService
from pfg.gamification.challenge_progress import calculate_progress
from pfg.gamification.challenge_service import ChallengeService
from pfg.gamification.personal_goal_service import PersonalGoalService
from pfg.gamification.schemas import ChallengeProgressResult, GameEndResult, PersonalGoalResult
from pfg.gamification.season_pass_service import SeasonPassService
from pfg.gamification.streak_service import StreakService
from pfg.models import GameSession, User
from pfg.repositories import GameSessionRepository, UserRepository

logger = logging.getLogger(__name__)

GAME_XP_SOURCE = "game_completion"
CHALLENGE_XP_SOURCE = "challenge"


def season_xp_for_game(score: int, settings: Settings | None = None) -> int:
    """Flat XP per finished game plus a bonus per block of score."""
    settings = settings or get_settings()
    return settings.base_game_xp + score // settings.score_per_bonus_xp


class GameEndProcessor:
    def __init__(
        self,
        users: UserRepository,
        game_sessions: GameSessionRepository,
        streaks: StreakService,
        challenges: ChallengeService,
        achievements: AchievementService,
        season_pass: SeasonPassService,
        goals: PersonalGoalService,
        settings: Settings | None = None,
    ) -> None:
        self.users = users
        self.game_sessions = game_sessions
        self.streaks = streaks
        self.challenges = challenges
        self.achievements = achievements
        self.season_pass = season_pass
        self.goals = goals
        self.settings = settings or get_settings()

    async def process(
        self,
        user_id: int,
        game_session_id: uuid.UUID,
        now: datetime | None = None,
    ) -> GameEndResult:
        """Apply every gamification effect of one finished game.

        Raises:
            EntityNotFoundError: If the user or the game session is missing.
            OwnershipError: If the session belongs to another user.
        """
        if now is None:
            now = datetime.now(timezone.utc)

        user = await self.users.get_by_id(user_id)
        if user is None:
            raise EntityNotFoundError("User", user_id)
        session = await self.game_sessions.get_by_id(game_session_id)
        if session is None:
            raise EntityNotFoundError("Game session", game_session_id)
        if session.user_id != user.id:
            raise OwnershipError(f"Game session {game_session_id} does not belong to user {user_id}")

        user.record_game_played(session.score)
        await self.users.update(user)

        streak = await self.streaks.update_streak(user, session.ended_at or now)
        challenge_updates = await self._apply_challenges(user, session, now)
        achievements = await self.achievements.check_and_unlock_achievements(user, now)
        season = await self.season_pass.add_xp(
            user, season_xp_for_game(session.score, self.settings), GAME_XP_SOURCE, now
        )
        goal_updates = await self._apply_goals(user, session, now)

        logger.info(
            "Processed game %s for user %s: streak=%d, challenges=%d, unlocked=%d, tier=%d",
            session.id, user.id, streak.new_streak, len(challenge_updates),
            len(achievements.unlocked_achievement_ids), season.new_tier,
        )
        return GameEndResult(
            streak=streak,
            challenge_updates=challenge_updates,
            achievements=achievements,
            season=season,
            goal_updates=goal_updates,
        )

    async def _apply_challenges(
        self,
        user: User,
        session: GameSession,
        now: datetime,
    ) -> list[ChallengeProgressResult]:
        updates: list[ChallengeProgressResult] = []
        for challenge in await self.challenges.get_active_challenges(now=now):
            user_challenge = await self.challenges.get_or_create_user_challenge(user.id, challenge.id)
            if user_challenge.is_completed:
                continue
            if not self.challenges.validate_challenge_completion(user_challenge, session):
                continue
            delta = calculate_progress(challenge, session)
            result = await self.challenges.update_progress(user_challenge, delta, now)
            if result.xp_earned > 0:
                await self.season_pass.add_xp(user, result.xp_earned, CHALLENGE_XP_SOURCE, now)
            updates.append(result)
        return updates

    async def _apply_goals(self, user: User, session: GameSession, now: datetime) -> list[PersonalGoalResult]:
        updates: list[PersonalGoalResult] = []
        for goal in await self.goals.get_active_goals(user.id, now):
            if goal.is_completed or goal.is_expired(now):
                continue
            value = self.goals.progress_from_session(goal, session)
            updates.append(await self.goals.update_goal_progress(goal, value, now))
        return updates
