"""Challenge lookup and per-user challenge progress."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from pfg.exceptions import DuplicateEntityError, EntityNotFoundError
from pfg.gamification.schemas import ChallengeProgressResult
from pfg.models import Challenge, ChallengeType, GameSession, GameStatus, UserChallenge
from pfg.repositories import GamificationRepository

logger = logging.getLogger(__name__)


class ChallengeService:
    def __init__(self, gamification: GamificationRepository) -> None:
        self.gamification = gamification

    async def get_active_challenges(
        self,
        challenge_type: ChallengeType | None = None,
        now: datetime | None = None,
    ) -> Sequence[Challenge]:
        """Active challenges whose window contains ``now``."""
        if now is None:
            now = datetime.now(timezone.utc)
        challenges = await self.gamification.get_active_challenges(challenge_type)
        return [c for c in challenges if c.is_current(now)]

    async def get_or_create_user_challenge(self, user_id: int, challenge_id: int) -> UserChallenge:
        """Load the user's tracker for a challenge, creating it on first use.

        Raises:
            EntityNotFoundError: If the challenge does not exist.
        """
        existing = await self.gamification.get_user_challenge(user_id, challenge_id)
        if existing is not None:
            return existing

        challenge = await self.gamification.get_challenge_by_id(challenge_id)
        if challenge is None:
            raise EntityNotFoundError("Challenge", challenge_id)

        try:
            return await self.gamification.add_user_challenge(UserChallenge.create(user_id, challenge_id))
        except DuplicateEntityError:
            # Created concurrently
            existing = await self.gamification.get_user_challenge(user_id, challenge_id)
            if existing is None:
                raise
            return existing

    async def update_progress(
        self,
        user_challenge: UserChallenge,
        delta: int,
        now: datetime | None = None,
    ) -> ChallengeProgressResult:
        """Add ``delta`` progress. XP is reported only on the call that completes the challenge."""
        challenge = await self.gamification.get_challenge_by_id(user_challenge.challenge_id)
        if challenge is None:
            return ChallengeProgressResult(
                success=False,
                challenge_id=user_challenge.challenge_id,
                error="Challenge not found.",
            )

        was_completed = user_challenge.is_completed
        user_challenge.add_progress(delta, challenge.target_value, now)
        await self.gamification.update_user_challenge(user_challenge)

        just_completed = user_challenge.is_completed and not was_completed
        if just_completed:
            logger.info("User %s completed challenge %s", user_challenge.user_id, challenge.id)

        return ChallengeProgressResult(
            success=True,
            challenge_id=challenge.id,
            challenge_name=challenge.name,
            new_progress=user_challenge.current_progress,
            is_completed=user_challenge.is_completed,
            xp_earned=challenge.xp_reward if just_completed else 0,
            goal_type=challenge.goal_type,
        )

    @staticmethod
    def validate_challenge_completion(user_challenge: UserChallenge, session: GameSession) -> bool:
        """A session counts towards a challenge only if it is the user's own finished game."""
        return session.user_id == user_challenge.user_id and session.status is GameStatus.ENDED
