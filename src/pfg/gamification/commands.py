"""Command and query handlers for the gamification engine.

Handlers load what they need from one repository scope and never raise for
missing entities or business-rule failures: those come back as a failed
``CommandResult`` carrying a stable, user-facing message.
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
from pfg.gamification.cosmetic_service import CosmeticService
from pfg.gamification.game_end import CHALLENGE_XP_SOURCE, GameEndProcessor
from pfg.gamification.personal_goal_service import PersonalGoalService
from pfg.gamification.schemas import (
    ChallengeProgressResult,
    ClaimRewardResult,
    CommandResult,
    EquipResult,
    GameEndResult,
    SeasonPassInfo,
    SeasonRewardInfo,
    StreakResult,
    StreakStatus,
)
from pfg.gamification.season_pass_service import SeasonPassService
from pfg.gamification.streak_service import StreakService
from pfg.gamification.tier_thresholds import xp_for_next_tier
from pfg.gamification.timezones import is_valid_timezone
from pfg.repositories import RepositoryScope

logger = logging.getLogger(__name__)

NO_FREEZE_TOKENS = "No streak freeze tokens available"
TIMEZONE_REQUIRED = "Timezone is required"
NO_ACTIVE_SEASON = "No active season found."


def _user_not_found(user_id: int) -> str:
    return f"User {user_id} not found."


class GamificationCommands:
    """Wires the engine services over one repository scope."""

    def __init__(self, repos: RepositoryScope, settings: Settings | None = None) -> None:
        self.repos = repos
        self.settings = settings or get_settings()
        self.streaks = StreakService(repos.users)
        self.cosmetics = CosmeticService(repos.users, repos.gamification)
        self.season_pass = SeasonPassService(repos.users, repos.gamification, self.cosmetics)
        self.challenges = ChallengeService(repos.gamification)
        self.achievements = AchievementService(repos.gamification)
        self.goals = PersonalGoalService(repos.gamification, repos.game_sessions)
        self.game_end = GameEndProcessor(
            users=repos.users,
            game_sessions=repos.game_sessions,
            streaks=self.streaks,
            challenges=self.challenges,
            achievements=self.achievements,
            season_pass=self.season_pass,
            goals=self.goals,
            settings=self.settings,
        )

    # --- Commands ---

    async def update_streak(self, user_id: int, game_end_time: datetime) -> CommandResult[StreakResult]:
        user = await self.repos.users.get_by_id(user_id)
        if user is None:
            return CommandResult.fail(_user_not_found(user_id))
        return CommandResult.ok(await self.streaks.update_streak(user, game_end_time))

    async def use_streak_freeze(self, user_id: int) -> CommandResult[int]:
        """Spend a token; the value is the number of tokens left."""
        user = await self.repos.users.get_by_id(user_id)
        if user is None:
            return CommandResult.fail(_user_not_found(user_id))
        if not await self.streaks.use_streak_freeze(user):
            return CommandResult.fail(NO_FREEZE_TOKENS)
        return CommandResult.ok(user.streak_freeze_tokens)

    async def set_timezone(self, user_id: int, tz_name: str | None) -> CommandResult[str]:
        if tz_name is None or not tz_name.strip():
            return CommandResult.fail(TIMEZONE_REQUIRED)
        tz_name = tz_name.strip()
        if not is_valid_timezone(tz_name):
            return CommandResult.fail(f"Invalid timezone: {tz_name}")

        user = await self.repos.users.get_by_id(user_id)
        if user is None:
            return CommandResult.fail(_user_not_found(user_id))
        user.set_timezone(tz_name)
        await self.repos.users.update(user)
        return CommandResult.ok(tz_name)

    async def claim_season_reward(self, user_id: int, reward_id: int) -> CommandResult[ClaimRewardResult]:
        user = await self.repos.users.get_by_id(user_id)
        if user is None:
            return CommandResult.fail(_user_not_found(user_id))
        result = await self.season_pass.claim_reward(user, reward_id)
        if not result.success:
            return CommandResult.fail(result.error or "Reward could not be claimed.")
        return CommandResult.ok(result)

    async def complete_challenge(
        self,
        user_id: int,
        challenge_id: int,
        game_session_id: uuid.UUID,
        now: datetime | None = None,
    ) -> CommandResult[ChallengeProgressResult]:
        """Count one finished game towards a single challenge."""
        if now is None:
            now = datetime.now(timezone.utc)
        user = await self.repos.users.get_by_id(user_id)
        if user is None:
            return CommandResult.fail(_user_not_found(user_id))
        challenge = await self.repos.gamification.get_challenge_by_id(challenge_id)
        if challenge is None:
            return CommandResult.fail(f"Challenge {challenge_id} not found.")
        if not challenge.is_current(now):
            return CommandResult.fail("Challenge is not active.")
        session = await self.repos.game_sessions.get_by_id(game_session_id)
        if session is None:
            return CommandResult.fail(f"Game session {game_session_id} not found.")

        user_challenge = await self.challenges.get_or_create_user_challenge(user.id, challenge.id)
        if user_challenge.is_completed:
            return CommandResult.fail("Challenge has already been completed.")
        if not self.challenges.validate_challenge_completion(user_challenge, session):
            return CommandResult.fail("Game session is not a finished game of this user.")

        result = await self.challenges.update_progress(user_challenge, calculate_progress(challenge, session), now)
        if result.xp_earned > 0:
            await self.season_pass.add_xp(user, result.xp_earned, CHALLENGE_XP_SOURCE, now)
        return CommandResult.ok(result)

    async def equip_cosmetic(self, user_id: int, cosmetic_id: int) -> CommandResult[EquipResult]:
        user = await self.repos.users.get_by_id(user_id)
        if user is None:
            return CommandResult.fail(_user_not_found(user_id))
        result = await self.cosmetics.equip_cosmetic(user, cosmetic_id)
        if not result.success:
            return CommandResult.fail(result.error or "Cosmetic could not be equipped.")
        return CommandResult.ok(result)

    async def process_game_end(
        self,
        user_id: int,
        game_session_id: uuid.UUID,
        now: datetime | None = None,
    ) -> CommandResult[GameEndResult]:
        try:
            result = await self.game_end.process(user_id, game_session_id, now)
        except (EntityNotFoundError, OwnershipError) as e:
            logger.warning("Game end rejected for user %s: %s", user_id, e)
            return CommandResult.fail(str(e))
        return CommandResult.ok(result)

    # --- Queries ---

    async def get_streak_status(self, user_id: int, now: datetime | None = None) -> CommandResult[StreakStatus]:
        if now is None:
            now = datetime.now(timezone.utc)
        user = await self.repos.users.get_by_id(user_id)
        if user is None:
            return CommandResult.fail(_user_not_found(user_id))
        return CommandResult.ok(
            StreakStatus(
                current_streak=user.current_streak,
                longest_streak=user.longest_streak,
                freeze_tokens=user.streak_freeze_tokens,
                is_at_risk=self.streaks.is_streak_at_risk(user, now),
                reset_time=self.streaks.get_streak_reset_time(user, now),
            )
        )

    async def get_season_pass(self, user_id: int, now: datetime | None = None) -> CommandResult[SeasonPassInfo]:
        user = await self.repos.users.get_by_id(user_id)
        if user is None:
            return CommandResult.fail(_user_not_found(user_id))
        season = await self.repos.gamification.get_current_season(now)
        if season is None:
            return CommandResult.fail(NO_ACTIVE_SEASON)

        rewards = await self.repos.gamification.get_season_rewards(season.id)
        claimed = await self.repos.gamification.get_claimed_reward_ids(user.id, season.id)
        return CommandResult.ok(
            SeasonPassInfo(
                season_id=season.id,
                season_name=season.name,
                season_number=season.number,
                ends_at=season.end_date,
                current_xp=user.season_pass_xp,
                current_tier=user.current_season_tier,
                xp_to_next_tier=xp_for_next_tier(user.season_pass_xp),
                rewards=[
                    SeasonRewardInfo(
                        id=r.id,
                        tier=r.tier,
                        reward_type=r.reward_type,
                        reward_value=r.reward_value,
                        xp_required=r.xp_required,
                        is_claimed=r.id in claimed,
                        can_claim=r.id not in claimed and user.current_season_tier >= r.tier,
                    )
                    for r in rewards
                ],
            )
        )
