"""Season pass: XP accumulation, tier-ups and reward claiming.

Claims are at-most-once per (user, reward). The claim row is written
atomically before the reward is granted and removed again if a cosmetic
grant fails, so a failed grant never leaves the reward marked as claimed.
"""

from __future__ import annotations

import logging
from datetime import datetime

from pfg.gamification.cosmetic_service import CosmeticService
from pfg.gamification.schemas import ClaimRewardResult, SeasonXPResult
from pfg.gamification.tier_thresholds import calculate_tier_from_xp, tiers_crossed
from pfg.models import ObtainedFrom, RewardType, SeasonReward, User
from pfg.repositories import GamificationRepository, UserRepository

logger = logging.getLogger(__name__)

REWARD_NOT_FOUND = "Reward not found."
REWARD_ALREADY_CLAIMED = "This reward has already been claimed."
COSMETIC_GRANT_FAILED = "Failed to grant cosmetic reward."


def insufficient_tier_message(required_tier: int) -> str:
    return f"You have not reached the required tier ({required_tier}) for this reward."


class SeasonPassService:
    def __init__(
        self,
        users: UserRepository,
        gamification: GamificationRepository,
        cosmetics: CosmeticService,
    ) -> None:
        self.users = users
        self.gamification = gamification
        self.cosmetics = cosmetics

    @staticmethod
    def calculate_tier_from_xp(xp: int) -> int:
        return calculate_tier_from_xp(xp)

    async def add_xp(
        self,
        user: User,
        amount: int,
        source: str,
        now: datetime | None = None,
    ) -> SeasonXPResult:
        """Add season XP, detect every tier crossed, and persist the user once.

        Raises:
            ValueError: If ``amount`` is negative.
        """
        previous_xp = user.season_pass_xp
        user.add_season_xp(amount)
        crossed = tiers_crossed(previous_xp, user.season_pass_xp)

        rewards_available = 0
        if crossed:
            logger.info(
                "User %s reached season tier %d (+%d XP from %s)",
                user.id, user.current_season_tier, amount, source,
            )
            rewards_available = await self._count_newly_unlocked(user, crossed, now)

        await self.users.update(user)

        return SeasonXPResult(
            success=True,
            xp_earned=amount,
            new_xp=user.season_pass_xp,
            new_tier=user.current_season_tier,
            tier_up=bool(crossed),
            tiers_unlocked=crossed,
            rewards_available=rewards_available,
            source=source,
        )

    async def _count_newly_unlocked(self, user: User, tiers: list[int], now: datetime | None) -> int:
        season = await self.gamification.get_current_season(now)
        if season is None:
            return 0
        rewards = await self.gamification.get_season_rewards(season.id)
        claimed = await self.gamification.get_claimed_reward_ids(user.id, season.id)
        unlocked = set(tiers)
        return sum(1 for r in rewards if r.tier in unlocked and r.id not in claimed)

    async def claim_reward(self, user: User, reward_id: int) -> ClaimRewardResult:
        """Validate and claim one season reward, then grant it by type."""
        reward = await self.gamification.get_season_reward_by_id(reward_id)
        if reward is None:
            return ClaimRewardResult(success=False, error=REWARD_NOT_FOUND)

        if calculate_tier_from_xp(user.season_pass_xp) < reward.tier:
            return ClaimRewardResult(success=False, error=insufficient_tier_message(reward.tier))

        claimed = await self.gamification.get_claimed_reward_ids(user.id, reward.season_id)
        if reward.id in claimed:
            return ClaimRewardResult(success=False, error=REWARD_ALREADY_CLAIMED)

        if not await self.gamification.try_add_claimed_reward(user.id, reward.id):
            return ClaimRewardResult(success=False, error=REWARD_ALREADY_CLAIMED)

        try:
            granted = await self._grant(user, reward)
        except Exception:
            await self.gamification.remove_claimed_reward(user.id, reward.id)
            raise
        if not granted:
            await self.gamification.remove_claimed_reward(user.id, reward.id)
            return ClaimRewardResult(success=False, error=COSMETIC_GRANT_FAILED)

        logger.info("User %s claimed tier %d reward %s", user.id, reward.tier, reward.id)
        return ClaimRewardResult(success=True, reward_type=reward.reward_type, reward_value=reward.reward_value)

    async def _grant(self, user: User, reward: SeasonReward) -> bool:
        if reward.reward_type is RewardType.COSMETIC:
            return await self.cosmetics.grant_cosmetic(user, reward.reward_value, ObtainedFrom.SEASON_PASS)
        if reward.reward_type is RewardType.STREAK_FREEZE:
            user.add_streak_freeze_tokens(reward.reward_value)
            await self.users.update(user)
            return True
        # XP boosts only record the claim; the multiplier applies to later grants.
        return True
