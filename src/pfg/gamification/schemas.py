"""Pydantic result models returned by the gamification services and commands."""

from __future__ import annotations

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel

from pfg.models import ChallengeGoalType, PersonalGoalType, RewardType

T = TypeVar("T")


# --- Command envelope ---


class CommandResult(BaseModel, Generic[T]):
    """Success value or a human-readable failure message."""

    is_success: bool
    value: T | None = None
    error: str | None = None

    @classmethod
    def ok(cls, value: T) -> CommandResult[T]:
        return cls(is_success=True, value=value)

    @classmethod
    def fail(cls, error: str) -> CommandResult[T]:
        return cls(is_success=False, error=error)


# --- Streak ---


class StreakResult(BaseModel):
    success: bool
    new_streak: int
    longest_streak: int
    streak_broken: bool = False
    used_freeze: bool = False
    error: str | None = None


class StreakStatus(BaseModel):
    current_streak: int
    longest_streak: int
    freeze_tokens: int
    is_at_risk: bool
    reset_time: datetime


# --- Season pass ---


class SeasonXPResult(BaseModel):
    success: bool
    xp_earned: int
    new_xp: int
    new_tier: int
    tier_up: bool
    tiers_unlocked: list[int] = []
    rewards_available: int = 0
    source: str = ""


class ClaimRewardResult(BaseModel):
    success: bool
    reward_type: RewardType | None = None
    reward_value: int | None = None
    error: str | None = None


class SeasonRewardInfo(BaseModel):
    id: int
    tier: int
    reward_type: RewardType
    reward_value: int
    xp_required: int
    is_claimed: bool
    can_claim: bool


class SeasonPassInfo(BaseModel):
    season_id: int
    season_name: str
    season_number: int
    ends_at: datetime
    current_xp: int
    current_tier: int
    xp_to_next_tier: int | None
    rewards: list[SeasonRewardInfo]


# --- Challenges ---


class ChallengeProgressResult(BaseModel):
    success: bool
    challenge_id: int
    challenge_name: str = ""
    new_progress: int = 0
    is_completed: bool = False
    xp_earned: int = 0
    goal_type: ChallengeGoalType | None = None
    error: str | None = None


# --- Achievements ---


class AchievementUnlockResult(BaseModel):
    unlocked_achievement_ids: list[int] = []
    unlocked_achievement_names: list[str] = []
    total_reward_value: int = 0


# --- Personal goals ---


class PersonalGoalResult(BaseModel):
    goal_id: int
    goal_type: PersonalGoalType
    new_value: int
    progress_percentage: int
    is_completed: bool


class UserStats(BaseModel):
    games_played: int
    average_score: float
    best_score: int
    average_accuracy: float


# --- Cosmetics ---


class EquipResult(BaseModel):
    success: bool
    error: str | None = None


# --- Game end ---


class GameEndResult(BaseModel):
    streak: StreakResult
    challenge_updates: list[ChallengeProgressResult] = []
    achievements: AchievementUnlockResult
    season: SeasonXPResult
    goal_updates: list[PersonalGoalResult] = []
