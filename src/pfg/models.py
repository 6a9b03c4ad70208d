"""Domain entities for the gamification engine.

Entities are created through ``create`` factories that validate their input
and raise ``ValueError`` on violations. State changes go through the named
domain operations; calling code never assigns fields directly. Plain
construction is kept for tests and storage rehydration.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum

from pfg.gamification.tier_thresholds import MAX_TIER, calculate_tier_from_xp


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_name(value: str, what: str = "Name") -> str:
    if value is None or not value.strip():
        msg = f"{what} cannot be empty"
        raise ValueError(msg)
    return value


def _require_non_negative(value: int, what: str) -> int:
    if value < 0:
        msg = f"{what} cannot be negative"
        raise ValueError(msg)
    return value


def _require_range(start: datetime, end: datetime) -> None:
    if end < start:
        msg = "End date must be after start date"
        raise ValueError(msg)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ChallengeType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


class ChallengeGoalType(str, Enum):
    """How a challenge's progress is derived from a finished game."""

    SCORE_TOTAL = "score_total"
    SCORE_SINGLE_GAME = "score_single_game"
    GAME_COUNT = "game_count"
    WIN_STREAK = "win_streak"
    ACCURACY = "accuracy"
    TIME_BASED = "time_based"


class RewardType(str, Enum):
    COSMETIC = "cosmetic"
    STREAK_FREEZE = "streak_freeze"
    XP_BOOST = "xp_boost"


class CosmeticType(str, Enum):
    BOARD_THEME = "board_theme"
    AVATAR_FRAME = "avatar_frame"
    BADGE = "badge"


class CosmeticRarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class ObtainedFrom(str, Enum):
    DEFAULT = "default"
    SEASON_PASS = "season_pass"
    ACHIEVEMENT = "achievement"
    CHALLENGE = "challenge"


class AchievementCategory(str, Enum):
    GAMES = "games"
    SCORE = "score"
    STREAK = "streak"
    CHALLENGE = "challenge"
    SPECIAL = "special"


class PersonalGoalType(str, Enum):
    BEAT_AVERAGE = "beat_average"
    IMPROVE_ACCURACY = "improve_accuracy"
    NEW_PERSONAL_BEST = "new_personal_best"


class GameStatus(str, Enum):
    PLAYING = "playing"
    ENDED = "ended"
    ABANDONED = "abandoned"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@dataclass
class User:
    """Aggregate root for every per-user gamification field."""

    id: int = 0
    external_id: str = ""
    email: str | None = None
    display_name: str = ""
    username: str | None = None
    games_played: int = 0
    high_score: int = 0

    current_streak: int = 0
    longest_streak: int = 0
    streak_freeze_tokens: int = 0
    last_played_date: date | None = None
    timezone: str | None = None
    season_pass_xp: int = 0
    current_season_tier: int = 0
    last_streak_notification_sent_at: datetime | None = None

    equipped_board_theme_id: int | None = None
    equipped_avatar_frame_id: int | None = None
    equipped_badge_id: int | None = None

    created_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def create(
        cls,
        external_id: str,
        display_name: str,
        email: str | None = None,
        username: str | None = None,
    ) -> User:
        _require_name(external_id, "External id")
        _require_name(display_name, "Display name")
        return cls(external_id=external_id, display_name=display_name, email=email, username=username)

    # --- Streaks ---

    def update_streak(self, play_date: date) -> None:
        """Record play on ``play_date`` (a local calendar day).

        Same day is a no-op, the next day continues the streak, anything
        else starts a new streak at 1.
        """
        if self.last_played_date == play_date:
            return
        if self.last_played_date is not None and (play_date - self.last_played_date).days == 1:
            self.current_streak += 1
        else:
            self.current_streak = 1
        self.last_played_date = play_date
        self.longest_streak = max(self.longest_streak, self.current_streak)

    def use_streak_freeze(self) -> bool:
        if self.streak_freeze_tokens <= 0:
            return False
        self.streak_freeze_tokens -= 1
        return True

    def add_streak_freeze_tokens(self, count: int) -> None:
        _require_non_negative(count, "Token count")
        self.streak_freeze_tokens += count

    def record_streak_notification_sent(self, sent_at: datetime) -> None:
        self.last_streak_notification_sent_at = sent_at

    # --- Season pass ---

    def add_season_xp(self, amount: int) -> None:
        _require_non_negative(amount, "XP amount")
        self.season_pass_xp += amount
        self.current_season_tier = calculate_tier_from_xp(self.season_pass_xp)

    def reset_season_progress(self) -> None:
        self.season_pass_xp = 0
        self.current_season_tier = 0

    # --- Profile ---

    def set_timezone(self, tz_name: str | None) -> None:
        self.timezone = tz_name

    def record_game_played(self, score: int) -> None:
        _require_non_negative(score, "Score")
        self.games_played += 1
        self.high_score = max(self.high_score, score)

    def equip_cosmetic(self, cosmetic_type: CosmeticType, cosmetic_id: int | None) -> None:
        if cosmetic_type is CosmeticType.BOARD_THEME:
            self.equipped_board_theme_id = cosmetic_id
        elif cosmetic_type is CosmeticType.AVATAR_FRAME:
            self.equipped_avatar_frame_id = cosmetic_id
        elif cosmetic_type is CosmeticType.BADGE:
            self.equipped_badge_id = cosmetic_id
        else:
            msg = f"Unknown cosmetic type: {cosmetic_type}"
            raise ValueError(msg)


# ---------------------------------------------------------------------------
# Seasons
# ---------------------------------------------------------------------------


@dataclass
class Season:
    id: int = 0
    name: str = ""
    number: int = 1
    theme: str = ""
    start_date: datetime = field(default_factory=_utcnow)
    end_date: datetime = field(default_factory=_utcnow)
    is_active: bool = True

    @classmethod
    def create(cls, name: str, number: int, theme: str, start_date: datetime, end_date: datetime) -> Season:
        _require_name(name)
        if number < 1:
            msg = "Season number must be at least 1"
            raise ValueError(msg)
        _require_range(start_date, end_date)
        return cls(name=name, number=number, theme=theme, start_date=start_date, end_date=end_date)

    def activate(self) -> None:
        self.is_active = True

    def deactivate(self) -> None:
        self.is_active = False

    def contains(self, now: datetime) -> bool:
        return self.start_date <= now <= self.end_date

    def has_ended(self, now: datetime) -> bool:
        return self.end_date < now


@dataclass
class SeasonReward:
    id: int = 0
    season_id: int = 0
    tier: int = 1
    reward_type: RewardType = RewardType.XP_BOOST
    reward_value: int = 0
    xp_required: int = 0

    @classmethod
    def create(
        cls,
        season_id: int,
        tier: int,
        reward_type: RewardType,
        reward_value: int,
        xp_required: int,
    ) -> SeasonReward:
        if tier < 1 or tier > MAX_TIER:
            msg = f"Tier must be between 1 and {MAX_TIER}"
            raise ValueError(msg)
        _require_non_negative(xp_required, "XP required")
        _require_non_negative(reward_value, "Reward value")
        return cls(
            season_id=season_id,
            tier=tier,
            reward_type=reward_type,
            reward_value=reward_value,
            xp_required=xp_required,
        )


@dataclass(frozen=True)
class SeasonArchive:
    """Final season standing of one user. Never mutated once written."""

    user_id: int
    season_id: int
    final_xp: int
    final_tier: int
    archived_at: datetime = field(default_factory=_utcnow)
    id: int = 0

    @classmethod
    def create(cls, user_id: int, season_id: int, final_xp: int, final_tier: int) -> SeasonArchive:
        if user_id <= 0:
            msg = "User id must be positive"
            raise ValueError(msg)
        if season_id <= 0:
            msg = "Season id must be positive"
            raise ValueError(msg)
        _require_non_negative(final_xp, "Final XP")
        if final_tier < 0 or final_tier > MAX_TIER:
            msg = f"Final tier must be between 0 and {MAX_TIER}"
            raise ValueError(msg)
        return cls(user_id=user_id, season_id=season_id, final_xp=final_xp, final_tier=final_tier)


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


@dataclass
class ChallengeTemplate:
    id: int = 0
    name: str = ""
    description: str = ""
    type: ChallengeType = ChallengeType.DAILY
    target_value: int = 0
    xp_reward: int = 0
    goal_type: ChallengeGoalType | None = None
    is_active: bool = True

    @classmethod
    def create(
        cls,
        name: str,
        description: str,
        challenge_type: ChallengeType,
        target_value: int,
        xp_reward: int,
        goal_type: ChallengeGoalType | None = None,
    ) -> ChallengeTemplate:
        _require_name(name)
        _require_non_negative(target_value, "Target value")
        _require_non_negative(xp_reward, "XP reward")
        return cls(
            name=name,
            description=description,
            type=challenge_type,
            target_value=target_value,
            xp_reward=xp_reward,
            goal_type=goal_type,
        )

    def update(
        self,
        name: str,
        description: str,
        target_value: int,
        xp_reward: int,
        goal_type: ChallengeGoalType | None = None,
    ) -> None:
        _require_name(name)
        _require_non_negative(target_value, "Target value")
        _require_non_negative(xp_reward, "XP reward")
        self.name = name
        self.description = description
        self.target_value = target_value
        self.xp_reward = xp_reward
        self.goal_type = goal_type

    def activate(self) -> None:
        self.is_active = True

    def deactivate(self) -> None:
        self.is_active = False


@dataclass
class Challenge:
    id: int = 0
    name: str = ""
    description: str = ""
    type: ChallengeType = ChallengeType.DAILY
    target_value: int = 0
    xp_reward: int = 0
    start_date: datetime = field(default_factory=_utcnow)
    end_date: datetime = field(default_factory=_utcnow)
    is_active: bool = True
    goal_type: ChallengeGoalType | None = None
    template_id: int | None = None

    @classmethod
    def create(
        cls,
        name: str,
        description: str,
        challenge_type: ChallengeType,
        target_value: int,
        xp_reward: int,
        start_date: datetime,
        end_date: datetime,
        goal_type: ChallengeGoalType | None = None,
        template_id: int | None = None,
    ) -> Challenge:
        _require_name(name)
        _require_non_negative(target_value, "Target value")
        _require_non_negative(xp_reward, "XP reward")
        _require_range(start_date, end_date)
        return cls(
            name=name,
            description=description,
            type=challenge_type,
            target_value=target_value,
            xp_reward=xp_reward,
            start_date=start_date,
            end_date=end_date,
            goal_type=goal_type,
            template_id=template_id,
        )

    @classmethod
    def create_from_template(cls, template: ChallengeTemplate, start_date: datetime, end_date: datetime) -> Challenge:
        return cls.create(
            name=template.name,
            description=template.description,
            challenge_type=template.type,
            target_value=template.target_value,
            xp_reward=template.xp_reward,
            start_date=start_date,
            end_date=end_date,
            goal_type=template.goal_type,
            template_id=template.id,
        )

    def activate(self) -> None:
        self.is_active = True

    def deactivate(self) -> None:
        self.is_active = False

    def has_expired(self, now: datetime) -> bool:
        return self.end_date < now

    def is_current(self, now: datetime) -> bool:
        return self.is_active and self.start_date <= now <= self.end_date


@dataclass
class UserChallenge:
    user_id: int
    challenge_id: int
    current_progress: int = 0
    is_completed: bool = False
    completed_at: datetime | None = None
    id: int = 0

    @classmethod
    def create(cls, user_id: int, challenge_id: int) -> UserChallenge:
        return cls(user_id=user_id, challenge_id=challenge_id)

    def add_progress(self, delta: int, target_value: int, now: datetime | None = None) -> None:
        _require_non_negative(delta, "Progress")
        self.update_progress(self.current_progress + delta, target_value, now)

    def update_progress(self, value: int, target_value: int, now: datetime | None = None) -> None:
        _require_non_negative(value, "Progress")
        self.current_progress = value
        if not self.is_completed and self.current_progress >= target_value:
            self.is_completed = True
            self.completed_at = now or _utcnow()


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


@dataclass
class Achievement:
    id: int = 0
    name: str = ""
    description: str = ""
    category: AchievementCategory = AchievementCategory.GAMES
    icon_url: str = ""
    unlock_condition: str = "{}"
    reward_type: RewardType = RewardType.XP_BOOST
    reward_value: int = 0
    is_secret: bool = False
    display_order: int = 0

    @classmethod
    def create(
        cls,
        name: str,
        description: str,
        category: AchievementCategory,
        unlock_condition: str,
        reward_type: RewardType,
        reward_value: int,
        icon_url: str = "",
        is_secret: bool = False,
        display_order: int = 0,
    ) -> Achievement:
        _require_name(name)
        _require_name(unlock_condition, "Unlock condition")
        _require_non_negative(reward_value, "Reward value")
        return cls(
            name=name,
            description=description,
            category=category,
            icon_url=icon_url,
            unlock_condition=unlock_condition,
            reward_type=reward_type,
            reward_value=reward_value,
            is_secret=is_secret,
            display_order=display_order,
        )


@dataclass
class UserAchievement:
    user_id: int
    achievement_id: int
    progress: int = 0
    is_unlocked: bool = False
    unlocked_at: datetime | None = None
    id: int = 0

    @classmethod
    def create(cls, user_id: int, achievement_id: int) -> UserAchievement:
        return cls(user_id=user_id, achievement_id=achievement_id)

    def update_progress(self, progress: int) -> None:
        self.progress = max(0, min(progress, 100))

    def unlock(self, now: datetime | None = None) -> None:
        if self.is_unlocked:
            return
        self.is_unlocked = True
        self.progress = 100
        self.unlocked_at = now or _utcnow()


# ---------------------------------------------------------------------------
# Personal goals
# ---------------------------------------------------------------------------


@dataclass
class PersonalGoal:
    user_id: int
    type: PersonalGoalType
    description: str
    target_value: int
    current_value: int = 0
    is_completed: bool = False
    completed_at: datetime | None = None
    expires_at: datetime | None = None
    created_at: datetime = field(default_factory=_utcnow)
    id: int = 0

    @classmethod
    def create(
        cls,
        user_id: int,
        goal_type: PersonalGoalType,
        description: str,
        target_value: int,
        expires_at: datetime | None = None,
    ) -> PersonalGoal:
        _require_name(description, "Description")
        _require_non_negative(target_value, "Target value")
        return cls(
            user_id=user_id,
            type=goal_type,
            description=description,
            target_value=target_value,
            expires_at=expires_at,
        )

    @property
    def progress_percentage(self) -> int:
        if self.target_value <= 0:
            return 100 if self.is_completed else 0
        return max(0, min(self.current_value * 100 // self.target_value, 100))

    def update_progress(self, value: int, now: datetime | None = None) -> None:
        _require_non_negative(value, "Progress")
        self.current_value = value
        if not self.is_completed and self.current_value >= self.target_value:
            self.is_completed = True
            self.completed_at = now or _utcnow()

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or _utcnow()) > self.expires_at


# ---------------------------------------------------------------------------
# Cosmetics
# ---------------------------------------------------------------------------


@dataclass
class Cosmetic:
    id: int = 0
    code: str = ""
    name: str = ""
    description: str = ""
    type: CosmeticType = CosmeticType.BOARD_THEME
    asset_url: str = ""
    preview_url: str = ""
    rarity: CosmeticRarity = CosmeticRarity.COMMON
    is_default: bool = False

    @classmethod
    def create(
        cls,
        code: str,
        name: str,
        description: str,
        cosmetic_type: CosmeticType,
        asset_url: str,
        preview_url: str = "",
        rarity: CosmeticRarity = CosmeticRarity.COMMON,
        is_default: bool = False,
    ) -> Cosmetic:
        _require_name(code, "Code")
        _require_name(name)
        _require_name(asset_url, "Asset URL")
        return cls(
            code=code,
            name=name,
            description=description,
            type=cosmetic_type,
            asset_url=asset_url,
            preview_url=preview_url,
            rarity=rarity,
            is_default=is_default,
        )


@dataclass
class UserCosmetic:
    user_id: int
    cosmetic_id: int
    obtained_from: ObtainedFrom
    obtained_at: datetime = field(default_factory=_utcnow)
    id: int = 0

    @classmethod
    def create(cls, user_id: int, cosmetic_id: int, obtained_from: ObtainedFrom) -> UserCosmetic:
        return cls(user_id=user_id, cosmetic_id=cosmetic_id, obtained_from=obtained_from)


# ---------------------------------------------------------------------------
# Game sessions (read-only input, produced by the game engine)
# ---------------------------------------------------------------------------


@dataclass
class GameSession:
    user_id: int | None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    score: int = 0
    lines_cleared: int = 0
    max_combo: int = 0
    move_count: int = 0
    status: GameStatus = GameStatus.PLAYING
    started_at: datetime = field(default_factory=_utcnow)
    ended_at: datetime | None = None

    @classmethod
    def create(cls, user_id: int | None, started_at: datetime | None = None) -> GameSession:
        return cls(user_id=user_id, started_at=started_at or _utcnow())

    def end(
        self,
        score: int,
        lines_cleared: int = 0,
        max_combo: int = 0,
        move_count: int = 0,
        ended_at: datetime | None = None,
    ) -> None:
        if self.status is not GameStatus.PLAYING:
            msg = "Game session has already finished"
            raise ValueError(msg)
        _require_non_negative(score, "Score")
        _require_non_negative(lines_cleared, "Lines cleared")
        _require_non_negative(move_count, "Move count")
        self.score = score
        self.lines_cleared = lines_cleared
        self.max_combo = max_combo
        self.move_count = move_count
        self.status = GameStatus.ENDED
        self.ended_at = ended_at or _utcnow()

    def abandon(self, ended_at: datetime | None = None) -> None:
        if self.status is not GameStatus.PLAYING:
            msg = "Game session has already finished"
            raise ValueError(msg)
        self.status = GameStatus.ABANDONED
        self.ended_at = ended_at or _utcnow()

    @property
    def duration_minutes(self) -> int | None:
        """Whole minutes played, rounded up. None while the game is running."""
        if self.ended_at is None:
            return None
        seconds = (self.ended_at - self.started_at).total_seconds()
        return max(0, math.ceil(seconds / 60))

    @property
    def accuracy(self) -> int:
        """Percentage of moves that cleared a line."""
        if self.move_count <= 0:
            return 0
        return min(self.lines_cleared * 100 // self.move_count, 100)
