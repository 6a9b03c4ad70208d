"""Storage collaborator interfaces.

Every method is a coroutine: implementations talk to a database over the
network. Methods named ``try_*`` are single atomic conditional writes and
report through their boolean return whether this caller won.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import datetime

from pfg.models import (
    Achievement,
    Challenge,
    ChallengeTemplate,
    ChallengeType,
    Cosmetic,
    GameSession,
    PersonalGoal,
    Season,
    SeasonArchive,
    SeasonReward,
    User,
    UserAchievement,
    UserChallenge,
    UserCosmetic,
)


class UserRepository(ABC):
    @abstractmethod
    async def get_by_id(self, user_id: int) -> User | None: ...

    @abstractmethod
    async def add(self, user: User) -> User: ...

    @abstractmethod
    async def update(self, user: User) -> None: ...

    @abstractmethod
    async def get_all(self) -> Sequence[User]: ...

    @abstractmethod
    async def get_users_with_active_streaks(self) -> Sequence[User]:
        """Users whose current streak is above zero."""

    @abstractmethod
    async def try_claim_streak_notification(
        self,
        user_id: int,
        cooldown_hours: int,
        now: datetime | None = None,
    ) -> bool:
        """Stamp the notification time if the last one is older than the cooldown.

        Returns True only for the caller whose write went through.
        """

    @abstractmethod
    async def is_username_taken(self, username: str, exclude_user_id: int | None = None) -> bool: ...


class GamificationRepository(ABC):
    # --- Seasons ---

    @abstractmethod
    async def get_current_season(self, now: datetime | None = None) -> Season | None:
        """The active season whose date range contains ``now``."""

    @abstractmethod
    async def get_all_seasons(self) -> Sequence[Season]: ...

    @abstractmethod
    async def get_season_by_id(self, season_id: int) -> Season | None: ...

    @abstractmethod
    async def add_season(self, season: Season) -> Season: ...

    @abstractmethod
    async def update_season(self, season: Season) -> None: ...

    @abstractmethod
    async def add_season_archive(self, archive: SeasonArchive) -> None:
        """Raises DuplicateEntityError if the (user, season) pair is already archived."""

    @abstractmethod
    async def get_season_archives(self, user_id: int) -> Sequence[SeasonArchive]: ...

    # --- Season rewards ---

    @abstractmethod
    async def get_season_rewards(self, season_id: int) -> Sequence[SeasonReward]: ...

    @abstractmethod
    async def get_season_reward_by_id(self, reward_id: int) -> SeasonReward | None: ...

    @abstractmethod
    async def add_season_reward(self, reward: SeasonReward) -> SeasonReward: ...

    @abstractmethod
    async def get_claimed_reward_ids(self, user_id: int, season_id: int) -> set[int]: ...

    @abstractmethod
    async def try_add_claimed_reward(self, user_id: int, reward_id: int) -> bool:
        """Insert the claim if absent. False when it already exists."""

    @abstractmethod
    async def remove_claimed_reward(self, user_id: int, reward_id: int) -> None: ...

    # --- Challenges ---

    @abstractmethod
    async def get_active_challenges(self, challenge_type: ChallengeType | None = None) -> Sequence[Challenge]:
        """Challenges flagged active, expired or not. Callers filter by date."""

    @abstractmethod
    async def get_challenge_by_id(self, challenge_id: int) -> Challenge | None: ...

    @abstractmethod
    async def add_challenge(self, challenge: Challenge) -> Challenge:
        """Raises DuplicateEntityError for a second challenge from one template in one window."""

    @abstractmethod
    async def update_challenge(self, challenge: Challenge) -> None: ...

    @abstractmethod
    async def get_challenge_templates(
        self,
        challenge_type: ChallengeType | None = None,
    ) -> Sequence[ChallengeTemplate]:
        """Active templates, optionally of one type."""

    @abstractmethod
    async def add_challenge_template(self, template: ChallengeTemplate) -> ChallengeTemplate: ...

    @abstractmethod
    async def get_user_challenge(self, user_id: int, challenge_id: int) -> UserChallenge | None: ...

    @abstractmethod
    async def get_user_challenges(self, user_id: int) -> Sequence[UserChallenge]: ...

    @abstractmethod
    async def add_user_challenge(self, user_challenge: UserChallenge) -> UserChallenge: ...

    @abstractmethod
    async def update_user_challenge(self, user_challenge: UserChallenge) -> None: ...

    @abstractmethod
    async def get_completed_challenge_count(self, user_id: int) -> int: ...

    # --- Achievements ---

    @abstractmethod
    async def get_all_achievements(self) -> Sequence[Achievement]: ...

    @abstractmethod
    async def add_achievement(self, achievement: Achievement) -> Achievement: ...

    @abstractmethod
    async def get_user_achievements(self, user_id: int) -> Sequence[UserAchievement]: ...

    @abstractmethod
    async def add_user_achievement(self, user_achievement: UserAchievement) -> UserAchievement: ...

    @abstractmethod
    async def update_user_achievement(self, user_achievement: UserAchievement) -> None: ...

    # --- Personal goals ---

    @abstractmethod
    async def get_active_personal_goals(self, user_id: int, now: datetime | None = None) -> Sequence[PersonalGoal]:
        """Goals neither completed nor expired."""

    @abstractmethod
    async def add_personal_goal(self, goal: PersonalGoal) -> PersonalGoal: ...

    @abstractmethod
    async def update_personal_goal(self, goal: PersonalGoal) -> None: ...

    # --- Cosmetics ---

    @abstractmethod
    async def get_all_cosmetics(self) -> Sequence[Cosmetic]: ...

    @abstractmethod
    async def get_cosmetic_by_id(self, cosmetic_id: int) -> Cosmetic | None: ...

    @abstractmethod
    async def get_cosmetic_by_code(self, code: str) -> Cosmetic | None: ...

    @abstractmethod
    async def add_cosmetic(self, cosmetic: Cosmetic) -> Cosmetic: ...

    @abstractmethod
    async def get_user_cosmetics(self, user_id: int) -> Sequence[UserCosmetic]: ...

    @abstractmethod
    async def try_add_user_cosmetic(self, user_cosmetic: UserCosmetic) -> bool:
        """Insert ownership if absent. False when the user already owns it."""


class GameSessionRepository(ABC):
    @abstractmethod
    async def get_by_id(self, session_id: uuid.UUID) -> GameSession | None: ...

    @abstractmethod
    async def get_by_user(self, user_id: int, limit: int | None = None) -> Sequence[GameSession]:
        """Finished sessions of one user, most recent first."""

    @abstractmethod
    async def add(self, session: GameSession) -> GameSession: ...


@dataclass
class RepositoryScope:
    """The repositories of one unit of work."""

    users: UserRepository
    gamification: GamificationRepository
    game_sessions: GameSessionRepository


ScopeFactory = Callable[[], AbstractAsyncContextManager[RepositoryScope]]
