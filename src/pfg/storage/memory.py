"""In-memory implementations of the storage interfaces.

Used by the worker in development, by seeding and by the tests. Rows are
deep-copied on the way in and out so callers never share state with the
store. Conditional writes (``try_*``, unique keys) check and set without
awaiting in between, which makes them atomic on a single event loop.
"""

from __future__ import annotations

import copy
import itertools
import uuid
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone

from pfg.exceptions import DuplicateEntityError
from pfg.models import (
    Achievement,
    Challenge,
    ChallengeTemplate,
    ChallengeType,
    Cosmetic,
    GameSession,
    GameStatus,
    PersonalGoal,
    Season,
    SeasonArchive,
    SeasonReward,
    User,
    UserAchievement,
    UserChallenge,
    UserCosmetic,
)
from pfg.repositories import GamificationRepository, GameSessionRepository, RepositoryScope, UserRepository


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


@dataclass
class InMemoryStore:
    """All rows of one in-memory database."""

    users: dict[int, User] = field(default_factory=dict)
    seasons: dict[int, Season] = field(default_factory=dict)
    season_rewards: dict[int, SeasonReward] = field(default_factory=dict)
    season_archives: dict[tuple[int, int], SeasonArchive] = field(default_factory=dict)
    claimed_rewards: set[tuple[int, int]] = field(default_factory=set)
    challenge_templates: dict[int, ChallengeTemplate] = field(default_factory=dict)
    challenges: dict[int, Challenge] = field(default_factory=dict)
    user_challenges: dict[tuple[int, int], UserChallenge] = field(default_factory=dict)
    achievements: dict[int, Achievement] = field(default_factory=dict)
    user_achievements: dict[tuple[int, int], UserAchievement] = field(default_factory=dict)
    personal_goals: dict[int, PersonalGoal] = field(default_factory=dict)
    cosmetics: dict[int, Cosmetic] = field(default_factory=dict)
    user_cosmetics: dict[tuple[int, int], UserCosmetic] = field(default_factory=dict)
    game_sessions: dict[uuid.UUID, GameSession] = field(default_factory=dict)
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1), repr=False)

    def next_id(self) -> int:
        return next(self._ids)

    @asynccontextmanager
    async def scope(self) -> AsyncIterator[RepositoryScope]:
        """Open a unit of work over this store."""
        yield RepositoryScope(
            users=InMemoryUserRepository(self),
            gamification=InMemoryGamificationRepository(self),
            game_sessions=InMemoryGameSessionRepository(self),
        )


class InMemoryUserRepository(UserRepository):
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_by_id(self, user_id: int) -> User | None:
        return copy.deepcopy(self._store.users.get(user_id))

    async def add(self, user: User) -> User:
        if not user.id:
            user.id = self._store.next_id()
        self._store.users[user.id] = copy.deepcopy(user)
        return user

    async def update(self, user: User) -> None:
        if user.id not in self._store.users:
            msg = f"User {user.id} is not stored"
            raise KeyError(msg)
        self._store.users[user.id] = copy.deepcopy(user)

    async def get_all(self) -> Sequence[User]:
        return [copy.deepcopy(u) for u in self._store.users.values()]

    async def get_users_with_active_streaks(self) -> Sequence[User]:
        return [copy.deepcopy(u) for u in self._store.users.values() if u.current_streak > 0]

    async def try_claim_streak_notification(
        self,
        user_id: int,
        cooldown_hours: int,
        now: datetime | None = None,
    ) -> bool:
        now = _now(now)
        user = self._store.users.get(user_id)
        if user is None:
            return False
        last_sent = user.last_streak_notification_sent_at
        if last_sent is not None and last_sent >= now - timedelta(hours=cooldown_hours):
            return False
        user.record_streak_notification_sent(now)
        return True

    async def is_username_taken(self, username: str, exclude_user_id: int | None = None) -> bool:
        wanted = username.lower()
        return any(
            u.username is not None and u.username.lower() == wanted and u.id != exclude_user_id
            for u in self._store.users.values()
        )


class InMemoryGamificationRepository(GamificationRepository):
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def _insert(self, table: dict, entity):  # type: ignore[no-untyped-def]
        if not entity.id:
            entity.id = self._store.next_id()
        table[entity.id] = copy.deepcopy(entity)
        return entity

    # --- Seasons ---

    async def get_current_season(self, now: datetime | None = None) -> Season | None:
        now = _now(now)
        for season in sorted(self._store.seasons.values(), key=lambda s: s.number):
            if season.is_active and season.contains(now):
                return copy.deepcopy(season)
        return None

    async def get_all_seasons(self) -> Sequence[Season]:
        return [copy.deepcopy(s) for s in sorted(self._store.seasons.values(), key=lambda s: s.number)]

    async def get_season_by_id(self, season_id: int) -> Season | None:
        return copy.deepcopy(self._store.seasons.get(season_id))

    async def add_season(self, season: Season) -> Season:
        return self._insert(self._store.seasons, season)

    async def update_season(self, season: Season) -> None:
        self._store.seasons[season.id] = copy.deepcopy(season)

    async def add_season_archive(self, archive: SeasonArchive) -> None:
        key = (archive.user_id, archive.season_id)
        if key in self._store.season_archives:
            msg = f"Season {archive.season_id} already archived for user {archive.user_id}"
            raise DuplicateEntityError(msg)
        self._store.season_archives[key] = replace(archive, id=self._store.next_id())

    async def get_season_archives(self, user_id: int) -> Sequence[SeasonArchive]:
        return [a for (uid, _), a in self._store.season_archives.items() if uid == user_id]

    # --- Season rewards ---

    async def get_season_rewards(self, season_id: int) -> Sequence[SeasonReward]:
        rewards = [r for r in self._store.season_rewards.values() if r.season_id == season_id]
        return [copy.deepcopy(r) for r in sorted(rewards, key=lambda r: r.tier)]

    async def get_season_reward_by_id(self, reward_id: int) -> SeasonReward | None:
        return copy.deepcopy(self._store.season_rewards.get(reward_id))

    async def add_season_reward(self, reward: SeasonReward) -> SeasonReward:
        return self._insert(self._store.season_rewards, reward)

    async def get_claimed_reward_ids(self, user_id: int, season_id: int) -> set[int]:
        return {
            reward_id
            for uid, reward_id in self._store.claimed_rewards
            if uid == user_id
            and reward_id in self._store.season_rewards
            and self._store.season_rewards[reward_id].season_id == season_id
        }

    async def try_add_claimed_reward(self, user_id: int, reward_id: int) -> bool:
        key = (user_id, reward_id)
        if key in self._store.claimed_rewards:
            return False
        self._store.claimed_rewards.add(key)
        return True

    async def remove_claimed_reward(self, user_id: int, reward_id: int) -> None:
        self._store.claimed_rewards.discard((user_id, reward_id))

    # --- Challenges ---

    async def get_active_challenges(self, challenge_type: ChallengeType | None = None) -> Sequence[Challenge]:
        return [
            copy.deepcopy(c)
            for c in self._store.challenges.values()
            if c.is_active and (challenge_type is None or c.type == challenge_type)
        ]

    async def get_challenge_by_id(self, challenge_id: int) -> Challenge | None:
        return copy.deepcopy(self._store.challenges.get(challenge_id))

    async def add_challenge(self, challenge: Challenge) -> Challenge:
        if challenge.template_id is not None:
            for existing in self._store.challenges.values():
                if (
                    existing.template_id == challenge.template_id
                    and existing.is_active
                    and existing.end_date >= challenge.start_date
                ):
                    msg = f"Template {challenge.template_id} already has an active challenge"
                    raise DuplicateEntityError(msg)
        return self._insert(self._store.challenges, challenge)

    async def update_challenge(self, challenge: Challenge) -> None:
        self._store.challenges[challenge.id] = copy.deepcopy(challenge)

    async def get_challenge_templates(
        self,
        challenge_type: ChallengeType | None = None,
    ) -> Sequence[ChallengeTemplate]:
        return [
            copy.deepcopy(t)
            for t in self._store.challenge_templates.values()
            if t.is_active and (challenge_type is None or t.type == challenge_type)
        ]

    async def add_challenge_template(self, template: ChallengeTemplate) -> ChallengeTemplate:
        return self._insert(self._store.challenge_templates, template)

    async def get_user_challenge(self, user_id: int, challenge_id: int) -> UserChallenge | None:
        return copy.deepcopy(self._store.user_challenges.get((user_id, challenge_id)))

    async def get_user_challenges(self, user_id: int) -> Sequence[UserChallenge]:
        return [copy.deepcopy(uc) for (uid, _), uc in self._store.user_challenges.items() if uid == user_id]

    async def add_user_challenge(self, user_challenge: UserChallenge) -> UserChallenge:
        key = (user_challenge.user_id, user_challenge.challenge_id)
        if key in self._store.user_challenges:
            msg = f"User {key[0]} already tracks challenge {key[1]}"
            raise DuplicateEntityError(msg)
        if not user_challenge.id:
            user_challenge.id = self._store.next_id()
        self._store.user_challenges[key] = copy.deepcopy(user_challenge)
        return user_challenge

    async def update_user_challenge(self, user_challenge: UserChallenge) -> None:
        key = (user_challenge.user_id, user_challenge.challenge_id)
        self._store.user_challenges[key] = copy.deepcopy(user_challenge)

    async def get_completed_challenge_count(self, user_id: int) -> int:
        return sum(1 for (uid, _), uc in self._store.user_challenges.items() if uid == user_id and uc.is_completed)

    # --- Achievements ---

    async def get_all_achievements(self) -> Sequence[Achievement]:
        return [copy.deepcopy(a) for a in sorted(self._store.achievements.values(), key=lambda a: a.display_order)]

    async def add_achievement(self, achievement: Achievement) -> Achievement:
        return self._insert(self._store.achievements, achievement)

    async def get_user_achievements(self, user_id: int) -> Sequence[UserAchievement]:
        return [copy.deepcopy(ua) for (uid, _), ua in self._store.user_achievements.items() if uid == user_id]

    async def add_user_achievement(self, user_achievement: UserAchievement) -> UserAchievement:
        key = (user_achievement.user_id, user_achievement.achievement_id)
        if key in self._store.user_achievements:
            msg = f"User {key[0]} already tracks achievement {key[1]}"
            raise DuplicateEntityError(msg)
        if not user_achievement.id:
            user_achievement.id = self._store.next_id()
        self._store.user_achievements[key] = copy.deepcopy(user_achievement)
        return user_achievement

    async def update_user_achievement(self, user_achievement: UserAchievement) -> None:
        key = (user_achievement.user_id, user_achievement.achievement_id)
        self._store.user_achievements[key] = copy.deepcopy(user_achievement)

    # --- Personal goals ---

    async def get_active_personal_goals(self, user_id: int, now: datetime | None = None) -> Sequence[PersonalGoal]:
        now = _now(now)
        return [
            copy.deepcopy(g)
            for g in self._store.personal_goals.values()
            if g.user_id == user_id and not g.is_completed and not g.is_expired(now)
        ]

    async def add_personal_goal(self, goal: PersonalGoal) -> PersonalGoal:
        return self._insert(self._store.personal_goals, goal)

    async def update_personal_goal(self, goal: PersonalGoal) -> None:
        self._store.personal_goals[goal.id] = copy.deepcopy(goal)

    # --- Cosmetics ---

    async def get_all_cosmetics(self) -> Sequence[Cosmetic]:
        return [copy.deepcopy(c) for c in self._store.cosmetics.values()]

    async def get_cosmetic_by_id(self, cosmetic_id: int) -> Cosmetic | None:
        return copy.deepcopy(self._store.cosmetics.get(cosmetic_id))

    async def get_cosmetic_by_code(self, code: str) -> Cosmetic | None:
        for cosmetic in self._store.cosmetics.values():
            if cosmetic.code == code:
                return copy.deepcopy(cosmetic)
        return None

    async def add_cosmetic(self, cosmetic: Cosmetic) -> Cosmetic:
        return self._insert(self._store.cosmetics, cosmetic)

    async def get_user_cosmetics(self, user_id: int) -> Sequence[UserCosmetic]:
        return [copy.deepcopy(uc) for (uid, _), uc in self._store.user_cosmetics.items() if uid == user_id]

    async def try_add_user_cosmetic(self, user_cosmetic: UserCosmetic) -> bool:
        key = (user_cosmetic.user_id, user_cosmetic.cosmetic_id)
        if key in self._store.user_cosmetics:
            return False
        if not user_cosmetic.id:
            user_cosmetic.id = self._store.next_id()
        self._store.user_cosmetics[key] = copy.deepcopy(user_cosmetic)
        return True


class InMemoryGameSessionRepository(GameSessionRepository):
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_by_id(self, session_id: uuid.UUID) -> GameSession | None:
        return copy.deepcopy(self._store.game_sessions.get(session_id))

    async def get_by_user(self, user_id: int, limit: int | None = None) -> Sequence[GameSession]:
        sessions = [
            s for s in self._store.game_sessions.values() if s.user_id == user_id and s.status is GameStatus.ENDED
        ]
        sessions.sort(key=lambda s: s.ended_at or s.started_at, reverse=True)
        if limit is not None:
            sessions = sessions[:limit]
        return [copy.deepcopy(s) for s in sessions]

    async def add(self, session: GameSession) -> GameSession:
        self._store.game_sessions[session.id] = copy.deepcopy(session)
        return session
