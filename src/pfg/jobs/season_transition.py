"""Season transition job.

Does nothing while an active season still covers now. Otherwise every
user's standing in each ended season is archived, season progress is
reset, ended seasons are deactivated and the season covering now (if any)
is activated.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from pfg.exceptions import DuplicateEntityError
from pfg.models import Season, SeasonArchive, User
from pfg.repositories import GamificationRepository, ScopeFactory, UserRepository

logger = logging.getLogger(__name__)


def select_next_season(seasons: Sequence[Season], now: datetime) -> Season | None:
    """Lowest-numbered inactive season whose date range contains ``now``."""
    candidates = [s for s in seasons if not s.is_active and s.contains(now)]
    return min(candidates, key=lambda s: s.number, default=None)


class SeasonTransitionJob:
    def __init__(self, scope_factory: ScopeFactory) -> None:
        self.scope_factory = scope_factory

    async def execute_transition(self, now: datetime | None = None) -> int:
        """Run one transition check. Returns the number of archive rows written."""
        if now is None:
            now = datetime.now(timezone.utc)

        async with self.scope_factory() as repos:
            current = await repos.gamification.get_current_season(now)
            if current is not None:
                logger.debug("Season %s is current, nothing to transition", current.number)
                return 0

            seasons = await repos.gamification.get_all_seasons()
            ended = [s for s in seasons if s.is_active and s.has_ended(now)]
            next_season = select_next_season(seasons, now)
            if not ended and next_season is None:
                logger.warning("No current season and no season scheduled for %s", now.isoformat())
                return 0

            archived = 0
            if ended:
                users = await repos.users.get_all()
                for season in ended:
                    count = await self._archive(repos.gamification, users, season)
                    logger.info("Archived %d users for season %s", count, season.number)
                    archived += count
                await self._reset_users(repos.users, users)
                for season in ended:
                    season.deactivate()
                    await repos.gamification.update_season(season)
                    logger.info("Season %s (%s) ended", season.number, season.name)

            if next_season is None:
                logger.warning("No season available to activate after transition")
            else:
                next_season.activate()
                await repos.gamification.update_season(next_season)
                logger.info("Activated season %s (%s)", next_season.number, next_season.name)

            return archived

    async def _archive(self, gamification: GamificationRepository, users: Sequence[User], season: Season) -> int:
        written = 0
        for user in users:
            archive = SeasonArchive.create(user.id, season.id, user.season_pass_xp, user.current_season_tier)
            try:
                await gamification.add_season_archive(archive)
            except DuplicateEntityError:
                logger.debug("User %s already archived for season %s", user.id, season.id)
                continue
            written += 1
        return written

    async def _reset_users(self, users_repo: UserRepository, users: Sequence[User]) -> None:
        for user in users:
            if user.season_pass_xp == 0 and user.current_season_tier == 0:
                continue
            user.reset_season_progress()
            await users_repo.update(user)
