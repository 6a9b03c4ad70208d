"""Daily play streaks with freeze-token grace days.

Days are local calendar days in the user's timezone. One missed day can be
covered by one freeze token; a longer gap always resets the streak.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from pfg.gamification.schemas import StreakResult
from pfg.gamification.timezones import local_date, next_local_midnight_utc
from pfg.models import User
from pfg.repositories import UserRepository

logger = logging.getLogger(__name__)

STREAK_AT_RISK_WINDOW = timedelta(hours=1)

# The only gap a freeze token can bridge: one missed day between plays.
FREEZE_ELIGIBLE_GAP_DAYS = 2


class StreakService:
    """Streak transitions on game end, plus reset-time queries."""

    def __init__(self, users: UserRepository) -> None:
        self.users = users

    async def update_streak(self, user: User, game_end_time: datetime) -> StreakResult:
        """Apply one finished game at ``game_end_time`` to the user's streak."""
        today = local_date(game_end_time, user.timezone)
        last = user.last_played_date
        gap_days = (today - last).days if last is not None else None

        # Same day, or an out-of-order event for an earlier day.
        if gap_days is not None and gap_days <= 0:
            return StreakResult(
                success=True,
                new_streak=user.current_streak,
                longest_streak=user.longest_streak,
            )

        original_streak = user.current_streak
        used_freeze = False
        streak_broken = False

        if gap_days is None or gap_days == 1:
            user.update_streak(today)
        elif gap_days == FREEZE_ELIGIBLE_GAP_DAYS and user.use_streak_freeze():
            user.update_streak(today - timedelta(days=1))
            user.update_streak(today)
            used_freeze = True
            logger.info("User %s used a streak freeze, streak now %d", user.id, user.current_streak)
        else:
            user.update_streak(today)
            streak_broken = original_streak > 0
            if streak_broken:
                logger.info("User %s broke a %d day streak", user.id, original_streak)

        await self.users.update(user)

        return StreakResult(
            success=True,
            new_streak=user.current_streak,
            longest_streak=user.longest_streak,
            streak_broken=streak_broken,
            used_freeze=used_freeze,
        )

    async def use_streak_freeze(self, user: User) -> bool:
        """Spend one freeze token. False, with nothing persisted, when none are left."""
        if not user.use_streak_freeze():
            return False
        await self.users.update(user)
        return True

    def get_streak_reset_time(self, user: User, now: datetime | None = None) -> datetime:
        """UTC instant of the user's next local midnight."""
        if now is None:
            now = datetime.now(timezone.utc)
        return next_local_midnight_utc(now, user.timezone)

    def is_streak_at_risk(self, user: User, now: datetime | None = None) -> bool:
        """True within the last hour before the local day rolls over on a live streak."""
        if user.current_streak <= 0:
            return False
        if now is None:
            now = datetime.now(timezone.utc)
        remaining = self.get_streak_reset_time(user, now) - now
        return timedelta(0) < remaining <= STREAK_AT_RISK_WINDOW
