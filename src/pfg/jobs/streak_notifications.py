"""Streak expiry notification job.

Runs hourly. Users whose local day ends in 2 to 4 hours and who still have
a live streak get one reminder email per cooldown window. The per-user
claim is written before sending and is kept even if the send fails: a
missed reminder is preferred over a duplicate one.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from pfg.email.service import EmailService
from pfg.gamification.streak_service import StreakService
from pfg.models import User
from pfg.repositories import ScopeFactory

logger = logging.getLogger(__name__)

NOTIFICATION_COOLDOWN_HOURS = 24
NOTIFICATION_WINDOW_MIN_HOURS = 2
NOTIFICATION_WINDOW_MAX_HOURS = 4


def hours_until_reset(streaks: StreakService, user: User, now: datetime) -> float:
    return (streaks.get_streak_reset_time(user, now) - now).total_seconds() / 3600


def in_notification_window(hours: float) -> bool:
    return NOTIFICATION_WINDOW_MIN_HOURS <= hours <= NOTIFICATION_WINDOW_MAX_HOURS


class StreakExpiryNotificationJob:
    def __init__(self, scope_factory: ScopeFactory, email_service: EmailService) -> None:
        self.scope_factory = scope_factory
        self.email_service = email_service

    async def execute_notification(self, now: datetime | None = None) -> int:
        """Run one notification pass. Returns the number of emails sent."""
        if now is None:
            now = datetime.now(timezone.utc)

        async with self.scope_factory() as repos:
            streaks = StreakService(repos.users)
            candidates = await repos.users.get_users_with_active_streaks()

            due: list[tuple[User, float]] = []
            for user in candidates:
                if user.current_streak <= 0 or not user.email:
                    continue
                hours = hours_until_reset(streaks, user, now)
                if in_notification_window(hours):
                    due.append((user, hours))

            sent = 0
            for user, hours in due:
                claimed = await repos.users.try_claim_streak_notification(user.id, NOTIFICATION_COOLDOWN_HOURS, now)
                if not claimed:
                    logger.debug("Streak notification for user %s already claimed", user.id)
                    continue

                try:
                    delivered = await self.email_service.send_streak_expiry_notification(
                        user.email,
                        user.display_name,
                        user.current_streak,
                        round(hours),
                    )
                except Exception:
                    logger.exception("Failed to send streak notification to user %s", user.id)
                    continue

                if delivered:
                    sent += 1
                else:
                    logger.warning("Streak notification to user %s was not delivered", user.id)

            logger.info("Streak notifications: %d due, %d sent", len(due), sent)
            return sent
