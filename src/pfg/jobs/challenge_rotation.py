"""Challenge rotation job (daily and weekly).

Expired challenges are deactivated. New challenges are created from the
active templates only when no unexpired challenge of the type is left, so
running the job twice in one window creates nothing the second time.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from pfg.exceptions import DuplicateEntityError
from pfg.models import Challenge, ChallengeType
from pfg.repositories import ScopeFactory

logger = logging.getLogger(__name__)

DAILY_CHALLENGE_DURATION = timedelta(hours=24)
WEEKLY_CHALLENGE_DURATION = timedelta(days=7)


def has_valid_active_challenge(challenges: Sequence[Challenge], now: datetime) -> bool:
    return any(c.is_active and not c.has_expired(now) for c in challenges)


class ChallengeRotationJob:
    def __init__(self, scope_factory: ScopeFactory, challenge_type: ChallengeType, duration: timedelta) -> None:
        self.scope_factory = scope_factory
        self.challenge_type = challenge_type
        self.duration = duration

    @classmethod
    def daily(cls, scope_factory: ScopeFactory) -> ChallengeRotationJob:
        return cls(scope_factory, ChallengeType.DAILY, DAILY_CHALLENGE_DURATION)

    @classmethod
    def weekly(cls, scope_factory: ScopeFactory) -> ChallengeRotationJob:
        return cls(scope_factory, ChallengeType.WEEKLY, WEEKLY_CHALLENGE_DURATION)

    async def execute_rotation(self, now: datetime | None = None) -> int:
        """Run one rotation. Returns the number of challenges created."""
        if now is None:
            now = datetime.now(timezone.utc)
        kind = self.challenge_type.value

        async with self.scope_factory() as repos:
            active = await repos.gamification.get_active_challenges(self.challenge_type)

            expired = [c for c in active if c.has_expired(now)]
            for challenge in expired:
                challenge.deactivate()
                await repos.gamification.update_challenge(challenge)
            if expired:
                logger.info("Deactivated %d expired %s challenges", len(expired), kind)

            if has_valid_active_challenge(active, now):
                logger.debug("Valid %s challenges exist, skipping creation", kind)
                return 0

            templates = await repos.gamification.get_challenge_templates(self.challenge_type)
            if not templates:
                logger.warning("No active %s challenge templates to rotate in", kind)
                return 0

            created = 0
            for template in templates:
                challenge = Challenge.create_from_template(template, now, now + self.duration)
                try:
                    await repos.gamification.add_challenge(challenge)
                except DuplicateEntityError:
                    logger.info("Challenge from template %s already created by a concurrent run", template.id)
                    continue
                created += 1

            logger.info("Created %d new %s challenges ending %s", created, kind, (now + self.duration).isoformat())
            return created
