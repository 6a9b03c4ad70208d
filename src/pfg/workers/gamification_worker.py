"""Gamification arq worker: scheduled challenge rotation, season transition
and streak-expiry reminders.

Each task opens its own repository scope through ``ctx["scope_factory"]``.
Startup installs the in-memory store; a deployment backed by a database
replaces ``scope_factory`` in its own startup hook.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from arq import cron
from arq.connections import RedisSettings

from pfg.config import get_settings
from pfg.email.service import EmailService
from pfg.gamification.seed import seed_gamification
from pfg.jobs.challenge_rotation import ChallengeRotationJob
from pfg.jobs.season_transition import SeasonTransitionJob
from pfg.jobs.streak_notifications import StreakExpiryNotificationJob
from pfg.logging_config import setup_logging
from pfg.models import ChallengeType
from pfg.storage.memory import InMemoryStore

logger = logging.getLogger(__name__)


async def gamification_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Wire storage and email on worker startup."""
    settings = get_settings()
    setup_logging(settings)

    if "scope_factory" not in ctx:
        store = InMemoryStore()
        ctx["store"] = store
        ctx["scope_factory"] = store.scope

    # arq provides its own redis pool; reuse it for email rate limiting.
    ctx["email_service"] = EmailService(redis=ctx.get("redis"), settings=settings)

    if settings.seed_on_startup:
        async with ctx["scope_factory"]() as repos:
            await seed_gamification(repos.gamification)

    logger.info("Gamification worker %s started (%s)", settings.app_version, settings.environment)


async def gamification_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Clean up on worker shutdown."""
    ctx.pop("email_service", None)
    logger.info("Gamification worker shut down")


async def rotate_daily_challenges(ctx: dict) -> int:  # type: ignore[type-arg]
    """Scheduled task: hourly daily-challenge rotation check."""
    settings = get_settings()
    job = ChallengeRotationJob(
        ctx["scope_factory"],
        ChallengeType.DAILY,
        timedelta(hours=settings.daily_challenge_duration_hours),
    )
    return await job.execute_rotation()


async def rotate_weekly_challenges(ctx: dict) -> int:  # type: ignore[type-arg]
    """Scheduled task: hourly weekly-challenge rotation check."""
    settings = get_settings()
    job = ChallengeRotationJob(
        ctx["scope_factory"],
        ChallengeType.WEEKLY,
        timedelta(days=settings.weekly_challenge_duration_days),
    )
    return await job.execute_rotation()


async def transition_season(ctx: dict) -> int:  # type: ignore[type-arg]
    """Scheduled task: hourly season end/start check."""
    return await SeasonTransitionJob(ctx["scope_factory"]).execute_transition()


async def notify_expiring_streaks(ctx: dict) -> int:  # type: ignore[type-arg]
    """Scheduled task: hourly streak-expiry reminders."""
    job = StreakExpiryNotificationJob(ctx["scope_factory"], ctx["email_service"])
    return await job.execute_notification()


class GamificationWorkerSettings:
    """arq worker settings for the scheduled gamification jobs."""

    functions = [rotate_daily_challenges, rotate_weekly_challenges, transition_season, notify_expiring_streaks]
    cron_jobs = [
        # Checked hourly: a window can end moments after a run.
        cron(rotate_daily_challenges, minute={0}),
        cron(rotate_weekly_challenges, minute={0}),
        cron(transition_season, minute={5}),
        cron(notify_expiring_streaks, minute={30}),
    ]
    on_startup = gamification_startup
    on_shutdown = gamification_shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    max_jobs = 4
    job_timeout = 300
    allow_abort_jobs = True
