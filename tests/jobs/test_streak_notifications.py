"""Streak expiry reminder job."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from factories import NOW, make_user
from pfg.jobs.streak_notifications import (
    NOTIFICATION_COOLDOWN_HOURS,
    NOTIFICATION_WINDOW_MAX_HOURS,
    NOTIFICATION_WINDOW_MIN_HOURS,
    StreakExpiryNotificationJob,
    in_notification_window,
)

# 21:00 UTC: three hours before midnight for UTC users
EVENING = NOW.replace(hour=21)


@pytest.fixture
def email_service():
    service = MagicMock()
    service.send_streak_expiry_notification = AsyncMock(return_value=True)
    return service


async def _add_users(store, *users) -> None:
    async with store.scope() as repos:
        for user in users:
            await repos.users.add(user)


class TestWindow:
    def test_constants(self):
        assert NOTIFICATION_COOLDOWN_HOURS == 24
        assert (NOTIFICATION_WINDOW_MIN_HOURS, NOTIFICATION_WINDOW_MAX_HOURS) == (2, 4)

    @pytest.mark.parametrize(("hours", "expected"), [(1.99, False), (2, True), (3.5, True), (4, True), (4.01, False)])
    def test_bounds_inclusive(self, hours, expected):
        assert in_notification_window(hours) is expected


class TestExecuteNotification:
    @pytest.mark.asyncio
    async def test_sends_to_users_in_window(self, store, email_service):
        await _add_users(store, make_user(1, current_streak=5))

        sent = await StreakExpiryNotificationJob(store.scope, email_service).execute_notification(EVENING)

        assert sent == 1
        email_service.send_streak_expiry_notification.assert_awaited_once_with("player@example.com", "Player 1", 5, 3)

    @pytest.mark.asyncio
    async def test_uses_local_midnight(self, store, email_service):
        # 15:00 UTC is 22:00 in Bangkok and 10:00 in New York
        await _add_users(
            store,
            make_user(1, current_streak=2, tz="Asia/Bangkok"),
            make_user(2, current_streak=2, tz="America/New_York"),
        )

        sent = await StreakExpiryNotificationJob(store.scope, email_service).execute_notification(NOW)

        assert sent == 1
        email_service.send_streak_expiry_notification.assert_awaited_once_with("player@example.com", "Player 1", 2, 2)

    @pytest.mark.asyncio
    async def test_skips_users_without_streak_or_email(self, store, email_service):
        await _add_users(store, make_user(1), make_user(2, current_streak=3, email=None))

        sent = await StreakExpiryNotificationJob(store.scope, email_service).execute_notification(EVENING)

        assert sent == 0
        email_service.send_streak_expiry_notification.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cooldown(self, store, email_service):
        await _add_users(store, make_user(1, current_streak=5))
        job = StreakExpiryNotificationJob(store.scope, email_service)

        assert await job.execute_notification(EVENING) == 1
        assert await job.execute_notification(EVENING + timedelta(hours=1)) == 0
        assert await job.execute_notification(EVENING + timedelta(days=1, minutes=1)) == 1

    @pytest.mark.asyncio
    async def test_failed_send_keeps_claim(self, store, email_service):
        """A reminder that failed to send is not retried within the cooldown."""
        email_service.send_streak_expiry_notification.side_effect = RuntimeError("smtp down")
        await _add_users(store, make_user(1, current_streak=5), make_user(2, current_streak=1))
        job = StreakExpiryNotificationJob(store.scope, email_service)

        assert await job.execute_notification(EVENING) == 0
        assert email_service.send_streak_expiry_notification.await_count == 2

        email_service.send_streak_expiry_notification.side_effect = None
        assert await job.execute_notification(EVENING + timedelta(minutes=30)) == 0
        async with store.scope() as repos:
            assert (await repos.users.get_by_id(1)).last_streak_notification_sent_at == EVENING

    @pytest.mark.asyncio
    async def test_undelivered_not_counted(self, store, email_service):
        email_service.send_streak_expiry_notification.return_value = False
        await _add_users(store, make_user(1, current_streak=5))

        assert await StreakExpiryNotificationJob(store.scope, email_service).execute_notification(EVENING) == 0

    @pytest.mark.asyncio
    async def test_concurrent_runs_send_once(self, store, email_service):
        """Two overlapping job runs over one store send a single reminder."""
        await _add_users(store, make_user(1, current_streak=5))
        first = StreakExpiryNotificationJob(store.scope, email_service)
        second = StreakExpiryNotificationJob(store.scope, email_service)

        results = await asyncio.gather(first.execute_notification(EVENING), second.execute_notification(EVENING))

        assert sorted(results) == [0, 1]
        email_service.send_streak_expiry_notification.assert_awaited_once()
