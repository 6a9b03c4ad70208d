"""Streak transitions: continue, freeze, break, same-day no-op."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from factories import make_user
from pfg.gamification.streak_service import StreakService


def _service() -> tuple[StreakService, AsyncMock]:
    users = AsyncMock()
    return StreakService(users), users


def _at(day: int, hour: int = 12) -> datetime:
    return datetime(2026, 1, day, hour, 0, tzinfo=timezone.utc)


class TestUpdateStreak:
    """State machine driven by the local calendar day of the game end."""

    @pytest.mark.asyncio
    async def test_first_game_starts_streak(self):
        service, users = _service()
        user = make_user()

        result = await service.update_streak(user, _at(9))

        assert result.success
        assert result.new_streak == 1
        assert result.longest_streak == 1
        assert not result.streak_broken
        assert not result.used_freeze
        assert user.last_played_date == date(2026, 1, 9)
        users.update.assert_awaited_once_with(user)

    @pytest.mark.asyncio
    async def test_consecutive_day_increments(self):
        service, _ = _service()
        user = make_user(current_streak=3, last_played=date(2026, 1, 8))

        result = await service.update_streak(user, _at(9))

        assert result.new_streak == 4
        assert result.longest_streak == 4

    @pytest.mark.asyncio
    async def test_same_day_is_noop(self):
        service, users = _service()
        user = make_user(current_streak=3, last_played=date(2026, 1, 9))

        first = await service.update_streak(user, _at(9, 8))
        second = await service.update_streak(user, _at(9, 22))

        assert first.new_streak == second.new_streak == 3
        assert not second.streak_broken
        assert user.last_played_date == date(2026, 1, 9)
        users.update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_one_missed_day_with_token_uses_freeze(self):
        """Streak 5, last played Jan 7, one token, plays Jan 9: freeze covers Jan 8."""
        service, users = _service()
        user = make_user(current_streak=5, last_played=date(2026, 1, 7), freeze_tokens=1)

        result = await service.update_streak(user, _at(9))

        assert result.new_streak == 7
        assert result.used_freeze
        assert not result.streak_broken
        assert user.streak_freeze_tokens == 0
        assert user.last_played_date == date(2026, 1, 9)
        users.update.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_one_missed_day_without_token_breaks(self):
        service, _ = _service()
        user = make_user(current_streak=5, last_played=date(2026, 1, 7), freeze_tokens=0)

        result = await service.update_streak(user, _at(9))

        assert result.new_streak == 1
        assert result.streak_broken
        assert not result.used_freeze
        assert result.longest_streak == 5

    @pytest.mark.asyncio
    async def test_multi_day_gap_breaks_even_with_tokens(self):
        """Only a single missed day is freeze-eligible."""
        service, _ = _service()
        user = make_user(current_streak=5, last_played=date(2026, 1, 5), freeze_tokens=3)

        result = await service.update_streak(user, _at(9))

        assert result.new_streak == 1
        assert result.streak_broken
        assert not result.used_freeze
        assert user.streak_freeze_tokens == 3

    @pytest.mark.asyncio
    async def test_earlier_day_does_not_rewind(self):
        service, users = _service()
        user = make_user(current_streak=4, last_played=date(2026, 1, 9))

        result = await service.update_streak(user, _at(8))

        assert result.new_streak == 4
        assert user.last_played_date == date(2026, 1, 9)
        users.update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_local_day_decides(self):
        """01:00 UTC on the 10th is still the 9th in Los Angeles: same day."""
        service, _ = _service()
        user = make_user(current_streak=2, last_played=date(2026, 1, 9), tz="America/Los_Angeles")

        result = await service.update_streak(user, datetime(2026, 1, 10, 1, 0, tzinfo=timezone.utc))

        assert result.new_streak == 2

    @pytest.mark.asyncio
    async def test_invalid_timezone_uses_utc(self):
        service, _ = _service()
        user = make_user(current_streak=2, last_played=date(2026, 1, 9), tz="Not/AZone")

        result = await service.update_streak(user, datetime(2026, 1, 10, 1, 0, tzinfo=timezone.utc))

        assert result.new_streak == 3

    @pytest.mark.asyncio
    async def test_longest_never_below_current(self):
        service, _ = _service()
        user = make_user()
        previous_longest = 0
        for day in (1, 2, 3, 3, 4, 7, 8, 9, 10, 11, 12):
            result = await service.update_streak(user, _at(day))
            assert result.longest_streak >= result.new_streak
            assert result.longest_streak >= previous_longest
            previous_longest = result.longest_streak
        assert user.longest_streak == 6
        assert user.current_streak == 6


class TestUseStreakFreeze:
    @pytest.mark.asyncio
    async def test_consumes_token(self):
        service, users = _service()
        user = make_user(freeze_tokens=2)

        assert await service.use_streak_freeze(user)
        assert user.streak_freeze_tokens == 1
        users.update.assert_awaited_once_with(user)

    @pytest.mark.asyncio
    async def test_no_tokens(self):
        service, users = _service()
        user = make_user(freeze_tokens=0)

        assert not await service.use_streak_freeze(user)
        assert user.streak_freeze_tokens == 0
        users.update.assert_not_awaited()


class TestStreakResetTime:
    def test_utc_user(self):
        service, _ = _service()
        user = make_user(current_streak=1)
        assert service.get_streak_reset_time(user, _at(9, 15)) == datetime(2026, 1, 10, tzinfo=timezone.utc)

    def test_zoned_user(self):
        service, _ = _service()
        user = make_user(current_streak=1, tz="Europe/Berlin")
        # CET is UTC+1 in January
        assert service.get_streak_reset_time(user, _at(9, 15)) == datetime(2026, 1, 9, 23, tzinfo=timezone.utc)


class TestIsStreakAtRisk:
    def test_within_last_hour(self):
        service, _ = _service()
        user = make_user(current_streak=3)
        assert service.is_streak_at_risk(user, datetime(2026, 1, 9, 23, 30, tzinfo=timezone.utc))

    def test_exactly_one_hour_left(self):
        service, _ = _service()
        user = make_user(current_streak=3)
        assert service.is_streak_at_risk(user, datetime(2026, 1, 9, 23, 0, tzinfo=timezone.utc))

    def test_more_than_an_hour_left(self):
        service, _ = _service()
        user = make_user(current_streak=3)
        assert not service.is_streak_at_risk(user, datetime(2026, 1, 9, 22, 59, tzinfo=timezone.utc))

    def test_no_streak_is_never_at_risk(self):
        service, _ = _service()
        user = make_user(current_streak=0)
        assert not service.is_streak_at_risk(user, datetime(2026, 1, 9, 23, 30, tzinfo=timezone.utc))

    def test_uses_local_midnight(self):
        service, _ = _service()
        user = make_user(current_streak=3, tz="America/New_York")
        now = datetime(2026, 1, 10, 4, 30, tzinfo=timezone.utc)  # 23:30 in New York
        assert service.is_streak_at_risk(user, now)
        assert not service.is_streak_at_risk(user, now - timedelta(hours=2))
