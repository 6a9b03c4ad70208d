"""Command and query handlers."""

from __future__ import annotations

import uuid
from datetime import timedelta

import pytest

from factories import NOW, add_active_season, add_reward, make_challenge, make_finished_session, make_user
from pfg.gamification.commands import NO_ACTIVE_SEASON, NO_FREEZE_TOKENS, TIMEZONE_REQUIRED, GamificationCommands
from pfg.gamification.season_pass_service import REWARD_ALREADY_CLAIMED
from pfg.models import ChallengeGoalType, RewardType


@pytest.fixture
def commands(repos):
    return GamificationCommands(repos)


class TestUserCommands:
    @pytest.mark.asyncio
    async def test_unknown_user(self, commands):
        result = await commands.update_streak(42, NOW)
        assert not result.is_success
        assert result.error == "User 42 not found."

    @pytest.mark.asyncio
    async def test_update_streak(self, repos, commands):
        await repos.users.add(make_user())
        result = await commands.update_streak(1, NOW)
        assert result.is_success
        assert result.value.new_streak == 1

    @pytest.mark.asyncio
    async def test_use_streak_freeze(self, repos, commands):
        await repos.users.add(make_user(freeze_tokens=1))

        first = await commands.use_streak_freeze(1)
        second = await commands.use_streak_freeze(1)

        assert (first.is_success, first.value) == (True, 0)
        assert second.error == NO_FREEZE_TOKENS

    @pytest.mark.asyncio
    async def test_set_timezone(self, repos, commands):
        await repos.users.add(make_user())

        ok = await commands.set_timezone(1, " Europe/Berlin ")
        blank = await commands.set_timezone(1, "")
        bad = await commands.set_timezone(1, "Mars/Olympus")

        assert ok.value == "Europe/Berlin"
        assert (await repos.users.get_by_id(1)).timezone == "Europe/Berlin"
        assert blank.error == TIMEZONE_REQUIRED
        assert bad.error == "Invalid timezone: Mars/Olympus"


class TestSeasonCommands:
    @pytest.mark.asyncio
    async def test_claim_and_reclaim(self, repos, commands):
        await repos.users.add(make_user(season_xp=120))
        season = await add_active_season(repos)
        reward = await add_reward(repos, season, 1, RewardType.STREAK_FREEZE, 2)

        first = await commands.claim_season_reward(1, reward.id)
        second = await commands.claim_season_reward(1, reward.id)

        assert first.is_success
        assert first.value.reward_type is RewardType.STREAK_FREEZE
        assert second.error == REWARD_ALREADY_CLAIMED
        assert (await repos.users.get_by_id(1)).streak_freeze_tokens == 2

    @pytest.mark.asyncio
    async def test_season_pass_view(self, repos, commands):
        await repos.users.add(make_user(season_xp=260))
        season = await add_active_season(repos)
        tier1 = await add_reward(repos, season, 1)
        await add_reward(repos, season, 2)
        await add_reward(repos, season, 3)
        await commands.claim_season_reward(1, tier1.id)

        result = await commands.get_season_pass(1, NOW)

        info = result.value
        assert (info.current_xp, info.current_tier, info.xp_to_next_tier) == (260, 2, 240)
        assert [(r.tier, r.is_claimed, r.can_claim) for r in info.rewards] == [
            (1, True, False),
            (2, False, True),
            (3, False, False),
        ]

    @pytest.mark.asyncio
    async def test_no_active_season(self, repos, commands):
        await repos.users.add(make_user())
        result = await commands.get_season_pass(1, NOW)
        assert result.error == NO_ACTIVE_SEASON


class TestChallengeCommands:
    @pytest.mark.asyncio
    async def test_complete_challenge_adds_xp(self, repos, commands):
        await repos.users.add(make_user())
        challenge = await repos.gamification.add_challenge(
            make_challenge(goal_type=ChallengeGoalType.GAME_COUNT, target=1, xp=75)
        )
        session = await repos.game_sessions.add(make_finished_session(1, 250))

        result = await commands.complete_challenge(1, challenge.id, session.id, NOW)
        again = await commands.complete_challenge(1, challenge.id, session.id, NOW)

        assert result.value.is_completed
        assert result.value.xp_earned == 75
        assert (await repos.users.get_by_id(1)).season_pass_xp == 75
        assert again.error == "Challenge has already been completed."

    @pytest.mark.asyncio
    async def test_expired_challenge(self, repos, commands):
        await repos.users.add(make_user())
        challenge = await repos.gamification.add_challenge(
            make_challenge(start=NOW - timedelta(days=2), end=NOW - timedelta(days=1))
        )
        session = await repos.game_sessions.add(make_finished_session(1, 10))

        result = await commands.complete_challenge(1, challenge.id, session.id, NOW)

        assert result.error == "Challenge is not active."

    @pytest.mark.asyncio
    async def test_foreign_session(self, repos, commands):
        await repos.users.add(make_user())
        challenge = await repos.gamification.add_challenge(make_challenge())
        session = await repos.game_sessions.add(make_finished_session(2, 10))

        result = await commands.complete_challenge(1, challenge.id, session.id, NOW)

        assert not result.is_success
        assert "not a finished game" in result.error


class TestGameEndCommand:
    @pytest.mark.asyncio
    async def test_missing_session_is_a_failure(self, repos, commands):
        await repos.users.add(make_user())
        missing = uuid.uuid4()

        result = await commands.process_game_end(1, missing, NOW)

        assert not result.is_success
        assert result.error == f"Game session {missing} not found"

    @pytest.mark.asyncio
    async def test_success(self, repos, commands):
        await repos.users.add(make_user())
        session = await repos.game_sessions.add(make_finished_session(1, 100))

        result = await commands.process_game_end(1, session.id, NOW)

        assert result.is_success
        assert result.value.season.new_xp == 11


class TestStreakStatus:
    @pytest.mark.asyncio
    async def test_at_risk_near_midnight(self, repos, commands):
        await repos.users.add(make_user(current_streak=4, last_played=NOW.date()))
        late = NOW.replace(hour=23, minute=30)

        result = await commands.get_streak_status(1, late)

        status = result.value
        assert status.current_streak == 4
        assert status.is_at_risk
        assert status.reset_time == (NOW + timedelta(days=1)).replace(hour=0)
