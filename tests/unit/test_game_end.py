"""The game-end pipeline over all engine services."""

from __future__ import annotations

from datetime import timedelta

import pytest

from factories import NOW, add_active_season, add_reward, make_challenge, make_finished_session, make_user
from pfg.config import Settings
from pfg.exceptions import EntityNotFoundError, OwnershipError
from pfg.gamification.commands import GamificationCommands
from pfg.gamification.game_end import season_xp_for_game
from pfg.models import Achievement, AchievementCategory, ChallengeGoalType, PersonalGoal, PersonalGoalType, RewardType


class TestSeasonXpForGame:
    def test_base_plus_score_bonus(self):
        assert season_xp_for_game(0, Settings()) == 10
        assert season_xp_for_game(550, Settings()) == 15

    def test_configurable(self):
        settings = Settings(base_game_xp=20, score_per_bonus_xp=50)
        assert season_xp_for_game(100, settings) == 22


class TestProcess:
    @pytest.mark.asyncio
    async def test_full_pipeline(self, repos):
        user = await repos.users.add(make_user(current_streak=2, last_played=(NOW - timedelta(days=1)).date()))
        session = await repos.game_sessions.add(make_finished_session(user.id, 500))
        season = await add_active_season(repos)
        await add_reward(repos, season, 1)
        challenge = await repos.gamification.add_challenge(
            make_challenge(goal_type=ChallengeGoalType.GAME_COUNT, target=1, xp=100)
        )
        first_game = await repos.gamification.add_achievement(
            Achievement.create(
                "First Game", "", AchievementCategory.GAMES, '{"type": "games", "value": 1}', RewardType.XP_BOOST, 50
            )
        )
        goal = await repos.gamification.add_personal_goal(
            PersonalGoal.create(user.id, PersonalGoalType.BEAT_AVERAGE, "Score 400", 400, NOW + timedelta(hours=2))
        )

        result = await GamificationCommands(repos).game_end.process(user.id, session.id, NOW)

        assert result.streak.new_streak == 3
        assert [(u.challenge_id, u.is_completed, u.xp_earned) for u in result.challenge_updates] == [
            (challenge.id, True, 100)
        ]
        assert result.achievements.unlocked_achievement_ids == [first_game.id]
        # 100 from the challenge, then 10 + 5 for the game itself
        assert result.season.xp_earned == 15
        assert result.season.new_xp == 115
        assert result.season.new_tier == 1
        assert [(g.goal_id, g.is_completed) for g in result.goal_updates] == [(goal.id, True)]

        stored = await repos.users.get_by_id(user.id)
        assert (stored.games_played, stored.high_score) == (1, 500)
        assert (stored.current_streak, stored.season_pass_xp, stored.current_season_tier) == (3, 115, 1)

    @pytest.mark.asyncio
    async def test_completed_challenge_is_skipped_next_game(self, repos):
        user = await repos.users.add(make_user())
        await repos.gamification.add_challenge(make_challenge(target=1, xp=100))
        processor = GamificationCommands(repos).game_end

        first = await repos.game_sessions.add(make_finished_session(user.id, 0))
        second = await repos.game_sessions.add(make_finished_session(user.id, 0, ended_at=NOW + timedelta(minutes=10)))
        await processor.process(user.id, first.id, NOW)
        result = await processor.process(user.id, second.id, NOW + timedelta(minutes=10))

        assert result.challenge_updates == []
        stored = await repos.users.get_by_id(user.id)
        assert stored.season_pass_xp == 100 + 10 + 10

    @pytest.mark.asyncio
    async def test_missing_user(self, repos):
        session = await repos.game_sessions.add(make_finished_session(1, 10))
        with pytest.raises(EntityNotFoundError):
            await GamificationCommands(repos).game_end.process(1, session.id, NOW)

    @pytest.mark.asyncio
    async def test_foreign_session(self, repos):
        await repos.users.add(make_user(1))
        other = await repos.game_sessions.add(make_finished_session(2, 10))
        with pytest.raises(OwnershipError):
            await GamificationCommands(repos).game_end.process(1, other.id, NOW)
