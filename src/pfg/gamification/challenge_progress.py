"""Challenge progress earned by one finished game.

Challenges carry an explicit goal type. Rows created before goal types
existed have none and fall back to keyword matching on the description.
The keyword order is significant and kept exactly as is.
"""

from __future__ import annotations

from pfg.models import Challenge, ChallengeGoalType, GameSession


def calculate_progress(challenge: Challenge, session: GameSession) -> int:
    """Progress units ``session`` contributes towards ``challenge``."""
    goal_type = challenge.goal_type
    if goal_type is None:
        return _legacy_progress(challenge, session)

    if goal_type is ChallengeGoalType.SCORE_TOTAL:
        return session.score
    if goal_type is ChallengeGoalType.SCORE_SINGLE_GAME:
        return 1 if session.score >= challenge.target_value else 0
    if goal_type is ChallengeGoalType.TIME_BASED:
        minutes = session.duration_minutes
        return minutes if minutes is not None else 1
    # GAME_COUNT, WIN_STREAK, ACCURACY: one game counts as one unit
    return 1


def _legacy_progress(challenge: Challenge, session: GameSession) -> int:
    description = (challenge.description or "").lower()

    if "single game" in description:
        return 1 if session.score >= challenge.target_value else 0
    if "games" in description or "play" in description:
        return 1
    if "row" in description or "streak" in description:
        return 1
    if "points" in description or "score" in description:
        return session.score
    return 1
