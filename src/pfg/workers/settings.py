"""arq worker settings module.

Import path for arq CLI: arq pfg.workers.settings.GamificationWorkerSettings
"""

from __future__ import annotations

from pfg.workers.gamification_worker import GamificationWorkerSettings

__all__ = ["GamificationWorkerSettings"]
