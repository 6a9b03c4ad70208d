"""Exception types raised by the gamification engine.

Validation problems in entity factories raise ``ValueError`` directly.
Business-rule failures (insufficient tier, already claimed, ...) are never
raised: command handlers return them as failed ``CommandResult`` values.
"""

from __future__ import annotations


class GamificationError(Exception):
    """Base class for engine errors."""


class EntityNotFoundError(GamificationError, LookupError):
    """A user, game session, challenge or season the caller referenced does not exist."""

    def __init__(self, entity: str, entity_id: object) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class OwnershipError(GamificationError):
    """A game session was submitted for a user who did not play it."""


class DuplicateEntityError(GamificationError):
    """A unique key (archive per user/season, challenge per template window) already exists."""
