"""Cosmetic ownership and equipping."""

from __future__ import annotations

import logging

from pfg.gamification.schemas import EquipResult
from pfg.models import Cosmetic, ObtainedFrom, User, UserCosmetic
from pfg.repositories import GamificationRepository, UserRepository

logger = logging.getLogger(__name__)

COSMETIC_NOT_FOUND = "Cosmetic not found."
COSMETIC_NOT_OWNED = "You do not own this cosmetic."


class CosmeticService:
    def __init__(self, users: UserRepository, gamification: GamificationRepository) -> None:
        self.users = users
        self.gamification = gamification

    async def grant_cosmetic(self, user: User, cosmetic_id: int, source: ObtainedFrom) -> bool:
        """Give ``user`` a cosmetic. Already owning it counts as success.

        Returns False only when the cosmetic does not exist.
        """
        cosmetic = await self.gamification.get_cosmetic_by_id(cosmetic_id)
        if cosmetic is None:
            logger.warning("Cannot grant unknown cosmetic %s to user %s", cosmetic_id, user.id)
            return False
        if await self.gamification.try_add_user_cosmetic(UserCosmetic.create(user.id, cosmetic.id, source)):
            logger.info("Granted cosmetic %s to user %s (%s)", cosmetic.code, user.id, source.value)
        return True

    async def grant_cosmetic_by_code(self, user: User, code: str, source: ObtainedFrom) -> bool:
        cosmetic = await self.gamification.get_cosmetic_by_code(code)
        if cosmetic is None:
            logger.warning("Cannot grant unknown cosmetic code %s to user %s", code, user.id)
            return False
        return await self.grant_cosmetic(user, cosmetic.id, source)

    async def user_owns_cosmetic(self, user: User, cosmetic: Cosmetic) -> bool:
        if cosmetic.is_default:
            return True
        owned = await self.gamification.get_user_cosmetics(user.id)
        return any(uc.cosmetic_id == cosmetic.id for uc in owned)

    async def equip_cosmetic(self, user: User, cosmetic_id: int) -> EquipResult:
        cosmetic = await self.gamification.get_cosmetic_by_id(cosmetic_id)
        if cosmetic is None:
            return EquipResult(success=False, error=COSMETIC_NOT_FOUND)
        if not await self.user_owns_cosmetic(user, cosmetic):
            return EquipResult(success=False, error=COSMETIC_NOT_OWNED)

        user.equip_cosmetic(cosmetic.type, cosmetic.id)
        await self.users.update(user)
        return EquipResult(success=True)
