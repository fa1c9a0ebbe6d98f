"""Units a signed-in manager can set up a group chat for."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from staffbot.db.engine import async_session_factory
from staffbot.models.staff import StaffMessengerLink
from staffbot.models.unit import StaffUnit, Unit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnitOption:
    id: str
    name: str


class UnitRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session_factory) -> None:
        self._session_factory = session_factory

    async def find_units_without_chat(self, messenger_user_id: int) -> list[UnitOption]:
        """Units managed by the staff member signed in from *messenger_user_id* that have no group chat yet."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(Unit)
                .join(StaffUnit, StaffUnit.unit_id == Unit.id)
                .join(StaffMessengerLink, StaffMessengerLink.staff_id == StaffUnit.staff_id)
                .where(StaffMessengerLink.messenger_user_id == messenger_user_id)
                .where(Unit.supply_chat_id.is_(None))
                .order_by(Unit.name)
            )
            return [UnitOption(id=str(unit.id), name=unit.name) for unit in result.scalars().unique().all()]

    async def bind_chat(self, unit_id: str, chat_id: int) -> bool:
        """Attach *chat_id* to the unit. False if the unit is gone, already bound, or the write failed."""
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    update(Unit)
                    .where(Unit.id == uuid.UUID(unit_id))
                    .where(Unit.supply_chat_id.is_(None))
                    .values(supply_chat_id=chat_id)
                )
                await db.commit()
        except (SQLAlchemyError, ValueError):
            logger.exception("Failed to bind chat %s to unit %s", chat_id, unit_id)
            return False

        if result.rowcount == 0:
            logger.warning("[chat_bind_skipped] unit %s missing or already has a chat", unit_id)
            return False

        logger.info("[chat_bound] unit %s -> chat %s", unit_id, chat_id)
        return True


# Module-level singleton
unit_repository = UnitRepository()
