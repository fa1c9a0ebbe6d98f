"""Problem-order persistence: courier comments and photo evidence."""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from staffbot.db.engine import async_session_factory
from staffbot.models.problem_order import ProblemOrder, ProblemOrderPhoto

logger = logging.getLogger(__name__)


class ProblemOrderRepository:
    """Stateless writes against problem_orders / problem_order_photos."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session_factory) -> None:
        self._session_factory = session_factory

    async def save_courier_comment(self, order_id: str, comment: str) -> bool:
        """Store the courier's explanation. Returns False if the order does not exist or the write failed."""
        try:
            async with self._session_factory() as db:
                result = await db.execute(select(ProblemOrder).where(ProblemOrder.order_id == order_id))
                order = result.scalar_one_or_none()
                if order is None:
                    logger.warning("Problem order %s not found, comment dropped", order_id)
                    return False
                order.courier_comment = comment
                await db.commit()
        except SQLAlchemyError:
            logger.exception("Failed to save courier comment for order %s", order_id)
            return False
        return True

    async def replace_photos(self, order_id: str, urls: list[str]) -> int:
        """Replace the order's photo set with *urls* (1-based index). Returns rows written.

        Old rows are deleted in the same transaction, so the order never
        carries a mix of two uploads.
        """
        async with self._session_factory() as db:
            await db.execute(delete(ProblemOrderPhoto).where(ProblemOrderPhoto.order_id == order_id))
            for index, url in enumerate(urls, start=1):
                db.add(ProblemOrderPhoto(order_id=order_id, url=url, index=index))
            await db.commit()

        logger.info("[photos_saved] order %s now has %d photo(s)", order_id, len(urls))
        return len(urls)


# Module-level singleton
problem_order_repository = ProblemOrderRepository()
