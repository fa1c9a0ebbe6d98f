"""Staff directory queries and identity-link persistence.

One database session per call; results are returned as immutable
snapshots so they can be kept in dialogue sessions after the DB session
is closed.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import exists, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from staffbot.db.engine import async_session_factory
from staffbot.models.enums import ELIGIBLE_STATUSES
from staffbot.models.staff import Staff, StaffMessengerLink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StaffCandidate:
    """Snapshot of a staff row relevant to sign-in."""

    id: uuid.UUID
    first_name: str
    last_name: str
    status: str
    staff_type: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @classmethod
    def from_model(cls, staff: Staff) -> StaffCandidate:
        return cls(
            id=staff.id,
            first_name=staff.first_name,
            last_name=staff.last_name,
            status=staff.status,
            staff_type=staff.staff_type,
        )


class StaffRepository:
    """Read the staff directory and manage staff <-> messenger links."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session_factory) -> None:
        self._session_factory = session_factory

    async def find_staff_by_phone(self, phone: str) -> list[StaffCandidate]:
        """Active or suspended staff registered with *phone* (canonical 7XXXXXXXXXX form)."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(Staff)
                .where(Staff.phone_number == phone)
                .where(Staff.status.in_([s.value for s in ELIGIBLE_STATUSES]))
                .order_by(Staff.last_name, Staff.first_name)
            )
            return [StaffCandidate.from_model(staff) for staff in result.scalars().all()]

    async def has_identity_link(self, staff_id: uuid.UUID) -> bool:
        async with self._session_factory() as db:
            result = await db.execute(
                select(exists().where(StaffMessengerLink.staff_id == staff_id))
            )
            return bool(result.scalar())

    async def create_identity_link(self, staff_id: uuid.UUID, messenger_user_id: int) -> bool:
        """Persist the link. Returns False if the write failed (e.g. already linked)."""
        try:
            async with self._session_factory() as db:
                db.add(StaffMessengerLink(staff_id=staff_id, messenger_user_id=messenger_user_id))
                await db.commit()
        except SQLAlchemyError:
            logger.exception("Failed to link staff %s to messenger user %s", staff_id, messenger_user_id)
            return False

        logger.info("[link_success] staff %s linked to messenger user %s", staff_id, messenger_user_id)
        return True

    async def get_linked_staff(self, messenger_user_id: int) -> StaffCandidate | None:
        """The staff member signed in from *messenger_user_id*, if any."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(Staff)
                .join(StaffMessengerLink, StaffMessengerLink.staff_id == Staff.id)
                .where(StaffMessengerLink.messenger_user_id == messenger_user_id)
                .limit(1)
            )
            staff = result.scalar_one_or_none()
            return StaffCandidate.from_model(staff) if staff is not None else None


# Module-level singleton
staff_repository = StaffRepository()
