"""Pizzeria units and the staff members who manage them."""

from __future__ import annotations

import uuid

from sqlalchemy import BigInteger, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from staffbot.models.base import Base, TimestampMixin


class Unit(TimestampMixin, Base):
    """A pizzeria. ``supply_chat_id`` is the group chat that receives its stock alerts."""

    __tablename__ = "units"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    supply_chat_id: Mapped[int | None] = mapped_column(BigInteger, unique=True)

    def __repr__(self) -> str:
        return f"<Unit id={self.id} chat={self.supply_chat_id}>"


class StaffUnit(TimestampMixin, Base):
    """Staff member allowed to set up the unit's group chats."""

    __tablename__ = "staff_units"
    __table_args__ = (UniqueConstraint("staff_id", "unit_id", name="uq_staff_unit"),)

    staff_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("staff.id"), nullable=False, index=True)
    unit_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("units.id"), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<StaffUnit staff={self.staff_id} unit={self.unit_id}>"
