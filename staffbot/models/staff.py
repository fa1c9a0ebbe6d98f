"""Staff directory and the link between a staff member and a messenger account."""

from __future__ import annotations

import uuid

from sqlalchemy import BigInteger, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from staffbot.models.base import Base, TimestampMixin
from staffbot.models.enums import StaffStatus, StaffType


class Staff(TimestampMixin, Base):
    """An employee of the pizzeria chain."""

    __tablename__ = "staff"

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(
        String(20), index=True, comment="11 digits starting with 7, no plus sign"
    )
    status: Mapped[str] = mapped_column(String(20), default=StaffStatus.ACTIVE.value, nullable=False)
    staff_type: Mapped[str] = mapped_column(String(30), default=StaffType.COURIER.value, nullable=False)

    messenger_link: Mapped[StaffMessengerLink | None] = relationship(
        "StaffMessengerLink", back_populates="staff", uselist=False, lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Staff id={self.id} status={self.status} type={self.staff_type}>"


class StaffMessengerLink(TimestampMixin, Base):
    """Identity link created once a staff member passes SMS verification."""

    __tablename__ = "staff_messenger_links"

    staff_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("staff.id"), nullable=False, unique=True
    )
    messenger_user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True, index=True)

    staff: Mapped[Staff] = relationship("Staff", back_populates="messenger_link", lazy="selectin")

    def __repr__(self) -> str:
        return f"<StaffMessengerLink staff={self.staff_id} user={self.messenger_user_id}>"
