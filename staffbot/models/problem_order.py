"""Problem orders flagged for a courier and the photo evidence attached to them."""

from __future__ import annotations

from sqlalchemy import Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from staffbot.models.base import Base, TimestampMixin


class ProblemOrder(TimestampMixin, Base):
    """An order the operations team asked a courier to explain."""

    __tablename__ = "problem_orders"

    order_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    courier_comment: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<ProblemOrder order={self.order_id}>"


class ProblemOrderPhoto(TimestampMixin, Base):
    """One uploaded photo; `index` is the 1-based position within the order's set."""

    __tablename__ = "problem_order_photos"
    __table_args__ = (UniqueConstraint("order_id", "index", name="uq_problem_order_photo_index"),)

    order_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    url: Mapped[str] = mapped_column(String(1024), nullable=False)
    index: Mapped[int] = mapped_column(Integer, nullable=False)

    def __repr__(self) -> str:
        return f"<ProblemOrderPhoto order={self.order_id} index={self.index}>"
