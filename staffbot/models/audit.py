"""AuditLog model: immutable audit trail for every system event.

This table is append-only: no updates or deletes.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from staffbot.models.base import Base, TimestampMixin


class AuditLog(TimestampMixin, Base):
    """Immutable audit trail entry."""

    __tablename__ = "audit_log"

    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    actor_id: Mapped[str | None] = mapped_column(String(100), comment="Messenger user ID or 'system'")
    actor_role: Mapped[str | None] = mapped_column(String(50), comment="user, system, bot")

    # Event data, flexible JSONB payload
    data: Mapped[dict[str, Any] | None] = mapped_column(JSONB)

    def __repr__(self) -> str:
        return f"<AuditLog event={self.event_type} actor={self.actor_id}>"
