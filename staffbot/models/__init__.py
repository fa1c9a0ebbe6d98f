"""SQLAlchemy ORM models for the staff bot.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from staffbot.models.audit import AuditLog
from staffbot.models.base import Base
from staffbot.models.enums import ELIGIBLE_STATUSES, StaffStatus, StaffType
from staffbot.models.problem_order import ProblemOrder, ProblemOrderPhoto
from staffbot.models.staff import Staff, StaffMessengerLink
from staffbot.models.unit import StaffUnit, Unit

__all__ = [
    # Base
    "Base",
    # Models
    "Staff",
    "StaffMessengerLink",
    "ProblemOrder",
    "ProblemOrderPhoto",
    "Unit",
    "StaffUnit",
    "AuditLog",
    # Enums
    "StaffStatus",
    "StaffType",
    "ELIGIBLE_STATUSES",
]
