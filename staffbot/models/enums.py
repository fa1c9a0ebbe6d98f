"""Domain enums used across SQLAlchemy models and the dialogue core.

All enums use str mixin so values serialize as plain strings.
"""

from __future__ import annotations

from enum import Enum


class StaffStatus(str, Enum):
    """Employment status as kept by the staff directory."""

    ACTIVE = "Active"
    SUSPENDED = "Suspended"
    DISMISSED = "Dismissed"


class StaffType(str, Enum):
    """Staff role; drives which services the main menu offers."""

    COURIER = "Courier"
    CASHIER = "Cashier"
    KITCHEN_MEMBER = "KitchenMember"
    MANAGER = "Manager"


# Statuses allowed to sign in and use the bot
ELIGIBLE_STATUSES: frozenset[StaffStatus] = frozenset({StaffStatus.ACTIVE, StaffStatus.SUSPENDED})
