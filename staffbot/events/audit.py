"""Audit log subscriber: persists every SystemEvent to the audit_log table.

Registered as a global subscriber (receives ALL events).

Never raises: failures are logged but never propagate to the event system.
"""

from __future__ import annotations

import logging

from staffbot.db.engine import async_session_factory
from staffbot.models.audit import AuditLog
from staffbot.schemas.events import SystemEvent

logger = logging.getLogger(__name__)


async def audit_on_event(event: SystemEvent) -> None:
    """Write a SystemEvent to the audit_log table."""
    try:
        async with async_session_factory() as db:
            audit = AuditLog(
                event_type=event.event_type.value,
                actor_id=event.actor_id,
                actor_role=event.actor_role,
                data=event.data,
            )
            db.add(audit)
            await db.commit()
    except Exception:
        logger.exception(
            "Failed to persist audit event: %s (actor=%s)",
            event.event_type.value,
            event.actor_id,
        )
