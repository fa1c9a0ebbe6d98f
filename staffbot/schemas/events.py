"""SystemEvent schema: the event type that flows through the bot.

Dialogue milestones emit a SystemEvent. Subscribers (the audit logger)
consume these events asynchronously.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """All event types emitted by the system."""

    # Staff sign-in
    AUTH_STARTED = "auth.started"
    AUTH_CODE_SENT = "auth.code_sent"
    AUTH_CODE_RESENT = "auth.code_resent"
    AUTH_SUCCEEDED = "auth.succeeded"
    AUTH_FAILED = "auth.failed"

    # Dialog lifecycle
    DIALOG_CANCELLED = "dialog.cancelled"

    # Courier problem orders
    COURIER_REPLY_RECEIVED = "courier.reply_received"
    COURIER_PHOTOS_SAVED = "courier.photos_saved"

    # Group chat set-up
    INIT_CHAT_STARTED = "init_chat.started"
    CHAT_INITIALIZED = "init_chat.completed"

    # System
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"
    SYSTEM_ERROR = "system.error"


class SystemEvent(BaseModel):
    """Core event that flows through the bot.

    Immutable once created. Consumed by the AuditLogger, which writes
    it to the audit_log table.
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Context (optional, system events have no actor)
    actor_id: str | None = None
    actor_role: str | None = None

    # Flexible payload
    data: dict[str, Any] = Field(default_factory=dict)

    # Metadata
    source_module: str | None = Field(default=None, description="Module that emitted this event")

    model_config = {"frozen": True}
