"""In-memory session records of the dialogues.

Records are plain dataclasses; the store hands out copies, so a handler
holding a record across an ``await`` is holding a snapshot, never the
live state.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from staffbot.dialogue.events import Attachment
from staffbot.dialogue.states import DialogueStep
from staffbot.repositories.staff import StaffCandidate
from staffbot.repositories.units import UnitOption


@dataclass
class AuthSession:
    """Progress of one user through phone -> full name -> SMS code verification."""

    created_at: float
    step: DialogueStep = DialogueStep.AWAITING_PHONE
    phone: str | None = None
    fullname: str | None = None
    code: int | None = None
    matched_staff: StaffCandidate | None = None
    possible_staff: tuple[StaffCandidate, ...] = ()
    attempts_count: int = 0
    last_sms_sent_at: float | None = None
    last_resend_request_at: float | None = None
    codes_issued: int = 0


@dataclass
class CourierSession:
    """A courier explaining a problem order: text reply, then optional photos."""

    created_at: float
    step: DialogueStep = DialogueStep.WAITING_COURIER_REPLY
    order_id: str = ""
    reply_saved: bool = False
    photos: tuple[Attachment, ...] = field(default_factory=tuple)


@dataclass
class InitChatSession:
    """A manager connecting a unit's group chat to the bot."""

    created_at: float
    step: DialogueStep = DialogueStep.AWAITING_UNIT
    units: tuple[UnitOption, ...] = ()
    unit_id: str | None = None
    unit_name: str | None = None
    group_chat_id: int | None = None
