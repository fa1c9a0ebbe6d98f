"""Transport-neutral inbound events and the reply surface handlers talk to.

Channel adapters turn platform updates into ``InboundEvent`` objects and
provide a ``Responder`` bound to the chat the event came from.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol


class EventKind(str, Enum):
    BOT_STARTED = "bot_started"
    BOT_ADDED = "bot_added"
    MESSAGE_CREATED = "message_created"
    MESSAGE_CALLBACK = "message_callback"


class AttachmentKind(str, Enum):
    IMAGE = "image"
    FILE = "file"


@dataclass(frozen=True)
class Attachment:
    """A file carried by a message; ``file_id`` is the platform's download handle."""

    file_id: str
    kind: AttachmentKind = AttachmentKind.IMAGE
    mime_type: str | None = None


@dataclass(frozen=True)
class InboundEvent:
    kind: EventKind
    user_id: int
    chat_id: int | None = None
    text: str | None = None
    payload: str | None = None
    contact_phone: str | None = None
    attachments: tuple[Attachment, ...] = ()
    update_id: int | None = None
    received_at: float = field(default_factory=time.time)

    @property
    def command(self) -> str | None:
        """Leading ``/command`` of the text, without any ``@botname`` suffix."""
        if not self.text or not self.text.startswith("/"):
            return None
        head = self.text.strip().split(maxsplit=1)[0]
        return head.split("@", 1)[0]

    @property
    def images(self) -> tuple[Attachment, ...]:
        return tuple(a for a in self.attachments if a.kind == AttachmentKind.IMAGE)


@dataclass(frozen=True)
class Button:
    """Inline button (``callback``) or a share-contact request button."""

    text: str
    callback: str | None = None
    request_contact: bool = False


Keyboard = list[list[Button]]


class Responder(Protocol):
    """Reply channel bound to the chat an event came from; ``send`` reaches another chat."""

    async def reply(self, text: str, *, keyboard: Keyboard | None = None, html: bool = False) -> None: ...

    async def send(
        self, chat_id: int, text: str, *, keyboard: Keyboard | None = None, html: bool = False
    ) -> None: ...

    async def download(self, attachment: Attachment) -> bytes: ...
