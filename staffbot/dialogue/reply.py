"""Best-effort replies: a failed send never escapes into the dispatcher."""

from __future__ import annotations

import logging

from staffbot.dialogue import messages
from staffbot.dialogue.events import Keyboard, Responder

logger = logging.getLogger(__name__)


async def safe_reply(
    responder: Responder,
    text: str,
    *,
    keyboard: Keyboard | None = None,
    html: bool = False,
) -> bool:
    """Send *text*; on failure try one plain error notice, then give up quietly.

    Returns True if the original message went out.
    """
    try:
        await responder.reply(text, keyboard=keyboard, html=html)
        return True
    except Exception:
        logger.exception("Failed to send reply")

    try:
        await responder.reply(messages.REPLY_FALLBACK)
    except Exception:
        logger.exception("Failed to send fallback error reply")
    return False


async def safe_send(
    responder: Responder,
    chat_id: int,
    text: str,
    *,
    keyboard: Keyboard | None = None,
    html: bool = False,
) -> bool:
    """Send *text* to another chat; a failure is logged and reported as False."""
    try:
        await responder.send(chat_id, text, keyboard=keyboard, html=html)
        return True
    except Exception:
        logger.exception("Failed to send message to chat %s", chat_id)
        return False
