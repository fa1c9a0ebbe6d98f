"""Group chat set-up: a manager connects a unit's supply chat to the bot.

awaiting_unit --unitChatInit:<unitId>--> awaiting_chat
awaiting_chat --bot added to a group--> awaiting_chat_confirmation
awaiting_chat_confirmation --chatConfirm--> finished (chat bound to the unit)
                           --chatRetry--> awaiting_unit
"""

from __future__ import annotations

import logging

from staffbot.dialogue import messages
from staffbot.dialogue.events import Button, InboundEvent, Responder
from staffbot.dialogue.reply import safe_reply, safe_send
from staffbot.dialogue.sessions import InitChatSession
from staffbot.dialogue.states import CB_CHAT_CONFIRM, CB_CHAT_RETRY, CB_UNIT_CHAT_INIT, DialogueStep
from staffbot.dialogue.store import SessionStore
from staffbot.events.bus import emit
from staffbot.repositories.units import UnitRepository
from staffbot.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)


class InitChatDialogue:
    """Step handlers of the group chat set-up dialogue."""

    def __init__(self, store: SessionStore[InitChatSession], units: UnitRepository) -> None:
        self.store = store
        self._units = units

    async def start(self, event: InboundEvent, responder: Responder) -> None:
        """``/init_chat`` (or ``chatRetry``): offer the user's units that still lack a chat."""
        user_id = event.user_id
        units = await self._units.find_units_without_chat(user_id)
        if not units:
            self.store.delete(user_id)
            await safe_reply(responder, messages.NO_UNITS)
            return

        self.store.create(user_id, units=tuple(units))
        logger.info("[init_chat] user %s choosing among %d unit(s)", user_id, len(units))
        await safe_reply(
            responder,
            messages.CHOOSE_UNIT,
            keyboard=[[Button(unit.name, callback=f"{CB_UNIT_CHAT_INIT}:{unit.id}")] for unit in units],
        )
        await emit(SystemEvent(
            event_type=EventType.INIT_CHAT_STARTED,
            actor_id=str(user_id),
            data={"units": len(units)},
            source_module="dialogue.init_chat",
        ))

    async def handle_callback(self, event: InboundEvent, session: InitChatSession, responder: Responder) -> None:
        payload = event.payload or ""
        if payload.startswith(f"{CB_UNIT_CHAT_INIT}:"):
            await self._choose_unit(event, session, responder)
        elif payload == CB_CHAT_CONFIRM:
            await self._confirm(event, responder)
        elif payload == CB_CHAT_RETRY:
            logger.info("[init_chat_retry] user %s", event.user_id)
            await self.start(event, responder)
        else:
            logger.debug("[callback_ignored] %s from user %s", payload, event.user_id)

    async def handle_message(self, event: InboundEvent, session: InitChatSession, responder: Responder) -> None:
        await safe_reply(responder, messages.INIT_CHAT_USE_BUTTONS)

    async def handle_bot_added(self, event: InboundEvent, responder: Responder) -> bool:
        """The user added the bot to a group. False if no set-up dialog was waiting for that.

        *responder* is bound to the group; the confirmation goes to the
        user's private chat.
        """
        user_id = event.user_id
        session = self.store.get(user_id)
        if session is None or session.step != DialogueStep.AWAITING_CHAT or event.chat_id is None:
            return False

        unit_name = session.unit_name or ""
        self.store.update(user_id, step=DialogueStep.AWAITING_CHAT_CONFIRMATION, group_chat_id=event.chat_id)
        logger.info("[chat_added] user %s added the bot to chat %s for unit %s", user_id, event.chat_id, session.unit_id)

        try:
            await responder.reply(messages.chat_check(unit_name), html=True)
        except Exception:
            logger.exception("[chat_check_failed] chat %s, user %s", event.chat_id, user_id)
            if self.store.get(user_id) is not None:
                self.store.update(user_id, step=DialogueStep.AWAITING_CHAT, group_chat_id=None)
            await safe_send(responder, user_id, messages.INIT_CHAT_FAILED)
            return True

        await safe_send(
            responder,
            user_id,
            messages.chat_check_confirm(unit_name),
            keyboard=[
                [Button(messages.CHAT_CONFIRM_OK, callback=CB_CHAT_CONFIRM)],
                [Button(messages.CHAT_CONFIRM_RETRY, callback=CB_CHAT_RETRY)],
            ],
            html=True,
        )
        return True

    # ── Steps ────────────────────────────────────────────────────────

    async def _choose_unit(self, event: InboundEvent, session: InitChatSession, responder: Responder) -> None:
        if session.step != DialogueStep.AWAITING_UNIT:
            return

        _, _, unit_id = (event.payload or "").partition(":")
        unit = next((u for u in session.units if u.id == unit_id), None)
        if unit is None:
            logger.warning("[unit_unknown] user %s picked unit %r", event.user_id, unit_id)
            await safe_reply(responder, messages.UNIT_NOT_AVAILABLE)
            return

        self.store.update(event.user_id, step=DialogueStep.AWAITING_CHAT, unit_id=unit.id, unit_name=unit.name)
        await safe_reply(responder, messages.add_bot_to_chat(unit.name), html=True)

    async def _confirm(self, event: InboundEvent, responder: Responder) -> None:
        user_id = event.user_id
        session = self.store.get(user_id)
        if session is None or session.step != DialogueStep.AWAITING_CHAT_CONFIRMATION:
            return
        if session.unit_id is None or session.group_chat_id is None:
            logger.error("[state_integrity] init-chat session of user %s has no unit or chat", user_id)
            self.store.delete(user_id)
            await safe_reply(responder, messages.INIT_CHAT_EXPIRED)
            return

        # Single use: a second OK tap finds no session
        self.store.delete(user_id)
        if not await self._units.bind_chat(session.unit_id, session.group_chat_id):
            await safe_reply(responder, messages.CHAT_BIND_FAILED)
            return

        await safe_reply(responder, messages.chat_initialized(session.unit_name or ""))
        await emit(SystemEvent(
            event_type=EventType.CHAT_INITIALIZED,
            actor_id=str(user_id),
            data={"unit_id": session.unit_id, "chat_id": session.group_chat_id},
            source_module="dialogue.init_chat",
        ))
