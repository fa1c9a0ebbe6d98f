"""Dialogue orchestrator: first stop for every inbound event.

Looks up the user's active session, applies the permission gate and
routes the event to the matching step handler. Events that belong to no
dialogue are reported as not consumed so the channel can hand them to
its ordinary command handlers.
"""

from __future__ import annotations

import logging

from staffbot.config import Settings, settings
from staffbot.dialogue import messages
from staffbot.dialogue.auth import AuthDialogue
from staffbot.dialogue.courier import CourierDialogue
from staffbot.dialogue.dedup import EventDeduplicator
from staffbot.dialogue.events import Button, EventKind, InboundEvent, Responder
from staffbot.dialogue.gate import PermissionGate, callback_action
from staffbot.dialogue.init_chat import InitChatDialogue
from staffbot.dialogue.reply import safe_reply
from staffbot.dialogue.sessions import AuthSession, CourierSession, InitChatSession
from staffbot.dialogue.states import (
    CB_AUTH_START,
    CB_CANCEL,
    CB_CHAT_CONFIRM,
    CB_CHAT_RETRY,
    CB_CONTACT_ERROR,
    CB_CONTACT_OK,
    CB_PHOTO_DONE,
    CB_PHOTO_NO,
    CB_PHOTO_YES,
    CB_PROBLEM_ORDER_REPLY,
    CB_UNIT_CHAT_INIT,
    CMD_AUTH_START,
    CMD_CANCEL,
    CMD_INIT_CHAT,
    CMD_RESEND_CODE,
)
from staffbot.dialogue.store import SessionStore
from staffbot.events.bus import emit
from staffbot.integrations.sms.client import sms_client
from staffbot.integrations.storage.client import photo_storage
from staffbot.repositories.problem_orders import problem_order_repository
from staffbot.repositories.staff import staff_repository
from staffbot.repositories.units import unit_repository
from staffbot.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

_COURIER_CALLBACKS = frozenset({CB_PHOTO_YES, CB_PHOTO_NO, CB_PHOTO_DONE})
_INIT_CHAT_CALLBACKS = frozenset({CB_UNIT_CHAT_INIT, CB_CHAT_CONFIRM, CB_CHAT_RETRY})


def share_contact_keyboard() -> list[list[Button]]:
    return [[Button(messages.SHARE_CONTACT_BUTTON, request_contact=True)]]


class DialogueOrchestrator:
    """Routes inbound events into the sign-in, courier and chat set-up dialogues."""

    def __init__(
        self,
        auth: AuthDialogue,
        courier: CourierDialogue,
        init_chat: InitChatDialogue,
        dedup: EventDeduplicator,
        gate: PermissionGate | None = None,
        bot_name: str = "",
    ) -> None:
        self.auth = auth
        self.courier = courier
        self.init_chat = init_chat
        self.dedup = dedup
        self.gate = gate or PermissionGate()
        self._bot_name = bot_name

    @property
    def auth_sessions(self) -> SessionStore[AuthSession]:
        return self.auth.store

    @property
    def courier_sessions(self) -> SessionStore[CourierSession]:
        return self.courier.store

    @property
    def init_chat_sessions(self) -> SessionStore[InitChatSession]:
        return self.init_chat.store

    async def dispatch(self, event: InboundEvent, responder: Responder) -> bool:
        """Handle *event*. Returns True if it was consumed by the dialogue layer.

        No exception escapes: a failing handler costs the user their
        session and earns a generic error reply.
        """
        try:
            return await self._route(event, responder)
        except Exception:
            logger.exception("[dispatch_failed] %s from user %s", event.kind.value, event.user_id)
            self.auth_sessions.delete(event.user_id)
            self.courier_sessions.delete(event.user_id)
            self.init_chat_sessions.delete(event.user_id)
            await safe_reply(responder, messages.GENERIC_ERROR)
            await emit(SystemEvent(
                event_type=EventType.SYSTEM_ERROR,
                actor_id=str(event.user_id),
                data={"event_kind": event.kind.value},
                source_module="dialogue.orchestrator",
            ))
            return True

    def cleanup_expired_sessions(self, max_age: float) -> int:
        """Age sweep over every session table."""
        removed = self.auth_sessions.cleanup_expired_sessions(max_age)
        removed += self.courier_sessions.cleanup_expired_sessions(max_age)
        removed += self.init_chat_sessions.cleanup_expired_sessions(max_age)
        if removed:
            logger.info("[sweep] removed %d stale session(s)", removed)
        return removed

    def clear(self) -> None:
        self.auth_sessions.clear()
        self.courier_sessions.clear()
        self.init_chat_sessions.clear()

    # ── Routing ──────────────────────────────────────────────────────

    async def _route(self, event: InboundEvent, responder: Responder) -> bool:
        if event.kind == EventKind.BOT_ADDED:
            return await self._on_bot_added(event, responder)
        if event.kind == EventKind.BOT_STARTED:
            await safe_reply(responder, messages.WELCOME, keyboard=share_contact_keyboard())
            return True

        user_id = event.user_id
        auth_session = self.auth_sessions.get(user_id)
        courier_session = self.courier_sessions.get(user_id) if auth_session is None else None
        init_session = (
            self.init_chat_sessions.get(user_id) if auth_session is None and courier_session is None else None
        )

        active = auth_session or courier_session or init_session
        if active is not None and not await self.gate.check(event, active.step, responder):
            return True

        command = event.command if event.kind == EventKind.MESSAGE_CREATED else None
        payload = event.payload if event.kind == EventKind.MESSAGE_CALLBACK else None

        if command == CMD_CANCEL or payload == CB_CANCEL:
            await self._cancel(user_id, responder)
            return True
        if command == CMD_AUTH_START or payload == CB_AUTH_START:
            await self.auth.start(event, responder)
            return True
        if command == CMD_RESEND_CODE:
            await self.auth.resend(event, responder)
            return True
        if command == CMD_INIT_CHAT:
            await self.init_chat.start(event, responder)
            return True

        if payload is not None:
            return await self._on_callback(event, auth_session, courier_session, init_session, responder)

        if event.contact_phone and courier_session is None and init_session is None:
            await self.auth.start_with_contact(event, responder)
            return True

        if auth_session is not None:
            if command is not None:
                return False
            if not event.text:
                await safe_reply(responder, messages.TEXT_REQUIRED)
                return True
            await self.auth.handle_message(event, auth_session, responder)
            return True

        if courier_session is not None:
            if command is not None:
                return False
            await self.courier.handle_message(event, courier_session, responder)
            return True

        if init_session is not None:
            if command is not None:
                return False
            await self.init_chat.handle_message(event, init_session, responder)
            return True

        return False

    async def _on_callback(
        self,
        event: InboundEvent,
        auth_session: AuthSession | None,
        courier_session: CourierSession | None,
        init_session: InitChatSession | None,
        responder: Responder,
    ) -> bool:
        payload = event.payload or ""

        if callback_action(payload) == CB_PROBLEM_ORDER_REPLY:
            await self.courier.start(event, responder)
            return True

        if payload in (CB_CONTACT_OK, CB_CONTACT_ERROR):
            if auth_session is None:
                return False
            await self.auth.confirm_contact(event, responder, confirmed=payload == CB_CONTACT_OK)
            return True

        if payload in _COURIER_CALLBACKS:
            if courier_session is None:
                return False
            await self.courier.handle_callback(event, courier_session, responder)
            return True

        if callback_action(payload) in _INIT_CHAT_CALLBACKS:
            if init_session is None:
                await safe_reply(responder, messages.INIT_CHAT_EXPIRED)
                return True
            await self.init_chat.handle_callback(event, init_session, responder)
            return True

        return False

    async def _on_bot_added(self, event: InboundEvent, responder: Responder) -> bool:
        key = self.dedup.key_for(event)
        if key is not None and self.dedup.is_duplicate(key):
            return True

        logger.info("[bot_added] chat %s by user %s", event.chat_id, event.user_id)
        if await self.init_chat.handle_bot_added(event, responder):
            return True
        await safe_reply(responder, messages.bot_added(event.chat_id, self._bot_name))
        return True

    async def _cancel(self, user_id: int, responder: Responder) -> None:
        removed = self.auth_sessions.delete(user_id)
        removed = self.courier_sessions.delete(user_id) or removed
        removed = self.init_chat_sessions.delete(user_id) or removed
        if not removed:
            await safe_reply(responder, messages.NOTHING_TO_CANCEL)
            return

        logger.info("[dialog_cancelled] user %s", user_id)
        await safe_reply(responder, messages.DIALOG_CANCELLED)
        await emit(SystemEvent(
            event_type=EventType.DIALOG_CANCELLED,
            actor_id=str(user_id),
            source_module="dialogue.orchestrator",
        ))


def build_orchestrator(config: Settings = settings) -> DialogueOrchestrator:
    """Wire the dialogues to the module-level collaborators."""
    dialogue = config.dialogue
    auth_store: SessionStore[AuthSession] = SessionStore("auth", AuthSession, dialogue.auth_session_timeout)
    courier_store: SessionStore[CourierSession] = SessionStore(
        "courier", CourierSession, dialogue.courier_session_timeout
    )
    init_chat_store: SessionStore[InitChatSession] = SessionStore(
        "init_chat", InitChatSession, dialogue.init_chat_session_timeout
    )
    return DialogueOrchestrator(
        auth=AuthDialogue(auth_store, staff_repository, sms_client, dialogue),
        courier=CourierDialogue(courier_store, problem_order_repository, photo_storage, dialogue),
        init_chat=InitChatDialogue(init_chat_store, unit_repository),
        dedup=EventDeduplicator(dialogue.dedup_window, dialogue.dedup_max_entries),
        bot_name=config.bot_name,
    )
