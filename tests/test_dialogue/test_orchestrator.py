"""Tests for the dialogue orchestrator.

Covers: routing of each event kind, fall-through when no dialogue owns
the event, permission blocking, cancel, bot_added deduplication, group
chat set-up, the per-dispatch error guard and the age sweep.
"""

from __future__ import annotations

import asyncio
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from staffbot.config import DialogueSettings
from staffbot.dialogue import messages
from staffbot.dialogue.auth import AuthDialogue
from staffbot.dialogue.courier import CourierDialogue
from staffbot.dialogue.dedup import EventDeduplicator
from staffbot.dialogue.events import Attachment, EventKind, InboundEvent
from staffbot.dialogue.init_chat import InitChatDialogue
from staffbot.dialogue.orchestrator import DialogueOrchestrator
from staffbot.dialogue.sessions import AuthSession, CourierSession, InitChatSession
from staffbot.dialogue.states import PERMISSIONS, DialogueStep
from staffbot.dialogue.store import SessionStore
from staffbot.integrations.sms.schemas import SmsResult
from staffbot.repositories.staff import StaffCandidate
from staffbot.repositories.units import UnitOption
from staffbot.schemas.events import EventType

USER = 1001
CODE = 4321
GROUP = -100500
UNIT = UnitOption(id=str(uuid.uuid4()), name="Москва-1")


def _text(text: str | None = None, **kwargs) -> InboundEvent:
    return InboundEvent(kind=EventKind.MESSAGE_CREATED, user_id=USER, chat_id=USER, text=text, **kwargs)


def _callback(payload: str) -> InboundEvent:
    return InboundEvent(kind=EventKind.MESSAGE_CALLBACK, user_id=USER, chat_id=USER, payload=payload)


@pytest.fixture()
def orchestrator(clock) -> DialogueOrchestrator:
    staff = StaffCandidate(id=uuid.uuid4(), first_name="Иван", last_name="Петров", status="Active", staff_type="Courier")
    staff_repo = MagicMock()
    staff_repo.find_staff_by_phone = AsyncMock(return_value=[staff])
    staff_repo.has_identity_link = AsyncMock(return_value=False)
    staff_repo.create_identity_link = AsyncMock(return_value=True)

    sms = MagicMock()
    sms.send_code = AsyncMock(return_value=SmsResult(status="OK"))

    orders = MagicMock()
    orders.save_courier_comment = AsyncMock(return_value=True)
    orders.replace_photos = AsyncMock(return_value=0)
    storage = MagicMock()
    storage.upload = AsyncMock(return_value="https://cdn.example/x.jpg")

    config = DialogueSettings()
    auth = AuthDialogue(
        SessionStore("auth", AuthSession, 1800, clock=clock),
        staff_repo,
        sms,
        config,
        clock=clock,
        code_factory=lambda: CODE,
    )
    courier = CourierDialogue(SessionStore("courier", CourierSession, 1800, clock=clock), orders, storage, config)
    units = MagicMock()
    units.find_units_without_chat = AsyncMock(return_value=[UNIT])
    units.bind_chat = AsyncMock(return_value=True)
    init_chat = InitChatDialogue(SessionStore("init_chat", InitChatSession, 3600, clock=clock), units)
    return DialogueOrchestrator(auth, courier, init_chat, EventDeduplicator(60, clock=clock), bot_name="Dodo-sky")


class TestFallThrough:
    @pytest.mark.asyncio()
    async def test_text_without_session_is_not_consumed(self, orchestrator, responder):
        assert await orchestrator.dispatch(_text("привет"), responder) is False
        assert responder.replies == []

    @pytest.mark.asyncio()
    async def test_unknown_command_without_session_is_not_consumed(self, orchestrator, responder):
        assert await orchestrator.dispatch(_text("/start"), responder) is False

    @pytest.mark.asyncio()
    async def test_foreign_callback_without_session_is_not_consumed(self, orchestrator, responder):
        assert await orchestrator.dispatch(_callback("stock:show"), responder) is False

    @pytest.mark.asyncio()
    async def test_contact_callback_without_session_is_not_consumed(self, orchestrator, responder):
        assert await orchestrator.dispatch(_callback("contactOk"), responder) is False


class TestLifecycleEvents:
    @pytest.mark.asyncio()
    async def test_bot_started_sends_welcome_with_contact_button(self, orchestrator, responder):
        event = InboundEvent(kind=EventKind.BOT_STARTED, user_id=USER, chat_id=USER)

        assert await orchestrator.dispatch(event, responder) is True

        text, keyboard, _ = responder.replies[-1]
        assert text == messages.WELCOME
        assert keyboard[0][0].request_contact is True

    @pytest.mark.asyncio()
    async def test_bot_added_replied_once(self, orchestrator, responder, clock):
        event = InboundEvent(kind=EventKind.BOT_ADDED, user_id=USER, chat_id=-100500)

        assert await orchestrator.dispatch(event, responder) is True
        assert await orchestrator.dispatch(event, responder) is True

        assert responder.texts == [messages.bot_added(-100500, "Dodo-sky")]

        clock.advance(61)
        await orchestrator.dispatch(event, responder)
        assert len(responder.replies) == 2


class TestAuthRouting:
    @pytest.mark.asyncio()
    async def test_full_sign_in(self, orchestrator, responder):
        assert await orchestrator.dispatch(_text("/auth_start"), responder)
        assert orchestrator.auth_sessions.get(USER).step == DialogueStep.AWAITING_PHONE

        assert await orchestrator.dispatch(_text("+79991234567"), responder)
        assert orchestrator.auth_sessions.get(USER).step == DialogueStep.AWAITING_CODE

        assert await orchestrator.dispatch(_text(str(CODE)), responder)
        assert orchestrator.auth_sessions.get(USER) is None
        assert responder.last == messages.success_auth("Петров", "Иван")

        # Same code again: no session, nothing answers
        replies = len(responder.replies)
        assert await orchestrator.dispatch(_text(str(CODE)), responder) is False
        assert len(responder.replies) == replies

    @pytest.mark.asyncio()
    async def test_auth_start_callback(self, orchestrator, responder):
        assert await orchestrator.dispatch(_callback("auth_start"), responder)
        assert orchestrator.auth_sessions.get(USER) is not None
        orchestrator.clear()

    @pytest.mark.asyncio()
    async def test_contact_share_flow(self, orchestrator, responder):
        assert await orchestrator.dispatch(_text(contact_phone="79991234567"), responder)
        assert responder.last == messages.contact_confirm("79991234567")

        assert await orchestrator.dispatch(_callback("contactOk"), responder)
        assert orchestrator.auth_sessions.get(USER).step == DialogueStep.AWAITING_CODE
        orchestrator.clear()

    @pytest.mark.asyncio()
    async def test_non_text_in_auth_step(self, orchestrator, responder):
        await orchestrator.dispatch(_text("/auth_start"), responder)

        photo = (Attachment(file_id="p1"),)
        assert await orchestrator.dispatch(_text(None, attachments=photo), responder)

        assert responder.last == messages.TEXT_REQUIRED
        assert orchestrator.auth_sessions.get(USER).step == DialogueStep.AWAITING_PHONE
        orchestrator.clear()

    @pytest.mark.asyncio()
    async def test_blocked_command_leaves_session_unchanged(self, orchestrator, responder):
        await orchestrator.dispatch(_text("/auth_start"), responder)
        before = orchestrator.auth_sessions.get(USER)

        assert await orchestrator.dispatch(_text("/start"), responder) is True

        assert responder.last == messages.step_blocked(PERMISSIONS[DialogueStep.AWAITING_PHONE].description)
        assert orchestrator.auth_sessions.get(USER) == before
        orchestrator.clear()

    @pytest.mark.asyncio()
    async def test_resend_without_session(self, orchestrator, responder):
        assert await orchestrator.dispatch(_text("/resend_code"), responder)
        assert responder.last == messages.SESSION_NOT_FOUND


class TestCancel:
    @pytest.mark.asyncio()
    async def test_cancel_active_dialogue(self, orchestrator, responder, mock_emit):
        await orchestrator.dispatch(_text("/auth_start"), responder)

        assert await orchestrator.dispatch(_text("/cancel"), responder)

        assert responder.last == messages.DIALOG_CANCELLED
        assert orchestrator.auth_sessions.get(USER) is None
        emitted = [call.args[0].event_type for call in mock_emit.await_args_list]
        assert EventType.DIALOG_CANCELLED in emitted

    @pytest.mark.asyncio()
    async def test_cancel_without_dialogue(self, orchestrator, responder):
        assert await orchestrator.dispatch(_text("/cancel"), responder)
        assert responder.last == messages.NOTHING_TO_CANCEL

    @pytest.mark.asyncio()
    async def test_cancel_callback_in_courier_dialogue(self, orchestrator, responder):
        await orchestrator.dispatch(_callback("problemOrderReply:A-1"), responder)

        assert await orchestrator.dispatch(_callback("cancel"), responder)

        assert orchestrator.courier_sessions.get(USER) is None
        assert responder.last == messages.DIALOG_CANCELLED

    @pytest.mark.asyncio()
    @pytest.mark.parametrize("payload", [None, "79991234567"])
    async def test_cancel_callback_in_auth_dialogue(self, orchestrator, responder, payload):
        if payload is None:
            await orchestrator.dispatch(_text("/auth_start"), responder)
        else:
            await orchestrator.dispatch(_text(contact_phone=payload), responder)

        assert await orchestrator.dispatch(_callback("cancel"), responder)

        assert orchestrator.auth_sessions.get(USER) is None
        assert responder.last == messages.DIALOG_CANCELLED

    @pytest.mark.asyncio()
    async def test_cancel_during_code_step(self, orchestrator, responder):
        await orchestrator.dispatch(_text("/auth_start"), responder)
        await orchestrator.dispatch(_text("79991234567"), responder)

        assert await orchestrator.dispatch(_callback("cancel"), responder)

        assert orchestrator.auth_sessions.get(USER) is None
        assert responder.last == messages.DIALOG_CANCELLED

    @pytest.mark.asyncio()
    async def test_cancel_chat_set_up(self, orchestrator, responder):
        await orchestrator.dispatch(_text("/init_chat"), responder)

        assert await orchestrator.dispatch(_text("/cancel"), responder)

        assert orchestrator.init_chat_sessions.get(USER) is None
        assert responder.last == messages.DIALOG_CANCELLED


class TestCourierRouting:
    @pytest.mark.asyncio()
    async def test_reply_and_finish_without_photos(self, orchestrator, responder):
        assert await orchestrator.dispatch(_callback("problemOrderReply:A-1"), responder)
        assert await orchestrator.dispatch(_text("Не было сдачи"), responder)
        assert responder.last == messages.PHOTO_QUESTION

        assert await orchestrator.dispatch(_callback("photo_no"), responder)

        assert responder.last == messages.COURIER_FINISHED
        assert orchestrator.courier_sessions.get(USER) is None

    @pytest.mark.asyncio()
    async def test_auth_start_blocked_during_courier_dialogue(self, orchestrator, responder):
        await orchestrator.dispatch(_callback("problemOrderReply:A-1"), responder)

        assert await orchestrator.dispatch(_text("/auth_start"), responder)

        assert responder.last == messages.step_blocked(PERMISSIONS[DialogueStep.WAITING_COURIER_REPLY].description)
        assert orchestrator.auth_sessions.get(USER) is None
        orchestrator.clear()


class TestErrorGuard:
    @pytest.mark.asyncio()
    async def test_handler_exception_deletes_session_and_replies_generic_error(self, orchestrator, responder, mock_emit):
        await orchestrator.dispatch(_text("/auth_start"), responder)
        orchestrator.auth._staff.find_staff_by_phone = AsyncMock(side_effect=RuntimeError("db down"))

        assert await orchestrator.dispatch(_text("79991234567"), responder) is True

        assert responder.last == messages.GENERIC_ERROR
        assert orchestrator.auth_sessions.get(USER) is None
        emitted = [call.args[0].event_type for call in mock_emit.await_args_list]
        assert EventType.SYSTEM_ERROR in emitted

    @pytest.mark.asyncio()
    async def test_reply_failure_is_swallowed(self, orchestrator):
        broken = MagicMock()
        broken.reply = AsyncMock(side_effect=RuntimeError("network"))

        assert await orchestrator.dispatch(_text("/auth_start"), broken) is True

        assert broken.reply.await_count == 2  # original + one fallback
        orchestrator.clear()


class TestSweep:
    @pytest.mark.asyncio()
    async def test_cleanup_covers_every_store(self, orchestrator, responder, clock):
        await orchestrator.dispatch(_text("/auth_start"), responder)
        other = InboundEvent(kind=EventKind.MESSAGE_CALLBACK, user_id=USER + 1, chat_id=USER + 1, payload="problemOrderReply:A-2")
        await orchestrator.dispatch(other, responder)
        manager = InboundEvent(kind=EventKind.MESSAGE_CREATED, user_id=USER + 2, chat_id=USER + 2, text="/init_chat")
        await orchestrator.dispatch(manager, responder)
        clock.advance(10_000)

        assert orchestrator.cleanup_expired_sessions(max_age=3600) == 3
        assert len(orchestrator.init_chat_sessions) == 0
        assert len(orchestrator.auth_sessions) == 0
        assert len(orchestrator.courier_sessions) == 0


class TestInitChatRouting:
    @pytest.mark.asyncio()
    async def test_full_chat_set_up(self, orchestrator, responder, mock_emit):
        assert await orchestrator.dispatch(_text("/init_chat"), responder)
        assert orchestrator.init_chat_sessions.get(USER).step == DialogueStep.AWAITING_UNIT

        assert await orchestrator.dispatch(_callback(f"unitChatInit:{UNIT.id}"), responder)
        assert orchestrator.init_chat_sessions.get(USER).step == DialogueStep.AWAITING_CHAT

        added = InboundEvent(kind=EventKind.BOT_ADDED, user_id=USER, chat_id=GROUP, update_id=7)
        assert await orchestrator.dispatch(added, responder)
        assert responder.last == messages.chat_check(UNIT.name)
        assert responder.sent[-1][:2] == (USER, messages.chat_check_confirm(UNIT.name))
        assert orchestrator.init_chat_sessions.get(USER).group_chat_id == GROUP

        assert await orchestrator.dispatch(_callback("chatConfirm"), responder)

        orchestrator.init_chat._units.bind_chat.assert_awaited_once_with(UNIT.id, GROUP)
        assert responder.last == messages.chat_initialized(UNIT.name)
        assert orchestrator.init_chat_sessions.get(USER) is None
        emitted = [call.args[0].event_type for call in mock_emit.await_args_list]
        assert EventType.CHAT_INITIALIZED in emitted

    @pytest.mark.asyncio()
    async def test_duplicate_bot_added_checks_chat_once(self, orchestrator, responder):
        await orchestrator.dispatch(_text("/init_chat"), responder)
        await orchestrator.dispatch(_callback(f"unitChatInit:{UNIT.id}"), responder)
        added = InboundEvent(kind=EventKind.BOT_ADDED, user_id=USER, chat_id=GROUP, update_id=7)

        await orchestrator.dispatch(added, responder)
        await orchestrator.dispatch(added, responder)

        assert responder.texts.count(messages.chat_check(UNIT.name)) == 1
        assert len(responder.sent) == 1
        orchestrator.clear()

    @pytest.mark.asyncio()
    async def test_free_text_asks_for_buttons(self, orchestrator, responder):
        await orchestrator.dispatch(_text("/init_chat"), responder)

        assert await orchestrator.dispatch(_text("Москва-1"), responder)

        assert responder.last == messages.INIT_CHAT_USE_BUTTONS
        orchestrator.clear()

    @pytest.mark.asyncio()
    async def test_stale_confirm_button(self, orchestrator, responder):
        assert await orchestrator.dispatch(_callback("chatConfirm"), responder)

        assert responder.last == messages.INIT_CHAT_EXPIRED
        orchestrator.init_chat._units.bind_chat.assert_not_called()

    @pytest.mark.asyncio()
    async def test_courier_reply_blocked_during_chat_set_up(self, orchestrator, responder):
        await orchestrator.dispatch(_text("/init_chat"), responder)

        assert await orchestrator.dispatch(_callback("problemOrderReply:A-1"), responder)

        assert responder.last == messages.step_blocked(PERMISSIONS[DialogueStep.AWAITING_UNIT].description)
        assert orchestrator.courier_sessions.get(USER) is None
        orchestrator.clear()

    @pytest.mark.asyncio()
    async def test_contact_share_not_taken_as_sign_in_during_chat_set_up(self, orchestrator, responder):
        await orchestrator.dispatch(_text("/init_chat"), responder)

        assert await orchestrator.dispatch(_text(contact_phone="79991234567"), responder)

        assert orchestrator.auth_sessions.get(USER) is None
        orchestrator.clear()


class TestConcurrentDelivery:
    @pytest.mark.asyncio()
    async def test_duplicate_phone_message_sends_one_sms(self, orchestrator, responder):
        staff = StaffCandidate(id=uuid.uuid4(), first_name="Иван", last_name="Петров", status="Active", staff_type="Courier")

        async def slow_lookup(phone):
            await asyncio.sleep(0.01)
            return [staff]

        orchestrator.auth._staff.find_staff_by_phone = AsyncMock(side_effect=slow_lookup)
        await orchestrator.dispatch(_text("/auth_start"), responder)

        await asyncio.gather(
            orchestrator.dispatch(_text("79991234567"), responder),
            orchestrator.dispatch(_text("79991234567"), responder),
        )

        assert orchestrator.auth._sms.send_code.await_count == 1
        assert orchestrator.auth_sessions.get(USER).step == DialogueStep.AWAITING_CODE
        orchestrator.clear()
