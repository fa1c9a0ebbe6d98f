"""Staff sign-in dialogue: phone -> (full name) -> SMS code -> identity link.

Every handler re-reads the session after each ``await``. If the
session is gone by then (expiry, cancel) or a duplicate delivery of the
same message has already moved it on, the handler stops without
replying. A step that sends an SMS therefore sends it at most once.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable

from staffbot.config import DialogueSettings
from staffbot.dialogue import messages
from staffbot.dialogue.events import Button, InboundEvent, Responder
from staffbot.dialogue.reply import safe_reply
from staffbot.dialogue.sessions import AuthSession
from staffbot.dialogue.states import CB_CONTACT_ERROR, CB_CONTACT_OK, DialogueStep
from staffbot.dialogue.store import SessionStore
from staffbot.events.bus import emit
from staffbot.integrations.sms.client import SmsClient
from staffbot.repositories.staff import StaffCandidate, StaffRepository
from staffbot.schemas.events import EventType, SystemEvent
from staffbot.utils.codes import generate_code, is_valid_code_input
from staffbot.utils.phone import normalize_phone

logger = logging.getLogger(__name__)

_SOURCE = "dialogue.auth"


def minutes_left(window: float, elapsed: float) -> int:
    """Whole minutes (rounded up) until *window* seconds have passed."""
    return math.ceil((window - elapsed) / 60)


class AuthDialogue:
    """Step handlers of the sign-in dialogue.

    Args:
        store: Auth session table, keyed by messenger user id.
        staff_repo: Staff directory and identity-link persistence.
        sms: Gateway used to deliver one-time codes.
        config: Attempt limits and cooldown windows.
        clock: Wall-clock source for the cooldown fields.
        code_factory: Produces a fresh 4-digit code.
    """

    def __init__(
        self,
        store: SessionStore[AuthSession],
        staff_repo: StaffRepository,
        sms: SmsClient,
        config: DialogueSettings,
        clock: Callable[[], float] = time.time,
        code_factory: Callable[[], int] = generate_code,
    ) -> None:
        self.store = store
        self._staff = staff_repo
        self._sms = sms
        self._config = config
        self._clock = clock
        self._code_factory = code_factory

    # ── Start paths ──────────────────────────────────────────────────

    async def start(self, event: InboundEvent, responder: Responder) -> None:
        """``/auth_start``: open a fresh session and ask for the phone number."""
        user_id = event.user_id
        if await self._start_blocked_by_cooldown(user_id, responder):
            return

        self.store.create(user_id)
        logger.info("[start] auth session created for user %s", user_id)
        await safe_reply(responder, messages.AUTH_START_INSTRUCTIONS)
        await _emit(EventType.AUTH_STARTED, user_id, {"via": "command"})

    async def start_with_contact(self, event: InboundEvent, responder: Responder) -> None:
        """Shared own contact: open a session carrying the phone and ask to confirm it."""
        user_id = event.user_id
        if await self._start_blocked_by_cooldown(user_id, responder):
            return

        self.store.create(user_id, phone=event.contact_phone)
        logger.info("[start] auth session created from shared contact for user %s", user_id)
        await safe_reply(
            responder,
            messages.contact_confirm(event.contact_phone or ""),
            keyboard=[[
                Button(messages.CONTACT_CONFIRM_YES, callback=CB_CONTACT_OK),
                Button(messages.CONTACT_CONFIRM_NO, callback=CB_CONTACT_ERROR),
            ]],
            html=True,
        )
        await _emit(EventType.AUTH_STARTED, user_id, {"via": "contact"})

    async def confirm_contact(self, event: InboundEvent, responder: Responder, confirmed: bool) -> None:
        """``contactOk`` / ``contactEr`` tap on the shared-contact confirmation."""
        session = self.store.get(event.user_id)
        if session is None or not session.phone:
            return

        if confirmed:
            await self.handle_phone(event.user_id, session.phone, responder)
        else:
            await safe_reply(responder, messages.PHONE_INVALID)

    async def _start_blocked_by_cooldown(self, user_id: int, responder: Responder) -> bool:
        existing = self.store.get(user_id)
        if existing is None or existing.last_sms_sent_at is None:
            return False

        elapsed = self._clock() - existing.last_sms_sent_at
        if elapsed >= self._config.sms_resend_cooldown:
            return False

        left = minutes_left(self._config.sms_resend_cooldown, elapsed)
        logger.info("[auth_start_cooldown] user %s, %d min left", user_id, left)
        await safe_reply(responder, messages.auth_start_cooldown(left))
        return True

    # ── Steps ────────────────────────────────────────────────────────

    async def handle_message(self, event: InboundEvent, session: AuthSession, responder: Responder) -> None:
        """Route a text message to the handler of the session's current step."""
        text = (event.text or "").strip()
        match session.step:
            case DialogueStep.AWAITING_PHONE:
                await self.handle_phone(event.user_id, text, responder)
            case DialogueStep.AWAITING_FULLNAME:
                await self.handle_fullname(event.user_id, text, responder)
            case DialogueStep.AWAITING_CODE:
                await self.handle_code(event.user_id, text, responder)
            case _:
                logger.error("[step_unknown] auth session of user %s in %s", event.user_id, session.step)

    async def handle_phone(self, user_id: int, raw_phone: str, responder: Responder) -> None:
        before = self.store.get(user_id)
        if before is None or before.step != DialogueStep.AWAITING_PHONE:
            return

        phone = normalize_phone(raw_phone)
        if phone is None:
            logger.debug("[phone_invalid] user %s", user_id)
            await safe_reply(responder, messages.PHONE_INVALID)
            return

        candidates = await self._staff.find_staff_by_phone(phone)
        if self._current(user_id, DialogueStep.AWAITING_PHONE, before.codes_issued) is None:
            return

        if not candidates:
            logger.info("[phone_not_found] user %s", user_id)
            self.store.delete(user_id)
            await safe_reply(responder, messages.PHONE_NOT_FOUND)
            await _emit(EventType.AUTH_FAILED, user_id, {"reason": "phone_not_found"})
            return

        self.store.update(user_id, phone=phone, possible_staff=tuple(candidates))

        if len(candidates) == 1:
            await self._issue_code_for(
                user_id, candidates[0], responder, DialogueStep.AWAITING_PHONE, before.codes_issued
            )
            return

        self.store.update(user_id, step=DialogueStep.AWAITING_FULLNAME)
        logger.info("[fullname_required] user %s, %d candidates", user_id, len(candidates))
        await safe_reply(responder, messages.fullname_prompt([c.full_name for c in candidates]))

    async def handle_fullname(self, user_id: int, text: str, responder: Responder) -> None:
        session = self.store.get(user_id)
        if session is None or session.step != DialogueStep.AWAITING_FULLNAME:
            return

        wanted = " ".join(text.split()).lower()
        staff = next((c for c in session.possible_staff if c.full_name.lower() == wanted), None)
        if staff is None:
            logger.debug("[fullname_not_found] user %s", user_id)
            await safe_reply(responder, messages.FULLNAME_NOT_FOUND)
            return

        self.store.update(user_id, fullname=staff.full_name)
        await self._issue_code_for(user_id, staff, responder, DialogueStep.AWAITING_FULLNAME, session.codes_issued)

    async def handle_code(self, user_id: int, text: str, responder: Responder) -> None:
        if not is_valid_code_input(text):
            logger.debug("[code_invalid] user %s", user_id)
            await safe_reply(responder, messages.CODE_INVALID)
            return

        session = self.store.get(user_id)
        if session is None:
            return

        staff = session.matched_staff
        if staff is None:
            logger.error("[state_integrity] auth session of user %s has no matched staff", user_id)
            self.store.delete(user_id)
            await safe_reply(responder, messages.STAFF_NOT_FOUND)
            return

        if session.code is not None and int(text) == session.code:
            # Single use: the session is gone before anything else can await
            self.store.delete(user_id)
            linked = await self._staff.create_identity_link(staff.id, user_id)
            if not linked:
                await safe_reply(responder, messages.REGISTRATION_FAILED)
                await _emit(EventType.AUTH_FAILED, user_id, {"reason": "link_failed"})
                return

            logger.info("[auth_success] user %s signed in as staff %s", user_id, staff.id)
            await safe_reply(responder, messages.success_auth(staff.last_name, staff.first_name))
            await _emit(EventType.AUTH_SUCCEEDED, user_id, {"staff_id": str(staff.id)}, role=staff.staff_type)
            return

        attempts = session.attempts_count + 1
        max_attempts = self._config.max_code_attempts
        if attempts >= max_attempts:
            logger.info("[attempts_exceeded] user %s", user_id)
            self.store.delete(user_id)
            await safe_reply(responder, messages.attempts_exceeded(max_attempts))
            await _emit(EventType.AUTH_FAILED, user_id, {"reason": "attempts_exceeded"})
            return

        self.store.update(user_id, attempts_count=attempts)
        logger.info("[code_mismatch] user %s, attempt %d of %d", user_id, attempts, max_attempts)
        await safe_reply(responder, messages.attempt_failed(max_attempts - attempts))

    # ── Resend ───────────────────────────────────────────────────────

    async def resend(self, event: InboundEvent, responder: Responder) -> None:
        """``/resend_code``: issue a new code, subject to anti-spam and SMS cooldown."""
        user_id = event.user_id
        session = self.store.get(user_id)
        if session is None:
            await safe_reply(responder, messages.SESSION_NOT_FOUND)
            return
        if session.step != DialogueStep.AWAITING_CODE or session.matched_staff is None or not session.phone:
            await safe_reply(responder, messages.STEP_MISMATCH)
            return

        now = self._clock()
        if session.last_resend_request_at is not None:
            elapsed = now - session.last_resend_request_at
            if elapsed < self._config.resend_spam_limit:
                left = minutes_left(self._config.resend_spam_limit, elapsed)
                logger.info("[resend_spam] user %s, %d min left", user_id, left)
                await safe_reply(responder, messages.resend_spam_limit(left))
                return

        if session.last_sms_sent_at is not None:
            elapsed = now - session.last_sms_sent_at
            if elapsed < self._config.sms_resend_cooldown:
                left = minutes_left(self._config.sms_resend_cooldown, elapsed)
                logger.info("[resend_cooldown] user %s, %d min left", user_id, left)
                await safe_reply(responder, messages.sms_cooldown(left))
                return

        self.store.update(user_id, last_resend_request_at=now)
        if not await self._send_code(user_id, session.phone):
            if self.store.get(user_id) is not None:
                self.store.delete(user_id)
                await safe_reply(responder, messages.SMS_SEND_ERROR)
            return
        if self.store.get(user_id) is None:
            return

        await safe_reply(responder, messages.new_sms_sent(session.phone, self._cooldown_minutes))
        await _emit(EventType.AUTH_CODE_RESENT, user_id, {})

    # ── Internals ────────────────────────────────────────────────────

    @property
    def _cooldown_minutes(self) -> int:
        return math.ceil(self._config.sms_resend_cooldown / 60)

    def _current(self, user_id: int, step: DialogueStep, codes_issued: int) -> AuthSession | None:
        """The session, if it is still where the caller found it before awaiting.

        A duplicate delivery of the same message may have moved it on
        (to another step, or by issuing a code) in the meantime.
        """
        session = self.store.get(user_id)
        if session is None or session.step != step or session.codes_issued != codes_issued:
            if session is not None:
                logger.debug("[stale_delivery] user %s moved on from %s", user_id, step.value)
            return None
        return session

    async def _issue_code_for(
        self,
        user_id: int,
        staff: StaffCandidate,
        responder: Responder,
        step: DialogueStep,
        codes_issued: int,
    ) -> None:
        linked = await self._staff.has_identity_link(staff.id)
        session = self._current(user_id, step, codes_issued)
        if session is None:
            return

        if linked:
            logger.info("[already_registered] staff %s, user %s", staff.id, user_id)
            self.store.delete(user_id)
            await safe_reply(responder, messages.already_registered(staff.first_name, staff.last_name))
            await _emit(EventType.AUTH_FAILED, user_id, {"reason": "already_registered"})
            return

        if not session.phone:
            return

        if not await self._send_code(user_id, session.phone):
            if self.store.get(user_id) is not None:
                self.store.delete(user_id)
                await safe_reply(responder, messages.SMS_SEND_ERROR)
            return
        if self.store.get(user_id) is None:
            return

        self.store.update(user_id, matched_staff=staff, step=DialogueStep.AWAITING_CODE)
        await safe_reply(responder, messages.sms_sent(session.phone, self._cooldown_minutes))
        await _emit(EventType.AUTH_CODE_SENT, user_id, {"staff_id": str(staff.id)})

    async def _send_code(self, user_id: int, phone: str) -> bool:
        """Store a fresh code on the session, then deliver it. Attempts restart from zero."""
        session = self.store.get(user_id)
        if session is None:
            return False

        code = self._code_factory()
        self.store.update(
            user_id,
            code=code,
            last_sms_sent_at=self._clock(),
            attempts_count=0,
            codes_issued=session.codes_issued + 1,
        )

        result = await self._sms.send_code(phone, code)
        if not result.ok:
            logger.warning("[sms_failed] user %s, gateway status %s", user_id, result.status)
            await _emit(EventType.AUTH_FAILED, user_id, {"reason": "sms_failed", "status": result.status})
            return False
        return True


async def _emit(event_type: EventType, user_id: int, data: dict, role: str | None = None) -> None:
    await emit(SystemEvent(
        event_type=event_type,
        actor_id=str(user_id),
        actor_role=role,
        data=data,
        source_module=_SOURCE,
    ))
