"""Dialogue steps and the per-step permission table.

Every step a session can be in is a member of ``DialogueStep``. The
permission table must cover every member: it decides which commands and
button payloads a user may use while that step is pending.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DialogueStep(str, Enum):
    """Discriminant of a session's position in its dialogue."""

    # Staff sign-in (phone -> optional full name -> SMS code)
    AWAITING_PHONE = "awaiting_phone"
    AWAITING_FULLNAME = "awaiting_fullname"
    AWAITING_CODE = "awaiting_code"

    # Courier problem-order reply
    WAITING_COURIER_REPLY = "waiting_courier_reply"
    AWAITING_PHOTO_FROM_COURIER = "awaiting_photo_from_courier"

    # Group chat set-up for a unit (pick unit -> add bot to group -> confirm)
    AWAITING_UNIT = "awaiting_unit"
    AWAITING_CHAT = "awaiting_chat"
    AWAITING_CHAT_CONFIRMATION = "awaiting_chat_confirmation"


AUTH_STEPS: frozenset[DialogueStep] = frozenset({
    DialogueStep.AWAITING_PHONE,
    DialogueStep.AWAITING_FULLNAME,
    DialogueStep.AWAITING_CODE,
})

COURIER_STEPS: frozenset[DialogueStep] = frozenset({
    DialogueStep.WAITING_COURIER_REPLY,
    DialogueStep.AWAITING_PHOTO_FROM_COURIER,
})

INIT_CHAT_STEPS: frozenset[DialogueStep] = frozenset({
    DialogueStep.AWAITING_UNIT,
    DialogueStep.AWAITING_CHAT,
    DialogueStep.AWAITING_CHAT_CONFIRMATION,
})


# Commands and callback payloads
CMD_CANCEL = "/cancel"
CMD_AUTH_START = "/auth_start"
CMD_RESEND_CODE = "/resend_code"
CMD_INIT_CHAT = "/init_chat"

CB_AUTH_START = "auth_start"
CB_CONTACT_OK = "contactOk"
CB_CONTACT_ERROR = "contactEr"
CB_CANCEL = "cancel"
CB_PHOTO_YES = "photo_yes"
CB_PHOTO_NO = "photo_no"
CB_PHOTO_DONE = "photo_done"
CB_PROBLEM_ORDER_REPLY = "problemOrderReply"
CB_UNIT_CHAT_INIT = "unitChatInit"
CB_CHAT_CONFIRM = "chatConfirm"
CB_CHAT_RETRY = "chatRetry"


@dataclass(frozen=True)
class StepPermissions:
    """What a user may do while a step is pending, and how the step is described to them."""

    allowed_commands: frozenset[str]
    allowed_callbacks: frozenset[str]
    description: str


_AUTH_COMMANDS = frozenset({CMD_CANCEL, CMD_RESEND_CODE, CMD_AUTH_START})
_INIT_CHAT_COMMANDS = frozenset({CMD_CANCEL, CMD_INIT_CHAT})

PERMISSIONS: dict[DialogueStep, StepPermissions] = {
    DialogueStep.AWAITING_PHONE: StepPermissions(
        allowed_commands=_AUTH_COMMANDS,
        allowed_callbacks=frozenset({CB_CONTACT_OK, CB_CONTACT_ERROR, CB_CANCEL}),
        description="Ожидание номера телефона для авторизации",
    ),
    DialogueStep.AWAITING_FULLNAME: StepPermissions(
        allowed_commands=_AUTH_COMMANDS,
        allowed_callbacks=frozenset({CB_CANCEL}),
        description="Ожидание вашего полного имени (ФИО)",
    ),
    DialogueStep.AWAITING_CODE: StepPermissions(
        allowed_commands=_AUTH_COMMANDS,
        allowed_callbacks=frozenset({CB_CANCEL}),
        description="Ожидание кода из SMS",
    ),
    DialogueStep.WAITING_COURIER_REPLY: StepPermissions(
        allowed_commands=frozenset({CMD_CANCEL}),
        allowed_callbacks=frozenset({CB_PHOTO_YES, CB_PHOTO_NO, CB_CANCEL}),
        description="Ожидание вашего комментария по заказу",
    ),
    DialogueStep.AWAITING_PHOTO_FROM_COURIER: StepPermissions(
        allowed_commands=frozenset({CMD_CANCEL}),
        allowed_callbacks=frozenset({CB_PHOTO_DONE, CB_CANCEL}),
        description="Ожидание фотодоказательств (максимум 3 фотографии)",
    ),
    DialogueStep.AWAITING_UNIT: StepPermissions(
        allowed_commands=_INIT_CHAT_COMMANDS,
        allowed_callbacks=frozenset({CB_UNIT_CHAT_INIT, CB_CANCEL}),
        description="Выбор подразделения для чата по сырью",
    ),
    DialogueStep.AWAITING_CHAT: StepPermissions(
        allowed_commands=_INIT_CHAT_COMMANDS,
        allowed_callbacks=frozenset({CB_CANCEL}),
        description="Ожидание добавления бота в групповой чат подразделения",
    ),
    DialogueStep.AWAITING_CHAT_CONFIRMATION: StepPermissions(
        allowed_commands=_INIT_CHAT_COMMANDS,
        allowed_callbacks=frozenset({CB_CHAT_CONFIRM, CB_CHAT_RETRY, CB_CANCEL}),
        description="Подтверждение проверочного сообщения в групповом чате",
    ),
}

# Used for any step missing from the table
DEFAULT_PERMISSIONS = StepPermissions(
    allowed_commands=frozenset({CMD_CANCEL}),
    allowed_callbacks=frozenset(),
    description="Завершите текущий этап диалога",
)


def permissions_for(step: DialogueStep | str) -> StepPermissions:
    """Look up the permission entry for *step*, falling back to cancel-only."""
    try:
        return PERMISSIONS.get(DialogueStep(step), DEFAULT_PERMISSIONS)
    except ValueError:
        return DEFAULT_PERMISSIONS
