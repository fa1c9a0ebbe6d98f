"""Telegram staff bot adapter: long polling via python-telegram-bot v21+.

Every update first passes through ``dialogue_gateway`` (handler group -1),
which converts it into an ``InboundEvent`` and offers it to the dialogue
orchestrator. Updates the orchestrator does not consume continue to the
ordinary command handlers registered in the default group.
"""

from __future__ import annotations

import logging

from telegram import (
    Bot,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
    Update,
)
from telegram.constants import ChatMemberStatus, ChatType, ParseMode
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    ApplicationHandlerStop,
    CommandHandler,
    ContextTypes,
    TypeHandler,
)

from staffbot.config import settings
from staffbot.dialogue import messages
from staffbot.dialogue.events import (
    Attachment,
    AttachmentKind,
    EventKind,
    InboundEvent,
    Keyboard,
)
from staffbot.dialogue.orchestrator import DialogueOrchestrator, build_orchestrator
from staffbot.models.enums import StaffStatus
from staffbot.repositories.staff import staff_repository

logger = logging.getLogger(__name__)

ORCHESTRATOR_KEY = "orchestrator"

_JOINED = {ChatMemberStatus.MEMBER, ChatMemberStatus.ADMINISTRATOR}
_GONE = {ChatMemberStatus.LEFT, ChatMemberStatus.BANNED}


# ── Outbound ─────────────────────────────────────────────────────────


def build_markup(keyboard: Keyboard | None) -> InlineKeyboardMarkup | ReplyKeyboardMarkup | None:
    """Inline keyboard for callback buttons; reply keyboard when a contact is requested."""
    if not keyboard:
        return None

    if any(button.request_contact for row in keyboard for button in row):
        return ReplyKeyboardMarkup(
            [[KeyboardButton(b.text, request_contact=b.request_contact) for b in row] for row in keyboard],
            resize_keyboard=True,
            one_time_keyboard=True,
        )

    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(b.text, callback_data=b.callback) for b in row] for row in keyboard]
    )


class TelegramResponder:
    """Replies into one chat, sends to others, and downloads files sent to the bot."""

    def __init__(self, bot: Bot, chat_id: int) -> None:
        self._bot = bot
        self._chat_id = chat_id

    async def reply(self, text: str, *, keyboard: Keyboard | None = None, html: bool = False) -> None:
        await self.send(self._chat_id, text, keyboard=keyboard, html=html)

    async def send(
        self, chat_id: int, text: str, *, keyboard: Keyboard | None = None, html: bool = False
    ) -> None:
        await self._bot.send_message(
            chat_id=chat_id,
            text=text,
            reply_markup=build_markup(keyboard),
            parse_mode=ParseMode.HTML if html else None,
        )

    async def download(self, attachment: Attachment) -> bytes:
        file = await self._bot.get_file(attachment.file_id)
        return bytes(await file.download_as_bytearray())


# ── Inbound ──────────────────────────────────────────────────────────


def to_inbound_event(update: Update) -> InboundEvent | None:
    """Translate a Telegram update into a dialogue event, or None if irrelevant."""
    member = update.my_chat_member
    if member is not None:
        joined = member.new_chat_member.status in _JOINED and member.old_chat_member.status in _GONE
        if not joined:
            return None
        kind = EventKind.BOT_STARTED if member.chat.type == ChatType.PRIVATE else EventKind.BOT_ADDED
        return InboundEvent(
            kind=kind,
            user_id=member.from_user.id,
            chat_id=member.chat.id,
            update_id=update.update_id,
        )

    query = update.callback_query
    if query is not None:
        return InboundEvent(
            kind=EventKind.MESSAGE_CALLBACK,
            user_id=query.from_user.id,
            chat_id=query.message.chat.id if query.message is not None else None,
            payload=query.data,
            update_id=update.update_id,
        )

    message = update.message
    if message is None or message.from_user is None:
        return None

    contact_phone = None
    if message.contact is not None and message.contact.user_id == message.from_user.id:
        contact_phone = message.contact.phone_number

    attachments: list[Attachment] = []
    if message.photo:
        attachments.append(Attachment(file_id=message.photo[-1].file_id, mime_type="image/jpeg"))
    if message.document is not None:
        mime = message.document.mime_type
        kind = AttachmentKind.IMAGE if mime and mime.startswith("image/") else AttachmentKind.FILE
        attachments.append(Attachment(file_id=message.document.file_id, kind=kind, mime_type=mime))

    return InboundEvent(
        kind=EventKind.MESSAGE_CREATED,
        user_id=message.from_user.id,
        chat_id=message.chat_id,
        text=message.text or message.caption,
        contact_phone=contact_phone,
        attachments=tuple(attachments),
        update_id=update.update_id,
    )


async def dialogue_gateway(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Offer every update to the dialogue layer; stop further handling if it was consumed."""
    event = to_inbound_event(update)
    if event is None:
        return

    if update.callback_query is not None:
        try:
            await update.callback_query.answer()
        except TelegramError:
            logger.warning("Failed to answer callback query from user %s", event.user_id)

    orchestrator: DialogueOrchestrator = context.application.bot_data[ORCHESTRATOR_KEY]
    responder = TelegramResponder(context.bot, event.chat_id or event.user_id)
    if await orchestrator.dispatch(event, responder):
        raise ApplicationHandlerStop


# ── Fall-through commands ────────────────────────────────────────────


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/start: welcome for unknown users, role greeting for signed-in staff."""
    if update.effective_user is None or update.message is None:
        return

    staff = await staff_repository.get_linked_staff(update.effective_user.id)
    if staff is None:
        keyboard = [[KeyboardButton(messages.SHARE_CONTACT_BUTTON, request_contact=True)]]
        await update.message.reply_text(
            messages.WELCOME,
            reply_markup=ReplyKeyboardMarkup(keyboard, resize_keyboard=True, one_time_keyboard=True),
        )
        return

    if staff.status == StaffStatus.DISMISSED.value:
        await update.message.reply_text(messages.ACCESS_RESTRICTED)
        return

    await update.message.reply_text(messages.greeting(staff.first_name, staff.staff_type))


async def get_my_id_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/get_my_id: show the user's Telegram id."""
    if update.effective_user is None or update.message is None:
        return
    await update.message.reply_text(messages.my_id(update.effective_user.id))


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.message is None:
        return
    await update.message.reply_text(messages.HELP)


def create_telegram_app(orchestrator: DialogueOrchestrator | None = None) -> Application:
    """Build and configure the Telegram bot application.

    Returns the Application instance (not yet started).
    """
    token = settings.telegram.telegram_bot_token
    if not token:
        msg = "TELEGRAM_BOT_TOKEN not set in environment"
        raise ValueError(msg)

    app = Application.builder().token(token).build()
    app.bot_data[ORCHESTRATOR_KEY] = orchestrator or build_orchestrator()

    # Dialogue layer sees everything first
    app.add_handler(TypeHandler(Update, dialogue_gateway), group=-1)

    app.add_handler(CommandHandler("start", start_command))
    app.add_handler(CommandHandler("get_my_id", get_my_id_command))
    app.add_handler(CommandHandler("help", help_command))

    logger.info("Telegram bot application created")
    return app
