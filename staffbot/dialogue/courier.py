"""Courier problem-order dialogue: text explanation, then optional photo evidence.

waiting_courier_reply --text--> (photo_yes | photo_no)
photo_no  -> finished
photo_yes -> awaiting_photo_from_courier --photos / photo_done--> finished
"""

from __future__ import annotations

import logging

from staffbot.config import DialogueSettings
from staffbot.dialogue import messages
from staffbot.dialogue.events import Attachment, Button, InboundEvent, Responder
from staffbot.dialogue.reply import safe_reply
from staffbot.dialogue.sessions import CourierSession
from staffbot.dialogue.states import CB_PHOTO_DONE, CB_PHOTO_NO, CB_PHOTO_YES, DialogueStep
from staffbot.dialogue.store import SessionStore
from staffbot.events.bus import emit
from staffbot.integrations.storage.client import PhotoStorage, object_name_for
from staffbot.repositories.problem_orders import ProblemOrderRepository
from staffbot.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)


class CourierDialogue:
    """Step handlers of the problem-order reply dialogue."""

    def __init__(
        self,
        store: SessionStore[CourierSession],
        orders: ProblemOrderRepository,
        storage: PhotoStorage,
        config: DialogueSettings,
    ) -> None:
        self.store = store
        self._orders = orders
        self._storage = storage
        self._max_length = config.courier_reply_max_length
        self._max_photos = config.max_courier_photos

    async def start(self, event: InboundEvent, responder: Responder) -> None:
        """``problemOrderReply:<orderId>`` tap under a problem-order notification."""
        _, _, order_id = (event.payload or "").partition(":")
        order_id = order_id.strip()
        if not order_id:
            logger.warning("[order_missing] problemOrderReply without order id from user %s", event.user_id)
            await safe_reply(responder, messages.ORDER_NOT_FOUND)
            return

        self.store.create(event.user_id, order_id=order_id)
        logger.info("[courier_dialog] user %s replying to order %s", event.user_id, order_id)
        await safe_reply(responder, messages.courier_reply_prompt(self._max_length))

    async def handle_message(self, event: InboundEvent, session: CourierSession, responder: Responder) -> None:
        match session.step:
            case DialogueStep.WAITING_COURIER_REPLY:
                await self._handle_reply(event, session, responder)
            case DialogueStep.AWAITING_PHOTO_FROM_COURIER:
                await self._handle_photos(event, session, responder)
            case _:
                logger.error("[step_unknown] courier session of user %s in %s", event.user_id, session.step)

    async def handle_callback(self, event: InboundEvent, session: CourierSession, responder: Responder) -> None:
        payload = event.payload
        if payload == CB_PHOTO_DONE:
            await self._finish(event.user_id, session.order_id, session.photos, responder)
            return
        if payload not in (CB_PHOTO_YES, CB_PHOTO_NO):
            logger.debug("[callback_ignored] %s from user %s", payload, event.user_id)
            return

        if not session.reply_saved:
            await safe_reply(responder, messages.REPLY_FIRST)
            return

        if payload == CB_PHOTO_NO:
            self.store.delete(event.user_id)
            await safe_reply(responder, messages.COURIER_FINISHED)
            return

        self.store.update(event.user_id, step=DialogueStep.AWAITING_PHOTO_FROM_COURIER)
        await safe_reply(
            responder,
            messages.photo_prompt(self._max_photos),
            keyboard=[[Button(messages.PHOTO_DONE, callback=CB_PHOTO_DONE)]],
        )

    # ── Steps ────────────────────────────────────────────────────────

    async def _handle_reply(self, event: InboundEvent, session: CourierSession, responder: Responder) -> None:
        text = (event.text or "").strip()
        if not text or event.attachments or len(text) > self._max_length:
            logger.debug("[reply_rejected] user %s, order %s", event.user_id, session.order_id)
            await safe_reply(responder, messages.reply_rejected(self._max_length), html=True)
            return

        saved = await self._orders.save_courier_comment(session.order_id, text)
        if self.store.get(event.user_id) is None:
            return
        if not saved:
            self.store.delete(event.user_id)
            await safe_reply(responder, messages.ORDER_NOT_FOUND)
            return

        self.store.update(event.user_id, reply_saved=True)
        await safe_reply(
            responder,
            messages.PHOTO_QUESTION,
            keyboard=[[
                Button(messages.PHOTO_YES, callback=CB_PHOTO_YES),
                Button(messages.PHOTO_NO, callback=CB_PHOTO_NO),
            ]],
        )
        await emit(SystemEvent(
            event_type=EventType.COURIER_REPLY_RECEIVED,
            actor_id=str(event.user_id),
            data={"order_id": session.order_id, "length": len(text)},
            source_module="dialogue.courier",
        ))

    async def _handle_photos(self, event: InboundEvent, session: CourierSession, responder: Responder) -> None:
        images = event.images
        if not images:
            await safe_reply(responder, messages.photo_required(self._max_photos))
            return

        photos = (session.photos + images)[: self._max_photos]
        if len(photos) >= self._max_photos:
            await self._finish(event.user_id, session.order_id, photos, responder)
            return

        self.store.update(event.user_id, photos=photos)
        await safe_reply(
            responder,
            messages.photo_received(len(photos), self._max_photos),
            keyboard=[[Button(messages.PHOTO_DONE, callback=CB_PHOTO_DONE)]],
        )

    async def _finish(
        self,
        user_id: int,
        order_id: str,
        photos: tuple[Attachment, ...],
        responder: Responder,
    ) -> None:
        """End the dialogue, then upload *photos* and replace the order's stored set."""
        self.store.delete(user_id)
        if not photos:
            await safe_reply(responder, messages.COURIER_FINISHED)
            return

        urls: list[str] = []
        for number, photo in enumerate(photos, start=1):
            try:
                data = await responder.download(photo)
            except Exception:
                logger.exception("Failed to download photo %d of order %s", number, order_id)
                continue
            url = await self._storage.upload(data, object_name_for(order_id), photo.mime_type or "image/jpeg")
            if url is not None:
                urls.append(url)

        if urls:
            await self._orders.replace_photos(order_id, urls)

        await safe_reply(responder, messages.photos_saved(len(urls), len(photos)))
        await emit(SystemEvent(
            event_type=EventType.COURIER_PHOTOS_SAVED,
            actor_id=str(user_id),
            data={"order_id": order_id, "uploaded": len(urls), "total": len(photos)},
            source_module="dialogue.courier",
        ))
