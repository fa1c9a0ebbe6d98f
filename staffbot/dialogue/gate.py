"""Permission gate: keeps stray commands and button taps out of an active dialogue."""

from __future__ import annotations

import logging

from staffbot.dialogue import messages
from staffbot.dialogue.events import EventKind, InboundEvent, Responder
from staffbot.dialogue.reply import safe_reply
from staffbot.dialogue.states import DialogueStep, permissions_for

logger = logging.getLogger(__name__)


def callback_action(payload: str) -> str:
    """Action part of a ``action:arg:...`` callback payload."""
    return payload.split(":", 1)[0]


class PermissionGate:
    """Decides whether a command or callback may run while a step is pending."""

    def is_command_allowed(self, step: DialogueStep, command: str) -> bool:
        return command in permissions_for(step).allowed_commands

    def is_callback_allowed(self, step: DialogueStep, payload: str) -> bool:
        allowed = permissions_for(step).allowed_callbacks
        return payload in allowed or callback_action(payload) in allowed

    def step_description(self, step: DialogueStep) -> str:
        return permissions_for(step).description

    async def check(self, event: InboundEvent, step: DialogueStep, responder: Responder) -> bool:
        """Return True if *event* may proceed; otherwise explain and return False.

        Plain text and attachments always pass; only commands and
        callbacks are subject to the table.
        """
        if event.kind == EventKind.MESSAGE_CALLBACK and event.payload:
            if self.is_callback_allowed(step, event.payload):
                return True
            logger.debug("[dialog_blocker] callback %s blocked for user %s in %s", event.payload, event.user_id, step.value)
            await safe_reply(responder, messages.step_blocked(self.step_description(step)))
            return False

        command = event.command if event.kind == EventKind.MESSAGE_CREATED else None
        if command is not None and not self.is_command_allowed(step, command):
            logger.debug("[dialog_blocker] command %s blocked for user %s in %s", command, event.user_id, step.value)
            await safe_reply(responder, messages.step_blocked(self.step_description(step)))
            return False

        return True
