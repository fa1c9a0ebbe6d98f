"""Shared fixtures for the dialogue tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from staffbot.dialogue.events import Attachment, Keyboard


class FakeResponder:
    """Records replies and sends instead of delivering them."""

    def __init__(self) -> None:
        self.replies: list[tuple[str, Keyboard | None, bool]] = []
        self.downloads: list[str] = []
        self.fail_downloads: set[str] = set()
        self.sent: list[tuple[int, str, Keyboard | None, bool]] = []
        self.fail_replies = False

    async def reply(self, text: str, *, keyboard: Keyboard | None = None, html: bool = False) -> None:
        if self.fail_replies:
            msg = "chat unavailable"
            raise RuntimeError(msg)
        self.replies.append((text, keyboard, html))

    async def send(
        self, chat_id: int, text: str, *, keyboard: Keyboard | None = None, html: bool = False
    ) -> None:
        self.sent.append((chat_id, text, keyboard, html))

    async def download(self, attachment: Attachment) -> bytes:
        self.downloads.append(attachment.file_id)
        if attachment.file_id in self.fail_downloads:
            msg = f"cannot download {attachment.file_id}"
            raise RuntimeError(msg)
        return f"bytes-of-{attachment.file_id}".encode()

    @property
    def texts(self) -> list[str]:
        return [text for text, _, _ in self.replies]

    @property
    def last(self) -> str:
        return self.replies[-1][0]


class FakeClock:
    """Settable wall clock."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def responder() -> FakeResponder:
    return FakeResponder()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def mock_emit():
    """Keep dialogue events off the real event bus."""
    emit = AsyncMock()
    with (
        patch("staffbot.dialogue.auth.emit", emit),
        patch("staffbot.dialogue.courier.emit", emit),
        patch("staffbot.dialogue.init_chat.emit", emit),
        patch("staffbot.dialogue.orchestrator.emit", emit),
    ):
        yield emit
