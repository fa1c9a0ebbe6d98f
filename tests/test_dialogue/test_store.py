"""Tests for the keyed session store.

Covers: single session per key (old timer cancelled), timer reset on
update, no resurrection after delete/expiry, copy semantics, age sweep.
"""

from __future__ import annotations

import asyncio

import pytest

from staffbot.dialogue.sessions import AuthSession, CourierSession
from staffbot.dialogue.states import DialogueStep
from staffbot.dialogue.store import SessionStore


@pytest.fixture()
def make_store(clock):
    """Factory for an auth session store with a given timeout."""
    def _make(timeout: float = 60) -> SessionStore[AuthSession]:
        return SessionStore("auth", AuthSession, timeout, clock=clock)
    return _make


class TestCreate:
    @pytest.mark.asyncio()
    async def test_create_sets_defaults(self, make_store, clock):
        store = make_store()
        store.create(42)

        session = store.get(42)
        assert session is not None
        assert session.step == DialogueStep.AWAITING_PHONE
        assert session.attempts_count == 0
        assert session.created_at == clock.now
        store.clear()

    @pytest.mark.asyncio()
    async def test_create_with_initial_fields(self, make_store):
        store = make_store()
        store.create(42, phone="79991234567")

        assert store.get(42).phone == "79991234567"
        store.clear()

    @pytest.mark.asyncio()
    async def test_second_create_replaces_session_and_timer(self, make_store):
        store = make_store(timeout=0.1)
        store.create(42, phone="79990000001")
        first_handle = store.timers._timers[42]

        await asyncio.sleep(0.06)
        store.create(42)

        assert len(store) == 1
        assert len(store.timers) == 1
        assert first_handle.cancelled()
        assert store.get(42).phone is None

        # The first timer would have fired here; the replacement has not yet
        await asyncio.sleep(0.06)
        assert 42 in store

        await asyncio.sleep(0.1)
        assert 42 not in store


class TestGet:
    def test_get_missing_returns_none(self, make_store):
        assert make_store().get(1) is None

    @pytest.mark.asyncio()
    async def test_get_returns_copy(self, make_store):
        store = make_store()
        store.create(42)

        snapshot = store.get(42)
        snapshot.phone = "79991234567"

        assert store.get(42).phone is None
        store.clear()


class TestUpdate:
    @pytest.mark.asyncio()
    async def test_update_merges_fields(self, make_store):
        store = make_store()
        store.create(42, phone="79991234567")

        assert store.update(42, step=DialogueStep.AWAITING_CODE, code=1234) is True

        session = store.get(42)
        assert session.step == DialogueStep.AWAITING_CODE
        assert session.code == 1234
        assert session.phone == "79991234567"
        store.clear()

    @pytest.mark.asyncio()
    async def test_update_resets_timer_to_full_timeout(self, make_store):
        store = make_store(timeout=0.12)
        store.create(42)

        await asyncio.sleep(0.08)
        store.update(42, phone="79991234567")

        remaining = store.timers.remaining(42)
        assert remaining is not None
        assert remaining > 0.1

        await asyncio.sleep(0.08)
        assert 42 in store  # would have expired without the reset

        await asyncio.sleep(0.1)
        assert 42 not in store

    def test_update_missing_session_is_noop(self, make_store, caplog):
        store = make_store()

        assert store.update(42, phone="79991234567") is False
        assert 42 not in store
        assert "session_not_found" in caplog.text

    @pytest.mark.asyncio()
    async def test_update_after_delete_does_not_resurrect(self, make_store):
        store = make_store()
        store.create(42)
        store.delete(42)

        assert store.update(42, attempts_count=3) is False
        assert store.get(42) is None
        assert len(store.timers) == 0


class TestExpiry:
    @pytest.mark.asyncio()
    async def test_timeout_removes_session(self, make_store):
        store = make_store(timeout=0.01)
        store.create(42)

        await asyncio.sleep(0.05)

        assert store.get(42) is None
        assert store.update(42, phone="79991234567") is False
        assert store.get(42) is None


class TestDelete:
    @pytest.mark.asyncio()
    async def test_delete_cancels_timer(self, make_store):
        store = make_store()
        store.create(42)

        assert store.delete(42) is True
        assert 42 not in store
        assert 42 not in store.timers

    def test_delete_missing_is_safe(self, make_store):
        assert make_store().delete(42) is False


class TestCleanupExpiredSessions:
    @pytest.mark.asyncio()
    async def test_sweep_removes_only_old_sessions(self, make_store, clock):
        store = make_store()
        store.create(1)
        clock.advance(100)
        store.create(2)
        clock.advance(50)

        removed = store.cleanup_expired_sessions(max_age=120)

        assert removed == 1
        assert 1 not in store
        assert 2 in store
        assert 1 not in store.timers
        store.clear()


class TestCourierStore:
    @pytest.mark.asyncio()
    async def test_courier_session_defaults(self, clock):
        store: SessionStore[CourierSession] = SessionStore("courier", CourierSession, 60, clock=clock)
        store.create(7, order_id="A-1")

        session = store.get(7)
        assert session.step == DialogueStep.WAITING_COURIER_REPLY
        assert session.order_id == "A-1"
        assert session.photos == ()
        assert session.reply_saved is False
        store.clear()
