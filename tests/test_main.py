"""Tests for the health endpoint and the periodic session sweep."""

from __future__ import annotations

import asyncio
import contextlib
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from staffbot.main import app, sweep_sessions


class TestHealth:
    def test_health_without_dialogue_layer(self):
        # Lifespan is not run outside a `with` block
        response = TestClient(app).get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["auth_sessions"] == 0
        assert body["courier_sessions"] == 0
        assert body["init_chat_sessions"] == 0

    def test_health_reports_session_counts(self):
        orchestrator = MagicMock()
        orchestrator.auth_sessions.__len__.return_value = 2
        orchestrator.courier_sessions.__len__.return_value = 1
        orchestrator.init_chat_sessions.__len__.return_value = 3
        app.state.orchestrator = orchestrator
        try:
            body = TestClient(app).get("/health").json()
        finally:
            del app.state.orchestrator

        assert body["auth_sessions"] == 2
        assert body["courier_sessions"] == 1
        assert body["init_chat_sessions"] == 3


class TestSweep:
    @pytest.mark.asyncio()
    async def test_sweep_runs_periodically(self):
        orchestrator = MagicMock()

        task = asyncio.create_task(sweep_sessions(orchestrator, interval=0.01, max_age=3600))
        await asyncio.sleep(0.05)
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

        assert orchestrator.cleanup_expired_sessions.call_count >= 2
        orchestrator.cleanup_expired_sessions.assert_called_with(3600)
