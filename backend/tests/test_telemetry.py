"""Tests for the telemetry recorder and visibility observer."""

import asyncio
import uuid

import pytest

from proctor.schemas.telemetry import EventType
from proctor.services.telemetry import TelemetryRecorder, VisibilityObserver
from tests.helpers.fake_store import FakeStore


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
async def open_session(store):
    recorder = TelemetryRecorder(store, enabled=True)
    session_id = await recorder.open(uuid.uuid4(), "oacp", uuid.uuid4(), {"platform": "android"})
    return recorder, session_id


class TestTelemetryRecorder:
    """Best-effort appends."""

    @pytest.mark.asyncio
    async def test_events_appended_in_order(self, store, open_session):
        recorder, session_id = open_session
        await recorder.record(session_id, EventType.START, {"question_count": 3})
        await recorder.record(session_id, EventType.QUESTION_VIEW, {"index": 0})
        await recorder.record(session_id, "next", {"to": 1})

        assert store.kinds == ["start", "question_view", "next"]
        assert store.telemetry_sessions[session_id]["device"] == {"platform": "android"}

    @pytest.mark.asyncio
    async def test_store_failure_is_swallowed(self, store, open_session):
        recorder, session_id = open_session
        store.fail_telemetry = True

        assert await recorder.record(session_id, EventType.APP_BLUR) is False
        assert await recorder.close(session_id) is False

    @pytest.mark.asyncio
    async def test_open_failure_returns_none(self, store):
        store.fail_telemetry = True
        recorder = TelemetryRecorder(store, enabled=True)
        assert await recorder.open(uuid.uuid4(), "oacp", uuid.uuid4()) is None

    @pytest.mark.asyncio
    async def test_disabled_recorder_is_a_no_op(self, store):
        recorder = TelemetryRecorder(store, enabled=False)
        assert await recorder.open(uuid.uuid4(), "oacp", uuid.uuid4()) is None
        assert await recorder.record(uuid.uuid4(), EventType.START) is False
        assert store.events == []

    @pytest.mark.asyncio
    async def test_oversized_payload_dropped(self, store):
        recorder = TelemetryRecorder(store, enabled=True, max_payload_bytes=64)
        session_id = await recorder.open(uuid.uuid4(), "oacp", uuid.uuid4())

        assert await recorder.record(session_id, EventType.ANSWER_SELECT, {"blob": "x" * 200}) is False
        assert store.events == []

    @pytest.mark.asyncio
    async def test_hung_append_times_out(self, store):
        recorder = TelemetryRecorder(store, enabled=True, timeout_seconds=0.01)
        session_id = await recorder.open(uuid.uuid4(), "oacp", uuid.uuid4())
        store.hang_appends = asyncio.Event()

        recorded = await asyncio.wait_for(recorder.record(session_id, EventType.NEXT, {"to": 1}), timeout=1.0)

        assert recorded is False
        assert store.events == []
        assert await recorder.close(session_id) is True

    @pytest.mark.asyncio
    async def test_close_stamps_end(self, store, open_session):
        recorder, session_id = open_session
        assert await recorder.close(session_id) is True
        assert store.telemetry_sessions[session_id]["ended_at"] is not None


class TestVisibilityObserver:
    """app_blur / app_focus from host state changes."""

    @pytest.mark.asyncio
    async def test_blur_then_focus(self, store, open_session):
        recorder, session_id = open_session
        observer = VisibilityObserver(recorder)

        assert await observer.on_change(session_id, "background") == EventType.APP_BLUR
        assert await observer.on_change(session_id, "active") == EventType.APP_FOCUS
        assert store.kinds == ["app_blur", "app_focus"]

    @pytest.mark.asyncio
    async def test_between_inactive_states_emits_nothing(self, store, open_session):
        recorder, session_id = open_session
        observer = VisibilityObserver(recorder)

        await observer.on_change(session_id, "inactive")
        assert await observer.on_change(session_id, "background") is None
        assert store.kinds == ["app_blur"]

    @pytest.mark.asyncio
    async def test_no_open_session_tracks_state_only(self, store):
        observer = VisibilityObserver(TelemetryRecorder(store, enabled=True))

        assert await observer.on_change(None, "background") is None
        assert observer.state == "background"
        assert store.events == []
