"""Telemetry recorder for test session integrity events.

IMPORTANT: All telemetry operations are best-effort. Failures must NOT break
the session state transition they are attached to, and every store call is
bounded by ``TELEMETRY_TIMEOUT_SECONDS`` so a hung write cannot hold the
session up either.
"""

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, TypeVar
from uuid import UUID

from proctor.core.config import settings
from proctor.schemas.telemetry import EventType, payload_size
from proctor.store.base import AssessmentStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

ACTIVE = "active"
BACKGROUND_STATES = frozenset({"inactive", "background"})


class TelemetryRecorder:
    """Appends ordered events for a telemetry session.

    Delivery is at-most-once per call: nothing is retried, and a lost or
    timed-out event is only logged.
    """

    def __init__(
        self,
        store: AssessmentStore,
        enabled: bool | None = None,
        max_payload_bytes: int | None = None,
        timeout_seconds: float | None = None,
    ):
        self.store = store
        self.enabled = settings.TELEMETRY_ENABLED if enabled is None else enabled
        self.max_payload_bytes = max_payload_bytes or settings.TELEMETRY_PAYLOAD_MAX_BYTES
        self.timeout_seconds = timeout_seconds or settings.TELEMETRY_TIMEOUT_SECONDS

    async def _bounded(self, call: Awaitable[T]) -> T:
        return await asyncio.wait_for(call, timeout=self.timeout_seconds)

    async def open(
        self,
        user_id: UUID,
        subject: str,
        version_id: UUID,
        device: dict[str, Any] | None = None,
    ) -> UUID | None:
        """Open a telemetry session. Returns None if disabled or the store failed."""
        if not self.enabled:
            return None
        try:
            return await self._bounded(
                self.store.open_telemetry_session(user_id, subject, version_id, device or {})
            )
        except asyncio.TimeoutError:
            logger.warning(f"Timed out opening telemetry session for user {user_id}")
            return None
        except Exception as e:
            # Best-effort: log error but don't raise
            logger.warning(f"Failed to open telemetry session for user {user_id}: {e}", exc_info=True)
            return None

    async def record(
        self,
        session_id: UUID | None,
        kind: EventType | str,
        payload: dict[str, Any] | None = None,
    ) -> bool:
        """
        Append one event (best-effort).

        Args:
            session_id: Telemetry session, or None when no stream is open
            kind: Event kind
            payload: Event-specific data

        Returns:
            True if the store accepted the event in time
        """
        if not self.enabled or session_id is None:
            return False

        kind_str = kind.value if isinstance(kind, EventType) else kind
        payload = payload or {}
        if payload_size(payload) > self.max_payload_bytes:
            logger.warning(f"Dropped telemetry event {kind_str}: payload exceeds {self.max_payload_bytes} bytes")
            return False

        try:
            await self._bounded(self.store.append_telemetry_event(session_id, kind_str, payload))
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Dropped telemetry event {kind_str}: store did not answer in {self.timeout_seconds}s")
            return False
        except Exception as e:
            logger.warning(f"Failed to log telemetry event {kind_str}: {e}")
            return False

    async def close(self, session_id: UUID | None) -> bool:
        """Mark the stream as ended (best-effort)."""
        if not self.enabled or session_id is None:
            return False
        try:
            await self._bounded(self.store.close_telemetry_session(session_id))
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Timed out closing telemetry session {session_id}")
            return False
        except Exception as e:
            logger.warning(f"Failed to close telemetry session {session_id}: {e}")
            return False


class VisibilityObserver:
    """Turns host application state changes into app_blur / app_focus events.

    States follow the host convention: ``active``, ``inactive``, ``background``.
    """

    def __init__(self, recorder: TelemetryRecorder, initial_state: str = ACTIVE):
        self.recorder = recorder
        self.state = initial_state

    async def on_change(self, session_id: UUID | None, next_state: str) -> EventType | None:
        """
        Record a blur or focus event for the transition, if any.

        Returns:
            The event kind emitted, or None
        """
        previous = self.state
        self.state = next_state
        if session_id is None:
            return None

        kind = None
        if previous == ACTIVE and next_state in BACKGROUND_STATES:
            kind = EventType.APP_BLUR
        elif previous in BACKGROUND_STATES and next_state == ACTIVE:
            kind = EventType.APP_FOCUS

        if kind is not None:
            await self.recorder.record(session_id, kind, {})
        return kind
