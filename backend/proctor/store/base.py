"""Durable store contract consumed by the assessment engine."""

from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from proctor.schemas.assessment import AttemptCreate, AttemptOut, QuestionOut, TestVersionOut


class AssessmentStore(Protocol):
    """Reads and append-only writes the engine needs.

    All methods are I/O and may suspend. Implementations raise their own
    errors; the engine decides which ones are fatal.
    """

    async def get_active_version(self, subject: str, now: datetime) -> TestVersionOut | None:
        """Latest active version with ``published_at <= now``, or None."""
        ...

    async def get_questions(self, version_id: UUID, limit: int) -> list[QuestionOut]:
        """Up to ``limit`` questions ordered by display order."""
        ...

    async def count_attempts(self, user_id: UUID, version_id: UUID, since: datetime) -> int:
        """Attempts for (user, version) created at or after ``since``."""
        ...

    async def insert_attempt(self, attempt: AttemptCreate) -> AttemptOut:
        """Insert exactly one attempt row."""
        ...

    async def open_telemetry_session(
        self,
        user_id: UUID,
        subject: str,
        version_id: UUID,
        device: dict[str, Any],
    ) -> UUID:
        """Mint a telemetry-session identifier."""
        ...

    async def append_telemetry_event(
        self,
        session_id: UUID,
        kind: str,
        payload: dict[str, Any],
    ) -> None:
        """Append one event; the store assigns the timestamp."""
        ...

    async def close_telemetry_session(self, session_id: UUID) -> None:
        """Mark the telemetry stream as ended."""
        ...
