"""In-memory assessment store for engine tests."""

import asyncio
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from proctor.schemas.assessment import AttemptCreate, AttemptOut, QuestionOut, TestVersionOut


class StoreUnavailable(Exception):
    """Simulated network failure."""


@dataclass
class RecordedEvent:
    session_id: UUID
    kind: str
    payload: dict[str, Any]
    created_at: datetime


@dataclass
class FakeStore:
    """Implements AssessmentStore with failure injection.

    ``fail_inserts`` makes the next N insert_attempt calls fail;
    ``fail_telemetry`` makes every telemetry call fail;
    ``hang_appends`` makes event appends wait until the event is set.
    """

    now: Callable[[], datetime] = lambda: datetime.now(UTC)
    versions: list[TestVersionOut] = field(default_factory=list)
    questions: dict[UUID, list[QuestionOut]] = field(default_factory=dict)
    attempts: list[AttemptOut] = field(default_factory=list)
    telemetry_sessions: dict[UUID, dict[str, Any]] = field(default_factory=dict)
    events: list[RecordedEvent] = field(default_factory=list)
    fail_inserts: int = 0
    fail_telemetry: bool = False
    hang_appends: asyncio.Event | None = None
    insert_calls: int = 0

    def add_version(self, version: TestVersionOut, questions: list[QuestionOut]) -> None:
        self.versions.append(version)
        self.questions[version.id] = list(questions)

    def add_attempt(self, user_id: UUID, version_id: UUID, created_at: datetime, subject: str = "oacp") -> None:
        self.attempts.append(
            AttemptOut(
                id=uuid.uuid4(),
                user_id=user_id,
                subject=subject,
                version_id=version_id,
                score=50,
                correct_count=25,
                total=50,
                passed=False,
                outcome="SUBMITTED",
                created_at=created_at,
            )
        )

    def events_of(self, kind: str) -> list[RecordedEvent]:
        return [e for e in self.events if e.kind == kind]

    @property
    def kinds(self) -> list[str]:
        return [e.kind for e in self.events]

    # -- AssessmentStore -------------------------------------------------

    async def get_active_version(self, subject: str, now: datetime) -> TestVersionOut | None:
        candidates = [
            v for v in self.versions if v.subject == subject and v.is_active and v.published_at <= now
        ]
        candidates.sort(key=lambda v: v.published_at, reverse=True)
        return candidates[0] if candidates else None

    async def get_questions(self, version_id: UUID, limit: int) -> list[QuestionOut]:
        stored = sorted(self.questions.get(version_id, []), key=lambda q: q.order_index)
        return stored[:limit]

    async def count_attempts(self, user_id: UUID, version_id: UUID, since: datetime) -> int:
        return sum(
            1
            for a in self.attempts
            if a.user_id == user_id and a.version_id == version_id and a.created_at >= since
        )

    async def insert_attempt(self, attempt: AttemptCreate) -> AttemptOut:
        self.insert_calls += 1
        if self.fail_inserts > 0:
            self.fail_inserts -= 1
            raise StoreUnavailable("network unreachable")
        saved = AttemptOut(id=uuid.uuid4(), created_at=self.now(), **attempt.model_dump())
        self.attempts.append(saved)
        return saved

    async def open_telemetry_session(
        self, user_id: UUID, subject: str, version_id: UUID, device: dict[str, Any]
    ) -> UUID:
        if self.fail_telemetry:
            raise StoreUnavailable("telemetry unavailable")
        session_id = uuid.uuid4()
        self.telemetry_sessions[session_id] = {
            "user_id": user_id,
            "subject": subject,
            "version_id": version_id,
            "device": device,
            "ended_at": None,
        }
        return session_id

    async def append_telemetry_event(self, session_id: UUID, kind: str, payload: dict[str, Any]) -> None:
        if self.hang_appends is not None:
            await self.hang_appends.wait()
        if self.fail_telemetry:
            raise StoreUnavailable("telemetry unavailable")
        self.events.append(RecordedEvent(session_id, kind, dict(payload), self.now()))

    async def close_telemetry_session(self, session_id: UUID) -> None:
        if self.fail_telemetry:
            raise StoreUnavailable("telemetry unavailable")
        self.telemetry_sessions[session_id]["ended_at"] = self.now()
