"""SQLAlchemy implementation of the assessment store."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from proctor.core.errors import PersistenceError
from proctor.models.assessment import TestAttempt, TestQuestion, TestVersion
from proctor.models.telemetry import TelemetryEvent, TelemetrySession
from proctor.schemas.assessment import AttemptCreate, AttemptOut, QuestionOut, TestVersionOut

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


class SqlAlchemyStore:
    """Assessment store backed by an async SQLAlchemy session factory.

    Each call runs in its own short transaction, so concurrent sessions of
    different users never share a unit of work.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        now: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.now = now

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_active_version(self, subject: str, now: datetime) -> TestVersionOut | None:
        stmt = (
            select(TestVersion)
            .where(
                TestVersion.subject == subject,
                TestVersion.is_active.is_(True),
                TestVersion.published_at <= now,
            )
            .order_by(TestVersion.published_at.desc())
            .limit(1)
        )
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            version = result.scalar_one_or_none()
            return TestVersionOut.model_validate(version) if version else None

    async def get_questions(self, version_id: UUID, limit: int) -> list[QuestionOut]:
        stmt = (
            select(TestQuestion)
            .where(TestQuestion.version_id == version_id)
            .order_by(TestQuestion.order_index.asc())
            .limit(limit)
        )
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            return [QuestionOut.model_validate(q) for q in result.scalars().all()]

    async def count_attempts(self, user_id: UUID, version_id: UUID, since: datetime) -> int:
        stmt = select(func.count(TestAttempt.id)).where(
            TestAttempt.user_id == user_id,
            TestAttempt.version_id == version_id,
            TestAttempt.created_at >= since,
        )
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            return int(result.scalar_one() or 0)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert_attempt(self, attempt: AttemptCreate) -> AttemptOut:
        row = TestAttempt(**attempt.model_dump(), created_at=self.now())
        try:
            async with self.session_factory() as db:
                db.add(row)
                await db.commit()
                return AttemptOut.model_validate(row)
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert attempt for user {attempt.user_id}: {e}", exc_info=True)
            raise PersistenceError(f"Database error: {e}") from e

    async def open_telemetry_session(
        self,
        user_id: UUID,
        subject: str,
        version_id: UUID,
        device: dict[str, Any],
    ) -> UUID:
        row = TelemetrySession(
            user_id=user_id,
            subject=subject,
            version_id=version_id,
            device=device or {},
            started_at=self.now(),
        )
        async with self.session_factory() as db:
            db.add(row)
            await db.commit()
            return row.id

    async def append_telemetry_event(
        self,
        session_id: UUID,
        kind: str,
        payload: dict[str, Any],
    ) -> None:
        async with self.session_factory() as db:
            db.add(
                TelemetryEvent(
                    session_id=session_id,
                    kind=kind,
                    payload=payload or {},
                    created_at=self.now(),
                )
            )
            await db.commit()

    async def close_telemetry_session(self, session_id: UUID) -> None:
        stmt = (
            update(TelemetrySession)
            .where(TelemetrySession.id == session_id, TelemetrySession.ended_at.is_(None))
            .values(ended_at=self.now())
        )
        async with self.session_factory() as db:
            await db.execute(stmt)
            await db.commit()
