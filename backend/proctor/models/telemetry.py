"""Telemetry models for integrity monitoring of test sessions."""

import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from proctor.db.base import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


class TelemetrySession(Base):
    """One monitored test session. ``ended_at`` marks the stream as closed."""

    __tablename__ = "telemetry_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    subject = Column(String(100), nullable=False)
    version_id = Column(Uuid, ForeignKey("test_versions.id"), nullable=False)
    device = Column(JSONType, nullable=False, default=dict)  # {"platform": "ios", ...}

    started_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    events = relationship(
        "TelemetryEvent",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="TelemetryEvent.id",
    )


class TelemetryEvent(Base):
    """Telemetry events for test sessions (append-only log).

    IMPORTANT: This is an append-only table. Do NOT update or delete events.
    The autoincrement id preserves insertion order within a session.
    """

    __tablename__ = "telemetry_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(
        Uuid,
        ForeignKey("telemetry_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    kind = Column(String(50), nullable=False)
    payload = Column(JSONType, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False)  # server timestamp

    session = relationship("TelemetrySession", back_populates="events")

    __table_args__ = (
        Index("ix_telemetry_events_session_id", "session_id", "id"),
        Index("ix_telemetry_events_kind_ts", "kind", "created_at"),
    )
