"""Assessment models: published test versions, their questions, and attempts."""

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from proctor.db.base import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


class TestVersion(Base):
    """Immutable, published snapshot of a question set for one subject/step.

    Created by an external authoring process. The engine only reads it.
    """

    __tablename__ = "test_versions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    subject = Column(String(100), nullable=False)  # application step key
    title = Column(String(255), nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    questions = relationship(
        "TestQuestion",
        back_populates="version",
        cascade="all, delete-orphan",
        order_by="TestQuestion.order_index",
    )

    __table_args__ = (
        Index("ix_test_versions_subject_published", "subject", "published_at"),
    )


class TestQuestion(Base):
    """Multiple-choice question owned by exactly one test version."""

    __tablename__ = "test_questions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    version_id = Column(
        Uuid,
        ForeignKey("test_versions.id", ondelete="CASCADE"),
        nullable=False,
    )
    order_index = Column(Integer, nullable=False)
    prompt = Column(Text, nullable=False)
    choices = Column(JSONType, nullable=False)  # ["...", "..."] or {"choices": [...]}
    correct_index = Column(SmallInteger, nullable=False)

    version = relationship("TestVersion", back_populates="questions")

    __table_args__ = (
        UniqueConstraint("version_id", "order_index", name="uq_test_question_order"),
        Index("ix_test_questions_version_order", "version_id", "order_index"),
    )


class TestAttempt(Base):
    """Durable outcome of one finished session.

    IMPORTANT: Written exactly once per session and never updated or deleted.
    There is deliberately no per-period uniqueness constraint here; the monthly
    quota is enforced by a count before the session starts.
    """

    __tablename__ = "test_attempts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False)
    subject = Column(String(100), nullable=False)
    version_id = Column(Uuid, ForeignKey("test_versions.id"), nullable=False)

    score = Column(SmallInteger, nullable=False)  # 0-100
    correct_count = Column(Integer, nullable=False)
    total = Column(Integer, nullable=False)
    passed = Column(Boolean, nullable=False)
    outcome = Column(String(20), nullable=False)  # SUBMITTED | TIMED_OUT | WITHDRAWN

    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_test_attempts_user_version_created", "user_id", "version_id", "created_at"),
    )
