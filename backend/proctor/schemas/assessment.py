"""Pydantic schemas for test versions, questions, attempts and quota."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class TestVersionOut(BaseModel):
    """Published test version."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    subject: str
    title: str | None = None
    published_at: datetime
    is_active: bool = True


class QuestionOut(BaseModel):
    """Stored question exactly as published (never mutated by the engine)."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    version_id: UUID
    order_index: int
    prompt: str
    choices: tuple[str, ...]
    correct_index: int

    @field_validator("choices", mode="before")
    @classmethod
    def normalize_choices(cls, v):
        """Accept a bare list or the legacy ``{"choices": [...]}`` wrapper."""
        if isinstance(v, dict):
            v = v.get("choices") or []
        if v is None:
            return ()
        return tuple(str(c) for c in v)

    @model_validator(mode="after")
    def check_correct_index(self):
        """The correct index must point at one of the choices."""
        if not 0 <= self.correct_index < len(self.choices):
            raise ValueError(
                f"correct_index {self.correct_index} out of range for {len(self.choices)} choices"
            )
        return self


class AttemptCreate(BaseModel):
    """Attempt row to insert."""

    user_id: UUID
    subject: str
    version_id: UUID
    score: int = Field(..., ge=0, le=100)
    correct_count: int = Field(..., ge=0)
    total: int = Field(..., ge=1)
    passed: bool
    outcome: str


class AttemptOut(AttemptCreate):
    """Persisted attempt."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    created_at: datetime


class QuotaStatus(BaseModel):
    """Attempts consumed in the current period for a (user, version) pair."""

    used: int
    limit: int
    period_start: datetime
    resets_at: datetime

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    @property
    def exhausted(self) -> bool:
        return self.used >= self.limit
