"""Presentation-facing schemas for a running assessment session."""

from enum import Enum as PyEnum

from pydantic import BaseModel


class LifecycleState(str, PyEnum):
    """Lifecycle of one attempt."""

    CONSENT = "CONSENT"
    ACTIVE = "ACTIVE"
    SUBMITTED = "SUBMITTED"
    TIMED_OUT = "TIMED_OUT"
    WITHDRAWN = "WITHDRAWN"

    @property
    def is_terminal(self) -> bool:
        return self in (LifecycleState.SUBMITTED, LifecycleState.TIMED_OUT, LifecycleState.WITHDRAWN)


class QuestionView(BaseModel):
    """One question as shown to the candidate (correct index withheld)."""

    index: int
    prompt: str
    choices: list[str]
    selected_index: int | None = None


class SessionView(BaseModel):
    """State the presentation layer renders."""

    lifecycle_state: LifecycleState
    current_index: int
    question_count: int
    answered_count: int
    remaining_seconds: int
    remaining_display: str  # M:SS
    low_time: bool
    exit_pending: bool = False
    attempts_used: int | None = None
    attempts_limit: int | None = None
    current_question: QuestionView | None = None


class OutcomeView(BaseModel):
    """Terminal result dialog."""

    lifecycle_state: LifecycleState
    title: str
    message: str
    score: int
    correct_count: int
    total: int
    passed: bool
    recorded: bool
