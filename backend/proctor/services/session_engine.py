"""
Session state machine for a timed assessment.

Pure transitions: each function takes a ``Session`` value and returns a
``Transition`` holding the next ``Session`` plus the side effects to run, in
order. Nothing here awaits, reads the clock, or touches the store; the
controller supplies timestamps and executes the effects.

Lifecycle:
    CONSENT -> ACTIVE -> SUBMITTED | TIMED_OUT | WITHDRAWN

Terminal states are mutually exclusive and reached at most once. Every
terminal transition on a session that is no longer ACTIVE is a no-op.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Union
from uuid import UUID

from proctor.core.errors import IncompleteAnswersError, InvalidAnswerError, SessionStateError
from proctor.schemas.session import LifecycleState
from proctor.schemas.telemetry import EventType
from proctor.services.question_set import AssembledTest, PresentedQuestion
from proctor.services.scoring import ScoreResult, score_answers

# ============================================================================
# Effects
# ============================================================================


@dataclass(frozen=True)
class RecordEvent:
    """Append a telemetry event."""

    kind: EventType
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StartClock:
    """Start the repeating countdown tick."""

    seconds: int


@dataclass(frozen=True)
class StopClock:
    """Cancel the countdown tick."""


@dataclass(frozen=True)
class PersistAttempt:
    """Write the attempt record."""

    outcome: LifecycleState
    score: ScoreResult
    passed: bool


@dataclass(frozen=True)
class CloseTelemetry:
    """Mark the telemetry stream as ended."""


Effect = Union[RecordEvent, StartClock, StopClock, PersistAttempt, CloseTelemetry]


# ============================================================================
# Session value
# ============================================================================


@dataclass(frozen=True)
class Session:
    """One attempt, in memory. Replaced, never mutated."""

    user_id: UUID
    subject: str
    version_id: UUID
    questions: tuple[PresentedQuestion, ...]
    answers: tuple[int | None, ...]
    remaining_seconds: int
    pass_mark: int
    state: LifecycleState = LifecycleState.CONSENT
    current_index: int = 0
    telemetry_session_id: UUID | None = None
    last_action_at: float | None = None  # monotonic seconds
    score: ScoreResult | None = None

    def __post_init__(self):
        if len(self.answers) != len(self.questions):
            raise ValueError(
                f"answer vector length {len(self.answers)} != question count {len(self.questions)}"
            )

    @classmethod
    def create(
        cls,
        user_id: UUID,
        subject: str,
        assembled: AssembledTest,
        duration_seconds: int,
        pass_mark: int,
    ) -> "Session":
        """New session in CONSENT with an empty answer vector."""
        if not assembled.questions:
            raise ValueError("A session needs at least one question")
        return cls(
            user_id=user_id,
            subject=subject,
            version_id=assembled.version.id,
            questions=assembled.questions,
            answers=(None,) * len(assembled.questions),
            remaining_seconds=duration_seconds,
            pass_mark=pass_mark,
        )

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def answered_count(self) -> int:
        return sum(1 for a in self.answers if a is not None)

    @property
    def unanswered_indices(self) -> list[int]:
        return [i for i, a in enumerate(self.answers) if a is None]

    @property
    def is_active(self) -> bool:
        return self.state == LifecycleState.ACTIVE

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def compute_score(self) -> ScoreResult:
        return score_answers(
            self.answers,
            [q.correct_index for q in self.questions],
            pass_mark=self.pass_mark,
        )


@dataclass(frozen=True)
class Transition:
    """Next session plus ordered side effects."""

    session: Session
    effects: tuple[Effect, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return any(isinstance(e, PersistAttempt) for e in self.effects)


def _unchanged(session: Session) -> Transition:
    return Transition(session=session)


def _view_event(session: Session, index: int) -> RecordEvent:
    return RecordEvent(
        EventType.QUESTION_VIEW,
        {"question_id": str(session.questions[index].question_id), "index": index},
    )


# ============================================================================
# Transitions
# ============================================================================


def start(session: Session, telemetry_session_id: UUID | None, now: float) -> Transition:
    """
    CONSENT -> ACTIVE after explicit acceptance.

    The quota re-check and telemetry-session open happen before this call.

    Raises:
        SessionStateError: If the session is not awaiting consent
    """
    if session.state != LifecycleState.CONSENT:
        raise SessionStateError(
            f"Cannot start a session in state {session.state.value}",
            details={"state": session.state.value},
        )

    active = replace(
        session,
        state=LifecycleState.ACTIVE,
        current_index=0,
        telemetry_session_id=telemetry_session_id,
        last_action_at=now,
    )
    return Transition(
        session=active,
        effects=(
            StartClock(active.remaining_seconds),
            RecordEvent(EventType.START, {"question_count": active.question_count}),
            _view_event(active, 0),
        ),
    )


def select_answer(session: Session, index: int, choice: int, now: float) -> Transition:
    """
    Record a choice for question ``index``. Overwriting is allowed.

    Ignored once the session is no longer ACTIVE.

    Raises:
        InvalidAnswerError: If the question or choice index is out of range
    """
    if not session.is_active:
        return _unchanged(session)
    if not 0 <= index < session.question_count:
        raise InvalidAnswerError(
            f"Question index {index} out of range",
            details={"index": index, "question_count": session.question_count},
        )
    question = session.questions[index]
    if not 0 <= choice < len(question.choices):
        raise InvalidAnswerError(
            f"Choice {choice} out of range for question {index}",
            details={"index": index, "choice": choice, "choice_count": len(question.choices)},
        )

    answers = list(session.answers)
    answers[index] = choice
    latency_ms = int(round((now - session.last_action_at) * 1000)) if session.last_action_at is not None else 0

    return Transition(
        session=replace(session, answers=tuple(answers), last_action_at=now),
        effects=(
            RecordEvent(
                EventType.ANSWER_SELECT,
                {
                    "question_id": str(question.question_id),
                    "selected_index": choice,
                    "latency_ms": max(0, latency_ms),
                },
            ),
        ),
    )


def navigate(session: Session, to_index: int, now: float) -> Transition:
    """Move to ``to_index``. Out-of-range targets are silently ignored."""
    if not session.is_active or not 0 <= to_index < session.question_count:
        return _unchanged(session)

    direction = EventType.NEXT if to_index > session.current_index else EventType.PREV
    moved = replace(session, current_index=to_index, last_action_at=now)
    return Transition(
        session=moved,
        effects=(
            RecordEvent(direction, {"to": to_index}),
            _view_event(moved, to_index),
        ),
    )


def _terminate(session: Session, outcome: LifecycleState) -> Transition:
    score = session.compute_score()
    passed = score.passed and outcome != LifecycleState.WITHDRAWN
    ended = replace(session, state=outcome, score=score)

    if outcome == LifecycleState.WITHDRAWN:
        event = RecordEvent(
            EventType.WITHDRAW,
            {"score": score.percentage, "correct_count": score.correct_count},
        )
    else:
        event = RecordEvent(
            EventType.SUBMIT,
            {
                "score": score.percentage,
                "correct_count": score.correct_count,
                "time_up": outcome == LifecycleState.TIMED_OUT,
            },
        )

    return Transition(
        session=ended,
        effects=(
            StopClock(),
            PersistAttempt(outcome=outcome, score=score, passed=passed),
            event,
            CloseTelemetry(),
        ),
    )


def submit(session: Session) -> Transition:
    """
    ACTIVE -> SUBMITTED. Every question must be answered.

    Raises:
        IncompleteAnswersError: If any slot is unanswered (no state change)
    """
    if not session.is_active:
        return _unchanged(session)
    unanswered = session.unanswered_indices
    if unanswered:
        raise IncompleteAnswersError(unanswered)
    return _terminate(session, LifecycleState.SUBMITTED)


def expire(session: Session) -> Transition:
    """ACTIVE -> TIMED_OUT. Unanswered slots score as incorrect."""
    if not session.is_active:
        return _unchanged(session)
    return _terminate(replace(session, remaining_seconds=0), LifecycleState.TIMED_OUT)


def withdraw(session: Session) -> Transition:
    """ACTIVE -> WITHDRAWN. Always recorded as failed; cannot be resumed."""
    if not session.is_active:
        return _unchanged(session)
    return _terminate(session, LifecycleState.WITHDRAWN)


def tick(session: Session) -> Transition:
    """One second elapsed. Reaching zero performs the timeout itself."""
    if not session.is_active:
        return _unchanged(session)
    remaining = max(0, session.remaining_seconds - 1)
    if remaining == 0:
        return expire(session)
    return Transition(session=replace(session, remaining_seconds=remaining))
