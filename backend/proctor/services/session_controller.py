"""Session controller: owns one Session and executes its side effects.

User input, countdown ticks and host visibility changes all arrive on the
same event loop. Each action runs under the controller's lock, so a tick that
reaches zero while a submit is persisting waits for it and then finds the
session already terminal.
"""

import asyncio
import logging
import random
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from proctor.core.config import settings
from proctor.core.errors import PersistenceError, SessionStateError
from proctor.schemas.assessment import AttemptCreate, AttemptOut, QuotaStatus
from proctor.schemas.session import LifecycleState, OutcomeView, QuestionView, SessionView
from proctor.services import session_engine as engine
from proctor.services.clock import AsyncioTicker, Ticker
from proctor.services.question_set import assemble_question_set
from proctor.services.quota import ensure_quota_available, get_quota_status
from proctor.services.results import describe_outcome, persist_attempt
from proctor.services.session_engine import (
    CloseTelemetry,
    Effect,
    PersistAttempt,
    RecordEvent,
    Session,
    StartClock,
    StopClock,
    Transition,
)
from proctor.services.telemetry import TelemetryRecorder, VisibilityObserver
from proctor.store.base import AssessmentStore

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


def format_remaining(seconds: int) -> str:
    """Render remaining time as M:SS."""
    seconds = max(0, seconds)
    return f"{seconds // 60}:{seconds % 60:02d}"


class SessionController:
    """
    Drives one timed attempt for one user.

    Usage:
        controller = SessionController(store, user_id, "oacp")
        await controller.prepare()            # assemble + quota, shows consent
        await controller.accept_consent({"platform": "ios"})
        await controller.select_answer(0, 2)
        await controller.navigate(1)
        outcome = await controller.submit()
    """

    def __init__(
        self,
        store: AssessmentStore,
        user_id: UUID,
        subject: str,
        *,
        recorder: TelemetryRecorder | None = None,
        ticker: Ticker | None = None,
        now: Callable[[], datetime] = utcnow,
        monotonic: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
        duration_seconds: int | None = None,
        pass_mark: int | None = None,
        attempts_limit: int | None = None,
        question_limit: int | None = None,
        low_time_seconds: int | None = None,
    ):
        self.store = store
        self.user_id = user_id
        self.subject = subject
        self.recorder = recorder or TelemetryRecorder(store)
        self.visibility = VisibilityObserver(self.recorder)
        self.ticker: Ticker = ticker or AsyncioTicker()
        self._now = now
        self._monotonic = monotonic
        self._rng = rng

        self.duration_seconds = duration_seconds or settings.TEST_DURATION_SECONDS
        self.pass_mark = settings.PASS_MARK_PERCENT if pass_mark is None else pass_mark
        self.attempts_limit = attempts_limit or settings.ATTEMPTS_PER_MONTH
        self.question_limit = question_limit or settings.QUESTIONS_PER_TEST
        self.low_time_seconds = (
            settings.LOW_TIME_WARNING_SECONDS if low_time_seconds is None else low_time_seconds
        )

        self.session: Session | None = None
        self.quota: QuotaStatus | None = None
        self.attempt: AttemptOut | None = None
        self.persist_error: PersistenceError | None = None
        self.exit_pending = False

        self._lock = asyncio.Lock()
        self._terminal_claimed = False
        self._telemetry_open = False
        self._pending: tuple[Effect, ...] = ()

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    async def prepare(self) -> SessionView:
        """
        Assemble the question set and check the quota before consent is shown.

        Raises:
            NotFoundError: No test available for the subject
            QuotaExceededError: Attempts for this period are used up
        """
        now = self._now()
        assembled = await assemble_question_set(
            self.store, self.subject, now, rng=self._rng, limit=self.question_limit
        )
        self.quota = await ensure_quota_available(
            self.store, self.user_id, assembled.version.id, now, self.attempts_limit
        )
        self.session = Session.create(
            self.user_id,
            self.subject,
            assembled,
            duration_seconds=self.duration_seconds,
            pass_mark=self.pass_mark,
        )
        return self.view()

    async def accept_consent(self, device: dict[str, Any] | None = None) -> SessionView:
        """
        CONSENT -> ACTIVE.

        Re-checks the quota, opens the telemetry stream and starts the clock.

        Raises:
            QuotaExceededError: Another attempt was recorded since prepare()
            SessionStateError: Not prepared, or consent already given
        """
        async with self._lock:
            session = self._require_session()
            if session.state != LifecycleState.CONSENT:
                raise SessionStateError(
                    f"Cannot start a session in state {session.state.value}",
                    details={"state": session.state.value},
                )
            self.quota = await ensure_quota_available(
                self.store, self.user_id, session.version_id, self._now(), self.attempts_limit
            )
            telemetry_id = await self.recorder.open(
                self.user_id, self.subject, session.version_id, device
            )
            self._telemetry_open = telemetry_id is not None
            await self._apply(engine.start(session, telemetry_id, self._monotonic()))
            logger.info(
                f"Session started: user={self.user_id} subject={self.subject} "
                f"version={session.version_id} questions={session.question_count}"
            )
            return self.view()

    # ------------------------------------------------------------------
    # Active-state actions
    # ------------------------------------------------------------------

    async def select_answer(self, index: int, choice: int) -> SessionView:
        """Pick ``choice`` for question ``index``."""
        async with self._lock:
            session = self._require_session()
            await self._apply(engine.select_answer(session, index, choice, self._monotonic()))
            return self.view()

    async def navigate(self, to_index: int) -> SessionView:
        async with self._lock:
            session = self._require_session()
            await self._apply(engine.navigate(session, to_index, self._monotonic()))
            return self.view()

    async def next(self) -> SessionView:
        return await self.navigate(self._require_session().current_index + 1)

    async def previous(self) -> SessionView:
        return await self.navigate(self._require_session().current_index - 1)

    async def tick(self) -> None:
        """Countdown callback. Performs the timeout when time runs out."""
        async with self._lock:
            if self.session is None:
                return
            transition = engine.tick(self.session)
            if transition.is_terminal:
                logger.info(f"Session timed out: user={self.user_id} version={self.session.version_id}")
            await self._apply(transition)

    # ------------------------------------------------------------------
    # Terminal actions
    # ------------------------------------------------------------------

    async def submit(self) -> OutcomeView | None:
        """
        ACTIVE -> SUBMITTED.

        Returns:
            The outcome, or None if the session had already ended

        Raises:
            IncompleteAnswersError: Unanswered questions remain (no state change)
            PersistenceError: The attempt could not be recorded; retry_persist()
        """
        async with self._lock:
            await self._apply(engine.submit(self._require_session()))
            return self.outcome

    async def withdraw(self) -> OutcomeView | None:
        """ACTIVE -> WITHDRAWN. Recorded as failed; cannot be resumed."""
        async with self._lock:
            self.exit_pending = False
            await self._apply(engine.withdraw(self._require_session()))
            return self.outcome

    def request_exit(self) -> bool:
        """
        Back/exit gesture from the host.

        Returns:
            True if the gesture was intercepted and a confirmation is pending;
            False if the host may leave (no test in progress).
        """
        if self.session is not None and self.session.is_active:
            self.exit_pending = True
            return True
        return False

    async def confirm_exit(self) -> OutcomeView | None:
        """Confirmation accepted: withdraw."""
        if not self.exit_pending:
            raise SessionStateError("No exit confirmation is pending")
        return await self.withdraw()

    def cancel_exit(self) -> None:
        """Confirmation declined: keep going, nothing changes."""
        self.exit_pending = False

    async def retry_persist(self) -> OutcomeView | None:
        """
        Re-run the attempt write after a PersistenceError.

        Raises:
            SessionStateError: Nothing is waiting to be persisted
            PersistenceError: The write failed again
        """
        async with self._lock:
            if not self._pending:
                raise SessionStateError("No attempt is waiting to be recorded")
            pending, self._pending = self._pending, ()
            await self._run_effects(pending)
            return self.outcome

    # ------------------------------------------------------------------
    # Host signals
    # ------------------------------------------------------------------

    async def on_visibility_change(self, state: str) -> None:
        """
        Host app moved between active / inactive / background.

        Serialized with transitions, so a blur that races a terminal action
        lands either before its terminal event or not at all.
        """
        async with self._lock:
            session_id = self.session.telemetry_session_id if self.session and self._telemetry_open else None
            await self.visibility.on_change(session_id, state)

    async def aclose(self) -> None:
        """Teardown: the countdown must never outlive the controller."""
        self.ticker.cancel()
        if self.session is not None and self.session.is_active:
            logger.warning(f"Session abandoned while active: user={self.user_id}")

    async def __aenter__(self) -> "SessionController":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    @property
    def state(self) -> LifecycleState | None:
        return self.session.state if self.session else None

    @property
    def outcome(self) -> OutcomeView | None:
        """Terminal dialog, available once a terminal state is reached."""
        if self.session is None or self.session.score is None:
            return None
        return describe_outcome(self.session.state, self.session.score, recorded=self.attempt is not None)

    def view(self) -> SessionView:
        session = self._require_session()
        question = session.questions[session.current_index]
        return SessionView(
            lifecycle_state=session.state,
            current_index=session.current_index,
            question_count=session.question_count,
            answered_count=session.answered_count,
            remaining_seconds=session.remaining_seconds,
            remaining_display=format_remaining(session.remaining_seconds),
            low_time=session.is_active and session.remaining_seconds <= self.low_time_seconds,
            exit_pending=self.exit_pending,
            attempts_used=self.quota.used if self.quota else None,
            attempts_limit=self.quota.limit if self.quota else None,
            current_question=QuestionView(
                index=session.current_index,
                prompt=question.prompt,
                choices=list(question.choices),
                selected_index=session.answers[session.current_index],
            ),
        )

    def question_view(self, index: int) -> QuestionView:
        session = self._require_session()
        question = session.questions[index]
        return QuestionView(
            index=index,
            prompt=question.prompt,
            choices=list(question.choices),
            selected_index=session.answers[index],
        )

    async def quota_status(self) -> QuotaStatus:
        """Fresh quota numbers for the consent / limit screens."""
        session = self._require_session()
        return await get_quota_status(
            self.store, self.user_id, session.version_id, self._now(), self.attempts_limit
        )

    # ------------------------------------------------------------------
    # Effect execution
    # ------------------------------------------------------------------

    def _require_session(self) -> Session:
        if self.session is None:
            raise SessionStateError("Session has not been prepared")
        return self.session

    def _commit(self, transition: Transition) -> bool:
        """
        Install the next session. Check-and-set of the terminal flag happens
        here, with no await in between.
        """
        if transition.is_terminal:
            if self._terminal_claimed:
                return False
            self._terminal_claimed = True
        self.session = transition.session
        return True

    async def _apply(self, transition: Transition) -> None:
        if not self._commit(transition):
            return
        await self._run_effects(transition.effects)

    async def _run_effects(self, effects: tuple[Effect, ...]) -> None:
        for position, effect in enumerate(effects):
            if isinstance(effect, PersistAttempt):
                try:
                    await self._persist(effect)
                except PersistenceError as e:
                    self._pending = effects[position:]
                    self.persist_error = e
                    raise
            else:
                await self._execute(effect)

    async def _execute(self, effect: Effect) -> None:
        session = self._require_session()
        if isinstance(effect, StartClock):
            self.ticker.start(self.tick)
        elif isinstance(effect, StopClock):
            self.ticker.cancel()
        elif isinstance(effect, RecordEvent):
            if self._telemetry_open:
                await self.recorder.record(session.telemetry_session_id, effect.kind, effect.payload)
        elif isinstance(effect, CloseTelemetry):
            if self._telemetry_open:
                self._telemetry_open = False
                await self.recorder.close(session.telemetry_session_id)

    async def _persist(self, effect: PersistAttempt) -> None:
        session = self._require_session()
        attempt = AttemptCreate(
            user_id=session.user_id,
            subject=session.subject,
            version_id=session.version_id,
            score=effect.score.percentage,
            correct_count=effect.score.correct_count,
            total=effect.score.total,
            passed=effect.passed,
            outcome=effect.outcome.value,
        )
        self.attempt = await persist_attempt(self.store, attempt, score=effect.score)
        self.persist_error = None
