"""Result persistence and the terminal outcome shown to the candidate."""

import logging

from proctor.core.errors import PersistenceError
from proctor.schemas.assessment import AttemptCreate, AttemptOut
from proctor.schemas.session import LifecycleState, OutcomeView
from proctor.services.scoring import ScoreResult
from proctor.store.base import AssessmentStore

logger = logging.getLogger(__name__)


async def persist_attempt(
    store: AssessmentStore,
    attempt: AttemptCreate,
    score: ScoreResult | None = None,
) -> AttemptOut:
    """
    Insert exactly one immutable attempt.

    Failures are surfaced, never retried here: the candidate sees the score
    in the error dialog and retries manually.

    Raises:
        PersistenceError: If the store rejected or failed the write
    """
    try:
        saved = await store.insert_attempt(attempt)
    except PersistenceError as e:
        if e.score is None and score is not None:
            raise PersistenceError(e.message, score=score) from e
        raise
    except Exception as e:
        logger.error(f"Failed to persist attempt for user {attempt.user_id}: {e}", exc_info=True)
        raise PersistenceError(f"Failed to submit test: {e}", score=score) from e

    logger.info(
        f"Attempt {saved.id} recorded: user={saved.user_id} version={saved.version_id} "
        f"score={saved.score} passed={saved.passed} outcome={saved.outcome}"
    )
    return saved


def describe_outcome(state: LifecycleState, score: ScoreResult, recorded: bool = True) -> OutcomeView:
    """Title and message for the terminal dialog."""
    if state == LifecycleState.WITHDRAWN:
        title = "Test Withdrawn"
        message = f"You have withdrawn from the test. Score: {score.percentage}% (Failed)"
        passed = False
    else:
        passed = score.passed
        title = "Passed" if passed else "Try Again"
        message = f"Score: {score.percentage}%"
        if state == LifecycleState.TIMED_OUT:
            message = f"Time's up! Your test has been automatically submitted. {message}"

    return OutcomeView(
        lifecycle_state=state,
        title=title,
        message=message,
        score=score.percentage,
        correct_count=score.correct_count,
        total=score.total,
        passed=passed,
        recorded=recorded,
    )
