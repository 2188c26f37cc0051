"""
Question set assembly.

Selects the current published version for a subject, fetches its questions
in display order, and gives every session its own choice order. Stored
questions are never mutated; each call produces a fresh shuffle.
"""

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from proctor.core.config import settings
from proctor.core.errors import NotFoundError
from proctor.schemas.assessment import QuestionOut, TestVersionOut
from proctor.store.base import AssessmentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PresentedQuestion:
    """A question with this session's choice order."""

    question_id: UUID
    prompt: str
    choices: tuple[str, ...]
    correct_index: int


@dataclass(frozen=True)
class AssembledTest:
    """Version plus its per-session presentation."""

    version: TestVersionOut
    questions: tuple[PresentedQuestion, ...]


def shuffle_choices(
    choices: Sequence[str],
    correct_index: int,
    rng: random.Random | None = None,
) -> tuple[tuple[str, ...], int]:
    """
    Fisher-Yates permutation of the choices with the correct index remapped.

    Zero- and one-choice questions pass through unchanged.

    Args:
        choices: Choice texts in stored order
        correct_index: Index of the correct choice in ``choices``
        rng: Random source (default: module-level random)

    Returns:
        (shuffled choices, new correct index)

    Raises:
        ValueError: If ``correct_index`` is not a position in ``choices``
    """
    if len(choices) < 2:
        return tuple(choices), correct_index

    if not 0 <= correct_index < len(choices):
        raise ValueError(f"correct_index {correct_index} out of range for {len(choices)} choices")

    rng = rng or random.Random()
    order = list(range(len(choices)))
    for i in range(len(order) - 1, 0, -1):
        j = rng.randint(0, i)
        order[i], order[j] = order[j], order[i]

    shuffled = tuple(choices[i] for i in order)
    return shuffled, order.index(correct_index)


def present_question(question: QuestionOut, rng: random.Random | None = None) -> PresentedQuestion:
    """Build this session's view of a stored question."""
    choices, correct_index = shuffle_choices(question.choices, question.correct_index, rng)
    return PresentedQuestion(
        question_id=question.id,
        prompt=question.prompt,
        choices=choices,
        correct_index=correct_index,
    )


async def assemble_question_set(
    store: AssessmentStore,
    subject: str,
    now: datetime,
    rng: random.Random | None = None,
    limit: int | None = None,
) -> AssembledTest:
    """
    Fetch the current version for ``subject`` and shuffle its questions.

    Raises:
        NotFoundError: No active version is published, or it has no questions.
            Callers show a "no test available" state and do not retry.
    """
    limit = limit or settings.QUESTIONS_PER_TEST

    version = await store.get_active_version(subject, now)
    if version is None:
        logger.info(f"No active test version for subject {subject}")
        raise NotFoundError(
            "No test available for this step yet.",
            details={"subject": subject},
        )

    stored = await store.get_questions(version.id, limit)
    if not stored:
        logger.warning(f"Test version {version.id} has no questions")
        raise NotFoundError(
            "No questions available.",
            details={"subject": subject, "version_id": str(version.id)},
            code="NO_QUESTIONS",
        )

    questions = tuple(present_question(q, rng) for q in stored[:limit])
    return AssembledTest(version=version, questions=questions)
