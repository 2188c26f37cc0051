"""
Scoring for multiple-choice attempts.

Pure functions: no I/O, no clock. Unanswered slots use the ``UNANSWERED``
sentinel, which never matches a correct index.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from proctor.core.config import settings

UNANSWERED = -1


@dataclass(frozen=True)
class ScoreResult:
    """Outcome of scoring one answer vector."""

    correct_count: int
    total: int
    percentage: int
    passed: bool


def round_half_up_percent(correct: int, total: int) -> int:
    """
    ``round(correct / total * 100)`` with halves rounded up.

    Integer arithmetic, so 0.5 boundaries never suffer float error.

    Raises:
        ValueError: If total is not positive
    """
    if total <= 0:
        raise ValueError(f"total must be > 0, got {total}")
    return (correct * 200 + total) // (2 * total)


def finalize_answers(answers: Sequence[int | None]) -> list[int]:
    """Coerce unanswered slots to the sentinel."""
    return [UNANSWERED if a is None else a for a in answers]


def score_answers(
    answers: Sequence[int | None],
    correct_indices: Sequence[int],
    pass_mark: int | None = None,
) -> ScoreResult:
    """
    Score an answer vector against post-shuffle correct indices.

    Args:
        answers: Chosen index per question (None or UNANSWERED if skipped)
        correct_indices: Correct choice index per question
        pass_mark: Minimum percentage to pass (default from settings)

    Returns:
        ScoreResult

    Raises:
        ValueError: If lengths differ or there are no questions
    """
    if len(answers) != len(correct_indices):
        raise ValueError(
            f"answer vector length {len(answers)} != question count {len(correct_indices)}"
        )
    pass_mark = settings.PASS_MARK_PERCENT if pass_mark is None else pass_mark

    final = finalize_answers(answers)
    correct = sum(
        1
        for picked, expected in zip(final, correct_indices)
        if picked != UNANSWERED and picked == expected
    )
    total = len(correct_indices)
    percentage = round_half_up_percent(correct, total)
    return ScoreResult(
        correct_count=correct,
        total=total,
        percentage=percentage,
        passed=percentage >= pass_mark,
    )
