"""Tests for attempt scoring."""

import pytest

from proctor.services.scoring import (
    UNANSWERED,
    finalize_answers,
    round_half_up_percent,
    score_answers,
)


class TestScoring:
    """Correct count, percentage and pass/fail."""

    def test_all_correct_scores_100(self):
        correct = [0, 1, 2, 3] * 5
        result = score_answers(list(correct), correct)
        assert result.correct_count == 20
        assert result.percentage == 100
        assert result.passed is True

    def test_all_wrong_scores_0(self):
        correct = [0, 1, 2, 3]
        result = score_answers([1, 2, 3, 0], correct)
        assert result.correct_count == 0
        assert result.percentage == 0
        assert result.passed is False

    def test_38_of_50_is_76_and_fails(self):
        correct = [0] * 50
        answers = [0] * 38 + [1] * 12
        result = score_answers(answers, correct, pass_mark=80)
        assert result.correct_count == 38
        assert result.total == 50
        assert result.percentage == 76
        assert result.passed is False

    def test_pass_mark_is_inclusive(self):
        correct = [0] * 5
        result = score_answers([0, 0, 0, 0, 1], correct, pass_mark=80)
        assert result.percentage == 80
        assert result.passed is True

    def test_unanswered_never_matches(self):
        result = score_answers([None, UNANSWERED, 0], [0, 0, 0])
        assert result.correct_count == 1

    def test_length_mismatch_rejected(self):
        with pytest.raises(ValueError):
            score_answers([0, 1], [0])

    def test_zero_questions_rejected(self):
        with pytest.raises(ValueError):
            score_answers([], [])


class TestRounding:
    """round(correct / total * 100), halves up."""

    @pytest.mark.parametrize(
        "correct,total,expected",
        [
            (1, 8, 13),  # 12.5
            (3, 8, 38),  # 37.5
            (1, 3, 33),
            (2, 3, 67),
            (0, 7, 0),
            (7, 7, 100),
            (1, 200, 1),  # 0.5
        ],
    )
    def test_round_half_up(self, correct, total, expected):
        assert round_half_up_percent(correct, total) == expected

    def test_finalize_answers_coerces_none(self):
        assert finalize_answers([None, 2, None]) == [UNANSWERED, 2, UNANSWERED]
