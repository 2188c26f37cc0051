"""Property-based tests for scoring invariants."""

from hypothesis import given, settings
from hypothesis import strategies as st

from proctor.services.scoring import round_half_up_percent, score_answers


@settings(max_examples=100, deadline=None)
@given(
    correct_indices=st.lists(st.integers(min_value=0, max_value=3), min_size=1, max_size=60),
    data=st.data(),
    pass_mark=st.integers(min_value=0, max_value=100),
)
def test_score_bounds_and_pass_threshold(correct_indices, data, pass_mark):
    """
    Property: scores are bounded and pass exactly at the mark.

    Invariants:
    - 0 <= correct_count <= total
    - 0 <= percentage <= 100
    - passed iff percentage >= pass_mark
    """
    answers = data.draw(
        st.lists(
            st.one_of(st.none(), st.integers(min_value=-1, max_value=3)),
            min_size=len(correct_indices),
            max_size=len(correct_indices),
        )
    )

    result = score_answers(answers, correct_indices, pass_mark=pass_mark)

    assert 0 <= result.correct_count <= result.total == len(correct_indices)
    assert 0 <= result.percentage <= 100
    assert result.passed == (result.percentage >= pass_mark)


@settings(max_examples=100, deadline=None)
@given(correct_indices=st.lists(st.integers(min_value=0, max_value=3), min_size=1, max_size=60))
def test_unanswered_never_scores(correct_indices):
    """Property: an empty answer vector scores zero."""
    result = score_answers([None] * len(correct_indices), correct_indices, pass_mark=80)

    assert result.correct_count == 0
    assert result.percentage == 0
    assert result.passed is False


@settings(max_examples=200, deadline=None)
@given(data=st.data(), total=st.integers(min_value=1, max_value=500))
def test_rounding_matches_half_up(data, total):
    """Property: integer rounding agrees with floor(x + 0.5) on exact fractions."""
    correct = data.draw(st.integers(min_value=0, max_value=total))

    percentage = round_half_up_percent(correct, total)

    # percentage - 0.5 <= correct/total*100 < percentage + 0.5, scaled to integers
    assert (2 * percentage - 1) * total <= 200 * correct < (2 * percentage + 1) * total
