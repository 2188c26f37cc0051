"""Engine exceptions with a consistent error envelope.

Every user-visible failure surfaces as a single message with one remediation
action. The presentation layer renders ``to_dict()`` directly.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from proctor.services.scoring import ScoreResult


class ProctorError(Exception):
    """Engine error with standardized error code."""

    code = "ENGINE_ERROR"

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: str | None = None,
    ):
        """Initialize engine error."""
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, Any]:
        """Mobile-safe error envelope: {error_code, message, details}."""
        return {
            "error_code": self.code,
            "message": self.message,
            "details": self.details or None,
        }


class NotFoundError(ProctorError):
    """No published, active test version (or it has no questions)."""

    code = "TEST_NOT_AVAILABLE"


class QuotaExceededError(ProctorError):
    """User has used every attempt allowed in the current period."""

    code = "ATTEMPT_LIMIT_REACHED"

    def __init__(self, used: int, limit: int, resets_at: datetime):
        super().__init__(
            f"You have used your {limit} attempts for this month.",
            details={"used": used, "limit": limit, "resets_at": resets_at.isoformat()},
        )
        self.used = used
        self.limit = limit
        self.resets_at = resets_at


class IncompleteAnswersError(ProctorError):
    """Explicit submit with unanswered questions."""

    code = "INCOMPLETE_ANSWERS"

    def __init__(self, unanswered: list[int]):
        super().__init__(
            "Please answer all questions before submitting.",
            details={"unanswered": unanswered},
        )
        self.unanswered = unanswered


class PersistenceError(ProctorError):
    """Attempt write failed; the score is known but not recorded."""

    code = "PERSISTENCE_FAILED"

    def __init__(self, message: str, score: "ScoreResult | None" = None):
        details = None
        if score is not None:
            details = {
                "score": score.percentage,
                "correct_count": score.correct_count,
                "total": score.total,
                "passed": score.passed,
            }
        super().__init__(message, details=details)
        self.score = score


class InvalidAnswerError(ProctorError):
    """Question or choice index outside the session's range."""

    code = "INVALID_ANSWER"


class SessionStateError(ProctorError):
    """Action is structurally illegal in the current lifecycle state."""

    code = "INVALID_SESSION_STATE"
