"""Monthly attempt quota.

The check is advisory: it counts attempts and compares against the limit.
Two session starts racing from different devices can both read an
under-quota count; that window is accepted and there is no store-level
constraint behind it.
"""

import logging
from datetime import UTC, datetime
from uuid import UUID

from proctor.core.config import settings
from proctor.core.errors import QuotaExceededError
from proctor.schemas.assessment import QuotaStatus
from proctor.store.base import AssessmentStore

logger = logging.getLogger(__name__)


def _as_utc(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=UTC)
    return now.astimezone(UTC)


def period_start(now: datetime) -> datetime:
    """First instant of the current calendar month in UTC."""
    now = _as_utc(now)
    return datetime(now.year, now.month, 1, tzinfo=UTC)


def next_period_start(now: datetime) -> datetime:
    """First instant of the next calendar month in UTC."""
    now = _as_utc(now)
    if now.month == 12:
        return datetime(now.year + 1, 1, 1, tzinfo=UTC)
    return datetime(now.year, now.month + 1, 1, tzinfo=UTC)


async def get_quota_status(
    store: AssessmentStore,
    user_id: UUID,
    version_id: UUID,
    now: datetime,
    limit: int | None = None,
) -> QuotaStatus:
    """Count attempts for (user, version) in the current period."""
    limit = settings.ATTEMPTS_PER_MONTH if limit is None else limit
    since = period_start(now)
    used = await store.count_attempts(user_id, version_id, since)
    return QuotaStatus(
        used=used,
        limit=limit,
        period_start=since,
        resets_at=next_period_start(now),
    )


async def ensure_quota_available(
    store: AssessmentStore,
    user_id: UUID,
    version_id: UUID,
    now: datetime,
    limit: int | None = None,
) -> QuotaStatus:
    """
    Refuse the session start once the period's quota is used up.

    Returns:
        QuotaStatus when at least one attempt remains

    Raises:
        QuotaExceededError: If used >= limit
    """
    status = await get_quota_status(store, user_id, version_id, now, limit)
    if status.exhausted:
        logger.info(
            f"Attempt limit reached for user {user_id} on version {version_id}: "
            f"{status.used}/{status.limit}"
        )
        raise QuotaExceededError(used=status.used, limit=status.limit, resets_at=status.resets_at)
    return status
