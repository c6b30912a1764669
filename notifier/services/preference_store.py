"""Scheduling queries and updates for notification preferences."""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from notifier.core.logging import get_logger
from notifier.models.preference import NotificationPreference
from notifier.services.due_selector import select_due

logger = get_logger(__name__)


async def get_preferences(db: AsyncSession, user_id: str) -> NotificationPreference | None:
    """Get a user's notification preferences, if any."""
    result = await db.execute(
        select(NotificationPreference).where(NotificationPreference.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def get_users_due_for_notification(
    db: AsyncSession,
    now: datetime,
) -> list[NotificationPreference]:
    """Get preferences of users who should be notified at ``now``.

    Loads every enabled preference and applies the due-selection predicate
    in-process, so the same rule is used everywhere.

    Args:
        db: Database session
        now: The cycle's evaluation time (naive UTC)

    Returns:
        Preferences of due users
    """
    try:
        result = await db.execute(
            select(NotificationPreference)
            .where(NotificationPreference.enabled == True)  # noqa: E712
            .order_by(NotificationPreference.user_id)
        )
        preferences = result.scalars().all()
    except SQLAlchemyError as e:
        logger.bind(error=str(e)).error("due_users_query_failed")
        raise

    due = select_due(preferences, now)

    logger.bind(
        enabled_count=len(preferences),
        due_count=len(due),
        now=now.isoformat(),
    ).debug("due_users_selected")

    return due


async def update_last_notification_sent(
    db: AsyncSession,
    user_id: str,
    now: datetime,
) -> bool:
    """Set a user's last-sent marker to the cycle timestamp.

    A missing row (preference deleted concurrently) is a no-op. Writing the
    same ``now`` twice leaves the row unchanged.

    Args:
        db: Database session (caller commits)
        user_id: The user to update
        now: The cycle's evaluation time

    Returns:
        True if a preference row was updated
    """
    try:
        result = await db.execute(
            update(NotificationPreference)
            .where(NotificationPreference.user_id == user_id)
            .values(last_notification_sent=now, updated_at=now)
        )
    except SQLAlchemyError as e:
        logger.bind(user_id=user_id, error=str(e)).error("last_notification_update_failed")
        raise

    updated = bool(result.rowcount)
    if not updated:
        logger.bind(user_id=user_id).debug("last_notification_update_no_row")
    return updated
