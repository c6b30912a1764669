"""Device token lookups and registration."""

import uuid
from collections.abc import Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from notifier.core.datetime_utils import utc_now
from notifier.core.logging import get_logger
from notifier.models.device_token import DeviceToken

logger = get_logger(__name__)


async def get_tokens_for_user(db: AsyncSession, user_id: str) -> list[str]:
    """Get all push tokens registered for a user."""
    try:
        result = await db.execute(
            select(DeviceToken.token)
            .where(DeviceToken.user_id == user_id)
            .order_by(DeviceToken.created_at)
        )
    except SQLAlchemyError as e:
        logger.bind(user_id=user_id, error=str(e)).error("token_lookup_failed")
        raise
    return list(result.scalars().all())


def _insert_for(db: AsyncSession):
    """Dialect-specific INSERT supporting ON CONFLICT."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return postgresql_insert


async def _find_token(db: AsyncSession, token: str) -> DeviceToken | None:
    result = await db.execute(select(DeviceToken).where(DeviceToken.token == token))
    return result.scalar_one_or_none()


async def register_token(
    db: AsyncSession,
    token: str,
    user_id: str,
    platform: str | None = None,
) -> DeviceToken:
    """Register a device token, moving it to ``user_id`` if already known.

    The write is a single upsert on the unique token column, so two
    concurrent registrations of the same new token cannot collide.

    Args:
        db: Database session (caller commits)
        token: Push-delivery handle from the device
        user_id: Owner of the device
        platform: Optional platform tag ("android", "ios", ...)

    Returns:
        The created or updated DeviceToken
    """
    existing = await _find_token(db, token)
    previous_user_id = existing.user_id if existing else None

    now = utc_now()
    insert = _insert_for(db)
    stmt = insert(DeviceToken).values(
        id=uuid.uuid4(),
        user_id=user_id,
        token=token,
        platform=platform,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["token"],
        set_={
            "user_id": stmt.excluded.user_id,
            "platform": stmt.excluded.platform,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    await db.execute(stmt)

    result = await db.execute(
        select(DeviceToken)
        .where(DeviceToken.token == token)
        .execution_options(populate_existing=True)
    )
    device_token = result.scalar_one()

    if existing is None:
        logger.bind(user_id=user_id, platform=platform).info("device_token_registered")
    elif previous_user_id != user_id:
        logger.bind(
            previous_user_id=previous_user_id,
            user_id=user_id,
        ).info("device_token_reassigned")

    return device_token


async def remove_tokens(db: AsyncSession, tokens: Sequence[str]) -> int:
    """Delete the given tokens. Returns the number of rows removed."""
    if not tokens:
        return 0
    result = await db.execute(delete(DeviceToken).where(DeviceToken.token.in_(tokens)))
    removed = result.rowcount or 0
    logger.bind(removed=removed).info("device_tokens_removed")
    return removed


async def get_token_statistics(db: AsyncSession) -> tuple[int, int]:
    """Get (total_users, total_tokens) across the registry."""
    total_tokens = (await db.execute(select(func.count(DeviceToken.id)))).scalar() or 0
    total_users = (
        await db.execute(select(func.count(func.distinct(DeviceToken.user_id))))
    ).scalar() or 0
    return total_users, total_tokens
