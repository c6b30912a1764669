import ssl
from collections.abc import AsyncGenerator
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from notifier.config import get_settings
from notifier.core.logging import get_logger

logger = get_logger(__name__)

settings = get_settings()


def _fix_postgres_url(url: str) -> tuple[str, dict]:
    """
    Fix a hosted Postgres connection URL for asyncpg compatibility.

    Hosted providers include params like sslmode, channel_binding that asyncpg
    doesn't accept. We strip them and handle SSL via connect_args.

    - For remote hosts: Use SSL with default context
    - For local dev (localhost/127.0.0.1/db) and sqlite: No SSL
    """
    parsed = urlparse(url)
    if parsed.scheme.startswith("sqlite"):
        return url, {}

    params = parse_qs(parsed.query)

    # Remove unsupported asyncpg params
    unsupported = ["sslmode", "channel_binding", "options"]
    for param in unsupported:
        params.pop(param, None)

    # Rebuild URL without unsupported params
    new_query = urlencode(params, doseq=True)
    clean_url = urlunparse(parsed._replace(query=new_query))

    hostname = parsed.hostname or ""
    is_local = hostname in ("localhost", "127.0.0.1", "db")

    if is_local:
        return clean_url, {}
    else:
        ssl_context = ssl.create_default_context()
        return clean_url, {"ssl": ssl_context}


clean_url, connect_args = _fix_postgres_url(settings.database_url)

_pool_args: dict = (
    {}
    if clean_url.startswith("sqlite")
    else {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10, "pool_recycle": 280}
)

engine = create_async_engine(
    clean_url,
    echo=settings.debug,
    connect_args=connect_args,
    **_pool_args,
)

# Separate engine for the notification scheduler so a slow cycle never starves
# API requests of connections. Sized for max_concurrent_users token lookups.
_scheduler_pool_args: dict = (
    {}
    if clean_url.startswith("sqlite")
    else {
        "pool_pre_ping": True,
        "pool_size": 2,
        "max_overflow": settings.notification_max_concurrent_users,
        "pool_recycle": 180,
    }
)

scheduler_engine = create_async_engine(
    clean_url,
    echo=False,
    connect_args=connect_args,
    **_scheduler_pool_args,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

SchedulerSessionLocal = async_sessionmaker(
    scheduler_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.bind(error=str(e)).error("database_transaction_rollback")
            await session.rollback()
            raise
