"""
Database engine and session factory.

The engine and the session factory are created by the application lifespan
and handed to each store; nothing here keeps a module-level connection.
"""

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from book_recommender.core.config import settings
from book_recommender.core.exceptions import CommunicationFailureException
from book_recommender.core.logger_config import logger
from book_recommender.models.base import Base


def create_db_engine(database_url: str | None = None, echo: bool | None = None) -> AsyncEngine:
    """
    Create the async engine.

    Args:
        database_url: Connection URL, ``settings.DATABASE_URL`` by default
        echo: Echo SQL statements, ``settings.DB_ECHO`` by default

    Returns:
        AsyncEngine: SQLAlchemy async engine
    """
    url = database_url or settings.DATABASE_URL
    echo = settings.DB_ECHO if echo is None else echo
    logger.info(f"Creating database engine for {url.split('@')[-1]}")

    if url.startswith("sqlite") and ":memory:" in url:
        # Every session has to see the same in-memory database
        return create_async_engine(url, echo=echo, poolclass=StaticPool)
    return create_async_engine(url, echo=echo, future=True, pool_pre_ping=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory handed to the stores."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


async def init_db(engine: AsyncEngine) -> None:
    """
    Check the connection and create missing tables.

    Raises:
        CommunicationFailureException: If the database cannot be reached
    """
    logger.info("Initializing database...")
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            await conn.run_sync(Base.metadata.create_all)
    except SQLAlchemyError as e:
        logger.error(f"Error during database initialization: {e}")
        raise CommunicationFailureException(f"Could not initialize the database: {e}") from e
    logger.success("Database initialized successfully.")


async def dispose_engine(engine: AsyncEngine) -> None:
    await engine.dispose()
    logger.info("Database engine disposed")
