import asyncio
import hashlib
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from book_recommender.core.exceptions import BookRecommenderException, CommunicationFailureException
from book_recommender.core.logger_config import log_store_error


@asynccontextmanager
async def store_errors(operation: str, **context) -> AsyncIterator[None]:
    """
    Wrap persistence errors raised inside the block into ``CommunicationFailureException``.

    Domain exceptions pass through untouched; the original error is chained as ``__cause__``.
    """
    try:
        yield
    except BookRecommenderException:
        raise
    except (SQLAlchemyError, OSError, UnicodeError) as e:
        log_store_error(e, operation, context)
        raise CommunicationFailureException(
            message=f"Store failure during {operation}", details={"operation": operation, **context}
        ) from e


class KeyedLocks:
    """
    One ``asyncio.Lock`` per key, dropped again once nobody holds or waits for it.
    """

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


def advisory_lock_id(*parts: object) -> int:
    """Stable signed 64-bit id for ``pg_advisory_xact_lock``, identical across processes."""
    digest = hashlib.blake2b("|".join(str(p) for p in parts).encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


async def acquire_advisory_lock(session: AsyncSession, lock_id: int) -> bool:
    """
    Take a transaction-scoped advisory lock when the backend supports it.

    Returns:
        bool: True if a database lock was taken (PostgreSQL only)
    """
    if session.get_bind().dialect.name != "postgresql":
        return False
    await session.execute(text("SELECT pg_advisory_xact_lock(:lock_id)"), {"lock_id": lock_id})
    return True
