from abc import ABC, abstractmethod
from typing import Optional

from loguru import logger
from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from book_recommender.models.recommendation import Recommendation
from book_recommender.schemas.recommendations import RecommendationKey, RecommendationRecord

from .base import KeyedLocks, acquire_advisory_lock, advisory_lock_id, store_errors


class RecommendationStore(ABC):
    """
    Durable storage of recommendations, addressed by ``RecommendationKey``.
    """

    @abstractmethod
    async def add_if_below_limit(
        self, key: RecommendationKey, comment: Optional[str], limit: int
    ) -> Optional[RecommendationRecord]:
        """
        Insert only if the user gave fewer than ``limit`` recommendations for the read book.

        Count and insert are one atomic step; the store assigns ``created_at``.
        Returns None when the limit is reached.
        """

    @abstractmethod
    async def count_by_user_and_book_read(self, user_id: str, book_read_id: int) -> int: ...

    @abstractmethod
    async def list_by_library_and_book_read(self, library_id: int, book_read_id: int) -> list[RecommendationRecord]: ...

    @abstractmethod
    async def list_by_book_read(self, book_read_id: int) -> list[RecommendationRecord]: ...

    @abstractmethod
    async def list_by_user(self, user_id: str) -> list[RecommendationRecord]:
        """Newest first."""

    @abstractmethod
    async def update_comment(self, key: RecommendationKey, comment: Optional[str]) -> bool: ...

    @abstractmethod
    async def delete(self, key: RecommendationKey) -> bool: ...


def _key_clause(key: RecommendationKey):
    return and_(
        Recommendation.user_id == key.user_id,
        Recommendation.library_id == key.library_id,
        Recommendation.book_read_id == key.book_read_id,
        Recommendation.book_suggested_id == key.book_suggested_id,
    )


class RecommendationRepository(RecommendationStore):
    """
    SQLAlchemy implementation of the recommendation store.

    Every call opens its own session, so one instance can serve concurrent requests.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._limit_locks = KeyedLocks()
        logger.debug("Recommendation repository created")

    async def add_if_below_limit(
        self, key: RecommendationKey, comment: Optional[str], limit: int
    ) -> Optional[RecommendationRecord]:
        lock_key = (key.user_id, key.book_read_id)
        async with store_errors("add_recommendation_if_below_limit", **key.model_dump(), limit=limit):
            async with self._limit_locks.hold(lock_key):
                async with self._session_factory() as session, session.begin():
                    await acquire_advisory_lock(session, advisory_lock_id("recommendations", *lock_key))
                    count = await self._count(session, key.user_id, key.book_read_id)
                    if count >= limit:
                        logger.debug(f"Limit {limit} reached for user={key.user_id}, book_read={key.book_read_id}")
                        return None
                    return await self._insert(session, key, comment)

    async def count_by_user_and_book_read(self, user_id: str, book_read_id: int) -> int:
        async with store_errors("count_recommendations", user_id=user_id, book_read_id=book_read_id):
            async with self._session_factory() as session:
                return await self._count(session, user_id, book_read_id)

    async def list_by_library_and_book_read(self, library_id: int, book_read_id: int) -> list[RecommendationRecord]:
        query = (
            select(Recommendation)
            .where(Recommendation.library_id == library_id, Recommendation.book_read_id == book_read_id)
            .order_by(Recommendation.id)
        )
        return await self._fetch(query, "list_recommendations_by_library", library_id=library_id, book_read_id=book_read_id)

    async def list_by_book_read(self, book_read_id: int) -> list[RecommendationRecord]:
        query = select(Recommendation).where(Recommendation.book_read_id == book_read_id).order_by(Recommendation.id)
        return await self._fetch(query, "list_recommendations_by_book_read", book_read_id=book_read_id)

    async def list_by_user(self, user_id: str) -> list[RecommendationRecord]:
        query = (
            select(Recommendation)
            .where(Recommendation.user_id == user_id)
            .order_by(Recommendation.created_at.desc(), Recommendation.id.desc())
        )
        return await self._fetch(query, "list_recommendations_by_user", user_id=user_id)

    async def update_comment(self, key: RecommendationKey, comment: Optional[str]) -> bool:
        logger.debug(f"Updating comment of recommendation {key}")
        async with store_errors("update_recommendation_comment", **key.model_dump()):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(update(Recommendation).where(_key_clause(key)).values(comment=comment))
                return result.rowcount > 0

    async def delete(self, key: RecommendationKey) -> bool:
        logger.debug(f"Deleting recommendation {key}")
        async with store_errors("delete_recommendation", **key.model_dump()):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(delete(Recommendation).where(_key_clause(key)))
                return result.rowcount > 0

    async def _fetch(self, query, operation: str, **context) -> list[RecommendationRecord]:
        async with store_errors(operation, **context):
            async with self._session_factory() as session:
                result = await session.execute(query)
                rows = result.scalars().all()
        logger.debug(f"{operation}: {len(rows)} rows")
        return [RecommendationRecord.model_validate(row) for row in rows]

    @staticmethod
    async def _count(session: AsyncSession, user_id: str, book_read_id: int) -> int:
        query = select(func.count(Recommendation.id)).where(
            Recommendation.user_id == user_id, Recommendation.book_read_id == book_read_id
        )
        return (await session.execute(query)).scalar_one()

    @staticmethod
    async def _insert(session: AsyncSession, key: RecommendationKey, comment: Optional[str]) -> RecommendationRecord:
        row = Recommendation(**key.model_dump(), comment=comment)
        session.add(row)
        await session.flush()
        return RecommendationRecord.model_validate(row)
