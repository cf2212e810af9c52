import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os
from loguru import logger
from sqlalchemy import and_, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from book_recommender.core.exceptions import DuplicateKeyException, InvalidArgumentException
from book_recommender.models.rating import Rating
from book_recommender.schemas.ratings import RatingCriteria, RatingKey, RatingRecord
from book_recommender.utils.rating_codec import decode_text_lines, encode_line, is_encodable_key, read_lines

from .base import store_errors


class RatingStore(ABC):
    """
    Durable storage of ratings, at most one per ``RatingKey``.
    """

    @abstractmethod
    async def exists(self, key: RatingKey) -> bool: ...

    @abstractmethod
    async def get(self, key: RatingKey) -> Optional[RatingRecord]: ...

    @abstractmethod
    async def insert(self, record: RatingRecord) -> RatingRecord:
        """
        Insert a new rating; the store assigns ``recorded_at`` where it keeps one.

        Raises:
            DuplicateKeyException: If the key is already rated
        """

    @abstractmethod
    async def list_by_book(self, book_id: int) -> list[RatingRecord]: ...

    @abstractmethod
    async def list_by_user(self, user_id: str) -> list[RatingRecord]: ...

    @abstractmethod
    async def update(
        self, key: RatingKey, criteria: RatingCriteria, overall_score: float, final_comment: Optional[str]
    ) -> bool: ...

    @abstractmethod
    async def delete(self, key: RatingKey) -> bool: ...


def _key_clause(key: RatingKey):
    return and_(Rating.user_id == key.user_id, Rating.book_id == key.book_id)


class RatingRepository(RatingStore):
    """
    SQLAlchemy implementation; the ``(user_id, book_id)`` unique constraint guards duplicates.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        logger.debug("Rating repository created")

    async def exists(self, key: RatingKey) -> bool:
        async with store_errors("rating_exists", **key.model_dump()):
            async with self._session_factory() as session:
                result = await session.execute(select(Rating.id).where(_key_clause(key)).limit(1))
                return result.scalar_one_or_none() is not None

    async def get(self, key: RatingKey) -> Optional[RatingRecord]:
        async with store_errors("get_rating", **key.model_dump()):
            async with self._session_factory() as session:
                row = (await session.execute(select(Rating).where(_key_clause(key)))).scalar_one_or_none()
        return RatingRecord.model_validate(row) if row else None

    async def insert(self, record: RatingRecord) -> RatingRecord:
        logger.debug(f"Inserting rating {record.key}")
        async with store_errors("insert_rating", **record.key.model_dump()):
            try:
                async with self._session_factory() as session, session.begin():
                    row = Rating(**record.model_dump(exclude={"recorded_at"}))
                    session.add(row)
                    await session.flush()
                    return RatingRecord.model_validate(row)
            except IntegrityError as e:
                raise DuplicateKeyException(
                    message="This book was already rated by the user", details=record.key.model_dump()
                ) from e

    async def list_by_book(self, book_id: int) -> list[RatingRecord]:
        query = select(Rating).where(Rating.book_id == book_id).order_by(Rating.id)
        return await self._fetch(query, "list_ratings_by_book", book_id=book_id)

    async def list_by_user(self, user_id: str) -> list[RatingRecord]:
        query = select(Rating).where(Rating.user_id == user_id).order_by(Rating.id)
        return await self._fetch(query, "list_ratings_by_user", user_id=user_id)

    async def update(
        self, key: RatingKey, criteria: RatingCriteria, overall_score: float, final_comment: Optional[str]
    ) -> bool:
        logger.debug(f"Updating rating {key}")
        async with store_errors("update_rating", **key.model_dump()):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    update(Rating)
                    .where(_key_clause(key))
                    .values(**criteria.model_dump(), overall_score=overall_score, final_comment=final_comment)
                )
                return result.rowcount > 0

    async def delete(self, key: RatingKey) -> bool:
        logger.debug(f"Deleting rating {key}")
        async with store_errors("delete_rating", **key.model_dump()):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(delete(Rating).where(_key_clause(key)))
                return result.rowcount > 0

    async def _fetch(self, query, operation: str, **context) -> list[RatingRecord]:
        async with store_errors(operation, **context):
            async with self._session_factory() as session:
                rows = (await session.execute(query)).scalars().all()
        logger.debug(f"{operation}: {len(rows)} rows")
        return [RatingRecord.model_validate(row) for row in rows]


class LegacyFileRatingStore(RatingStore):
    """
    Rating store over the legacy semicolon-delimited file.

    The line format carries neither the library name nor a timestamp, so both
    come back as None. All access is serialised by one lock; rewrites go
    through a temporary file and an atomic rename.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._lock = asyncio.Lock()
        logger.debug(f"Legacy rating store on {self._path}")

    async def exists(self, key: RatingKey) -> bool:
        return await self.get(key) is not None

    async def get(self, key: RatingKey) -> Optional[RatingRecord]:
        for record in await self._load("get_rating"):
            if record.key == key:
                return record
        return None

    async def insert(self, record: RatingRecord) -> RatingRecord:
        """
        Raises:
            InvalidArgumentException: If the user id contains a separator or a line break
            DuplicateKeyException: If the key is already rated
        """
        if not is_encodable_key(record.user_id):
            raise InvalidArgumentException(
                "User id cannot contain ';' or line breaks", details={"user_id": record.user_id}
            )
        async with self._lock:
            records = await self._read_unlocked("insert_rating")
            if any(existing.key == record.key for existing in records):
                raise DuplicateKeyException(
                    message="This book was already rated by the user", details=record.key.model_dump()
                )
            async with store_errors("insert_rating", path=str(self._path)):
                await self._append(encode_line(record))
        return record

    async def list_by_book(self, book_id: int) -> list[RatingRecord]:
        return [r for r in await self._load("list_ratings_by_book") if r.book_id == book_id]

    async def list_by_user(self, user_id: str) -> list[RatingRecord]:
        return [r for r in await self._load("list_ratings_by_user") if r.user_id == user_id]

    async def update(
        self, key: RatingKey, criteria: RatingCriteria, overall_score: float, final_comment: Optional[str]
    ) -> bool:
        async with self._lock:
            records = await self._read_unlocked("update_rating")
            found = False
            for index, record in enumerate(records):
                if record.key == key:
                    records[index] = record.model_copy(
                        update={**criteria.model_dump(), "overall_score": overall_score, "final_comment": final_comment}
                    )
                    found = True
            if found:
                await self._rewrite_unlocked(records, "update_rating")
            return found

    async def delete(self, key: RatingKey) -> bool:
        async with self._lock:
            records = await self._read_unlocked("delete_rating")
            kept = [record for record in records if record.key != key]
            if len(kept) == len(records):
                return False
            await self._rewrite_unlocked(kept, "delete_rating")
            return True

    async def _load(self, operation: str) -> list[RatingRecord]:
        async with self._lock:
            return await self._read_unlocked(operation)

    async def _read_unlocked(self, operation: str) -> list[RatingRecord]:
        async with store_errors(operation, path=str(self._path)):
            return await self._read()

    async def _rewrite_unlocked(self, records: list[RatingRecord], operation: str) -> None:
        async with store_errors(operation, path=str(self._path)):
            await self._write([encode_line(record) for record in records])

    async def _read(self) -> list[RatingRecord]:
        if not await aiofiles.os.path.exists(self._path):
            return []
        async with aiofiles.open(self._path, "rb") as f:
            data = await f.read()
        return list(read_lines(decode_text_lines(data)))

    async def _append(self, line: str) -> None:
        await aiofiles.os.makedirs(self._path.parent, exist_ok=True)
        async with aiofiles.open(self._path, "a", encoding="utf-8") as f:
            await f.write(line + "\n")

    async def _write(self, lines: list[str]) -> None:
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write("".join(line + "\n" for line in lines))
        await aiofiles.os.replace(tmp_path, self._path)
