"""
Read-only lookups over data owned by other services: the book catalog and
users' libraries. They are only used to enrich records for presentation.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from book_recommender.models.book import Book, Library
from book_recommender.repositories.base import store_errors
from book_recommender.schemas.book import BookInfo, LibraryInfo


class BookCatalog(ABC):
    @abstractmethod
    async def get_book(self, book_id: int) -> Optional[BookInfo]: ...

    async def get_books(self, book_ids: Iterable[int]) -> dict[int, BookInfo]:
        """Batch lookup; ids missing from the catalog are absent from the result."""
        books = {}
        for book_id in set(book_ids):
            book = await self.get_book(book_id)
            if book is not None:
                books[book_id] = book
        return books


class LibraryDirectory(ABC):
    @abstractmethod
    async def find_library(self, user_id: str, name: str) -> Optional[LibraryInfo]:
        """Resolve a user's library by name, for callers that only hold the free-text name a rating carries."""

    @abstractmethod
    async def get_library(self, library_id: int) -> Optional[LibraryInfo]: ...

    async def get_libraries(self, library_ids: Iterable[int]) -> dict[int, LibraryInfo]:
        libraries = {}
        for library_id in set(library_ids):
            library = await self.get_library(library_id)
            if library is not None:
                libraries[library_id] = library
        return libraries


class SqlBookCatalog(BookCatalog):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_book(self, book_id: int) -> Optional[BookInfo]:
        async with store_errors("get_book", book_id=book_id):
            async with self._session_factory() as session:
                book = await session.get(Book, book_id)
        if book is None:
            logger.debug(f"Book {book_id} not found in catalog")
            return None
        return BookInfo.model_validate(book)

    async def get_books(self, book_ids: Iterable[int]) -> dict[int, BookInfo]:
        ids = set(book_ids)
        if not ids:
            return {}
        async with store_errors("get_books", count=len(ids)):
            async with self._session_factory() as session:
                rows = (await session.execute(select(Book).where(Book.id.in_(ids)))).scalars().all()
        return {row.id: BookInfo.model_validate(row) for row in rows}


class SqlLibraryDirectory(LibraryDirectory):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def find_library(self, user_id: str, name: str) -> Optional[LibraryInfo]:
        query = select(Library).where(Library.user_id == user_id, Library.name == name)
        async with store_errors("find_library", user_id=user_id, name=name):
            async with self._session_factory() as session:
                library = (await session.execute(query)).scalar_one_or_none()
        return LibraryInfo.model_validate(library) if library else None

    async def get_library(self, library_id: int) -> Optional[LibraryInfo]:
        async with store_errors("get_library", library_id=library_id):
            async with self._session_factory() as session:
                library = await session.get(Library, library_id)
        return LibraryInfo.model_validate(library) if library else None

    async def get_libraries(self, library_ids: Iterable[int]) -> dict[int, LibraryInfo]:
        ids = set(library_ids)
        if not ids:
            return {}
        async with store_errors("get_libraries", count=len(ids)):
            async with self._session_factory() as session:
                rows = (await session.execute(select(Library).where(Library.id.in_(ids)))).scalars().all()
        return {row.id: LibraryInfo.model_validate(row) for row in rows}
