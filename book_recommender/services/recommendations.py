from typing import Optional

from loguru import logger

from book_recommender.core.config import settings
from book_recommender.core.exceptions import (
    InvalidArgumentException,
    RecommendationLimitException,
    SelfRecommendationException,
)
from book_recommender.core.logger_config import log_operation
from book_recommender.repositories.recommendation_repository import RecommendationStore
from book_recommender.schemas.book import BookInfo
from book_recommender.schemas.recommendations import (
    DetailedRecommendation,
    RecommendationKey,
    RecommendationRecord,
    SuggestedBook,
)

from .aggregation import count_by
from .catalog import BookCatalog, LibraryDirectory
from .enrichment import detail_recommendations, resolve_books


def _require_user(user_id: Optional[str]) -> None:
    if user_id is None or not user_id.strip():
        raise InvalidArgumentException("Invalid user id", details={"user_id": user_id})


def _require_positive(**ids: int) -> None:
    invalid = {name: value for name, value in ids.items() if value is None or value <= 0}
    if invalid:
        raise InvalidArgumentException("Invalid library or book id", details=invalid)


class RecommendationService:
    """
    "Book I read -> book I suggest" recommendations.

    Validates arguments and business rules, then delegates to the store. The
    service itself keeps no state, so one instance serves concurrent calls.
    """

    def __init__(
        self,
        store: RecommendationStore,
        catalog: BookCatalog,
        libraries: LibraryDirectory,
        max_per_book: int = settings.MAX_RECOMMENDATIONS_PER_BOOK,
    ):
        self.store = store
        self.catalog = catalog
        self.libraries = libraries
        self.max_per_book = max_per_book

    async def add(
        self,
        user_id: str,
        library_id: int,
        book_read_id: int,
        book_suggested_id: int,
        comment: Optional[str] = None,
    ) -> RecommendationRecord:
        """
        Add a recommendation.

        Args:
            user_id: Recommending user
            library_id: Library the read book belongs to
            book_read_id: Book the user read
            book_suggested_id: Book the user suggests to readers of ``book_read_id``
            comment: Optional free text

        Returns:
            RecommendationRecord: The stored record, with ``created_at`` set

        Raises:
            InvalidArgumentException: Blank user or non-positive id
            SelfRecommendationException: ``book_read_id == book_suggested_id``
            RecommendationLimitException: The user already gave the maximum number of
                recommendations for ``book_read_id``, counted across all libraries
        """
        async with log_operation(
            "add_recommendation",
            user_id=user_id,
            library_id=library_id,
            book_read_id=book_read_id,
            book_suggested_id=book_suggested_id,
        ):
            key = self._key(user_id, library_id, book_read_id, book_suggested_id)
            if book_read_id == book_suggested_id:
                raise SelfRecommendationException(details={"book_id": book_read_id})

            record = await self.store.add_if_below_limit(key, comment, self.max_per_book)
            if record is None:
                raise RecommendationLimitException(
                    f"Maximum of {self.max_per_book} recommendations reached for this book",
                    details={"user_id": user_id, "book_read_id": book_read_id, "limit": self.max_per_book},
                )
            logger.info(f"Recommendation added: {key}")
            return record

    async def get_recommended_books(self, library_id: int, book_read_id: int) -> list[BookInfo]:
        """
        Books suggested for ``book_read_id`` inside one library, one entry per recommendation.
        """
        async with log_operation("get_recommended_books", library_id=library_id, book_read_id=book_read_id):
            _require_positive(library_id=library_id, book_read_id=book_read_id)
            records = await self.store.list_by_library_and_book_read(library_id, book_read_id)
            return await resolve_books(self.catalog, [r.book_suggested_id for r in records])

    async def get_recommended_with_count(self, library_id: int, book_read_id: int) -> list[SuggestedBook]:
        """
        Suggested books for ``book_read_id`` inside one library with how often each was
        suggested, most suggested first. Equal counts come in no particular order.
        """
        async with log_operation("get_recommended_with_count", library_id=library_id, book_read_id=book_read_id):
            _require_positive(library_id=library_id, book_read_id=book_read_id)
            records = await self.store.list_by_library_and_book_read(library_id, book_read_id)
            return await self._with_counts(records)

    async def get_recommended_with_count_global(self, book_read_id: int) -> list[SuggestedBook]:
        """
        Same as ``get_recommended_with_count`` but pooled over every library.
        """
        async with log_operation("get_recommended_with_count_global", book_read_id=book_read_id):
            _require_positive(book_read_id=book_read_id)
            records = await self.store.list_by_book_read(book_read_id)
            return await self._with_counts(records)

    async def list_by_user(self, user_id: str) -> list[RecommendationRecord]:
        """All recommendations given by the user, newest first."""
        async with log_operation("list_recommendations_by_user", user_id=user_id):
            _require_user(user_id)
            return await self.store.list_by_user(user_id)

    async def list_detailed_by_user(self, user_id: str) -> list[DetailedRecommendation]:
        """All recommendations given by the user, ready for display."""
        async with log_operation("list_detailed_recommendations_by_user", user_id=user_id):
            _require_user(user_id)
            records = await self.store.list_by_user(user_id)
            return await detail_recommendations(records, self.catalog, self.libraries)

    async def update_comment(
        self,
        user_id: str,
        library_id: int,
        book_read_id: int,
        book_suggested_id: int,
        comment: Optional[str],
    ) -> bool:
        """
        Replace the comment of the recommendation with exactly this key.

        Returns:
            bool: False if no such recommendation exists
        """
        async with log_operation(
            "update_recommendation_comment",
            user_id=user_id,
            library_id=library_id,
            book_read_id=book_read_id,
            book_suggested_id=book_suggested_id,
        ):
            key = self._key(user_id, library_id, book_read_id, book_suggested_id)
            updated = await self.store.update_comment(key, comment)
            if not updated:
                logger.info(f"No recommendation to update for {key}")
            return updated

    async def delete(self, user_id: str, library_id: int, book_read_id: int, book_suggested_id: int) -> bool:
        """
        Remove the recommendation with exactly this key.

        Returns:
            bool: False if no such recommendation exists
        """
        async with log_operation(
            "delete_recommendation",
            user_id=user_id,
            library_id=library_id,
            book_read_id=book_read_id,
            book_suggested_id=book_suggested_id,
        ):
            key = self._key(user_id, library_id, book_read_id, book_suggested_id)
            deleted = await self.store.delete(key)
            if not deleted:
                logger.info(f"No recommendation to delete for {key}")
            return deleted

    @staticmethod
    def _key(user_id: str, library_id: int, book_read_id: int, book_suggested_id: int) -> RecommendationKey:
        _require_user(user_id)
        _require_positive(library_id=library_id, book_read_id=book_read_id, book_suggested_id=book_suggested_id)
        return RecommendationKey(
            user_id=user_id,
            library_id=library_id,
            book_read_id=book_read_id,
            book_suggested_id=book_suggested_id,
        )

    async def _with_counts(self, records: list[RecommendationRecord]) -> list[SuggestedBook]:
        counts = count_by(records, key=lambda r: r.book_suggested_id)
        books = await self.catalog.get_books(book_id for book_id, _ in counts)
        result = []
        for book_id, count in counts:
            book = books.get(book_id)
            if book is None:
                logger.warning(f"Suggested book {book_id} missing from catalog, skipped")
                continue
            result.append(SuggestedBook(book=book, count=count))
        return result
