from typing import Optional

from loguru import logger

from book_recommender.core.exceptions import (
    DuplicateKeyException,
    InvalidArgumentException,
    ScoreOutOfRangeException,
)
from book_recommender.core.logger_config import log_operation
from book_recommender.repositories.rating_repository import RatingStore
from book_recommender.schemas.ratings import (
    CRITERIA,
    CriteriaAverages,
    DetailedRating,
    RatingCriteria,
    RatingKey,
    RatingRecord,
)

from .aggregation import criteria_averages, mean
from .catalog import BookCatalog
from .enrichment import detail_ratings

MIN_SCORE = 1
MAX_SCORE = 5


def _key(user_id: Optional[str], book_id: int) -> RatingKey:
    if user_id is None or not user_id.strip() or book_id is None or book_id <= 0:
        raise InvalidArgumentException("Invalid user or book id", details={"user_id": user_id, "book_id": book_id})
    return RatingKey(user_id=user_id, book_id=book_id)


def _require_scores(criteria: RatingCriteria) -> None:
    out_of_range = {
        name: getattr(criteria, name)
        for name in CRITERIA
        if not MIN_SCORE <= getattr(criteria, name) <= MAX_SCORE
    }
    if out_of_range:
        raise ScoreOutOfRangeException(details=out_of_range)


class RatingService:
    """
    Five-criteria book ratings: at most one per user per book.
    """

    def __init__(self, store: RatingStore, catalog: BookCatalog):
        self.store = store
        self.catalog = catalog

    async def is_already_rated(self, book_id: int, user_id: str) -> bool:
        async with log_operation("is_already_rated", user_id=user_id, book_id=book_id):
            return await self.store.exists(_key(user_id, book_id))

    async def save(
        self,
        user_id: str,
        book_id: int,
        library_name: str,
        criteria: RatingCriteria,
        overall_score: float,
        final_comment: Optional[str] = None,
    ) -> bool:
        """
        Save a new rating.

        Args:
            user_id: Rating user
            book_id: Rated book
            library_name: Library the book was rated from (informational)
            criteria: The five scores and their notes
            overall_score: Mean of the five scores, computed by the caller
            final_comment: Optional closing comment

        Returns:
            bool: True if stored, False if the user already rated this book

        Raises:
            InvalidArgumentException: Blank user or non-positive book id
            ScoreOutOfRangeException: A score is outside [1, 5]
        """
        async with log_operation("save_rating", user_id=user_id, book_id=book_id):
            key = _key(user_id, book_id)
            _require_scores(criteria)

            if await self.store.exists(key):
                logger.warning(f"Duplicate rating rejected for {key}")
                return False

            record = RatingRecord(
                **criteria.model_dump(),
                user_id=user_id,
                book_id=book_id,
                library_name=library_name,
                overall_score=overall_score,
                final_comment=final_comment,
            )
            try:
                await self.store.insert(record)
            except DuplicateKeyException:
                # Lost a race against a concurrent save for the same key
                logger.warning(f"Duplicate rating rejected by the store for {key}")
                return False
            logger.info(f"Rating saved for {key}")
            return True

    async def load_ratings(self, book_id: int) -> list[RatingRecord]:
        async with log_operation("load_ratings", book_id=book_id):
            return await self.store.list_by_book(book_id)

    async def compute_average_overall(self, book_id: int) -> float:
        """Mean overall score of the book, 0.0 when nobody rated it."""
        ratings = await self.load_ratings(book_id)
        return mean([r.overall_score for r in ratings])

    async def average_style(self, book_id: int) -> float:
        return await self._criterion_average(book_id, "style")

    async def average_content(self, book_id: int) -> float:
        return await self._criterion_average(book_id, "content")

    async def average_pleasantness(self, book_id: int) -> float:
        return await self._criterion_average(book_id, "pleasantness")

    async def average_originality(self, book_id: int) -> float:
        return await self._criterion_average(book_id, "originality")

    async def average_edition(self, book_id: int) -> float:
        return await self._criterion_average(book_id, "edition")

    async def criteria_averages(self, book_id: int) -> CriteriaAverages:
        """All averages and the rating count from a single load."""
        ratings = await self.load_ratings(book_id)
        return criteria_averages(book_id, ratings)

    async def count_ratings(self, book_id: int) -> int:
        return len(await self.load_ratings(book_id))

    async def list_detailed_by_user(self, user_id: str) -> list[DetailedRating]:
        async with log_operation("list_detailed_ratings_by_user", user_id=user_id):
            if user_id is None or not user_id.strip():
                raise InvalidArgumentException("Invalid user id", details={"user_id": user_id})
            records = await self.store.list_by_user(user_id)
            return await detail_ratings(records, self.catalog)

    async def update(
        self,
        user_id: str,
        book_id: int,
        criteria: RatingCriteria,
        overall_score: float,
        final_comment: Optional[str] = None,
    ) -> bool:
        """
        Replace scores, notes, overall score and final comment of an existing rating.

        Returns:
            bool: False if the user has not rated this book

        Raises:
            InvalidArgumentException: Blank user or non-positive book id
            ScoreOutOfRangeException: A score is outside [1, 5]
        """
        async with log_operation("update_rating", user_id=user_id, book_id=book_id):
            key = _key(user_id, book_id)
            _require_scores(criteria)
            updated = await self.store.update(key, criteria, overall_score, final_comment)
            if not updated:
                logger.info(f"No rating to update for {key}")
            return updated

    async def delete(self, user_id: str, book_id: int) -> bool:
        """
        Returns:
            bool: False if the user has not rated this book
        """
        async with log_operation("delete_rating", user_id=user_id, book_id=book_id):
            key = _key(user_id, book_id)
            deleted = await self.store.delete(key)
            if not deleted:
                logger.info(f"No rating to delete for {key}")
            return deleted

    async def _criterion_average(self, book_id: int, criterion: str) -> float:
        ratings = await self.load_ratings(book_id)
        return mean([getattr(r, criterion) for r in ratings])
