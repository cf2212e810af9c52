"""
Denormalisation of raw records with catalog and library data for presentation.
"""

from collections.abc import Sequence

from loguru import logger

from book_recommender.schemas.book import BookInfo, LibraryInfo
from book_recommender.schemas.ratings import DetailedRating, RatingRecord
from book_recommender.schemas.recommendations import DetailedRecommendation, RecommendationRecord

from .catalog import BookCatalog, LibraryDirectory


def _sort_text(value: str | None) -> str:
    return (value or "").casefold()


async def resolve_books(catalog: BookCatalog, book_ids: Sequence[int]) -> list[BookInfo]:
    """
    Look up each id in order, keeping duplicates and dropping ids the catalog does not know.
    """
    books = await catalog.get_books(book_ids)
    missing = set(book_ids) - books.keys()
    if missing:
        logger.warning(f"Books missing from catalog, skipped: {sorted(missing)}")
    return [books[book_id] for book_id in book_ids if book_id in books]


async def detail_recommendations(
    records: Sequence[RecommendationRecord], catalog: BookCatalog, libraries: LibraryDirectory
) -> list[DetailedRecommendation]:
    """
    Attach library name and both books' title and authors.

    Sorted by library name, then read title, then suggested title.
    """
    book_ids = {r.book_read_id for r in records} | {r.book_suggested_id for r in records}
    books = await catalog.get_books(book_ids)
    library_map: dict[int, LibraryInfo] = await libraries.get_libraries({r.library_id for r in records})

    detailed = []
    for record in records:
        library = library_map.get(record.library_id)
        read = books.get(record.book_read_id)
        suggested = books.get(record.book_suggested_id)
        detailed.append(
            DetailedRecommendation(
                **record.model_dump(),
                library_name=library.name if library else None,
                book_read_title=read.title if read else None,
                book_read_authors=read.authors if read else None,
                book_suggested_title=suggested.title if suggested else None,
                book_suggested_authors=suggested.authors if suggested else None,
            )
        )
    detailed.sort(
        key=lambda d: (_sort_text(d.library_name), _sort_text(d.book_read_title), _sort_text(d.book_suggested_title))
    )
    return detailed


async def detail_ratings(records: Sequence[RatingRecord], catalog: BookCatalog) -> list[DetailedRating]:
    """Attach the book's title and authors; sorted by title."""
    books = await catalog.get_books({r.book_id for r in records})
    detailed = []
    for record in records:
        book = books.get(record.book_id)
        detailed.append(
            DetailedRating(
                **record.model_dump(),
                book_title=book.title if book else None,
                book_authors=book.authors if book else None,
            )
        )
    detailed.sort(key=lambda d: _sort_text(d.book_title))
    return detailed
