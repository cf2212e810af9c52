"""
Grouping and averaging helpers for the read paths.

Each helper walks its input once. Sorting is stable, so equal counts keep the
order in which their keys were first seen; callers must not rely on that order.
"""

from collections.abc import Callable, Hashable, Iterable, Sequence
from typing import TypeVar

from book_recommender.schemas.ratings import CRITERIA, CriteriaAverages, RatingRecord

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


def count_by(items: Iterable[T], key: Callable[[T], K]) -> list[tuple[K, int]]:
    """
    Group ``items`` by ``key`` and return ``(key, count)`` pairs, highest count first.
    """
    counts: dict[K, int] = {}
    for item in items:
        k = key(item)
        counts[k] = counts.get(k, 0) + 1
    return sorted(counts.items(), key=lambda pair: pair[1], reverse=True)


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def criteria_averages(book_id: int, ratings: Sequence[RatingRecord]) -> CriteriaAverages:
    """
    Overall and per-criterion averages of one book's ratings, summed in a single pass.
    """
    if not ratings:
        return CriteriaAverages(book_id=book_id)

    totals = dict.fromkeys(CRITERIA, 0.0)
    overall = 0.0
    for rating in ratings:
        overall += rating.overall_score
        for name in CRITERIA:
            totals[name] += getattr(rating, name)

    count = len(ratings)
    return CriteriaAverages(
        book_id=book_id,
        count=count,
        overall=overall / count,
        **{name: total / count for name, total in totals.items()},
    )
