import asyncio

import pytest

from book_recommender.core.exceptions import (
    BusinessRuleViolationException,
    InvalidArgumentException,
    RecommendationLimitException,
    SelfRecommendationException,
)


async def test_add_then_list_by_user(recommendation_service):
    record = await recommendation_service.add("alice", 1, 10, 20, "Same author, darker")

    assert record.created_at is not None
    listed = await recommendation_service.list_by_user("alice")
    assert [r.key for r in listed] == [record.key]
    assert listed[0].comment == "Same author, darker"


async def test_self_recommendation_rejected(recommendation_service):
    with pytest.raises(SelfRecommendationException) as exc_info:
        await recommendation_service.add("alice", 1, 10, 10, "x")

    assert isinstance(exc_info.value, BusinessRuleViolationException)
    assert exc_info.value.error_code == "self_recommendation"
    assert await recommendation_service.list_by_user("alice") == []


@pytest.mark.parametrize(
    "user_id, library_id, book_read_id, book_suggested_id",
    [
        ("", 1, 10, 20),
        ("   ", 1, 10, 20),
        (None, 1, 10, 20),
        ("alice", 0, 10, 20),
        ("alice", 1, -1, 20),
        ("alice", 1, 10, 0),
    ],
)
async def test_add_rejects_invalid_arguments(
    recommendation_service, user_id, library_id, book_read_id, book_suggested_id
):
    with pytest.raises(InvalidArgumentException):
        await recommendation_service.add(user_id, library_id, book_read_id, book_suggested_id)


async def test_limit_counts_across_libraries(recommendation_service):
    await recommendation_service.add("alice", 1, 10, 20)
    await recommendation_service.add("alice", 2, 10, 30)
    await recommendation_service.add("alice", 1, 10, 40)

    with pytest.raises(RecommendationLimitException):
        await recommendation_service.add("alice", 2, 10, 50)

    # The limit is per user and per read book
    await recommendation_service.add("bob", 3, 10, 50)
    await recommendation_service.add("alice", 1, 20, 50)


async def test_duplicate_recommendations_accumulate(recommendation_service):
    await recommendation_service.add("alice", 1, 10, 20)
    await recommendation_service.add("alice", 1, 10, 20)

    books = await recommendation_service.get_recommended_books(1, 10)
    assert [b.id for b in books] == [20, 20]


async def test_get_recommended_books_filters_by_library(recommendation_service):
    await recommendation_service.add("alice", 1, 10, 20)
    await recommendation_service.add("alice", 2, 10, 30)

    assert [b.id for b in await recommendation_service.get_recommended_books(1, 10)] == [20]
    assert [b.id for b in await recommendation_service.get_recommended_books(2, 10)] == [30]
    assert await recommendation_service.get_recommended_books(3, 10) == []


async def test_missing_books_are_skipped(recommendation_service):
    await recommendation_service.add("alice", 1, 10, 999)
    await recommendation_service.add("alice", 1, 10, 20)

    assert [b.id for b in await recommendation_service.get_recommended_books(1, 10)] == [20]
    counts = await recommendation_service.get_recommended_with_count(1, 10)
    assert [(s.book.id, s.count) for s in counts] == [(20, 1)]


async def test_counts_sorted_descending(recommendation_service):
    await recommendation_service.add("alice", 1, 10, 30)
    await recommendation_service.add("bob", 3, 10, 20)
    await recommendation_service.add("carol", 3, 10, 20)
    await recommendation_service.add("dave", 1, 10, 20)
    await recommendation_service.add("bob", 3, 10, 40)
    await recommendation_service.add("carol", 3, 10, 40)

    counts = await recommendation_service.get_recommended_with_count_global(10)
    assert [s.count for s in counts] == [3, 2, 1]
    assert [s.book.id for s in counts] == [20, 40, 30]

    per_library = await recommendation_service.get_recommended_with_count(3, 10)
    # Equal counts come in no particular order
    assert sorted((s.book.id, s.count) for s in per_library) == [(20, 2), (40, 2)]


async def test_counts_empty_for_unknown_book(recommendation_service):
    assert await recommendation_service.get_recommended_with_count_global(30) == []


async def test_list_detailed_by_user_sorted(recommendation_service):
    await recommendation_service.add("alice", 2, 40, 30, "Calvino again")
    await recommendation_service.add("alice", 1, 20, 10)
    await recommendation_service.add("alice", 1, 10, 20)

    detailed = await recommendation_service.list_detailed_by_user("alice")

    assert [(d.library_name, d.book_read_title) for d in detailed] == [
        ("Classics", "Foucault's Pendulum"),
        ("Classics", "The Name of the Rose"),
        ("Italian", "Invisible Cities"),
    ]
    assert detailed[2].book_suggested_authors == "Italo Calvino"
    assert detailed[0].summary().endswith("No comment")
    assert "Calvino again" in detailed[2].summary()


async def test_update_comment(recommendation_service):
    await recommendation_service.add("alice", 1, 10, 20, "first")

    assert await recommendation_service.update_comment("alice", 1, 10, 20, "second") is True
    assert (await recommendation_service.list_by_user("alice"))[0].comment == "second"

    assert await recommendation_service.update_comment("alice", 1, 10, 30, "nope") is False
    assert await recommendation_service.update_comment("bob", 1, 10, 20, "nope") is False


async def test_delete_missing_returns_false(recommendation_service):
    await recommendation_service.add("alice", 1, 10, 20)

    assert await recommendation_service.delete("alice", 1, 10, 20) is True
    assert await recommendation_service.delete("alice", 1, 10, 20) is False
    assert await recommendation_service.list_by_user("alice") == []


async def test_delete_frees_a_slot(recommendation_service):
    for suggested in (20, 30, 40):
        await recommendation_service.add("alice", 1, 10, suggested)
    await recommendation_service.delete("alice", 1, 10, 30)

    await recommendation_service.add("alice", 2, 10, 50)
    assert len(await recommendation_service.list_by_user("alice")) == 3


async def test_concurrent_adds_never_exceed_limit(recommendation_service, recommendation_store):
    await recommendation_service.add("alice", 1, 10, 20)
    await recommendation_service.add("alice", 1, 10, 30)

    results = await asyncio.gather(
        *(recommendation_service.add("alice", 2, 10, suggested) for suggested in (40, 50, 20, 30)),
        return_exceptions=True,
    )

    assert sum(1 for r in results if not isinstance(r, Exception)) == 1
    assert all(isinstance(r, RecommendationLimitException) for r in results if isinstance(r, Exception))
    assert await recommendation_store.count_by_user_and_book_read("alice", 10) == 3
