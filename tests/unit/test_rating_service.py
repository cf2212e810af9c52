import pytest

from book_recommender.core.exceptions import (
    BusinessRuleViolationException,
    DuplicateKeyException,
    InvalidArgumentException,
    ScoreOutOfRangeException,
)
from book_recommender.schemas.ratings import RatingCriteria, RatingRecord


def make_criteria(style=4, content=4, pleasantness=4, originality=4, edition=4, note=None) -> RatingCriteria:
    return RatingCriteria(
        style=style,
        style_note=note,
        content=content,
        content_note=note,
        pleasantness=pleasantness,
        pleasantness_note=note,
        originality=originality,
        originality_note=note,
        edition=edition,
        edition_note=note,
    )


async def test_save_then_is_already_rated(rating_service):
    assert await rating_service.is_already_rated(10, "alice") is False

    saved = await rating_service.save("alice", 10, "Classics", make_criteria(), 4.0, "Loved it")

    assert saved is True
    assert await rating_service.is_already_rated(10, "alice") is True
    assert await rating_service.is_already_rated(10, "bob") is False


async def test_second_save_returns_false_and_keeps_first(rating_service):
    await rating_service.save("alice", 10, "Classics", make_criteria(style=5), 4.2, "first")

    saved = await rating_service.save("alice", 10, "Italian", make_criteria(style=1), 1.0, "second")

    assert saved is False
    [rating] = await rating_service.load_ratings(10)
    assert rating.style == 5
    assert rating.overall_score == 4.2
    assert rating.final_comment == "first"
    assert rating.library_name == "Classics"


async def test_store_duplicate_is_reported_as_false(rating_service, rating_store, monkeypatch):
    await rating_service.save("alice", 10, "Classics", make_criteria(), 4.0)

    # Simulate losing the race: the existence check misses the row written concurrently
    async def never_exists(key):
        return False

    monkeypatch.setattr(rating_store, "exists", never_exists)

    assert await rating_service.save("alice", 10, "Classics", make_criteria(), 4.0) is False
    assert await rating_service.count_ratings(10) == 1


async def test_store_raises_duplicate_key(rating_store):
    record = RatingRecord(**make_criteria().model_dump(), user_id="alice", book_id=10, overall_score=4.0)
    await rating_store.insert(record)

    with pytest.raises(DuplicateKeyException):
        await rating_store.insert(record)


@pytest.mark.parametrize("score", [0, 6, -1])
async def test_scores_out_of_range_rejected(rating_service, score):
    with pytest.raises(ScoreOutOfRangeException) as exc_info:
        await rating_service.save("alice", 10, "Classics", make_criteria(content=score), 4.0)

    assert isinstance(exc_info.value, BusinessRuleViolationException)
    assert exc_info.value.details == {"content": score}
    assert await rating_service.is_already_rated(10, "alice") is False


async def test_boundary_scores_accepted(rating_service):
    assert await rating_service.save("alice", 10, "Classics", make_criteria(1, 1, 1, 1, 1), 1.0) is True
    assert await rating_service.save("bob", 10, "Bedside", make_criteria(5, 5, 5, 5, 5), 5.0) is True


@pytest.mark.parametrize("user_id, book_id", [("", 10), ("  ", 10), (None, 10), ("alice", 0), ("alice", -3)])
async def test_invalid_arguments(rating_service, user_id, book_id):
    with pytest.raises(InvalidArgumentException):
        await rating_service.save(user_id, book_id, "Classics", make_criteria(), 4.0)
    with pytest.raises(InvalidArgumentException):
        await rating_service.is_already_rated(book_id, user_id)


async def test_average_overall(rating_service):
    assert await rating_service.compute_average_overall(10) == 0.0

    await rating_service.save("alice", 10, "Classics", make_criteria(3, 3, 3, 3, 3), 3.0)
    await rating_service.save("bob", 10, "Bedside", make_criteria(5, 5, 5, 5, 5), 5.0)

    assert await rating_service.compute_average_overall(10) == pytest.approx(4.0)
    assert await rating_service.count_ratings(10) == 2


async def test_criterion_averages(rating_service):
    await rating_service.save("alice", 10, "Classics", make_criteria(1, 2, 3, 4, 5), 3.0)
    await rating_service.save("bob", 10, "Bedside", make_criteria(3, 2, 5, 4, 1), 3.0)

    assert await rating_service.average_style(10) == pytest.approx(2.0)
    assert await rating_service.average_content(10) == pytest.approx(2.0)
    assert await rating_service.average_pleasantness(10) == pytest.approx(4.0)
    assert await rating_service.average_originality(10) == pytest.approx(4.0)
    assert await rating_service.average_edition(10) == pytest.approx(3.0)

    summary = await rating_service.criteria_averages(10)
    assert summary.count == 2
    assert summary.overall == pytest.approx(3.0)
    assert summary.pleasantness == pytest.approx(4.0)


async def test_criteria_averages_empty(rating_service):
    summary = await rating_service.criteria_averages(20)

    assert summary.count == 0
    assert summary.overall == 0.0
    assert summary.edition == 0.0


async def test_list_detailed_by_user_sorted_by_title(rating_service):
    await rating_service.save("alice", 10, "Classics", make_criteria(), 4.0)
    await rating_service.save("alice", 40, "Italian", make_criteria(), 4.0)
    await rating_service.save("alice", 20, "Classics", make_criteria(), 4.0, "Too long")

    detailed = await rating_service.list_detailed_by_user("alice")

    assert [d.book_title for d in detailed] == ["Foucault's Pendulum", "Invisible Cities", "The Name of the Rose"]
    assert detailed[0].summary().endswith("Too long")
    assert detailed[1].summary().endswith("No final comment")
    assert await rating_service.list_detailed_by_user("bob") == []


async def test_update(rating_service):
    await rating_service.save("alice", 10, "Classics", make_criteria(), 4.0, "before")

    updated = await rating_service.update("alice", 10, make_criteria(style=2, note="meh"), 3.6, "after")

    assert updated is True
    [rating] = await rating_service.load_ratings(10)
    assert rating.style == 2
    assert rating.style_note == "meh"
    assert rating.overall_score == pytest.approx(3.6)
    assert rating.final_comment == "after"
    assert rating.library_name == "Classics"


async def test_update_missing_returns_false(rating_service):
    assert await rating_service.update("alice", 10, make_criteria(), 4.0) is False


async def test_update_validates_scores(rating_service):
    await rating_service.save("alice", 10, "Classics", make_criteria(), 4.0)

    with pytest.raises(ScoreOutOfRangeException):
        await rating_service.update("alice", 10, make_criteria(edition=7), 4.0)


async def test_delete(rating_service):
    await rating_service.save("alice", 10, "Classics", make_criteria(), 4.0)

    assert await rating_service.delete("alice", 10) is True
    assert await rating_service.delete("alice", 10) is False
    assert await rating_service.is_already_rated(10, "alice") is False
    # The key is free again
    assert await rating_service.save("alice", 10, "Classics", make_criteria(), 4.0) is True
