from typing import List

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from book_recommender.core.exceptions import DuplicateKeyException
from book_recommender.core.logger_config import logger
from book_recommender.core.result import ServiceResult, capture
from book_recommender.schemas.ratings import (
    CriteriaAverages,
    DetailedRating,
    RatingCreate,
    RatingCriteria,
    RatingRecord,
    RatingUpdate,
)
from book_recommender.services.ratings import RatingService

from .dependencies import failure_response, get_current_user_id, get_rating_service, run_mutation

router = APIRouter(prefix="/ratings", tags=["ratings"])


class RatedResponse(BaseModel):
    book_id: int
    rated: bool


def _criteria(data: RatingCriteria) -> RatingCriteria:
    return RatingCriteria.model_validate(data.model_dump(include=set(RatingCriteria.model_fields)))


@router.get("/books/{book_id}/rated", response_model=RatedResponse)
async def is_already_rated(
    book_id: int,
    user_id: str = Depends(get_current_user_id),
    service: RatingService = Depends(get_rating_service),
):
    result = await capture(service.is_already_rated(book_id, user_id))
    if not result.ok:
        return failure_response(result)
    return RatedResponse(book_id=book_id, rated=result.value)


@router.post("/books/{book_id}", status_code=status.HTTP_201_CREATED, response_model=RatedResponse)
async def rate_book(
    book_id: int,
    data: RatingCreate,
    user_id: str = Depends(get_current_user_id),
    service: RatingService = Depends(get_rating_service),
):
    """
    Rate a book on five criteria.

    The overall score defaults to the mean of the five scores. A user rates a
    book once; a second attempt answers 409 and leaves the first rating as is.
    """
    criteria = _criteria(data)
    overall = data.overall_score if data.overall_score is not None else criteria.mean()
    result = await capture(
        service.save(user_id, book_id, data.library_name, criteria, overall, data.final_comment)
    )
    if result.ok and not result.value:
        result = ServiceResult.from_exception(
            DuplicateKeyException("This book was already rated by the user", details={"book_id": book_id})
        )
    if not result.ok:
        return failure_response(result)
    return RatedResponse(book_id=book_id, rated=True)


@router.get("/books/{book_id}", response_model=List[RatingRecord])
async def load_ratings(book_id: int, service: RatingService = Depends(get_rating_service)):
    result = await capture(service.load_ratings(book_id))
    if not result.ok:
        return failure_response(result)
    return result.value


@router.get("/books/{book_id}/summary", response_model=CriteriaAverages)
async def rating_summary(book_id: int, service: RatingService = Depends(get_rating_service)):
    """Overall and per-criterion averages of a book, with the number of ratings."""
    result = await capture(service.criteria_averages(book_id))
    if not result.ok:
        return failure_response(result)
    return result.value


@router.get("/me/detailed", response_model=List[DetailedRating])
async def list_my_ratings_detailed(
    user_id: str = Depends(get_current_user_id),
    service: RatingService = Depends(get_rating_service),
):
    result = await capture(service.list_detailed_by_user(user_id))
    if not result.ok:
        return failure_response(result)
    return result.value


@router.put("/books/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_rating(
    book_id: int,
    data: RatingUpdate,
    user_id: str = Depends(get_current_user_id),
    service: RatingService = Depends(get_rating_service),
):
    criteria = _criteria(data)
    overall = data.overall_score if data.overall_score is not None else criteria.mean()
    result = await run_mutation(
        service.update(user_id, book_id, criteria, overall, data.final_comment),
        "Rating not found",
        book_id=book_id,
    )
    if not result.ok:
        return failure_response(result)
    logger.info(f"User {user_id} updated rating of book {book_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/books/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rating(
    book_id: int,
    user_id: str = Depends(get_current_user_id),
    service: RatingService = Depends(get_rating_service),
):
    result = await run_mutation(service.delete(user_id, book_id), "Rating not found", book_id=book_id)
    if not result.ok:
        return failure_response(result)
    logger.info(f"User {user_id} deleted rating of book {book_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
