from typing import List

from fastapi import APIRouter, Depends, Response, status

from book_recommender.core.logger_config import logger
from book_recommender.core.result import capture
from book_recommender.schemas.book import BookInfo
from book_recommender.schemas.recommendations import (
    DetailedRecommendation,
    RecommendationCommentUpdate,
    RecommendationCreate,
    RecommendationKeyBody,
    RecommendationRecord,
    SuggestedBook,
)
from book_recommender.services.recommendations import RecommendationService

from .dependencies import failure_response, get_current_user_id, get_recommendation_service, run_mutation

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


@router.post("/", response_model=RecommendationRecord, status_code=status.HTTP_201_CREATED)
async def add_recommendation(
    data: RecommendationCreate,
    user_id: str = Depends(get_current_user_id),
    service: RecommendationService = Depends(get_recommendation_service),
):
    """
    Suggest a book to readers of another book.

    A user may give at most three suggestions per read book, counted across all
    of their libraries. Suggesting a book for itself is rejected.
    """
    result = await capture(
        service.add(user_id, data.library_id, data.book_read_id, data.book_suggested_id, data.comment)
    )
    if not result.ok:
        return failure_response(result)
    return result.value


@router.get("/libraries/{library_id}/books/{book_read_id}", response_model=List[BookInfo])
async def get_recommended_books(
    library_id: int,
    book_read_id: int,
    service: RecommendationService = Depends(get_recommendation_service),
):
    """Books suggested for the read book inside one library, one entry per suggestion."""
    result = await capture(service.get_recommended_books(library_id, book_read_id))
    if not result.ok:
        return failure_response(result)
    return result.value


@router.get("/libraries/{library_id}/books/{book_read_id}/counts", response_model=List[SuggestedBook])
async def get_recommended_with_count(
    library_id: int,
    book_read_id: int,
    service: RecommendationService = Depends(get_recommendation_service),
):
    """Distinct suggested books with their suggestion count, most suggested first."""
    result = await capture(service.get_recommended_with_count(library_id, book_read_id))
    if not result.ok:
        return failure_response(result)
    return result.value


@router.get("/books/{book_read_id}/counts", response_model=List[SuggestedBook])
async def get_recommended_with_count_global(
    book_read_id: int,
    service: RecommendationService = Depends(get_recommendation_service),
):
    result = await capture(service.get_recommended_with_count_global(book_read_id))
    if not result.ok:
        return failure_response(result)
    return result.value


@router.get("/me", response_model=List[RecommendationRecord])
async def list_my_recommendations(
    user_id: str = Depends(get_current_user_id),
    service: RecommendationService = Depends(get_recommendation_service),
):
    result = await capture(service.list_by_user(user_id))
    if not result.ok:
        return failure_response(result)
    return result.value


@router.get("/me/detailed", response_model=List[DetailedRecommendation])
async def list_my_recommendations_detailed(
    user_id: str = Depends(get_current_user_id),
    service: RecommendationService = Depends(get_recommendation_service),
):
    result = await capture(service.list_detailed_by_user(user_id))
    if not result.ok:
        return failure_response(result)
    return result.value


@router.patch("/", status_code=status.HTTP_204_NO_CONTENT)
async def update_recommendation_comment(
    data: RecommendationCommentUpdate,
    user_id: str = Depends(get_current_user_id),
    service: RecommendationService = Depends(get_recommendation_service),
):
    result = await run_mutation(
        service.update_comment(user_id, data.library_id, data.book_read_id, data.book_suggested_id, data.comment),
        "Recommendation not found",
        **data.model_dump(exclude={"comment"}),
    )
    if not result.ok:
        return failure_response(result)
    logger.info(f"User {user_id} updated a recommendation comment")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recommendation(
    data: RecommendationKeyBody,
    user_id: str = Depends(get_current_user_id),
    service: RecommendationService = Depends(get_recommendation_service),
):
    result = await run_mutation(
        service.delete(user_id, data.library_id, data.book_read_id, data.book_suggested_id),
        "Recommendation not found",
        **data.model_dump(),
    )
    if not result.ok:
        return failure_response(result)
    logger.info(f"User {user_id} deleted a recommendation")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
