"""
FastAPI dependencies shared by the routers.
"""

from typing import Awaitable

from fastapi import Header, Request
from fastapi.responses import JSONResponse

from book_recommender.core.exceptions import InvalidArgumentException, NotFoundException
from book_recommender.core.result import ServiceResult, capture
from book_recommender.services.ratings import RatingService
from book_recommender.services.recommendations import RecommendationService


async def get_current_user_id(x_user_id: str = Header(..., description="Id of the authenticated caller")) -> str:
    """
    Caller identity, set by the authenticating proxy in front of the service.

    Raises:
        InvalidArgumentException: If the header is blank
    """
    if not x_user_id.strip():
        raise InvalidArgumentException("X-User-Id header must not be blank")
    return x_user_id


def get_recommendation_service(request: Request) -> RecommendationService:
    return request.app.state.recommendation_service


def get_rating_service(request: Request) -> RatingService:
    return request.app.state.rating_service


def failure_response(result: ServiceResult) -> JSONResponse:
    return JSONResponse(status_code=result.status_code, content=result.to_dict())


async def run_mutation(call: Awaitable[bool], message: str, **details) -> ServiceResult:
    """
    Await an update or delete; ``False`` (nothing matched) becomes a not-found failure.
    """
    result = await capture(call)
    if result.ok and not result.value:
        return ServiceResult.from_exception(NotFoundException(message, details=details))
    return result
