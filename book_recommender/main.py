import time
from contextlib import asynccontextmanager
from dataclasses import dataclass

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from book_recommender.core.config import settings
from book_recommender.core.database import create_db_engine, create_session_factory, dispose_engine, init_db
from book_recommender.core.exceptions import BookRecommenderException, CommunicationFailureException
from book_recommender.core.logger_config import log_business_error, logger, setup_logging
from book_recommender.repositories import LegacyFileRatingStore, RatingRepository, RatingStore, RecommendationRepository
from book_recommender.routers import ratings_router, recommendations_router
from book_recommender.services import RatingService, RecommendationService, SqlBookCatalog, SqlLibraryDirectory


@dataclass
class Services:
    recommendation_service: RecommendationService
    rating_service: RatingService


def build_services(session_factory: async_sessionmaker[AsyncSession], rating_store: RatingStore | None = None) -> Services:
    """
    Wire stores, catalog and services over one session factory.

    Args:
        session_factory: Factory used by every SQL store
        rating_store: Rating store to use instead of the configured backend
    """
    catalog = SqlBookCatalog(session_factory)
    libraries = SqlLibraryDirectory(session_factory)

    if rating_store is None:
        if settings.RATING_STORE_BACKEND == "legacy_file":
            logger.info(f"Ratings stored in legacy file {settings.LEGACY_RATINGS_FILE}")
            rating_store = LegacyFileRatingStore(settings.LEGACY_RATINGS_FILE)
        else:
            rating_store = RatingRepository(session_factory)

    return Services(
        recommendation_service=RecommendationService(
            RecommendationRepository(session_factory),
            catalog,
            libraries,
            max_per_book=settings.MAX_RECOMMENDATIONS_PER_BOOK,
        ),
        rating_service=RatingService(rating_store, catalog),
    )


def install_services(app: FastAPI, services: Services) -> None:
    app.state.recommendation_service = services.recommendation_service
    app.state.rating_service = services.rating_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: logging, database and services"""
    start_time = time.time()
    setup_logging()
    logger.info("Starting application...")

    engine = create_db_engine()
    try:
        await init_db(engine)
        install_services(app, build_services(create_session_factory(engine)))
        logger.info("Services ready")
        yield
    except Exception as e:
        logger.critical(f"Critical error during application lifecycle: {e}")
        raise
    finally:
        await dispose_engine(engine)
        logger.info(f"Application stopped after {time.time() - start_time:.1f}s")


def create_app(with_lifespan: bool = True) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        with_lifespan: Run the database lifecycle on startup; tests pass False and
            install their own services
    """
    app = FastAPI(
        lifespan=lifespan if with_lifespan else None,
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="Book recommendations and ratings API",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(recommendations_router)
    app.include_router(ratings_router)

    @app.get("/")
    async def root():
        return {"message": f"Welcome to {settings.PROJECT_NAME}", "version": settings.VERSION, "docs_url": "/docs"}

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": settings.VERSION}

    @app.exception_handler(BookRecommenderException)
    async def book_recommender_exception_handler(request: Request, exc: BookRecommenderException):
        context = {"method": request.method, "path": request.url.path}
        if isinstance(exc, CommunicationFailureException):
            logger.error(f"{exc} {context}")
        else:
            log_business_error(str(exc), context)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Request validation error on {request.method} {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error_code": "validation_error",
                "message": "Invalid request",
                "details": {"errors": jsonable_encoder(exc.errors())},
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.opt(exception=exc).error(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error_code": "internal_error", "message": "Internal server error"},
        )

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("book_recommender.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
