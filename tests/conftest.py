from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from book_recommender.core.database import create_db_engine, create_session_factory, init_db
from book_recommender.main import build_services, create_app, install_services
from book_recommender.models import Book, Library
from book_recommender.repositories import RatingRepository, RecommendationRepository
from book_recommender.services import RatingService, RecommendationService, SqlBookCatalog, SqlLibraryDirectory

# Every test gets its own in-memory database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

BOOKS = [
    {"id": 10, "title": "The Name of the Rose", "authors": "Umberto Eco", "year": "1980"},
    {"id": 20, "title": "Foucault's Pendulum", "authors": "Umberto Eco", "year": "1988"},
    {"id": 30, "title": "If on a winter's night a traveler", "authors": "Italo Calvino", "year": "1979"},
    {"id": 40, "title": "Invisible Cities", "authors": "Italo Calvino", "year": "1972"},
    {"id": 50, "title": "The Leopard", "authors": "Giuseppe Tomasi di Lampedusa", "year": "1958"},
]


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_db_engine(TEST_DATABASE_URL, echo=False)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session_factory(engine: AsyncEngine) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    factory = create_session_factory(engine)
    async with factory() as session, session.begin():
        session.add_all([Book(**book) for book in BOOKS])
        session.add_all(
            [
                Library(id=1, user_id="alice", name="Classics"),
                Library(id=2, user_id="alice", name="Italian"),
                Library(id=3, user_id="bob", name="Bedside"),
            ]
        )
    yield factory


@pytest.fixture
def catalog(session_factory) -> SqlBookCatalog:
    return SqlBookCatalog(session_factory)


@pytest.fixture
def libraries(session_factory) -> SqlLibraryDirectory:
    return SqlLibraryDirectory(session_factory)


@pytest.fixture
def recommendation_store(session_factory) -> RecommendationRepository:
    return RecommendationRepository(session_factory)


@pytest.fixture
def rating_store(session_factory) -> RatingRepository:
    return RatingRepository(session_factory)


@pytest.fixture
def recommendation_service(recommendation_store, catalog, libraries) -> RecommendationService:
    return RecommendationService(recommendation_store, catalog, libraries, max_per_book=3)


@pytest.fixture
def rating_service(rating_store, catalog) -> RatingService:
    return RatingService(rating_store, catalog)


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client on an application wired to the test database"""
    app = create_app(with_lifespan=False)
    install_services(app, build_services(session_factory, rating_store=RatingRepository(session_factory)))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
