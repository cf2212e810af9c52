from .catalog import BookCatalog, LibraryDirectory, SqlBookCatalog, SqlLibraryDirectory
from .ratings import RatingService
from .recommendations import RecommendationService

__all__ = [
    "BookCatalog",
    "LibraryDirectory",
    "SqlBookCatalog",
    "SqlLibraryDirectory",
    "RatingService",
    "RecommendationService",
]
