from .rating_repository import LegacyFileRatingStore, RatingRepository, RatingStore
from .recommendation_repository import RecommendationRepository, RecommendationStore

__all__ = [
    "LegacyFileRatingStore",
    "RatingRepository",
    "RatingStore",
    "RecommendationRepository",
    "RecommendationStore",
]
