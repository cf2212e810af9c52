from .base import Base
from .book import Book, Library
from .rating import Rating
from .recommendation import Recommendation

__all__ = ["Base", "Book", "Library", "Rating", "Recommendation"]
