from .ratings import router as ratings_router
from .recommendations import router as recommendations_router

__all__ = ["ratings_router", "recommendations_router"]
