"""
Result type for service calls.

Remote callers receive either a value or exactly one ``FailureKind`` and can
branch on ``result.failure`` instead of catching the exception hierarchy.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, Generic, Optional, TypeVar

from book_recommender.core.exceptions import BookRecommenderException, FailureKind

T = TypeVar("T")


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    value: Optional[T] = None
    failure: Optional[FailureKind] = None
    error_code: Optional[str] = None
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    status_code: int = 200

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T) -> "ServiceResult[T]":
        return cls(value=value)

    @classmethod
    def from_exception(cls, exc: BookRecommenderException) -> "ServiceResult[T]":
        return cls(
            failure=exc.kind,
            error_code=exc.error_code,
            message=exc.message,
            details=exc.details or {},
            status_code=exc.status_code,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Error body in the same shape as ``BookRecommenderException.to_dict``."""
        response = {"error_code": self.error_code, "kind": str(self.failure), "message": self.message}
        if self.details:
            response["details"] = self.details
        return response


async def capture(call: Awaitable[T]) -> ServiceResult[T]:
    """
    Await a service call and fold domain exceptions into a ``ServiceResult``.

    Anything that is not a ``BookRecommenderException`` propagates unchanged.
    """
    try:
        return ServiceResult.success(await call)
    except BookRecommenderException as exc:
        return ServiceResult.from_exception(exc)
