import enum
from typing import Any, Dict, Optional

from fastapi import status


class FailureKind(str, enum.Enum):
    """
    Failure kinds a service operation can report to its caller.
    """

    INVALID_ARGUMENT = "invalid_argument"
    BUSINESS_RULE_VIOLATION = "business_rule_violation"
    DUPLICATE_KEY = "duplicate_key"
    NOT_FOUND = "not_found"
    COMMUNICATION_FAILURE = "communication_failure"

    def __str__(self):
        return self.value


class BookRecommenderException(Exception):
    """Base exception for every domain error raised by the application"""

    kind: FailureKind = FailureKind.COMMUNICATION_FAILURE
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "internal_error"
    message: str = "Internal server error"
    details: Optional[Dict[str, Any]] = None

    def __init__(
        self, message: str = None, status_code: int = None, error_code: str = None, details: Dict[str, Any] = None
    ):
        if message:
            self.message = message
        if status_code:
            self.status_code = status_code
        if error_code:
            self.error_code = error_code
        if details:
            self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the exception into an API response body"""
        response = {"error_code": self.error_code, "kind": self.kind.value, "message": self.message}
        if self.details:
            response["details"] = self.details
        return response

    def __str__(self) -> str:
        result = f"{self.error_code}: {self.message}"
        if self.details:
            result += f" (Details: {self.details})"
        return result


# Argument errors
class InvalidArgumentException(BookRecommenderException):
    """Blank identifier or non-positive numeric id"""

    kind = FailureKind.INVALID_ARGUMENT
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "invalid_argument"
    message = "Invalid user, library or book id"


# Business rule violations
class BusinessRuleViolationException(BookRecommenderException):
    """A business rule rejected the operation"""

    kind = FailureKind.BUSINESS_RULE_VIOLATION
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "business_rule_violation"
    message = "The operation violates a business rule"


class SelfRecommendationException(BusinessRuleViolationException):
    """A book cannot be recommended as a follow-up to itself"""

    error_code = "self_recommendation"
    message = "A book cannot be recommended for itself"


class RecommendationLimitException(BusinessRuleViolationException):
    """The user already gave the maximum number of recommendations for this book"""

    error_code = "recommendation_limit"
    message = "Maximum number of recommendations reached for this book"


class ScoreOutOfRangeException(BusinessRuleViolationException):
    """A criterion score is outside [1, 5]"""

    error_code = "score_out_of_range"
    message = "Scores must be between 1 and 5"


# Key errors
class DuplicateKeyException(BookRecommenderException):
    """A record with the same key already exists"""

    kind = FailureKind.DUPLICATE_KEY
    status_code = status.HTTP_409_CONFLICT
    error_code = "duplicate_key"
    message = "A record with this key already exists"


class NotFoundException(BookRecommenderException):
    """No record matches the key"""

    kind = FailureKind.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"
    message = "Record not found"


# Store and transport errors
class CommunicationFailureException(BookRecommenderException):
    """The store or the transport failed; the original error is kept as ``__cause__``"""

    kind = FailureKind.COMMUNICATION_FAILURE
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "communication_failure"
    message = "Server error while talking to the store"
