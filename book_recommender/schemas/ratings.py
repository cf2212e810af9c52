from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Order matters: it is the order of the legacy delimited line
CRITERIA = ("style", "content", "pleasantness", "originality", "edition")


class RatingKey(BaseModel):
    """
    Logical key of a rating: one rating per user per book.
    """

    user_id: str
    book_id: int

    model_config = ConfigDict(frozen=True)


class RatingCriteria(BaseModel):
    """
    The five criterion scores, each with an optional note.

    Scores are not range-checked here; the rating service rejects values
    outside [1, 5] as a business rule violation.
    """

    style: int
    style_note: Optional[str] = None
    content: int
    content_note: Optional[str] = None
    pleasantness: int
    pleasantness_note: Optional[str] = None
    originality: int
    originality_note: Optional[str] = None
    edition: int
    edition_note: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    def scores(self) -> tuple[int, ...]:
        return tuple(getattr(self, name) for name in CRITERIA)

    def mean(self) -> float:
        """Arithmetic mean of the five scores, the usual overall score."""
        scores = self.scores()
        return sum(scores) / len(scores)


class RatingRecord(RatingCriteria):
    """
    Raw rating as stored.
    """

    user_id: str
    book_id: int
    library_name: Optional[str] = None
    overall_score: float
    final_comment: Optional[str] = None
    recorded_at: Optional[datetime] = None

    @property
    def key(self) -> RatingKey:
        return RatingKey(user_id=self.user_id, book_id=self.book_id)

    def criteria(self) -> RatingCriteria:
        return RatingCriteria.model_validate(self.model_dump(include=set(RatingCriteria.model_fields)))


class DetailedRating(RatingRecord):
    """
    Rating enriched with the book's title and authors.
    """

    book_title: Optional[str] = None
    book_authors: Optional[str] = None

    def summary(self) -> str:
        comment = self.final_comment if self.final_comment and self.final_comment.strip() else "No final comment"
        return (
            f"Library: {self.library_name}\n"
            f"Book: {self.book_title} ({self.book_authors}) [ID: {self.book_id}]\n"
            f"Overall: {self.overall_score:.1f} (style {self.style}, content {self.content}, "
            f"pleasantness {self.pleasantness}, originality {self.originality}, edition {self.edition})\n"
            f"{comment}"
        )


class CriteriaAverages(BaseModel):
    """
    Averages for one book; every value is 0.0 when the book has no ratings.
    """

    book_id: int
    count: int = 0
    overall: float = 0.0
    style: float = 0.0
    content: float = 0.0
    pleasantness: float = 0.0
    originality: float = 0.0
    edition: float = 0.0


class RatingCreate(RatingCriteria):
    """
    Request body for saving a rating.
    """

    library_name: str = Field(..., description="Library the book was rated from")
    overall_score: Optional[float] = Field(None, description="Defaults to the mean of the five scores")
    final_comment: Optional[str] = Field(None, max_length=1000)


class RatingUpdate(RatingCriteria):
    """
    Request body for replacing the mutable fields of a rating.
    """

    overall_score: Optional[float] = None
    final_comment: Optional[str] = Field(None, max_length=1000)
