from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .book import BookInfo


class RecommendationKey(BaseModel):
    """
    Logical key of a recommendation.
    """

    user_id: str
    library_id: int
    book_read_id: int
    book_suggested_id: int

    model_config = ConfigDict(frozen=True)


class RecommendationRecord(BaseModel):
    """
    Raw recommendation as stored, in persisted field order.
    """

    user_id: str
    library_id: int
    book_read_id: int
    book_suggested_id: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def key(self) -> RecommendationKey:
        return RecommendationKey(
            user_id=self.user_id,
            library_id=self.library_id,
            book_read_id=self.book_read_id,
            book_suggested_id=self.book_suggested_id,
        )


class SuggestedBook(BaseModel):
    """
    A suggested book together with how many times it was suggested.
    """

    book: BookInfo
    count: int = Field(..., ge=1)


class DetailedRecommendation(BaseModel):
    """
    Recommendation enriched with library name and both books' title and authors.
    """

    user_id: str
    library_id: int
    library_name: Optional[str] = None
    book_read_id: int
    book_read_title: Optional[str] = None
    book_read_authors: Optional[str] = None
    book_suggested_id: int
    book_suggested_title: Optional[str] = None
    book_suggested_authors: Optional[str] = None
    comment: Optional[str] = None
    created_at: Optional[datetime] = None

    def summary(self) -> str:
        comment = self.comment if self.comment and self.comment.strip() else "No comment"
        return (
            f"Library: {self.library_name}\n"
            f"Read: {self.book_read_title} ({self.book_read_authors}) [ID: {self.book_read_id}]\n"
            f"Suggested: {self.book_suggested_title} ({self.book_suggested_authors}) [ID: {self.book_suggested_id}]\n"
            f"{comment}"
        )


class RecommendationCreate(BaseModel):
    """
    Request body for adding a recommendation.
    """

    library_id: int
    book_read_id: int
    book_suggested_id: int
    comment: Optional[str] = Field(None, max_length=1000, description="Why the suggested book fits")


class RecommendationKeyBody(BaseModel):
    """
    Request body identifying one recommendation of the calling user.
    """

    library_id: int
    book_read_id: int
    book_suggested_id: int


class RecommendationCommentUpdate(RecommendationKeyBody):
    comment: Optional[str] = Field(None, max_length=1000)
