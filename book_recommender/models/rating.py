from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Rating(Base):
    """Five-criteria rating of a book by a user"""

    __tablename__ = "ratings"
    __table_args__ = (UniqueConstraint("user_id", "book_id", name="uq_ratings_user_book"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    book_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    library_name: Mapped[Optional[str]] = mapped_column(String(255))

    style: Mapped[int] = mapped_column(Integer, nullable=False)
    style_note: Mapped[Optional[str]] = mapped_column(Text)
    content: Mapped[int] = mapped_column(Integer, nullable=False)
    content_note: Mapped[Optional[str]] = mapped_column(Text)
    pleasantness: Mapped[int] = mapped_column(Integer, nullable=False)
    pleasantness_note: Mapped[Optional[str]] = mapped_column(Text)
    originality: Mapped[int] = mapped_column(Integer, nullable=False)
    originality_note: Mapped[Optional[str]] = mapped_column(Text)
    edition: Mapped[int] = mapped_column(Integer, nullable=False)
    edition_note: Mapped[Optional[str]] = mapped_column(Text)

    overall_score: Mapped[float] = mapped_column(Float, nullable=False)
    final_comment: Mapped[Optional[str]] = mapped_column(Text)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
