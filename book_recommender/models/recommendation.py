from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Recommendation(Base):
    """A user, having read one book, suggests another one inside one of their libraries"""

    __tablename__ = "recommendations"
    __table_args__ = (
        Index("ix_recommendations_user_book_read", "user_id", "book_read_id"),
        Index("ix_recommendations_library_book_read", "library_id", "book_read_id"),
    )

    # Surrogate id: the logical key (user, library, read, suggested) may repeat
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    library_id: Mapped[int] = mapped_column(Integer, nullable=False)
    book_read_id: Mapped[int] = mapped_column(Integer, nullable=False)
    book_suggested_id: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
