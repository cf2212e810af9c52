"""
Reference tables owned by the catalog and library services.

They are mapped here only so the lookups can read them; this application
never writes to them.
"""

from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Book(Base):
    __tablename__ = "books"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(500), index=True, nullable=False)
    authors: Mapped[Optional[str]] = mapped_column(String(500), index=True)
    year: Mapped[Optional[str]] = mapped_column(String(4))
    description: Mapped[Optional[str]] = mapped_column(Text)
    categories: Mapped[Optional[str]] = mapped_column(String(500))
    publisher: Mapped[Optional[str]] = mapped_column(String(255))
    price: Mapped[Optional[str]] = mapped_column(String(50))


class Library(Base):
    """A user-owned named collection of books"""

    __tablename__ = "libraries"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_libraries_user_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
