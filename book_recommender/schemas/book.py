from typing import Optional

from pydantic import BaseModel, ConfigDict


class BookInfo(BaseModel):
    """
    Book metadata returned by the catalog lookup.
    """

    id: int
    title: str
    authors: Optional[str] = None
    year: Optional[str] = None
    description: Optional[str] = None
    categories: Optional[str] = None
    publisher: Optional[str] = None
    price: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class LibraryInfo(BaseModel):
    """
    Library id and name returned by the library lookup.
    """

    id: int
    user_id: str
    name: str

    model_config = ConfigDict(from_attributes=True)
