"""
Pydantic models for shelf entries, tags and the request payloads that
create or change them.
"""

from datetime import date, datetime
from enum import Enum, IntEnum
from typing import List, Optional

from pydantic import BaseModel, Field

from catalog.models import BookRef


class ShelfKind(str, Enum):
    """The two shelves a book can be filed onto."""
    READ = "read"
    WISH = "wish"


class ReadFilter(IntEnum):
    """Ordering codes for the read shelf listing."""
    NEWEST = 1
    OLDEST = 2
    RATING_HIGH = 3
    RATING_LOW = 4


class ShelfState(str, Enum):
    """Where a (user, book) pair currently sits."""
    NEITHER = "neither"
    WISH_ONLY = "wish_only"
    READ_ONLY = "read_only"
    BOTH = "both"

    @classmethod
    def of(cls, on_read: bool, on_wish: bool) -> "ShelfState":
        if on_read and on_wish:
            return cls.BOTH
        if on_read:
            return cls.READ_ONLY
        if on_wish:
            return cls.WISH_ONLY
        return cls.NEITHER

    @property
    def can_shift(self) -> bool:
        return self in (ShelfState.WISH_ONLY, ShelfState.BOTH)


class TagInput(BaseModel):
    """
    One element of a client tag patch.

    ``id == 0`` creates, a label renames, ``label=None`` deletes.
    """
    id: int = Field(0, ge=0, description="Tag id, 0 for a new tag")
    label: Optional[str] = Field(None, description="Tag text, null to delete the tag")


class Tag(BaseModel):
    """A persisted tag of a read entry."""
    id: int = Field(..., description="Tag identifier")
    label: str = Field(..., description="Tag text")


class ReadEntryFields(BaseModel):
    """Annotation fields of a read entry, used for update and shift."""
    read_date: Optional[date] = Field(None, description="When the book was read (required)")
    rating: Optional[float] = Field(None, ge=0, le=5, description="Rating from 0 to 5")
    review: Optional[str] = Field(None, description="Short review")
    tags: Optional[List[TagInput]] = Field(None, description="Tag patch, at most 5 elements")


class ReadEntryCreate(ReadEntryFields):
    """Payload for filing a book onto the read shelf."""
    book: BookRef = Field(..., description="Catalog book to file")


class WishEntryFields(BaseModel):
    """Annotation fields of a wish entry."""
    reason: Optional[str] = Field(None, description="Why the user wants to read the book")


class WishEntryCreate(WishEntryFields):
    """Payload for filing a book onto the want-to-read shelf."""
    book: BookRef = Field(..., description="Catalog book to file")


class ReadEntry(BaseModel):
    """A book on the read shelf."""
    id: int
    user_id: int
    book_id: int
    book: Optional[BookRef] = None
    read_date: date
    rating: Optional[float] = None
    review: Optional[str] = None
    tags: List[Tag] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class WishEntry(BaseModel):
    """A book on the want-to-read shelf."""
    id: int
    user_id: int
    book_id: int
    book: Optional[BookRef] = None
    reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ReadShelfPage(BaseModel):
    """One page of the read shelf."""
    entries: List[ReadEntry] = Field(..., description="Entries on this page")
    total: int = Field(..., description="Total number of entries on the shelf")
    page: int = Field(..., description="Current page number")
    size: int = Field(..., description="Entries per page")
    total_pages: int = Field(..., description="Total number of pages")
    has_next: bool = Field(..., description="Whether there is a next page")
    has_prev: bool = Field(..., description="Whether there is a previous page")


class WishShelfPage(BaseModel):
    """One page of the want-to-read shelf."""
    entries: List[WishEntry] = Field(..., description="Entries on this page")
    total: int = Field(..., description="Total number of entries on the shelf")
    page: int = Field(..., description="Current page number")
    size: int = Field(..., description="Entries per page")
    total_pages: int = Field(..., description="Total number of pages")
    has_next: bool = Field(..., description="Whether there is a next page")
    has_prev: bool = Field(..., description="Whether there is a previous page")
