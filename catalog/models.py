"""
Pydantic models for catalog books and search results.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, validator


class BookRef(BaseModel):
    """
    Catalog reference for a book, as returned by the search API and as
    submitted by clients when filing a book onto a shelf.
    """
    isbn: str = Field(..., min_length=1, description="Stable catalog key (ISBN-10 and/or ISBN-13)")
    title: str = Field(..., description="Book title")
    author: Optional[str] = Field(None, description="Author(s), caret separated as the catalog sends them")
    cover_image: Optional[str] = Field(None, description="Cover image URL")
    publisher: Optional[str] = Field(None, description="Publisher")
    pubdate: Optional[str] = Field(None, description="Publication date as YYYYMMDD")
    description: Optional[str] = Field(None, description="Catalog description")

    @validator('isbn', 'title')
    def strip_required(cls, v):
        """Reject blank identifiers."""
        v = v.strip()
        if not v:
            raise ValueError('must not be blank')
        return v


class Book(BookRef):
    """Locally stored catalog book."""
    id: int = Field(..., description="Local book identifier")
    created_at: Optional[datetime] = Field(None, description="When the book was first stored")


class NaverBookItem(BaseModel):
    """One item of the Naver book search response."""
    title: str = ""
    link: Optional[str] = None
    image: Optional[str] = None
    author: Optional[str] = None
    discount: Optional[str] = None
    publisher: Optional[str] = None
    pubdate: Optional[str] = None
    isbn: str = ""
    description: Optional[str] = None

    def to_book_ref(self) -> BookRef:
        return BookRef(
            isbn=self.isbn,
            title=self.title,
            author=self.author or None,
            cover_image=self.image or None,
            publisher=self.publisher or None,
            pubdate=self.pubdate or None,
            description=self.description or None,
        )


class NaverSearchResponse(BaseModel):
    """Raw Naver book search response envelope."""
    total: int = Field(..., ge=0)
    start: int = 1
    display: int = 0
    items: List[NaverBookItem] = Field(default_factory=list)


class SearchResult(BaseModel):
    """Paged result of a catalog search."""
    books: List[BookRef] = Field(..., description="Books on this page")
    page: int = Field(..., description="Requested page (1-indexed)")
    size: int = Field(..., description="Requested page size")
    total_size: int = Field(..., description="Total number of catalog matches")
