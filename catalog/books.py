"""
Local store of catalog books.

Books are reference data: the first registration of an ISBN stores it and
later registrations reuse that row untouched.
"""

from datetime import datetime
from typing import Dict, Iterable, Optional

import structlog
from pymongo import ReturnDocument

from bookshelf.database import BOOKS, MongoDBManager
from bookshelf.errors import NotFoundError
from .models import Book, BookRef

logger = structlog.get_logger(__name__)


def _to_book(doc: Dict) -> Book:
    doc = dict(doc)
    doc["id"] = doc.pop("_id")
    return Book(**doc)


class BookRepository:
    """Catalog books keyed by ISBN."""

    def __init__(self, db_manager: MongoDBManager):
        self.db_manager = db_manager

    @property
    def collection(self):
        return self.db_manager.collection(BOOKS)

    async def ensure(self, ref: BookRef, session=None) -> int:
        """
        Return the local id of ``ref``, storing it on first sight.

        Args:
            ref: Catalog reference submitted by the client
            session: Optional transaction session

        Returns:
            Local book id
        """
        existing = await self.collection.find_one({"isbn": ref.isbn}, session=session)
        if existing:
            return existing["_id"]

        book_id = await self.db_manager.next_id(BOOKS)
        fields = ref.dict(exclude={"isbn"})
        fields["_id"] = book_id
        fields["created_at"] = datetime.utcnow()
        # a concurrent registration of the same ISBN wins; its row is kept as is
        stored = await self.collection.find_one_and_update(
            {"isbn": ref.isbn},
            {"$setOnInsert": fields},
            upsert=True,
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        if stored["_id"] == book_id:
            logger.debug("Stored catalog book", book_id=book_id, isbn=ref.isbn, title=ref.title)
        return stored["_id"]

    async def get(self, book_id: int, session=None) -> Book:
        doc = await self.collection.find_one({"_id": book_id}, session=session)
        if doc is None:
            raise NotFoundError("BOOK_NOT_FOUND", book_id=book_id)
        return _to_book(doc)

    async def find_by_isbn(self, isbn: str, session=None) -> Optional[Book]:
        doc = await self.collection.find_one({"isbn": isbn}, session=session)
        return _to_book(doc) if doc else None

    async def get_many(self, book_ids: Iterable[int], session=None) -> Dict[int, Book]:
        """Fetch books by id in a single query."""
        ids = sorted(set(book_ids))
        if not ids:
            return {}
        cursor = self.collection.find({"_id": {"$in": ids}}, session=session)
        docs = await cursor.to_list(length=len(ids))
        return {doc["_id"]: _to_book(doc) for doc in docs}
