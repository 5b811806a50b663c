"""
Shelf entry store.

Owns the read and wish entry documents. Every detail fetch and mutation on
behalf of a user goes through ``get_owned`` so that absent entries and
entries of other users fail differently.
"""

from datetime import date, datetime, time
from typing import Any, Dict, List, Optional, Union

import structlog
from pymongo.errors import DuplicateKeyError

from catalog.books import BookRepository
from .database import READ_ENTRIES, WISH_ENTRIES, MongoDBManager
from .errors import AuthorizationError, NotFoundError, ValidationError
from .models import ReadEntry, ReadEntryFields, ShelfKind, WishEntry, WishEntryFields
from .tags import TagRegistry

logger = structlog.get_logger(__name__)

Entry = Union[ReadEntry, WishEntry]

_COLLECTIONS = {
    ShelfKind.READ: READ_ENTRIES,
    ShelfKind.WISH: WISH_ENTRIES,
}


def _to_datetime(value: date) -> datetime:
    # BSON has no date type
    return datetime.combine(value, time.min)


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


class ShelfEntryStore:
    """CRUD over read and wish entries."""

    def __init__(self, db_manager: MongoDBManager, tags: TagRegistry, books: BookRepository):
        self.db_manager = db_manager
        self.tags = tags
        self.books = books

    def collection(self, kind: ShelfKind):
        return self.db_manager.collection(_COLLECTIONS[kind])

    async def get(self, kind: ShelfKind, entry_id: int, user_id: int, session=None) -> Entry:
        """
        Get a hydrated entry owned by ``user_id``.

        Raises:
            NotFoundError: if no entry has this id
            AuthorizationError: if the entry belongs to another user
        """
        doc = await self.get_owned(kind, entry_id, user_id, session=session)
        entries = await self.hydrate(kind, [doc], session=session)
        return entries[0]

    async def get_owned(self, kind: ShelfKind, entry_id: int, user_id: int, session=None) -> Dict[str, Any]:
        """
        Get the raw entry document after checking the caller owns it.

        Raises:
            NotFoundError: if no entry has this id
            AuthorizationError: if the entry belongs to another user
        """
        doc = await self.collection(kind).find_one({"_id": entry_id}, session=session)
        if doc is None:
            raise NotFoundError("BOOKSHELF_NOT_FOUND", entry_id=entry_id)
        if doc["user_id"] != user_id:
            logger.warning(
                "Shelf entry accessed by non-owner",
                shelf=kind.value,
                entry_id=entry_id,
                owner_id=doc["user_id"],
                caller_id=user_id,
            )
            raise AuthorizationError("BOOKSHELF_FORBIDDEN", entry_id=entry_id)
        return doc

    async def find_for_book(self, kind: ShelfKind, user_id: int, book_id: int, session=None) -> Optional[Dict[str, Any]]:
        return await self.collection(kind).find_one({"user_id": user_id, "book_id": book_id}, session=session)

    async def _insert(self, kind: ShelfKind, doc: Dict[str, Any], session=None) -> int:
        existing = await self.find_for_book(kind, doc["user_id"], doc["book_id"], session=session)
        if existing is not None:
            raise ValidationError("BOOKSHELF_ALREADY_EXISTS", entry_id=existing["_id"])

        entry_id = await self.db_manager.next_id(_COLLECTIONS[kind])
        now = datetime.utcnow()
        doc = {"_id": entry_id, **doc, "created_at": now, "updated_at": now}
        try:
            await self.collection(kind).insert_one(doc, session=session)
        except DuplicateKeyError as e:
            raise ValidationError("BOOKSHELF_ALREADY_EXISTS") from e

        logger.debug("Shelf entry created", shelf=kind.value, entry_id=entry_id, book_id=doc["book_id"])
        return entry_id

    async def create_read(self, user_id: int, book_id: int, fields: ReadEntryFields, session=None) -> int:
        """
        Insert a read entry. Tags are handled by the caller.

        Raises:
            ValidationError: missing read date, or the book is already on the read shelf
        """
        if fields.read_date is None:
            raise ValidationError("MISSING_BOOKSHELF_DATE")
        return await self._insert(
            ShelfKind.READ,
            {
                "user_id": user_id,
                "book_id": book_id,
                "read_date": _to_datetime(fields.read_date),
                "rating": fields.rating,
                "review": fields.review,
            },
            session=session,
        )

    async def create_wish(self, user_id: int, book_id: int, fields: WishEntryFields, session=None) -> int:
        return await self._insert(
            ShelfKind.WISH,
            {"user_id": user_id, "book_id": book_id, "reason": fields.reason},
            session=session,
        )

    async def _update(self, kind: ShelfKind, entry_id: int, values: Dict[str, Any], session=None) -> None:
        values = {**values, "updated_at": datetime.utcnow()}
        result = await self.collection(kind).update_one({"_id": entry_id}, {"$set": values}, session=session)
        if result.matched_count == 0:
            raise NotFoundError("BOOKSHELF_NOT_FOUND", entry_id=entry_id)

    async def update_read(self, entry_id: int, fields: ReadEntryFields, session=None) -> None:
        """Replace the scalar annotations of a read entry."""
        if fields.read_date is None:
            raise ValidationError("MISSING_BOOKSHELF_DATE")
        await self._update(
            ShelfKind.READ,
            entry_id,
            {
                "read_date": _to_datetime(fields.read_date),
                "rating": fields.rating,
                "review": fields.review,
            },
            session=session,
        )

    async def update_wish(self, entry_id: int, fields: WishEntryFields, session=None) -> None:
        await self._update(ShelfKind.WISH, entry_id, {"reason": fields.reason}, session=session)

    async def delete(self, kind: ShelfKind, entry_id: int, session=None) -> None:
        """
        Hard-delete an entry; read entries take their tags with them.

        Raises:
            NotFoundError: if the entry is already gone
        """
        result = await self.collection(kind).delete_one({"_id": entry_id}, session=session)
        if result.deleted_count == 0:
            raise NotFoundError("BOOKSHELF_NOT_FOUND", entry_id=entry_id)
        if kind is ShelfKind.READ:
            purged = await self.tags.purge(entry_id, session=session)
            logger.debug("Purged tags of deleted entry", entry_id=entry_id, tags=purged)

    async def count(self, kind: ShelfKind, user_id: int, session=None) -> int:
        return await self.collection(kind).count_documents({"user_id": user_id}, session=session)

    async def hydrate(self, kind: ShelfKind, docs: List[Dict[str, Any]], session=None) -> List[Entry]:
        """Turn raw documents into entries with their book and tags attached."""
        if not docs:
            return []

        books = await self.books.get_many((doc["book_id"] for doc in docs), session=session)
        tags = {}
        if kind is ShelfKind.READ:
            tags = await self.tags.list_for_entries((doc["_id"] for doc in docs), session=session)

        entries: List[Entry] = []
        for doc in docs:
            book = books.get(doc["book_id"])
            book_ref = book.dict(exclude={"id", "created_at"}) if book else None
            common = {
                "id": doc["_id"],
                "user_id": doc["user_id"],
                "book_id": doc["book_id"],
                "book": book_ref,
                "created_at": doc["created_at"],
                "updated_at": doc["updated_at"],
            }
            if kind is ShelfKind.READ:
                entries.append(ReadEntry(
                    **common,
                    read_date=_to_date(doc["read_date"]),
                    rating=doc.get("rating"),
                    review=doc.get("review"),
                    tags=tags.get(doc["_id"], []),
                ))
            else:
                entries.append(WishEntry(**common, reason=doc.get("reason")))
        return entries
