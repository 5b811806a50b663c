"""
Shelf mutation service.

Create, update, delete and shift each run as one MongoDB transaction that
covers the entry documents, their tags and the catalog book row, so a
failure anywhere leaves the shelf exactly as it was.
"""

from typing import Union

import structlog

from catalog.books import BookRepository
from utilities.logger import ShelfLogger
from .database import MongoDBManager
from .errors import BookshelfError, NotFoundError, ValidationError
from .models import (
    ReadEntryCreate,
    ReadEntryFields,
    ShelfKind,
    ShelfState,
    WishEntryCreate,
    WishEntryFields,
)
from .store import Entry, ShelfEntryStore
from .tags import TagRegistry

logger = structlog.get_logger(__name__)


class ShelfMutationService:
    """Transactional shelf operations on behalf of a resolved user id."""

    def __init__(
        self,
        db_manager: MongoDBManager,
        store: ShelfEntryStore,
        tags: TagRegistry,
        books: BookRepository,
    ):
        self.db_manager = db_manager
        self.store = store
        self.tags = tags
        self.books = books
        self.shelf_logger = ShelfLogger("bookshelf.service")

    async def _run(self, op: ShelfLogger, name: str, callback):
        op.log_started()
        try:
            result = await self.db_manager.run_in_transaction(callback, operation=name)
        except BookshelfError as e:
            op.log_rejected(e.message_key)
            raise
        except Exception as e:
            op.log_failed(str(e))
            raise
        op.log_completed(result=result)
        return result

    async def get_detail(self, kind: ShelfKind, entry_id: int, user_id: int) -> Entry:
        """
        Get one entry with its book and tags.

        Raises:
            NotFoundError: if the entry does not exist
            AuthorizationError: if it belongs to another user
        """
        return await self.store.get(kind, entry_id, user_id)

    async def shelf_state(self, user_id: int, book_id: int, session=None) -> ShelfState:
        on_read = await self.store.find_for_book(ShelfKind.READ, user_id, book_id, session=session)
        on_wish = await self.store.find_for_book(ShelfKind.WISH, user_id, book_id, session=session)
        return ShelfState.of(on_read is not None, on_wish is not None)

    async def create_entry(
        self,
        kind: ShelfKind,
        payload: Union[ReadEntryCreate, WishEntryCreate],
        user_id: int,
    ) -> int:
        """
        File a catalog book onto a shelf.

        Returns:
            The new entry id

        Raises:
            ValidationError: missing read date, duplicate entry, bad tags, or
                a payload for the other shelf
        """
        if kind is ShelfKind.READ:
            if not isinstance(payload, ReadEntryCreate):
                raise ValidationError("INVALID_PAYLOAD", shelf=kind.value)
            if payload.read_date is None:
                raise ValidationError("MISSING_BOOKSHELF_DATE")
        elif not isinstance(payload, WishEntryCreate):
            raise ValidationError("INVALID_PAYLOAD", shelf=kind.value)

        op = self.shelf_logger.operation("create", shelf=kind.value, user_id=user_id, isbn=payload.book.isbn)

        async def create(session) -> int:
            book_id = await self.books.ensure(payload.book, session=session)
            if kind is ShelfKind.READ:
                entry_id = await self.store.create_read(user_id, book_id, payload, session=session)
                await self.tags.reconcile(entry_id, payload.tags, session=session)
            else:
                entry_id = await self.store.create_wish(user_id, book_id, payload, session=session)
            return entry_id

        return await self._run(op, "create_entry", create)

    async def update_entry(
        self,
        kind: ShelfKind,
        entry_id: int,
        payload: Union[ReadEntryFields, WishEntryFields],
        user_id: int,
    ) -> None:
        """
        Replace an entry's annotations and, for read entries, patch its tags.

        Raises:
            NotFoundError, AuthorizationError, ValidationError
        """
        if kind is ShelfKind.READ:
            if not isinstance(payload, ReadEntryFields):
                raise ValidationError("INVALID_PAYLOAD", shelf=kind.value)
        elif not isinstance(payload, WishEntryFields):
            raise ValidationError("INVALID_PAYLOAD", shelf=kind.value)

        op = self.shelf_logger.operation("update", shelf=kind.value, user_id=user_id, entry_id=entry_id)

        async def update(session) -> None:
            await self.store.get_owned(kind, entry_id, user_id, session=session)
            if kind is ShelfKind.READ:
                await self.store.update_read(entry_id, payload, session=session)
                await self.tags.reconcile(entry_id, payload.tags, session=session)
            else:
                await self.store.update_wish(entry_id, payload, session=session)

        await self._run(op, "update_entry", update)

    async def delete_entry(self, kind: ShelfKind, entry_id: int, user_id: int) -> None:
        """
        Delete an entry owned by the caller.

        Raises:
            NotFoundError, AuthorizationError
        """
        op = self.shelf_logger.operation("delete", shelf=kind.value, user_id=user_id, entry_id=entry_id)

        async def delete(session) -> None:
            await self.store.get_owned(kind, entry_id, user_id, session=session)
            await self.store.delete(kind, entry_id, session=session)

        await self._run(op, "delete_entry", delete)

    async def shift_to_read(self, wish_entry_id: int, payload: ReadEntryFields, user_id: int) -> int:
        """
        Move a want-to-read book onto the read shelf.

        The wish entry is consumed. If the book is already on the read shelf
        that entry is overwritten: its date, rating, review and tags are
        replaced by the request. Otherwise a new read entry is created.

        Returns:
            Id of the resulting read entry

        Raises:
            NotFoundError: the wish entry does not exist (or was already shifted)
            AuthorizationError: the wish entry belongs to another user
            ValidationError: missing read date or bad tags
        """
        if payload.read_date is None:
            raise ValidationError("MISSING_BOOKSHELF_DATE")

        op = self.shelf_logger.operation("shift", user_id=user_id, entry_id=wish_entry_id)

        async def shift(session) -> int:
            wish = await self.store.get_owned(ShelfKind.WISH, wish_entry_id, user_id, session=session)
            book_id = wish["book_id"]

            state = await self.shelf_state(user_id, book_id, session=session)
            if not state.can_shift:
                raise NotFoundError("BOOKSHELF_NOT_FOUND", entry_id=wish_entry_id)

            await self.store.delete(ShelfKind.WISH, wish_entry_id, session=session)

            if state is ShelfState.BOTH:
                existing = await self.store.find_for_book(ShelfKind.READ, user_id, book_id, session=session)
                read_entry_id = existing["_id"]
                await self.store.update_read(read_entry_id, payload, session=session)
                await self.tags.purge(read_entry_id, session=session)
            else:
                read_entry_id = await self.store.create_read(user_id, book_id, payload, session=session)

            await self.tags.reconcile(read_entry_id, payload.tags, session=session)
            logger.info(
                "Shifted book to read shelf",
                user_id=user_id,
                book_id=book_id,
                from_state=state.value,
                read_entry_id=read_entry_id,
            )
            return read_entry_id

        return await self._run(op, "shift_to_read", shift)
