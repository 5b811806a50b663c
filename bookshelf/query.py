"""
Paginated shelf listings.
"""

import math
from typing import Dict, List, Optional, Tuple, Union

import structlog

from utilities.config import config
from .errors import ValidationError
from .models import ReadFilter, ReadShelfPage, ShelfKind, WishShelfPage
from .store import ShelfEntryStore

logger = structlog.get_logger(__name__)

# Newest registration wins every tie; _id breaks ties between equal timestamps
_NEWEST = [("created_at", -1), ("_id", -1)]

SORT_ORDERS: Dict[ReadFilter, List[Tuple[str, int]]] = {
    ReadFilter.NEWEST: _NEWEST,
    ReadFilter.OLDEST: [("created_at", 1), ("_id", 1)],
    ReadFilter.RATING_HIGH: [("rating", -1)] + _NEWEST,
    ReadFilter.RATING_LOW: [("rating", 1)] + _NEWEST,
}


def parse_filter(value: Union[int, ReadFilter, None]) -> ReadFilter:
    """Map a client filter code to a ReadFilter, defaulting to newest first."""
    if value is None:
        return ReadFilter.NEWEST
    try:
        return ReadFilter(int(value))
    except (TypeError, ValueError):
        raise ValidationError("INVALID_FILTER", filter=value)


class ShelfQueryEngine:
    """Lists a user's shelf one page at a time."""

    def __init__(self, store: ShelfEntryStore, max_page_size: Optional[int] = None):
        self.store = store
        self.max_page_size = max_page_size or config.max_page_size

    async def list(
        self,
        user_id: int,
        kind: ShelfKind,
        page: int = 1,
        page_size: int = 10,
        filter: Union[int, ReadFilter, None] = None,
    ) -> Union[ReadShelfPage, WishShelfPage]:
        """
        Get one page of a shelf.

        Args:
            user_id: Shelf owner
            kind: Which shelf to list
            page: Page number, starting from 1
            page_size: Entries per page
            filter: ReadFilter code; wish shelves only accept the default

        Returns:
            The page with total count and navigation flags. A page past the
            end is returned empty.
        """
        if page < 1 or page_size < 1 or page_size > self.max_page_size:
            raise ValidationError("INVALID_PAGINATION", page=page, size=page_size)

        read_filter = parse_filter(filter)
        if kind is ShelfKind.WISH and read_filter is not ReadFilter.NEWEST:
            raise ValidationError("INVALID_FILTER", filter=int(read_filter))

        collection = self.store.collection(kind)
        filter_query = {"user_id": user_id}
        skip = (page - 1) * page_size

        total = await self.store.count(kind, user_id)
        total_pages = math.ceil(total / page_size)

        cursor = collection.find(filter_query).sort(SORT_ORDERS[read_filter]).skip(skip).limit(page_size)
        docs = await cursor.to_list(length=page_size)
        entries = await self.store.hydrate(kind, docs)

        logger.debug(
            "Listed shelf",
            user_id=user_id,
            shelf=kind.value,
            page=page,
            size=page_size,
            filter=int(read_filter),
            returned=len(entries),
            total=total,
        )

        page_model = ReadShelfPage if kind is ShelfKind.READ else WishShelfPage
        return page_model(
            entries=entries,
            total=total,
            page=page,
            size=page_size,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )
