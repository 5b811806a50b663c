"""
Tag registry for read entries.

Tags are owned by exactly one read entry and kept in insertion order (their
ids come from a monotonic sequence, so ``_id`` order is insertion order).
Clients patch them sparsely: every element of the incoming list names one
operation, and tags the list does not mention are left alone.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional

import structlog

from utilities.config import config
from utilities.logger import ShelfLogger
from .database import TAGS, MongoDBManager
from .errors import ValidationError
from .models import Tag, TagInput

logger = structlog.get_logger(__name__)


class TagRegistry:
    """Owns the tag documents of read entries."""

    def __init__(self, db_manager: MongoDBManager, max_tags: Optional[int] = None):
        self.db_manager = db_manager
        self.max_tags = max_tags or config.max_tags_per_entry
        self.shelf_logger = ShelfLogger("bookshelf.tags")

    @property
    def collection(self):
        return self.db_manager.collection(TAGS)

    async def list_tags(self, entry_id: int, session=None) -> List[Tag]:
        cursor = self.collection.find({"entry_id": entry_id}, session=session).sort("_id", 1)
        docs = await cursor.to_list(length=None)
        return [Tag(id=doc["_id"], label=doc["label"]) for doc in docs]

    async def list_for_entries(self, entry_ids: Iterable[int], session=None) -> Dict[int, List[Tag]]:
        """Fetch the tags of several entries in a single query."""
        ids = sorted(set(entry_ids))
        result: Dict[int, List[Tag]] = {entry_id: [] for entry_id in ids}
        if not ids:
            return result
        cursor = self.collection.find({"entry_id": {"$in": ids}}, session=session).sort("_id", 1)
        async for doc in cursor:
            result[doc["entry_id"]].append(Tag(id=doc["_id"], label=doc["label"]))
        return result

    async def reconcile(
        self,
        entry_id: int,
        incoming: Optional[List[TagInput]],
        session=None,
    ) -> List[Tag]:
        """
        Apply a client tag patch to an entry.

        Args:
            entry_id: Owning read entry
            incoming: Tag operations; ``None`` or empty changes nothing
            session: Transaction session the writes join

        Returns:
            The entry's tags after the patch, in order

        Raises:
            ValidationError: too many tags, an empty label, or a tag id that
                does not belong to ``entry_id``. Raised before any write.
        """
        current = await self.list_tags(entry_id, session=session)
        if not incoming:
            return current

        if len(incoming) > self.max_tags:
            raise ValidationError("TAG_LIMIT_EXCEEDED", limit=self.max_tags)

        owned = {tag.id for tag in current}
        creates: List[str] = []
        updates: Dict[int, str] = {}
        deletes = set()

        for item in incoming:
            label = item.label.strip() if item.label is not None else None
            if label == "":
                raise ValidationError("TAG_LABEL_EMPTY")

            if item.id == 0:
                if label is not None:
                    creates.append(label)
                continue

            if item.id not in owned:
                logger.warning("Tag reference outside entry", entry_id=entry_id, tag_id=item.id)
                raise ValidationError("TAG_NOT_IN_ENTRY", tag_id=item.id)

            if label is None:
                deletes.add(item.id)
                updates.pop(item.id, None)
            elif item.id not in deletes:
                updates[item.id] = label

        resulting = len(current) - len(deletes) + len(creates)
        if resulting > self.max_tags:
            raise ValidationError("TAG_LIMIT_EXCEEDED", limit=self.max_tags)

        if deletes:
            await self.collection.delete_many(
                {"entry_id": entry_id, "_id": {"$in": sorted(deletes)}}, session=session
            )

        for tag_id, label in updates.items():
            await self.collection.update_one(
                {"_id": tag_id, "entry_id": entry_id},
                {"$set": {"label": label}},
                session=session,
            )

        for label in creates:
            tag_id = await self.db_manager.next_id(TAGS)
            await self.collection.insert_one(
                {"_id": tag_id, "entry_id": entry_id, "label": label, "created_at": datetime.utcnow()},
                session=session,
            )

        self.shelf_logger.log_tags_reconciled(entry_id, len(creates), len(updates), len(deletes))
        return await self.list_tags(entry_id, session=session)

    async def purge(self, entry_id: int, session=None) -> int:
        """Delete every tag of an entry."""
        result = await self.collection.delete_many({"entry_id": entry_id}, session=session)
        return result.deleted_count
