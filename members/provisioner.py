"""
Local user provisioning keyed by social identity.
"""

from datetime import datetime
from typing import Dict, Optional

import structlog
from pymongo.errors import DuplicateKeyError

from bookshelf.database import USERS, MongoDBManager
from bookshelf.errors import NotFoundError
from .models import Role, SocialProfile, User

logger = structlog.get_logger(__name__)


def _to_user(doc: Dict) -> User:
    doc = dict(doc)
    doc["id"] = doc.pop("_id")
    return User(**doc)


class IdentityProvisioner:
    """
    Creates the local user on first login and returns it unchanged afterwards.
    Profile attributes are not refreshed on repeat logins.
    """

    def __init__(self, db_manager: MongoDBManager):
        self.db_manager = db_manager

    @property
    def collection(self):
        return self.db_manager.collection(USERS)

    async def provision(self, profile: SocialProfile) -> User:
        """
        Get or create the user behind a social identity.

        Args:
            profile: Attributes mapped from the provider

        Returns:
            The existing or newly created user
        """

        async def upsert(session) -> User:
            existing = await self.collection.find_one({"social_id": profile.social_id}, session=session)
            if existing:
                return _to_user(existing)

            user_id = await self.db_manager.next_id(USERS)
            doc = {
                "_id": user_id,
                "email": profile.email,
                "social_id": profile.social_id,
                "social_provider": profile.provider.value,
                "nickname": profile.nickname,
                "role": Role.USER.value,
                "created_at": datetime.utcnow(),
            }
            await self.collection.insert_one(doc, session=session)
            logger.info(
                "Provisioned new user",
                user_id=user_id,
                provider=profile.provider.value,
            )
            return _to_user(doc)

        try:
            return await self.db_manager.run_in_transaction(upsert, operation="provision_user")
        except DuplicateKeyError:
            # A concurrent first login committed the same social id
            existing = await self.collection.find_one({"social_id": profile.social_id})
            if existing is None:
                raise
            return _to_user(existing)

    async def get_user(self, user_id: int) -> User:
        doc = await self.collection.find_one({"_id": user_id})
        if doc is None:
            raise NotFoundError("USER_NOT_FOUND", user_id=user_id)
        return _to_user(doc)

    async def get_user_id_by_email(self, email: str) -> int:
        doc = await self.collection.find_one({"email": email})
        if doc is None:
            raise NotFoundError("USER_NOT_FOUND", email=email)
        return doc["_id"]

    async def find_by_social_id(self, social_id: str) -> Optional[User]:
        doc = await self.collection.find_one({"social_id": social_id})
        return _to_user(doc) if doc else None
