"""
Service layer wiring for the FastAPI application.
"""

from typing import Dict, Optional

import structlog

from bookshelf.database import MongoDBManager
from bookshelf.query import ShelfQueryEngine
from bookshelf.service import ShelfMutationService
from bookshelf.store import ShelfEntryStore
from bookshelf.tags import TagRegistry
from catalog.books import BookRepository
from catalog.search import BookSearchClient
from members.oauth import OAuthUserInfoClient
from members.provisioner import IdentityProvisioner

logger = structlog.get_logger(__name__)


class APIDatabaseService:
    """Builds the shelf, catalog and member services over one MongoDB manager."""

    def __init__(
        self,
        db_manager: MongoDBManager,
        search_client: Optional[BookSearchClient] = None,
        oauth_client: Optional[OAuthUserInfoClient] = None,
    ):
        self.db_manager = db_manager
        self.tags = TagRegistry(db_manager)
        self.books = BookRepository(db_manager)
        self.store = ShelfEntryStore(db_manager, self.tags, self.books)
        self.query = ShelfQueryEngine(self.store)
        self.mutations = ShelfMutationService(db_manager, self.store, self.tags, self.books)
        self.provisioner = IdentityProvisioner(db_manager)
        self.search_client = search_client or BookSearchClient()
        self.oauth_client = oauth_client or OAuthUserInfoClient()

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.db_manager.database.command("ping")
            collections = await self.db_manager.get_database_stats()
            return {
                "status": "healthy",
                "collections": collections,
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
