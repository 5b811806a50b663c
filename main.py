"""
Database bootstrap for the Reading Shelf backend.
Connects to MongoDB, creates the shelf indexes and reports collection counts.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from bookshelf.database import MongoDBManager
from utilities.config import config
from utilities.logger import setup_logging, get_logger


async def main():
    """Prepare the database for the API."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )

    logger = get_logger(__name__)
    logger.info("Bootstrapping Reading Shelf database", database=config.mongodb_database)

    db_manager = MongoDBManager(
        connection_url=config.mongodb_url,
        database_name=config.mongodb_database,
        transaction_retry_attempts=config.transaction_retry_attempts
    )

    try:
        # Connecting also creates the indexes
        await db_manager.connect()

        stats = await db_manager.get_database_stats()
        logger.info("Database statistics", **stats)

    except Exception as e:
        logger.error("Fatal error occurred", error=str(e))
        sys.exit(1)

    finally:
        await db_manager.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
