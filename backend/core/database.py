"""MongoDB async connection manager.

The client is built once at process start (see server.lifespan) and handed
to the document store explicitly. Nothing in here caches a global client.
"""
import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from config.settings import Settings

logger = logging.getLogger(__name__)

# Mongo collections that back store paths (last collection segment)
TRANSCRIPTS = "transcripts"
PARAGRAPHS = "paragraphs"


def create_client(settings: Settings) -> AsyncIOMotorClient:
    """Build the Mongo client. Multi-document batches need a replica set."""
    client = AsyncIOMotorClient(settings.MONGO_URL, tz_aware=True)
    logger.info("MongoDB client created: db=%s", settings.DB_NAME)
    return client


async def init_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create required indexes. Idempotent."""
    # Transcripts: full scans and the recovery query
    await db[TRANSCRIPTS].create_index("_parent")
    await db[TRANSCRIPTS].create_index(
        [("_parent", 1), ("status.progress", 1), ("createdAt", 1)]
    )

    # Paragraphs: reading order and deletion pagination
    await db[PARAGRAPHS].create_index([("_parent", 1), ("startTime", 1)])
    await db[PARAGRAPHS].create_index([("_parent", 1), ("_id", 1)])

    logger.info("MongoDB indexes initialized")


def close_client(client: AsyncIOMotorClient) -> None:
    client.close()
    logger.info("MongoDB connection closed")
