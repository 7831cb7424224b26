"""Document store selection (STORE_BACKEND)."""
import logging

from config.settings import Settings
from core.database import create_client
from store.interface import DocumentStore
from store.memory import InMemoryDocumentStore
from store.mongo import MongoDocumentStore

logger = logging.getLogger(__name__)


def build_document_store(settings: Settings) -> DocumentStore:
    """Construct the store once, at process start."""
    if settings.STORE_BACKEND == "memory":
        logger.info("[STORE] Backend=InMemoryDocumentStore (STORE_BACKEND=memory)")
        return InMemoryDocumentStore()
    logger.info("[STORE] Backend=MongoDocumentStore db=%s", settings.DB_NAME)
    return MongoDocumentStore(create_client(settings), settings.DB_NAME)
