"""Bounded batch deletion of a collection.

Pages through the collection by document id, deleting each page in one
atomic batch, and yields to the event loop between pages. Stack depth stays
constant however many documents there are; memory is bounded by batch_size.

Re-running after a failure is safe: the next pass simply finds fewer
documents.
"""
import asyncio
import logging

from core.exceptions import ValidationError
from store.interface import DOCUMENT_ID, Delete, DocumentStore

logger = logging.getLogger(__name__)


async def delete_collection(store: DocumentStore, collection_path: str, batch_size: int) -> int:
    """Delete every document in collection_path. Returns the number deleted."""
    if batch_size < 1:
        raise ValidationError(f"batch_size must be positive, got {batch_size}")

    logger.info("Delete collection by path: %s batch_size=%d", collection_path, batch_size)
    deleted = 0
    batches = 0
    while True:
        snapshots = await store.query_ordered(collection_path, DOCUMENT_ID, limit=batch_size)
        if not snapshots:
            break

        await store.run_batch([Delete(s.path) for s in snapshots])
        deleted += len(snapshots)
        batches += 1

        # Let other requests run before the next page
        await asyncio.sleep(0)

    logger.info(
        "Collection deleted: path=%s documents=%d batches=%d",
        collection_path, deleted, batches,
    )
    return deleted
