"""MongoDB document store adapter (motor).

Path mapping:
  - the last collection segment names the Mongo collection
    (transcripts/{id}/paragraphs → "paragraphs")
  - _id is the full document path, so ids are scoped to their parent
  - _parent holds the collection path and drives every collection query

Merges are flattened to dotted $set / $unset so untouched fields survive.
Batches run in a multi-document transaction.
"""
import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from core.database import close_client, init_indexes
from core.exceptions import DocumentExistsError, DocumentNotFoundError, StoreError
from store.interface import (
    DELETE_FIELD,
    DOCUMENT_ID,
    FILTER_OPERATORS,
    Create,
    Delete,
    DocumentSnapshot,
    DocumentStore,
    Filter,
    Merge,
    Update,
    WriteOp,
    normalize_collection_path,
    split_document_path,
)

logger = logging.getLogger(__name__)

_INTERNAL_FIELDS = ("_id", "_parent")

_MONGO_OPERATORS = {">": "$gt", "<": "$lt", "in": "$in"}


def _flatten(data: Dict[str, Any], prefix: str, out_set: Dict[str, Any], out_unset: Dict[str, Any]) -> None:
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if value is DELETE_FIELD:
            out_unset[dotted] = ""
        elif isinstance(value, dict):
            _flatten(value, f"{dotted}.", out_set, out_unset)
        else:
            out_set[dotted] = value


def build_merge_update(data: Dict[str, Any], parent: str) -> Dict[str, Any]:
    """Translate a set-with-merge payload into a Mongo update document."""
    to_set: Dict[str, Any] = {}
    to_unset: Dict[str, Any] = {}
    _flatten(data, "", to_set, to_unset)
    to_set["_parent"] = parent
    update: Dict[str, Any] = {"$set": to_set}
    if to_unset:
        update["$unset"] = to_unset
    return update


def build_field_update(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Translate dotted field assignments into a Mongo update document."""
    to_set = {k: v for k, v in fields.items() if v is not DELETE_FIELD}
    to_unset = {k: "" for k, v in fields.items() if v is DELETE_FIELD}
    update: Dict[str, Any] = {}
    if to_set:
        update["$set"] = to_set
    if to_unset:
        update["$unset"] = to_unset
    return update


def build_filter_query(parent: str, filters: Sequence[Filter]) -> Dict[str, Any]:
    query: Dict[str, Any] = {"_parent": parent}
    for dotted, op, value in filters:
        if op not in FILTER_OPERATORS:
            raise StoreError(f"Unsupported filter operator: {op!r}", code="STORE_BAD_QUERY")
        if op == "==":
            query[dotted] = value
            continue
        condition = query.setdefault(dotted, {})
        if not isinstance(condition, dict):
            raise StoreError(f"Conflicting filters on {dotted}", code="STORE_BAD_QUERY")
        condition[_MONGO_OPERATORS[op]] = list(value) if op == "in" else value
    return query


def _strip_sentinels(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        k: _strip_sentinels(v) if isinstance(v, dict) else v
        for k, v in data.items()
        if v is not DELETE_FIELD
    }


def _to_snapshot(doc: Dict[str, Any]) -> DocumentSnapshot:
    path = doc["_id"]
    _, doc_id = split_document_path(path)
    data = {k: v for k, v in doc.items() if k not in _INTERNAL_FIELDS}
    return DocumentSnapshot(id=doc_id, path=path, data=data)


@contextmanager
def _store_errors(operation: str, target: str):
    try:
        yield
    except PyMongoError as e:
        logger.error("Store %s failed: target=%s error=%s", operation, target, e)
        raise StoreError(f"{operation} failed for {target}: {e}") from e


class MongoDocumentStore(DocumentStore):
    """DocumentStore over a motor client."""

    def __init__(self, client: AsyncIOMotorClient, db_name: str):
        self._client = client
        self._db = client[db_name]

    async def initialize(self) -> None:
        with _store_errors("initialize", self._db.name):
            await init_indexes(self._db)

    async def close(self) -> None:
        close_client(self._client)

    def _locate(self, path: str):
        parent, doc_id = split_document_path(path)
        collection = self._db[parent.rsplit("/", 1)[-1]]
        return collection, f"{parent}/{doc_id}", parent

    def _collection(self, collection_path: str):
        parent = normalize_collection_path(collection_path)
        return self._db[parent.rsplit("/", 1)[-1]], parent

    async def get_document(self, path: str) -> Optional[DocumentSnapshot]:
        collection, key, _ = self._locate(path)
        with _store_errors("get_document", key):
            doc = await collection.find_one({"_id": key})
        return _to_snapshot(doc) if doc else None

    async def merge_document(self, path: str, data: Dict[str, Any]) -> None:
        collection, key, parent = self._locate(path)
        with _store_errors("merge_document", key):
            await collection.update_one(
                {"_id": key}, build_merge_update(data, parent), upsert=True,
            )

    async def delete_document(self, path: str) -> None:
        collection, key, _ = self._locate(path)
        with _store_errors("delete_document", key):
            await collection.delete_one({"_id": key})

    async def query_ordered(
        self,
        collection_path: str,
        order_field: str,
        limit: Optional[int] = None,
    ) -> List[DocumentSnapshot]:
        collection, parent = self._collection(collection_path)
        query: Dict[str, Any] = {"_parent": parent}
        sort_field = "_id"
        if order_field != DOCUMENT_ID:
            query[order_field] = {"$exists": True}
            sort_field = order_field
        with _store_errors("query_ordered", parent):
            cursor = collection.find(query).sort(sort_field, 1)
            if limit is not None:
                cursor = cursor.limit(limit)
            docs = await cursor.to_list(length=limit)
        return [_to_snapshot(d) for d in docs]

    async def query_where(
        self,
        collection_path: str,
        filters: Sequence[Filter],
    ) -> List[DocumentSnapshot]:
        collection, parent = self._collection(collection_path)
        query = build_filter_query(parent, filters)
        with _store_errors("query_where", parent):
            docs = await collection.find(query).to_list(length=None)
        return [_to_snapshot(d) for d in docs]

    async def list_documents(self, collection_path: str) -> List[DocumentSnapshot]:
        collection, parent = self._collection(collection_path)
        with _store_errors("list_documents", parent):
            docs = await collection.find({"_parent": parent}).to_list(length=None)
        return [_to_snapshot(d) for d in docs]

    async def _apply(self, op: WriteOp, session) -> None:
        collection, key, parent = self._locate(op.path)
        if isinstance(op, Create):
            doc = {"_id": key, "_parent": parent, **_strip_sentinels(op.data)}
            try:
                await collection.insert_one(doc, session=session)
            except DuplicateKeyError as e:
                raise DocumentExistsError(key) from e
        elif isinstance(op, Merge):
            await collection.update_one(
                {"_id": key}, build_merge_update(op.data, parent),
                upsert=True, session=session,
            )
        elif isinstance(op, Update):
            update = build_field_update(op.fields)
            result = await collection.update_one({"_id": key}, update, session=session)
            if result.matched_count == 0:
                raise DocumentNotFoundError(key)
        elif isinstance(op, Delete):
            await collection.delete_one({"_id": key}, session=session)
        else:
            raise StoreError(f"Unknown batch operation: {op!r}", code="STORE_BAD_OPERATION")

    async def run_batch(self, operations: Sequence[WriteOp]) -> None:
        with _store_errors("run_batch", f"{len(operations)} ops"):
            async with await self._client.start_session() as session:
                async with session.start_transaction():
                    for op in operations:
                        await self._apply(op, session)
        logger.debug("Batch committed: ops=%d", len(operations))
