"""In-process document store: same semantics as the Mongo adapter.

Used with STORE_BACKEND=memory for local development and by the test
suite. Batches are staged against a private overlay and only applied once
every operation has validated, which gives the all-or-nothing behavior
callers rely on.
"""
import asyncio
import copy
import logging
from typing import Any, Dict, List, Optional, Sequence

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

_MISSING = object()


def merge_into(target: Dict[str, Any], data: Dict[str, Any]) -> None:
    """Deep-merge data into target in place. Nested maps merge field by field."""
    for key, value in data.items():
        if value is DELETE_FIELD:
            target.pop(key, None)
        elif isinstance(value, dict):
            existing = target.get(key)
            if not isinstance(existing, dict):
                existing = {}
                target[key] = existing
            merge_into(existing, value)
        else:
            target[key] = copy.deepcopy(value)


def set_dotted(target: Dict[str, Any], dotted: str, value: Any) -> None:
    parts = dotted.split(".")
    node = target
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            if value is DELETE_FIELD:
                return
            child = {}
            node[part] = child
        node = child
    if value is DELETE_FIELD:
        node.pop(parts[-1], None)
    else:
        node[parts[-1]] = copy.deepcopy(value)


def get_dotted(data: Dict[str, Any], dotted: str) -> Any:
    node: Any = data
    for part in dotted.split("."):
        if not isinstance(node, dict) or part not in node:
            return _MISSING
        node = node[part]
    return node


def _strip_sentinels(data: Dict[str, Any]) -> Dict[str, Any]:
    result = {}
    for key, value in data.items():
        if value is DELETE_FIELD:
            continue
        result[key] = _strip_sentinels(value) if isinstance(value, dict) else copy.deepcopy(value)
    return result


def _matches(data: Dict[str, Any], flt: Filter) -> bool:
    dotted, op, expected = flt
    actual = get_dotted(data, dotted)
    if actual is _MISSING:
        return False
    try:
        if op == "==":
            return actual == expected
        if op == ">":
            return actual > expected
        if op == "<":
            return actual < expected
        if op == "in":
            return actual in expected
    except TypeError:
        return False
    raise StoreError(f"Unsupported filter operator: {op!r}", code="STORE_BAD_QUERY")


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed document store keyed by full document path."""

    def __init__(self):
        self._docs: Dict[str, Dict[str, Any]] = {}

    def _snapshot(self, path: str) -> DocumentSnapshot:
        _, doc_id = split_document_path(path)
        return DocumentSnapshot(id=doc_id, path=path, data=copy.deepcopy(self._docs[path]))

    def _collection(self, collection_path: str) -> List[str]:
        collection = normalize_collection_path(collection_path)
        return [p for p in self._docs if split_document_path(p)[0] == collection]

    @staticmethod
    def _key(path: str) -> str:
        collection, doc_id = split_document_path(path)
        return f"{collection}/{doc_id}"

    async def get_document(self, path: str) -> Optional[DocumentSnapshot]:
        key = self._key(path)
        await asyncio.sleep(0)
        if key not in self._docs:
            return None
        return self._snapshot(key)

    async def merge_document(self, path: str, data: Dict[str, Any]) -> None:
        await self.run_batch([Merge(path, data)])

    async def delete_document(self, path: str) -> None:
        await self.run_batch([Delete(path)])

    async def query_ordered(
        self,
        collection_path: str,
        order_field: str,
        limit: Optional[int] = None,
    ) -> List[DocumentSnapshot]:
        await asyncio.sleep(0)
        paths = self._collection(collection_path)
        if order_field == DOCUMENT_ID:
            paths.sort(key=lambda p: split_document_path(p)[1])
        else:
            paths = [p for p in paths if get_dotted(self._docs[p], order_field) is not _MISSING]
            paths.sort(key=lambda p: get_dotted(self._docs[p], order_field))
        if limit is not None:
            paths = paths[:limit]
        return [self._snapshot(p) for p in paths]

    async def query_where(
        self,
        collection_path: str,
        filters: Sequence[Filter],
    ) -> List[DocumentSnapshot]:
        for _, op, _ in filters:
            if op not in FILTER_OPERATORS:
                raise StoreError(f"Unsupported filter operator: {op!r}", code="STORE_BAD_QUERY")
        await asyncio.sleep(0)
        snapshots = [self._snapshot(p) for p in self._collection(collection_path)]
        return [s for s in snapshots if all(_matches(s.data, f) for f in filters)]

    async def list_documents(self, collection_path: str) -> List[DocumentSnapshot]:
        await asyncio.sleep(0)
        return [self._snapshot(p) for p in self._collection(collection_path)]

    async def run_batch(self, operations: Sequence[WriteOp]) -> None:
        await asyncio.sleep(0)
        staged: Dict[str, Optional[Dict[str, Any]]] = {}

        def current(key: str) -> Optional[Dict[str, Any]]:
            if key in staged:
                return staged[key]
            return self._docs.get(key)

        for op in operations:
            key = self._key(op.path)
            existing = current(key)
            if isinstance(op, Create):
                if existing is not None:
                    raise DocumentExistsError(key)
                staged[key] = _strip_sentinels(op.data)
            elif isinstance(op, Merge):
                doc = copy.deepcopy(existing) if existing is not None else {}
                merge_into(doc, op.data)
                staged[key] = doc
            elif isinstance(op, Update):
                if existing is None:
                    raise DocumentNotFoundError(key)
                doc = copy.deepcopy(existing)
                for dotted, value in op.fields.items():
                    set_dotted(doc, dotted, value)
                staged[key] = doc
            elif isinstance(op, Delete):
                staged[key] = None
            else:
                raise StoreError(f"Unknown batch operation: {op!r}", code="STORE_BAD_OPERATION")

        for key, doc in staged.items():
            if doc is None:
                self._docs.pop(key, None)
            else:
                self._docs[key] = doc
        logger.debug("Batch committed: ops=%d", len(operations))
