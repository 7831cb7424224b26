"""Document store interface: store-agnostic contract.

Paths alternate collection and document segments:
  transcripts/{id}                       → document
  transcripts/{id}/paragraphs            → collection
  transcripts/{id}/paragraphs/{pid}      → document

Every write is either a merge (fields absent from the payload survive) or
one of the explicit batch operations below. Failures surface as StoreError;
adapters never retry.
"""
import secrets
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from core.exceptions import StoreError

# Field name reserved for ordering by document identity
DOCUMENT_ID = "__name__"

_ID_ALPHABET = string.ascii_letters + string.digits
_ID_LENGTH = 20


class _DeleteField:
    """Sentinel: remove the field it is assigned to."""

    def __repr__(self) -> str:
        return "DELETE_FIELD"


DELETE_FIELD = _DeleteField()


@dataclass
class DocumentSnapshot:
    """A document read from the store."""
    id: str
    path: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Create:
    """Create a document. Fails if it already exists."""
    path: str
    data: Dict[str, Any]


@dataclass
class Merge:
    """Set-with-merge. Creates the document if absent."""
    path: str
    data: Dict[str, Any]


@dataclass
class Update:
    """Set dotted field paths on an existing document. Fails if absent."""
    path: str
    fields: Dict[str, Any]


@dataclass
class Delete:
    """Delete a document. No-op when absent."""
    path: str


WriteOp = Union[Create, Merge, Update, Delete]

# (dotted field, operator, value); operators: "==", ">", "<", "in"
Filter = Tuple[str, str, Any]

FILTER_OPERATORS = ("==", ">", "<", "in")


def split_document_path(path: str) -> Tuple[str, str]:
    """Split a document path into (collection_path, document_id)."""
    segments = [s for s in path.strip("/").split("/") if s]
    if not segments or len(segments) % 2 != 0:
        raise StoreError(f"Not a document path: {path!r}", code="STORE_BAD_PATH")
    return "/".join(segments[:-1]), segments[-1]


def normalize_collection_path(path: str) -> str:
    segments = [s for s in path.strip("/").split("/") if s]
    if not segments or len(segments) % 2 != 1:
        raise StoreError(f"Not a collection path: {path!r}", code="STORE_BAD_PATH")
    return "/".join(segments)


def generate_id() -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))


class DocumentStore(ABC):
    """Abstract document store."""

    def new_id(self, collection_path: str) -> str:
        """Allocate an id in the collection namespace without writing anything."""
        normalize_collection_path(collection_path)
        return generate_id()

    @abstractmethod
    async def get_document(self, path: str) -> Optional[DocumentSnapshot]:
        """Return the document, or None when absent."""
        ...

    @abstractmethod
    async def merge_document(self, path: str, data: Dict[str, Any]) -> None:
        """Merge partial data into the document, creating it if absent."""
        ...

    @abstractmethod
    async def delete_document(self, path: str) -> None:
        ...

    @abstractmethod
    async def query_ordered(
        self,
        collection_path: str,
        order_field: str,
        limit: Optional[int] = None,
    ) -> List[DocumentSnapshot]:
        """Documents ascending by order_field (DOCUMENT_ID orders by id)."""
        ...

    @abstractmethod
    async def query_where(
        self,
        collection_path: str,
        filters: Sequence[Filter],
    ) -> List[DocumentSnapshot]:
        """Documents matching every filter."""
        ...

    @abstractmethod
    async def list_documents(self, collection_path: str) -> List[DocumentSnapshot]:
        """Every document in the collection. Full scan."""
        ...

    @abstractmethod
    async def run_batch(self, operations: Sequence[WriteOp]) -> None:
        """Apply all operations atomically: all or nothing."""
        ...

    async def initialize(self) -> None:
        """Prepare indexes or connections. Idempotent."""
        return None

    async def close(self) -> None:
        return None
