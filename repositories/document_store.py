"""
Document store (persistence boundary).

A key-value/document store with:
- get-by-id,
- equality queries with ordering and limit,
- optimistic transactions: every document read inside a transaction records
  its version; writes are buffered and commit only if every read document is
  still at that version. A conflicting commit re-runs the transaction body
  (like Firestore's ``runTransaction``) so the loser observes the
  post-mutation state.

Repositories and the ledger depend only on the protocols defined here.
``InMemoryDocumentStore`` backs tests and local development;
``repositories.supabase_store.SupabaseDocumentStore`` backs production.
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    TypeVar,
)
from uuid import uuid4

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5


class PersistenceError(RuntimeError):
    """The backing store rejected or failed an operation."""


class ConcurrentModificationError(PersistenceError):
    """A document read by the transaction changed before commit."""


class CorruptDocumentError(ValueError):
    """A stored document does not match the expected schema."""


class TransactionStateError(RuntimeError):
    """A transaction was used out of order (read after write, blind update)."""


@dataclass(frozen=True, slots=True)
class Document:
    collection: str
    doc_id: str
    data: Mapping[str, Any]
    version: int


@dataclass(frozen=True, slots=True)
class Write:
    collection: str
    doc_id: str
    data: Mapping[str, Any]
    is_create: bool


class DocumentReader(Protocol):
    def get(self, collection: str, doc_id: str) -> Optional[Document]: ...

    def query(
        self,
        collection: str,
        *,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]: ...


class Transaction(DocumentReader, Protocol):
    def create(self, collection: str, data: Mapping[str, Any], doc_id: Optional[str] = None) -> str: ...

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None: ...


class DocumentStore(DocumentReader, Protocol):
    def run_transaction(self, fn: Callable[[Transaction], T], *, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> T: ...


def new_document_id() -> str:
    return uuid4().hex


class BufferedTransaction:
    """
    Transaction that reads through a store and buffers writes until commit.

    Enforces Firestore's discipline: all reads happen before the first write,
    and a document may only be updated after it was read in this transaction.
    """

    def __init__(self, store: DocumentReader) -> None:
        self._store = store
        self.read_versions: Dict[Tuple[str, str], Optional[int]] = {}
        self.writes: List[Write] = []

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        self._require_no_writes()
        document = self._store.get(collection, doc_id)
        self.read_versions[(collection, doc_id)] = document.version if document else None
        return document

    def query(
        self,
        collection: str,
        *,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        self._require_no_writes()
        documents = self._store.query(
            collection, filters=filters, order_by=order_by, descending=descending, limit=limit
        )
        for document in documents:
            self.read_versions[(collection, document.doc_id)] = document.version
        return documents

    def create(self, collection: str, data: Mapping[str, Any], doc_id: Optional[str] = None) -> str:
        doc_id = doc_id or new_document_id()
        if self.read_versions.get((collection, doc_id)) is not None:
            raise TransactionStateError(f"Document already exists: {collection}/{doc_id}")
        self.writes.append(Write(collection, doc_id, copy.deepcopy(dict(data)), is_create=True))
        return doc_id

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        if self.read_versions.get((collection, doc_id)) is None:
            raise TransactionStateError(f"Document must be read before update: {collection}/{doc_id}")
        self.writes.append(Write(collection, doc_id, copy.deepcopy(dict(fields)), is_create=False))

    def _require_no_writes(self) -> None:
        if self.writes:
            raise TransactionStateError("All reads must happen before the first write in a transaction")


class TransactionRunner:
    """Retry loop shared by store implementations; subclasses provide ``_commit``."""

    def run_transaction(self, fn: Callable[[Transaction], T], *, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> T:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        for attempt in range(1, max_attempts + 1):
            txn = BufferedTransaction(self)  # type: ignore[arg-type]
            result = fn(txn)
            if not txn.writes:
                return result
            try:
                self._commit(txn)
                return result
            except ConcurrentModificationError:
                if attempt == max_attempts:
                    raise
                logger.info(
                    "Transaction conflict, retrying",
                    extra={"attempt": attempt, "max_attempts": max_attempts},
                )
        raise AssertionError("unreachable")

    def _commit(self, txn: BufferedTransaction) -> None:
        raise NotImplementedError


def _sort_key(value: Any) -> Tuple[bool, Any]:
    return (value is not None, value if value is not None else "")


class InMemoryDocumentStore(TransactionRunner):
    """
    Thread-safe in-process document store.

    Documents are deep-copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._collections: Dict[str, Dict[str, Tuple[Dict[str, Any], int]]] = {}

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._lock:
            entry = self._collections.get(collection, {}).get(doc_id)
            if entry is None:
                return None
            data, version = entry
            return Document(collection, doc_id, copy.deepcopy(data), version)

    def query(
        self,
        collection: str,
        *,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        with self._lock:
            rows = [
                Document(collection, doc_id, copy.deepcopy(data), version)
                for doc_id, (data, version) in self._collections.get(collection, {}).items()
                if all(data.get(field) == value for field, value in (filters or {}).items())
            ]

        if order_by is not None:
            rows.sort(key=lambda d: _sort_key(d.data.get(order_by)), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    def _commit(self, txn: BufferedTransaction) -> None:
        with self._lock:
            for (collection, doc_id), expected in txn.read_versions.items():
                entry = self._collections.get(collection, {}).get(doc_id)
                current = entry[1] if entry else None
                if current != expected:
                    raise ConcurrentModificationError(
                        f"{collection}/{doc_id} changed (expected version {expected}, found {current})"
                    )

            for write in txn.writes:
                table = self._collections.setdefault(write.collection, {})
                if write.is_create:
                    if write.doc_id in table:
                        raise ConcurrentModificationError(f"{write.collection}/{write.doc_id} already exists")
                    table[write.doc_id] = (copy.deepcopy(dict(write.data)), 1)
                else:
                    data, version = table[write.doc_id]
                    merged = dict(data)
                    merged.update(copy.deepcopy(dict(write.data)))
                    table[write.doc_id] = (merged, version + 1)


__all__ = [
    "Document",
    "DocumentReader",
    "DocumentStore",
    "Transaction",
    "BufferedTransaction",
    "TransactionRunner",
    "InMemoryDocumentStore",
    "PersistenceError",
    "ConcurrentModificationError",
    "CorruptDocumentError",
    "TransactionStateError",
    "new_document_id",
]
