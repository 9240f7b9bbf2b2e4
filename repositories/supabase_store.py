"""
Supabase-backed document store.

Schema (see ``sql/commit_documents.sql``): one table per collection with
columns ``id text primary key``, ``data jsonb``, ``version integer``.

Reads go through PostgREST with JSON-path filters (``data->>field``). Commits
call the ``commit_documents`` PostgreSQL function, which locks every row the
transaction read (FOR UPDATE), verifies versions, and applies all writes in a
single database transaction.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

from postgrest.exceptions import APIError

from repositories.document_store import (
    BufferedTransaction,
    ConcurrentModificationError,
    CorruptDocumentError,
    Document,
    PersistenceError,
    TransactionRunner,
)

logger = logging.getLogger(__name__)

_COLUMNS = "id,data,version"
_COMMIT_FUNCTION = "commit_documents"


def _filter_text(value: Any) -> str:
    """PostgREST compares ``data->>field`` as text."""

    if isinstance(value, bool):
        return "true" if value else "false"
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def _check_response(response: Any, action: str) -> None:
    error = getattr(response, "error", None)
    if error:
        raise PersistenceError(f"Failed to {action}: {error}")


def _row_to_document(collection: str, row: Mapping[str, Any]) -> Document:
    try:
        return Document(
            collection=collection,
            doc_id=str(row["id"]),
            data=dict(row["data"]),
            version=int(row["version"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise CorruptDocumentError(f"Malformed row in {collection}: {e}") from e


class SupabaseDocumentStore(TransactionRunner):
    def __init__(self, client: Any, *, commit_function: str = _COMMIT_FUNCTION) -> None:
        self._client = client
        self._commit_function = commit_function

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        try:
            response = (
                self._client.table(collection)
                .select(_COLUMNS)
                .eq("id", doc_id)
                .limit(1)
                .execute()
            )
        except APIError as e:
            raise PersistenceError(f"Failed to fetch {collection}/{doc_id}: {e}") from e
        _check_response(response, f"fetch {collection}/{doc_id}")

        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        return _row_to_document(collection, rows[0])

    def query(
        self,
        collection: str,
        *,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        request = self._client.table(collection).select(_COLUMNS)
        for field, value in (filters or {}).items():
            column = f"data->>{field}"
            if value is None:
                request = request.is_(column, "null")
            else:
                request = request.eq(column, _filter_text(value))
        if order_by is not None:
            request = request.order(f"data->>{order_by}", desc=descending)
        if limit is not None:
            request = request.limit(limit)

        try:
            response = request.execute()
        except APIError as e:
            raise PersistenceError(f"Failed to query {collection}: {e}") from e
        _check_response(response, f"query {collection}")

        rows = getattr(response, "data", None) or []
        return [_row_to_document(collection, row) for row in rows]

    def _commit(self, txn: BufferedTransaction) -> None:
        payload = {
            "p_checks": [
                {"collection": collection, "id": doc_id, "expected_version": version}
                for (collection, doc_id), version in txn.read_versions.items()
            ],
            "p_writes": [
                {
                    "op": "create" if write.is_create else "update",
                    "collection": write.collection,
                    "id": write.doc_id,
                    "data": dict(write.data),
                }
                for write in txn.writes
            ],
        }

        try:
            response = self._client.rpc(self._commit_function, payload).execute()
        except APIError as e:
            raise PersistenceError(f"Failed to commit transaction: {e}") from e
        _check_response(response, "commit transaction")

        result = getattr(response, "data", None) or {}
        if result.get("success"):
            return
        if result.get("error") == "CONFLICT":
            raise ConcurrentModificationError(result.get("message") or "Concurrent modification detected")

        logger.error(
            "Transaction commit rejected",
            extra={"error_code": result.get("error"), "error_message": result.get("message")},
        )
        raise PersistenceError(f"Failed to commit transaction: {result.get('message') or result}")


__all__ = ["SupabaseDocumentStore"]
