import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from postgrest.exceptions import APIError

from errors import ConflictError, NotFoundError, UpstreamError
from supabase_client import get_supabase

logger = logging.getLogger("print-orders")

UNIQUE_VIOLATION = "23505"


@dataclass
class ListResult:
    items: List[Dict[str, Any]] = field(default_factory=list)
    total: int = 0


def new_document_id() -> str:
    return uuid4().hex


def _translate(exc: APIError, action: str, collection: str) -> Exception:
    if getattr(exc, "code", None) == UNIQUE_VIOLATION:
        return ConflictError(f"Duplicate {collection} record")
    message = getattr(exc, "message", None) or str(exc)
    return UpstreamError(f"Failed to {action} {collection}: {message}")


class SupabaseDocumentStore:
    """Collection-oriented document access over Supabase tables.

    Every record carries a text ``id`` primary key; ``list`` supports equality
    filters, a case-insensitive substring search on one field, single-field
    ordering (descending by default) and offset pagination.
    """

    def __init__(self, client_factory: Callable[[], Any] = get_supabase) -> None:
        self._client_factory = client_factory

    def _table(self, collection: str):
        return self._client_factory().table(collection)

    def create(
        self,
        collection: str,
        fields: Dict[str, Any],
        doc_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        record = dict(fields)
        record["id"] = doc_id or new_document_id()
        try:
            response = self._table(collection).insert(record).execute()
        except APIError as exc:
            raise _translate(exc, "create", collection) from exc
        if not response.data:
            raise UpstreamError(f"Failed to create {collection} record")
        return response.data[0]

    def get(self, collection: str, doc_id: str) -> Dict[str, Any]:
        try:
            response = (
                self._table(collection)
                .select("*")
                .eq("id", doc_id)
                .limit(1)
                .execute()
            )
        except APIError as exc:
            raise _translate(exc, "read", collection) from exc
        items = response.data or []
        if not items:
            raise NotFoundError(f"{collection} record {doc_id} not found")
        return items[0]

    def list(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        *,
        search: Optional[Tuple[str, str]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        order_by: Optional[str] = None,
        descending: bool = True,
    ) -> ListResult:
        query = self._table(collection).select("*", count="exact")
        for key, value in (filters or {}).items():
            query = query.eq(key, value)
        if search:
            search_field, term = search
            query = query.ilike(search_field, f"%{term}%")
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit is not None:
            query = query.range(offset, offset + limit - 1)
        try:
            response = query.execute()
        except APIError as exc:
            raise _translate(exc, "list", collection) from exc
        items = response.data or []
        total = response.count if response.count is not None else len(items)
        return ListResult(items=items, total=total)

    def update(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
    ) -> Dict[str, Any]:
        try:
            response = self._table(collection).update(dict(fields)).eq("id", doc_id).execute()
        except APIError as exc:
            raise _translate(exc, "update", collection) from exc
        if not response.data:
            raise NotFoundError(f"{collection} record {doc_id} not found")
        return response.data[0]

    def delete(self, collection: str, doc_id: str) -> None:
        try:
            response = self._table(collection).delete().eq("id", doc_id).execute()
        except APIError as exc:
            raise _translate(exc, "delete", collection) from exc
        if not response.data:
            raise NotFoundError(f"{collection} record {doc_id} not found")
