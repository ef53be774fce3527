import os

os.environ.setdefault("SUPABASE_URL", "https://project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "header.payload.signature")
os.environ.setdefault("ENVIRONMENT", "test")

import copy
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import uuid4

import httpx
import pytest
from fastapi.testclient import TestClient

from errors import ConflictError, NotFoundError, UpstreamError
from repositories.document_store import ListResult
from repositories.file_storage import StoredFile, build_file_url
from services import customers_service
from services.auth_service import SupabaseAuthClient
from services.pricing import PricingEngine

FailureRule = Tuple[str, str, Callable[[Dict[str, Any]], bool], Exception]


class FakeDocumentStore:
    """In-memory stand-in for the Supabase document store."""

    def __init__(self, unique: Optional[Dict[str, str]] = None) -> None:
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.unique = unique or {}
        self.calls: List[Tuple[str, str]] = []
        self._rules: List[FailureRule] = []

    def fail_when(
        self,
        action: str,
        collection: str,
        match: Callable[[Dict[str, Any]], bool] = lambda payload: True,
        exc: Optional[Exception] = None,
    ) -> None:
        self._rules.append((action, collection, match, exc or UpstreamError("store unavailable")))

    def _check(self, action: str, collection: str, payload: Dict[str, Any]) -> None:
        self.calls.append((action, collection))
        for rule_action, rule_collection, match, exc in self._rules:
            if rule_action == action and rule_collection == collection and match(payload):
                raise exc

    def table(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return self.collections.setdefault(collection, {})

    def rows(self, collection: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(row) for row in self.table(collection).values()]

    def seed(self, collection: str, **fields: Any) -> Dict[str, Any]:
        record = dict(fields)
        record.setdefault("id", uuid4().hex)
        self.table(collection)[record["id"]] = record
        return copy.deepcopy(record)

    def create(self, collection, fields, doc_id=None):
        self._check("create", collection, fields)
        unique_field = self.unique.get(collection)
        if unique_field and any(
            row.get(unique_field) == fields.get(unique_field)
            for row in self.table(collection).values()
        ):
            raise ConflictError(f"Duplicate {collection} record")
        record = dict(fields)
        record["id"] = doc_id or uuid4().hex
        self.table(collection)[record["id"]] = record
        return copy.deepcopy(record)

    def get(self, collection, doc_id):
        self._check("get", collection, {"id": doc_id})
        row = self.table(collection).get(doc_id)
        if row is None:
            raise NotFoundError(f"{collection} record {doc_id} not found")
        return copy.deepcopy(row)

    def list(
        self,
        collection,
        filters=None,
        *,
        search=None,
        limit=None,
        offset=0,
        order_by=None,
        descending=True,
    ):
        self._check("list", collection, dict(filters or {}))
        items = [
            row
            for row in self.table(collection).values()
            if all(row.get(key) == value for key, value in (filters or {}).items())
        ]
        if search:
            field, term = search
            items = [row for row in items if term.lower() in str(row.get(field, "")).lower()]
        if order_by:
            present = [row for row in items if row.get(order_by) is not None]
            missing = [row for row in items if row.get(order_by) is None]
            items = sorted(present, key=lambda row: row[order_by], reverse=descending) + missing
        total = len(items)
        if limit is not None:
            items = items[offset : offset + limit]
        return ListResult(items=[copy.deepcopy(row) for row in items], total=total)

    def update(self, collection, doc_id, fields):
        self._check("update", collection, {"id": doc_id, **fields})
        row = self.table(collection).get(doc_id)
        if row is None:
            raise NotFoundError(f"{collection} record {doc_id} not found")
        row.update(fields)
        return copy.deepcopy(row)

    def delete(self, collection, doc_id):
        self._check("delete", collection, {"id": doc_id})
        if self.table(collection).pop(doc_id, None) is None:
            raise NotFoundError(f"{collection} record {doc_id} not found")


class FakeFileStorage:
    def __init__(self) -> None:
        self.objects: Dict[Tuple[str, str], bytes] = {}
        self.fail_names: set = set()

    def put(self, bucket, data, *, name, file_id=None, content_type="model/stl"):
        if name in self.fail_names:
            raise UpstreamError(f"Storage upload failed for {name}")
        file_id = file_id or uuid4().hex
        self.objects[(bucket, file_id)] = data
        return StoredFile(id=file_id, url=build_file_url(bucket, file_id), name=name, size=len(data))

    def delete(self, bucket, file_id):
        self.objects.pop((bucket, file_id), None)


AUTH_USER = {
    "id": "auth-user-1",
    "email": "ada@example.com",
    "user_metadata": {"first_name": "Ada", "last_name": "Lovelace"},
}
ACCESS_TOKEN = "token-abc"
PASSWORD = "correct-horse"


def _auth_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.endswith("/signup"):
        if b"taken@example.com" in request.content:
            return httpx.Response(422, json={"msg": "User already registered"})
        return httpx.Response(200, json={"user": AUTH_USER})
    if path.endswith("/token"):
        if PASSWORD.encode() in request.content:
            return httpx.Response(
                200,
                json={"access_token": ACCESS_TOKEN, "expires_in": 3600, "user": AUTH_USER},
            )
        return httpx.Response(400, json={"error": "invalid_grant"})
    if path.endswith("/user"):
        if request.headers.get("Authorization") == f"Bearer {ACCESS_TOKEN}":
            return httpx.Response(200, json=AUTH_USER)
        return httpx.Response(401, json={"msg": "invalid JWT"})
    if path.endswith("/logout"):
        return httpx.Response(204)
    return httpx.Response(404)


@pytest.fixture(autouse=True)
def _reset_email_locks():
    customers_service._email_locks.clear()
    yield
    customers_service._email_locks.clear()


@pytest.fixture
def store() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def storage() -> FakeFileStorage:
    return FakeFileStorage()


@pytest.fixture
def pricing() -> PricingEngine:
    return PricingEngine()


@pytest.fixture
def auth_client() -> SupabaseAuthClient:
    return SupabaseAuthClient(
        "https://project.supabase.co",
        "anon-key",
        transport=httpx.MockTransport(_auth_handler),
    )


@pytest.fixture
def client(store, storage, pricing, auth_client):
    from auth import get_current_user_id
    from deps import (
        get_auth_client,
        get_document_store,
        get_file_storage,
        get_pricing_engine,
    )
    from main import app

    app.dependency_overrides[get_document_store] = lambda: store
    app.dependency_overrides[get_file_storage] = lambda: storage
    app.dependency_overrides[get_pricing_engine] = lambda: pricing
    app.dependency_overrides[get_auth_client] = lambda: auth_client
    app.dependency_overrides[get_current_user_id] = lambda: "admin-user"
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
