from __future__ import annotations

from copy import deepcopy
from itertools import count
from typing import Any

import pytest
from firebase_admin import auth as firebase_auth
from google.api_core import exceptions as google_exceptions

from nova_backend import create_app
from nova_backend import firebase as firebase_module
from nova_backend.config import AppConfig


_ids = count(1)


class FakeSnapshot:
    def __init__(self, reference: "FakeDocument", data: dict[str, Any] | None):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> dict[str, Any] | None:
        return deepcopy(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, db: "FakeFirestore", path: str, doc_id: str):
        self._db = db
        self._path = path
        self.id = doc_id

    @property
    def _docs(self) -> dict[str, dict[str, Any]]:
        return self._db.data.setdefault(self._path, {})

    def get(self) -> FakeSnapshot:
        return FakeSnapshot(self, self._docs.get(self.id))

    def set(self, data: dict[str, Any], merge: bool = False) -> None:
        stored = dict(data)
        if merge and self.id in self._docs:
            self._docs[self.id].update(stored)
        else:
            self._docs[self.id] = stored

    def update(self, updates: dict[str, Any]) -> None:
        if self.id not in self._docs:
            raise KeyError(f"No document to update: {self._path}/{self.id}")
        self._docs[self.id].update(updates)

    def delete(self) -> None:
        self._docs.pop(self.id, None)

    def collection(self, name: str) -> "FakeCollection":
        return FakeCollection(self._db, f"{self._path}/{self.id}/{name}")


class FakeQuery:
    def __init__(self, collection: "FakeCollection", filters=(), orders=(), limit_count=None):
        self._collection = collection
        self._filters = list(filters)
        self._orders = list(orders)
        self._limit = limit_count

    def where(self, field: str, op: str, value: Any) -> "FakeQuery":
        return FakeQuery(self._collection, [*self._filters, (field, op, value)], self._orders, self._limit)

    def order_by(self, field: str, direction: str = "ASCENDING") -> "FakeQuery":
        return FakeQuery(self._collection, self._filters, [*self._orders, (field, direction)], self._limit)

    def limit(self, limit_count: int) -> "FakeQuery":
        return FakeQuery(self._collection, self._filters, self._orders, limit_count)

    def _matches(self, data: dict[str, Any]) -> bool:
        for field, op, value in self._filters:
            current = data.get(field)
            if op == "==" and current != value:
                return False
            if op == ">=" and not (current is not None and current >= value):
                return False
            if op == "<=" and not (current is not None and current <= value):
                return False
            if op == "in" and current not in value:
                return False
        return True

    def stream(self):
        items = [
            (doc_id, data)
            for doc_id, data in list(self._collection._docs.items())
            if self._matches(data)
        ]
        for field, direction in reversed(self._orders):
            items.sort(key=lambda item: item[1].get(field), reverse=direction == "DESCENDING")
        if self._limit is not None:
            items = items[: self._limit]
        for doc_id, data in items:
            self._collection._db.reads += 1
            yield FakeSnapshot(self._collection.document(doc_id), data)


class FakeCollection(FakeQuery):
    def __init__(self, db: "FakeFirestore", path: str):
        self._db = db
        self._path = path
        super().__init__(self)

    @property
    def _docs(self) -> dict[str, dict[str, Any]]:
        return self._db.data.setdefault(self._path, {})

    def document(self, doc_id: str | None = None) -> FakeDocument:
        return FakeDocument(self._db, self._path, doc_id or f"doc{next(_ids)}")


class FakeBatch:
    """Write batch that, like Firestore, refuses to commit more than 500 writes."""

    max_writes = 500

    def __init__(self, db: "FakeFirestore"):
        self._db = db
        self._ops: list[tuple[str, FakeDocument, Any]] = []

    def set(self, ref: FakeDocument, data: dict[str, Any], merge: bool = False) -> None:
        self._ops.append(("set", ref, data))

    def update(self, ref: FakeDocument, data: dict[str, Any]) -> None:
        self._ops.append(("update", ref, data))

    def delete(self, ref: FakeDocument) -> None:
        self._ops.append(("delete", ref, None))

    def commit(self) -> None:
        if len(self._ops) > self.max_writes:
            raise google_exceptions.InvalidArgument("maximum 500 writes allowed per request")
        self._db.commits.append(len(self._ops))
        for op, ref, data in self._ops:
            if op == "set":
                ref.set(data)
            elif op == "update":
                ref.update(data)
            else:
                ref.delete()
        self._ops.clear()


class FakeFirestore:
    def __init__(self):
        self.data: dict[str, dict[str, dict[str, Any]]] = {}
        self.reads = 0
        self.commits: list[int] = []

    def collection(self, name: str) -> FakeCollection:
        return FakeCollection(self, name)

    def batch(self) -> FakeBatch:
        return FakeBatch(self)

    def docs(self, path: str) -> dict[str, dict[str, Any]]:
        return self.data.get(path, {})


class FakeResponse:
    def __init__(self, status_code: int = 200, json_data: Any = None, text: str = ""):
        self.status_code = status_code
        self._json = json_data
        self.text = text or ("" if json_data is None else str(json_data))

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json


class RecordingPost:
    """Stand-in for ``requests.post`` that replays queued responses."""

    def __init__(self, *responses: FakeResponse):
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def __call__(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        if not self.responses:
            raise AssertionError(f"Unexpected POST to {url}")
        return self.responses.pop(0)


def gateway_reply(content: str | None = "Hello from Nova", images=None) -> FakeResponse:
    message: dict[str, Any] = {"role": "assistant", "content": content}
    if images is not None:
        message["images"] = images
    return FakeResponse(200, {"choices": [{"message": message}]})


@pytest.fixture
def db(monkeypatch):
    fake = FakeFirestore()
    monkeypatch.setattr(firebase_module, "_firestore_client", fake)
    return fake


@pytest.fixture
def app_config():
    return AppConfig(
        port=5000,
        firebase_credentials_path=None,
        firebase_web_api_key="web-key",
        ai_gateway_url="https://gateway.test/v1/chat/completions",
        ai_gateway_api_key="gateway-key",
        anthropic_api_key="anthropic-key",
        gemini_api_key="gemini-key",
        expose_verification_codes=True,
        admin_emails=frozenset({"admin@example.com"}),
    )


@pytest.fixture
def app(app_config, db):
    flask_app = create_app(app_config)
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def fake_tokens(monkeypatch):
    """Accept ``token-<uid>`` bearer tokens; ``token-admin`` carries the admin claim."""

    def verify(id_token: str):
        if id_token == "expired":
            raise firebase_auth.ExpiredIdTokenError("Token expired", cause=None)
        if not id_token.startswith("token-"):
            raise ValueError("Malformed token")
        uid = id_token[len("token-"):]
        claims = {"uid": uid, "email": f"{uid}@example.com"}
        if uid == "admin":
            claims["admin"] = True
        return claims

    monkeypatch.setattr(firebase_auth, "verify_id_token", verify)
    return verify


def auth_headers(uid: str = "alice") -> dict[str, str]:
    return {"Authorization": f"Bearer token-{uid}"}


@pytest.fixture
def post(monkeypatch):
    """Patch ``requests.post`` and return the recorder."""
    import requests

    recorder = RecordingPost()
    monkeypatch.setattr(requests, "post", recorder)
    return recorder
