import json
from datetime import datetime, timezone

import httpx
import pytest

from dbdash.services.backend_client import BackendClient
from dbdash.services.database_view import DatabaseView
from dbdash.services.field_editors import EditorOptions

BACKEND_URL = "http://backend.test/api"


def _field(name, type_, nullable=True):
    return {"name": name, "type": type_, "nullable": nullable}


DEFAULT_FIELDS = {
    "User": [
        _field("id", "int", False),
        _field("email", "string", False),
        _field("is_active", "boolean"),
        _field("bio_description", "string"),
        _field("created_at", "datetime"),
        _field("updated_at", "datetime"),
    ],
    "Course": [
        _field("id", "int", False),
        _field("title", "string", False),
        _field("price", "float"),
        _field("published", "boolean"),
        _field("metadata", "json"),
        _field("created_at", "datetime"),
    ],
    "Lesson": [
        _field("id", "int", False),
        _field("title", "string", False),
        _field("lesson_notes", "string"),
        _field("duration", "int"),
    ],
}


class FakeBackend:
    """In-memory stand-in for the ``/models`` API, served through httpx.MockTransport."""

    def __init__(self):
        self.models = list(DEFAULT_FIELDS)
        self.fields = {name: list(fields) for name, fields in DEFAULT_FIELDS.items()}
        self.records: dict[str, list[dict]] = {name: [] for name in self.models}
        self.requests: list[httpx.Request] = []
        self.failures: dict[str, tuple[int, dict | None]] = {}
        self._next_id = 1

    # -- seeding -----------------------------------------------------------

    def add_record(self, model: str, **values) -> dict:
        record = {"id": self._next_id, **values}
        self._next_id += 1
        self.records[model].append(record)
        return record

    def seed(self, model: str, count: int) -> None:
        for index in range(count):
            self.add_record(model, title=f"{model} {index + 1}")

    def fail(self, method: str, path: str, status_code: int = 500, body: dict | None = None):
        self.failures[f"{method} {path}"] = (status_code, body)

    # -- inspection --------------------------------------------------------

    def calls(self, method: str | None = None) -> list[httpx.Request]:
        return [r for r in self.requests if method is None or r.method == method]

    def record_ids(self, model: str) -> list:
        return [record["id"] for record in self.records[model]]

    # -- transport ---------------------------------------------------------

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, auth_token: str | None = None) -> BackendClient:
        return BackendClient(BACKEND_URL, auth_token=auth_token, transport=self.transport())

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api")
        failure = self.failures.get(f"{request.method} {path}")
        if failure:
            status_code, body = failure
            return httpx.Response(status_code, json=body or {})

        parts = [part for part in path.split("/") if part]
        if parts == ["models"] and request.method == "GET":
            return httpx.Response(200, json=self.models)
        if len(parts) < 3 or parts[0] != "models" or parts[1] not in self.fields:
            return httpx.Response(404, json={"detail": "Not found"})

        model = parts[1]
        if parts[2] == "fields" and len(parts) == 3:
            return httpx.Response(200, json={"fields": self.fields[model]})
        if parts[2] != "records":
            return httpx.Response(404, json={"detail": "Not found"})
        if len(parts) == 3:
            return self._collection(request, model)
        return self._item(request, model, parts[3])

    def _collection(self, request: httpx.Request, model: str) -> httpx.Response:
        records = self.records[model]
        if request.method == "GET":
            page = int(request.url.params.get("page", "1"))
            limit = int(request.url.params.get("limit", "50"))
            start = (page - 1) * limit
            return httpx.Response(
                200, json={"data": records[start : start + limit], "total": len(records)}
            )
        if request.method == "POST":
            payload = json.loads(request.content)
            stamp = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc).isoformat()
            record = self.add_record(model, **payload)
            record.update({"created_at": stamp, "updated_at": stamp})
            return httpx.Response(201, json=record)
        return httpx.Response(405, json={"detail": "Method not allowed"})

    def _item(self, request: httpx.Request, model: str, record_id: str) -> httpx.Response:
        record = next((r for r in self.records[model] if str(r["id"]) == record_id), None)
        if record is None:
            return httpx.Response(404, json={"detail": "Record not found"})
        if request.method == "GET":
            return httpx.Response(200, json=record)
        if request.method == "PATCH":
            record.update(json.loads(request.content))
            return httpx.Response(200, json=record)
        if request.method == "DELETE":
            self.records[model].remove(record)
            return httpx.Response(204)
        return httpx.Response(405, json={"detail": "Method not allowed"})


@pytest.fixture()
def fake_backend():
    return FakeBackend()


@pytest.fixture()
def backend_client(fake_backend):
    return fake_backend.client()


@pytest.fixture()
def editor_options():
    return EditorOptions(long_text_markers=("description", "content", "notes"))


@pytest.fixture()
def view(backend_client, editor_options):
    return DatabaseView(backend_client, limit=50, editor_options=editor_options)
