import asyncio
import itertools
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import orjson
import pytest

from dbforge.clients.notion import NotionClient
from dbforge.config import DATA_SOURCES_NOTION_VERSION, LEGACY_NOTION_VERSION, Settings


# ─────────────────────────────────────────────────────────────
# Fake workspace API
# ─────────────────────────────────────────────────────────────
class FakeNotion:
    """
    In-memory stand-in for the workspace REST API, served through
    httpx.MockTransport. `fail` maps "METHOD /path" to (status, code) and forces
    an error response for that call.
    """

    def __init__(self, children_page_size: int = 100):
        self.databases: Dict[str, Dict[str, Any]] = {}
        self.data_sources: Dict[str, Dict[str, Any]] = {}
        self.pages: Dict[str, Dict[str, Any]] = {}
        self.children: Dict[str, List[Dict[str, Any]]] = {}
        self.children_page_size = children_page_size
        self.calls: List[Tuple[str, str, Any]] = []
        self.headers: List[httpx.Headers] = []
        self.fail: Dict[str, Tuple[int, str]] = {}
        self._ids = itertools.count(1)

    # seeding helpers
    def add_database(self, db_id: str, *, title: str = "", properties=None, sources: Optional[List[Dict[str, Any]]] = None):
        meta: Dict[str, Any] = {
            "object": "database",
            "id": db_id,
            "title": [{"plain_text": title}] if title else [],
            "url": f"https://notion.so/{db_id}",
            "created_time": "2025-01-01T00:00:00.000Z",
            "last_edited_time": "2025-01-02T00:00:00.000Z",
        }
        if sources is not None:
            meta["data_sources"] = []
            for ds in sources:
                self.data_sources[ds["id"]] = {
                    "object": "data_source",
                    "id": ds["id"],
                    "name": ds.get("name", ""),
                    "parent": {"type": "database_id", "database_id": db_id},
                    "properties": ds.get("properties", {}),
                }
                meta["data_sources"].append({"id": ds["id"], "name": ds.get("name", "")})
        if properties is not None:
            meta["properties"] = properties
        self.databases[db_id] = meta
        return meta

    def add_child_database(self, root_id: str, db_id: str, title: str, created: str = "2025-01-01T00:00:00.000Z"):
        self.children.setdefault(root_id, []).append({
            "object": "block",
            "id": db_id,
            "type": "child_database",
            "created_time": created,
            "child_database": {"title": title},
        })

    def paths(self, method: Optional[str] = None) -> List[str]:
        return [p for m, p, _ in self.calls if method is None or m == method]

    def bodies(self, method: str, path: str) -> List[Any]:
        return [b for m, p, b in self.calls if m == method and p == path]

    # transport
    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def _new_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def _error(self, status: int, code: str, message: str = "") -> httpx.Response:
        return httpx.Response(status, json={"object": "error", "status": status, "code": code, "message": message or code})

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.startswith("/v1"):
            path = path[3:]
        body = orjson.loads(request.content) if request.content else None
        self.calls.append((request.method, path, body))
        self.headers.append(request.headers)

        forced = self.fail.get(f"{request.method} {path}")
        if forced:
            return self._error(forced[0], forced[1])

        parts = path.strip("/").split("/")
        method = request.method

        if parts[0] == "databases":
            if method == "POST" and len(parts) == 1:
                return self._create_database(body)
            db = self.databases.get(parts[1])
            if db is None:
                return self._error(404, "object_not_found", f"Could not find database with ID: {parts[1]}")
            if len(parts) == 3 and parts[2] == "query":
                return self._query({"database_id": parts[1]}, body)
            if method == "PATCH":
                db.setdefault("properties", {}).update(body.get("properties") or {})
            return httpx.Response(200, json=db)

        if parts[0] == "data_sources":
            if method == "POST" and len(parts) == 1:
                return self._create_data_source(body)
            ds = self.data_sources.get(parts[1])
            if ds is None:
                return self._error(404, "object_not_found")
            if len(parts) == 3 and parts[2] == "query":
                return self._query({"data_source_id": parts[1]}, body)
            return httpx.Response(200, json=ds)

        if parts[0] == "pages":
            if method == "POST":
                page_id = self._new_id("page")
                page = {
                    "object": "page",
                    "id": page_id,
                    "parent": body["parent"],
                    "properties": body.get("properties", {}),
                    "archived": False,
                    "url": f"https://notion.so/{page_id}",
                }
                self.pages[page_id] = page
                return httpx.Response(200, json=page)
            page = self.pages.get(parts[1])
            if page is None:
                return self._error(404, "object_not_found")
            if method == "PATCH":
                if "properties" in body:
                    page["properties"].update(body["properties"])
                if "archived" in body:
                    page["archived"] = body["archived"]
            return httpx.Response(200, json=page)

        if parts[0] == "blocks":
            items = self.children.get(parts[1], [])
            start = int(request.url.params.get("start_cursor") or 0)
            end = start + self.children_page_size
            more = end < len(items)
            return httpx.Response(200, json={
                "object": "list",
                "results": items[start:end],
                "has_more": more,
                "next_cursor": str(end) if more else None,
            })

        if parts[0] == "users":
            return httpx.Response(200, json={"object": "user", "id": "bot-1", "type": "bot"})

        return self._error(400, "invalid_request_url")

    def _create_database(self, body: Dict[str, Any]) -> httpx.Response:
        db_id = self._new_id("db")
        title = "".join(t["text"]["content"] for t in body.get("title") or [])
        if "initial_data_source" in body:
            self.add_database(
                db_id,
                title=title,
                sources=[{"id": self._new_id("ds"), "name": title, "properties": body["initial_data_source"]["properties"]}],
            )
        else:
            self.add_database(db_id, title=title, properties=body.get("properties", {}))
        return httpx.Response(200, json=self.databases[db_id])

    def _create_data_source(self, body: Dict[str, Any]) -> httpx.Response:
        db_id = body["parent"]["database_id"]
        ds_id = self._new_id("ds")
        name = "".join(t["text"]["content"] for t in body.get("title") or [])
        ds = {
            "object": "data_source",
            "id": ds_id,
            "name": name,
            "parent": {"type": "database_id", "database_id": db_id},
            "properties": body.get("properties", {}),
        }
        self.data_sources[ds_id] = ds
        self.databases[db_id].setdefault("data_sources", []).append({"id": ds_id, "name": name})
        return httpx.Response(200, json=ds)

    def _query(self, parent: Dict[str, str], body: Optional[Dict[str, Any]]) -> httpx.Response:
        (key, value), = parent.items()
        results = [
            p for p in self.pages.values()
            if p["parent"].get(key) == value and not p.get("archived")
        ]
        size = (body or {}).get("page_size", 100)
        return httpx.Response(200, json={
            "object": "list",
            "results": results[:size],
            "has_more": len(results) > size,
            "next_cursor": "more" if len(results) > size else None,
        })


# ─────────────────────────────────────────────────────────────
# Fake model providers
# ─────────────────────────────────────────────────────────────
class FakeProvider:
    def __init__(self, model_id: str, replies: List[Any], available: bool = True):
        self.model_id = model_id
        self.replies = list(replies)
        self.available = available
        self.prompts: List[str] = []

    async def probe(self) -> None:
        if not self.available:
            raise RuntimeError(f"model {self.model_id} not found")

    async def chat(self, messages, **kwargs) -> str:
        self.prompts.append(messages[-1]["content"])
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, BaseException):
            raise reply
        return reply


def make_factory(providers: Dict[str, FakeProvider]) -> Callable[[str], FakeProvider]:
    def _make(model_id: str) -> FakeProvider:
        return providers[model_id]

    return _make


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ─────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────
def make_settings(**overrides) -> Settings:
    values = {
        "NOTION_API_KEY": "secret_test",
        "NOTION_PARENT_PAGE_ID": "root-page",
        "GEMINI_API_KEY": "gemini-test",
        "NOTION_API_VERSION": DATA_SOURCES_NOTION_VERSION,
        "MODEL_FALLBACKS": ["gemini-2.0-flash", "gemini-1.5-pro"],
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def fake_notion() -> FakeNotion:
    return FakeNotion()


@pytest.fixture
def client_b(fake_notion) -> NotionClient:
    return NotionClient("secret_test", version=DATA_SOURCES_NOTION_VERSION, transport=fake_notion.transport)


@pytest.fixture
def client_a(fake_notion) -> NotionClient:
    return NotionClient("secret_test", version=LEGACY_NOTION_VERSION, transport=fake_notion.transport)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


def run(coro):
    return asyncio.run(coro)
