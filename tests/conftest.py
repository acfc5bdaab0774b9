import json
import uuid
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

import pytest
from requests.structures import CaseInsensitiveDict

from gateway_sync.client import GatewayClient
from gateway_sync.config import Config
from gateway_sync.context import RunContext


class FakeContext(RunContext):
    """RunContext whose sleeps advance a virtual clock instead of blocking."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []
        super().__init__(clock=lambda: self.now)

    def sleep(self, seconds: float) -> None:
        self.check()
        self.sleeps.append(seconds)
        self.now += seconds


class FakeResponse:
    def __init__(self, status_code: int, payload: Any = None,
                 headers: Optional[Dict[str, str]] = None, raw: Optional[bytes] = None):
        self.status_code = status_code
        self.headers = CaseInsensitiveDict(headers or {})
        if raw is not None:
            self.content = raw
        elif payload is None:
            self.content = b""
        else:
            self.content = json.dumps(payload).encode("utf-8")

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")


def envelope(result: Any, **extra) -> Dict[str, Any]:
    body = {"success": True, "errors": [], "messages": [], "result": result}
    body.update(extra)
    return body


class FakeGatewaySession:
    """In-memory stand-in for the Gateway lists/rules endpoints."""

    def __init__(self):
        self.headers: Dict[str, str] = {}
        self.lists: Dict[str, Dict[str, Any]] = {}
        self.rules: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str, Any]] = []
        # Responses (or exceptions) returned before normal routing, in order
        self.queued: List[Any] = []
        # (method, path) -> status returned on every matching call
        self.failures: Dict[Tuple[str, str], int] = {}
        self.closed = False

    def add_list(self, name: str, items: Optional[List[str]] = None) -> str:
        list_id = str(uuid.uuid4())
        self.lists[list_id] = {"id": list_id, "name": name, "type": "DOMAIN",
                               "count": len(items or []), "items": list(items or [])}
        return list_id

    def add_rule(self, name: str, traffic: str = "", filters: Optional[List[str]] = None) -> str:
        rule_id = str(uuid.uuid4())
        self.rules[rule_id] = {"id": rule_id, "name": name, "traffic": traffic,
                               "filters": filters or ["dns"], "enabled": True, "action": "block"}
        return rule_id

    def mutating_calls(self) -> List[Tuple[str, str, Any]]:
        return [call for call in self.calls if call[0] in ("POST", "PUT", "PATCH", "DELETE")]

    def close(self) -> None:
        self.closed = True

    def request(self, method, url, data=None, timeout=None):
        parts = urlsplit(url)
        path = parts.path.split("/gateway", 1)[1]
        query = parse_qs(parts.query)
        body = json.loads(data) if data else None
        self.calls.append((method, path, body))

        if self.queued:
            queued = self.queued.pop(0)
            if isinstance(queued, Exception):
                raise queued
            return queued

        if (method, path) in self.failures:
            status = self.failures[(method, path)]
            return FakeResponse(status, {"success": False, "errors": [{"message": "failure"}]})

        segments = path.strip("/").split("/")
        collection = self.lists if segments[0] == "lists" else self.rules

        if method == "GET" and len(segments) == 1:
            return self._page(list(collection.values()), query)
        if method == "POST" and len(segments) == 1:
            resource_id = str(uuid.uuid4())
            resource = dict(body, id=resource_id)
            collection[resource_id] = resource
            return FakeResponse(200, envelope(resource))
        if len(segments) == 2 and segments[1] in collection:
            resource_id = segments[1]
            if method == "PUT":
                collection[resource_id] = dict(body, id=resource_id)
                return FakeResponse(200, envelope(collection[resource_id]))
            if method == "DELETE":
                del collection[resource_id]
                return FakeResponse(200, envelope({"id": resource_id}))
        return FakeResponse(404, {"success": False, "errors": [{"message": "not found"}]})

    @staticmethod
    def _page(resources: List[Dict[str, Any]], query: Dict[str, List[str]]) -> FakeResponse:
        per_page = int(query.get("per_page", ["100"])[0])
        page = int(query.get("page", ["1"])[0])
        start = (page - 1) * per_page
        chunk = resources[start:start + per_page]
        info = {"page": page, "per_page": per_page, "count": len(chunk),
                "total_count": len(resources)}
        return FakeResponse(200, envelope(chunk, result_info=info))


@pytest.fixture
def ctx():
    return FakeContext()


@pytest.fixture
def config():
    return Config(
        account_id="acc123",
        api_token="secret-token",
        api_host="https://api.example.test/client/v4/",
        list_item_size=2,
    )


@pytest.fixture
def session():
    return FakeGatewaySession()


@pytest.fixture
def client(config, session):
    return GatewayClient(config, session=session)
