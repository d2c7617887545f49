import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi.testclient import TestClient

from orderly.backend import BackendClient, StaticTokenProvider, build_http_client
from orderly.clock import FixedClock
from orderly.main import create_app
from orderly.settings import Settings

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
BASE_URL = "https://orderly-be.test/api"
ORDER_GID = "gid://shopify/Order/5001"
TOKEN = "session-token-123"


def iso(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


class FakeBackend:
    """In-process stand-in for the merchant backend, served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.settings = {
            "enable_order_editing": True,
            "edit_time_window": 60,
            "safe_financial_statuses": ["paid", "pending"],
            "safe_fulfillment_statuses": ["unfulfilled"],
            "allowed_edit_types": ["items", "shipping"],
            "who_can_edit": ["customer"],
            "notify_on_edit": True,
        }
        self.order = {
            "id": ORDER_GID,
            "createdAt": iso(NOW - timedelta(minutes=10)),
            "lineItems": [
                {"id": "L1", "quantity": 2, "fulfillmentStatus": "unfulfilled"},
            ],
        }
        self.requests = []
        self.fail_paths = set()
        self.fail_routes = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api")
        if path in self.fail_paths:
            return httpx.Response(500, json={"error": "backend exploded"})
        if (request.method, path) in self.fail_routes:
            return httpx.Response(422, json={"error": "rejected"})
        if request.method == "GET" and path == "/settings":
            return httpx.Response(200, json={"settings": self.settings})
        if request.method == "GET" and path == "/orders":
            if request.url.params.get("order_gid") != self.order["id"]:
                return httpx.Response(200, json={"success": False, "order": None})
            return httpx.Response(200, json={"success": True, "order": self.order})
        if request.method == "POST" and path == "/orders":
            return httpx.Response(200, json={"success": True})
        if request.method == "POST" and path in ("/orders/shipping-address", "/orders/billing-address"):
            return httpx.Response(200, json={"success": True})
        if request.method == "POST" and path == "/onboarding/complete-step":
            return httpx.Response(204)
        if request.method == "DELETE" and path.startswith("/orders/"):
            return httpx.Response(200, json={"success": True})
        return httpx.Response(404, json={"error": "unknown route"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def last_body(self, method: str, path: str) -> dict:
        for request in reversed(self.requests):
            if request.method == method and request.url.path == f"/api{path}":
                return json.loads(request.content)
        raise AssertionError(f"no {method} {path} request recorded")

    def count(self, method: str, path: str) -> int:
        return len([r for r in self.requests if r.method == method and r.url.path == f"/api{path}"])


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def backend_client(fake_backend: FakeBackend) -> BackendClient:
    http = build_http_client(BASE_URL, transport=fake_backend.transport())
    return BackendClient(http, StaticTokenProvider(TOKEN))


@pytest.fixture
def client(fake_backend: FakeBackend, clock: FixedClock) -> TestClient:
    settings = Settings(API_BASE_URL=BASE_URL)
    app = create_app(settings, transport=fake_backend.transport(), clock=clock)
    return TestClient(app)


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {TOKEN}"}
