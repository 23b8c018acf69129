"""Pytest configuration and fixtures"""
import json
import os
from typing import Any

import httpx
import pytest

# Set test environment variables
os.environ.setdefault("GHARPALUWA_API_URL", "http://api.test")
os.environ.setdefault("CART_STORAGE_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from gharpaluwa.cart import CartStore, MemoryStorage  # noqa: E402
from gharpaluwa.services.api_client import GharPaluwaClient  # noqa: E402


class FakeApi:
    """
    Records requests and answers from a route table.

    Routes map "METHOD /path" to a (status, body) tuple or to a callable
    taking the request and returning an httpx.Response.
    """

    def __init__(self):
        self.routes: dict[str, Any] = {}
        self.requests: list[httpx.Request] = []

    def add(self, route: str, status: int = 200, body: Any = None) -> None:
        self.routes[route] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = f"{request.method} {request.url.path}"
        answer = self.routes.get(route)
        if answer is None:
            return httpx.Response(404, json={"message": f"No route for {route}"})
        if callable(answer):
            return answer(request)
        status, body = answer
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def last_json(self) -> Any:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def storage():
    """Empty in-memory storage"""
    return MemoryStorage()


@pytest.fixture
def cart(storage):
    """Cart store over in-memory storage"""
    return CartStore(storage)


@pytest.fixture
def fake_api():
    return FakeApi()


@pytest.fixture
def api_client(fake_api):
    """API client whose transport is served by fake_api"""
    return GharPaluwaClient(
        base_url="http://api.test",
        token="test-token",
        transport=httpx.MockTransport(fake_api.handler),
    )


@pytest.fixture
def sample_user():
    """Logged-in user record"""
    return {
        "uid": "user-123",
        "displayName": "Sita Sharma",
        "email": "sita@example.com",
    }


@pytest.fixture
def sample_product():
    """Product record as returned by the products endpoint"""
    return {
        "_id": "64f0c0ffee0000000000abcd",
        "name": "Dog Chew Toy",
        "price": 12.5,
        "image": "https://cdn.example.com/toy.png",
        "category": "toys",
    }

