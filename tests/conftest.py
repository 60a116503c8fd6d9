"""Shared test fixtures for the IAM console."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from iam_console.config.models import ConsoleConfig
from iam_console.console import Console
from iam_console.models import ACTIONS
from iam_console.navigation import ConsoleNavigator
from iam_console.session import MemorySessionStorage
from iam_console.transport.client import ApiClient

BASE_URL = "http://iam.test"
TOKEN = "tok-123"

MODULES = ("Users", "Groups", "Roles", "Modules", "Permissions")

ALL_GRANTS = [{"module": m, "action": a} for m in MODULES for a in ACTIONS]


class FakeBackend:
    """Route table for httpx.MockTransport.

    Each (method, path) holds a queue of responses; the last one repeats.
    Unrouted requests get a 404.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Any]] = {}
        self.requests: list[httpx.Request] = []

    def on(
        self,
        method: str,
        path: str,
        status: int = 200,
        json: Any = None,
        content: bytes | None = None,
        exc: Exception | None = None,
    ) -> FakeBackend:
        self.routes.setdefault((method, path), []).append((status, json, content, exc))
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": f"No route for {request.url.path}"})
        status, body, content, exc = queue.pop(0) if len(queue) > 1 else queue[0]
        if exc is not None:
            raise exc
        if content is not None:
            return httpx.Response(status, content=content)
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]


def body_of(request: httpx.Request) -> Any:
    return json.loads(request.content)


def stored_session(
    token: str = TOKEN, grants: list[dict[str, str]] | None = None
) -> dict[str, Any]:
    return {
        "session": {
            "user": {"id": 1, "username": "admin", "email": "admin@example.com"},
            "token": token,
        },
        "permissions": list(ALL_GRANTS if grants is None else grants),
    }


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def session():
    """A logged-in principal holding every permission."""
    return MemorySessionStorage(stored_session())


@pytest.fixture
def anonymous_session():
    return MemorySessionStorage()


@pytest.fixture
def navigator():
    return ConsoleNavigator()


@pytest.fixture
def client(backend, session, navigator):
    return ApiClient(session, navigator, base_url=BASE_URL, transport=backend.transport())


@pytest.fixture
def make_console(backend):
    """Build a Console over the fake backend for a given session."""

    def _make(session: MemorySessionStorage, **console_settings: Any) -> Console:
        config = ConsoleConfig(
            api={"base_url": BASE_URL},
            session={"backend": "memory"},
            console=console_settings,
        )
        return Console(config, session=session, transport=backend.transport())

    return _make


@pytest.fixture
def console(make_console, session):
    return make_console(session)
