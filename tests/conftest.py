# tests/conftest.py
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable
from urllib.parse import urlsplit

import pytest
import requests

from fleetdesk import create_app
from fleetdesk.services.session import SESSION_REFRESH_KEY, SESSION_TOKEN_KEY, SESSION_USER_KEY

BACKEND_URL = "http://backend.test/api"


# =========================================================
# Fake backend (patches requests.Session.request)
# =========================================================
@dataclass
class Call:
    method: str
    path: str
    params: dict
    json: Any
    headers: dict
    cookies: dict = field(default_factory=dict)


def make_response(status: int = 200, body: Any = None, content: bytes | None = None,
                  headers: dict | None = None, cookies: dict | None = None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp.reason = "OK" if status < 400 else "Error"
    if content is None:
        content = b"" if body is None else json.dumps(body).encode("utf-8")
    resp._content = content
    resp.encoding = "utf-8"
    resp.headers.update(headers or {"Content-Type": "application/json"})
    for name, value in (cookies or {}).items():
        resp.cookies.set(name, value)
    return resp


class FakeBackend:
    """
    Routes keyed by (METHOD, path). A route is a response, a list of
    responses served in order (the last one repeats), or a callable taking
    the Call and returning a response.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Any] = {}
        self.calls: list[Call] = []

    def on(self, method: str, path: str, body: Any = None, status: int = 200, **kwargs) -> None:
        self.routes[(method.upper(), path)] = make_response(status, body, **kwargs)

    def on_sequence(self, method: str, path: str, responses: list[requests.Response]) -> None:
        self.routes[(method.upper(), path)] = list(responses)

    def on_call(self, method: str, path: str, handler: Callable[[Call], requests.Response]) -> None:
        self.routes[(method.upper(), path)] = handler

    def calls_to(self, method: str, path: str) -> list[Call]:
        return [c for c in self.calls if c.method == method.upper() and c.path == path]

    def dispatch(self, method: str, url: str, params=None, json=None, headers=None, cookies=None, **_kwargs):
        path = urlsplit(url).path
        base_path = urlsplit(BACKEND_URL).path
        if path.startswith(base_path):
            path = path[len(base_path):]
        call = Call(method.upper(), path, dict(params or {}), json, dict(headers or {}), dict(cookies or {}))
        self.calls.append(call)

        route = self.routes.get((call.method, path))
        if route is None:
            return make_response(404, {"message": f"No fake route for {call.method} {path}"})
        if callable(route):
            return route(call)
        if isinstance(route, list):
            return route.pop(0) if len(route) > 1 else route[0]
        return route


@pytest.fixture
def backend(monkeypatch):
    fake = FakeBackend()

    def _request(session, method, url, **kwargs):
        return fake.dispatch(method, url, **kwargs)

    monkeypatch.setattr(requests.Session, "request", _request)
    return fake


# =========================================================
# App + clients
# =========================================================
@pytest.fixture
def app(backend):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "API_BASE_URL": BACKEND_URL,
        "RATELIMIT_ENABLED": False,
        "PREFERRED_URL_SCHEME": "http",
        "PAGE_SIZE": 10,
    })
    return app


@pytest.fixture
def client(app):
    return app.test_client()


USERS = {
    "super-admin": {"id": "u-admin", "username": "admin", "role": "super-admin", "name": "Admin"},
    "bus-owner": {"id": "u-owner", "username": "owner", "role": "bus-owner", "name": "Owner One"},
    "manager": {"id": "u-manager", "username": "manager", "role": "manager", "name": "Manager"},
    "user": {"id": "u-conductor", "username": "conductor", "role": "user", "name": "Conductor"},
}


def login_as(client, role: str, token: str = "access-1", refresh: str = "refresh-1"):
    with client.session_transaction() as sess:
        sess[SESSION_TOKEN_KEY] = token
        sess[SESSION_REFRESH_KEY] = refresh
        sess[SESSION_USER_KEY] = {**USERS[role], "assigned_buses": []}
    return client


@pytest.fixture
def admin_client(client):
    return login_as(client, "super-admin")


@pytest.fixture
def owner_client(client):
    return login_as(client, "bus-owner")


@pytest.fixture
def manager_client(client):
    return login_as(client, "manager")


def flashes(client) -> list[tuple[str, str]]:
    with client.session_transaction() as sess:
        return list(sess.get("_flashes", []))
