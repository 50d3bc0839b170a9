"""Shared fixtures: a small users API, its mock HTTP backend, and settings.

No test talks to a live service; every HTTP request goes through an
httpx.MockTransport that serves the OpenAPI document and a few endpoints.
"""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from openapi_bridge.config import Settings, load_settings
from openapi_bridge.loader import Operation

FIXTURES = Path(__file__).parent / "fixtures"
SPEC_URL = "https://api.example.com/openapi.json"

USERS_SPEC: dict[str, Any] = {
    "openapi": "3.0.3",
    "info": {"title": "Users API", "version": "1.2.0", "description": "Manage users"},
    "servers": [{"url": "https://api.example.com"}],
    "paths": {
        "/users": {
            "get": {
                "operationId": "listUsers",
                "summary": "List users",
                "parameters": [
                    {
                        "name": "limit",
                        "in": "query",
                        "schema": {"type": "integer", "minimum": 1, "maximum": 100},
                    },
                ],
            },
            "post": {
                "operationId": "createUser",
                "summary": "Create user",
                "requestBody": {
                    "required": True,
                    "content": {
                        "application/json": {"schema": {"$ref": "#/components/schemas/NewUser"}},
                    },
                },
            },
        },
        "/users/{id}": {
            "parameters": [
                {"name": "id", "in": "path", "required": True, "schema": {"type": "string"}},
            ],
            "get": {"operationId": "getUserById", "summary": "Get user"},
            "delete": {"description": "Remove a user\nThe user is deleted permanently."},
        },
        "/users/{id}/activate": {
            "parameters": [
                {"name": "id", "in": "path", "required": True, "schema": {"type": "string"}},
            ],
            "post": {},
        },
    },
    "components": {
        "schemas": {
            "NewUser": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "id": {"type": "string", "readOnly": True},
                    "name": {"type": "string"},
                    "role": {"type": "string", "enum": ["admin", "member"]},
                },
            },
        },
    },
}

USER_TOOLS = ["list_users", "create_user", "get_user_by_id", "delete_user", "activate_user"]

_SETTINGS_ENV = (
    "ENVIRONMENTS",
    "DEFAULT_ENVIRONMENT",
    "API_SPEC_URL",
    "API_BASE_URL",
    "API_TIMEOUT",
    "SPEC_REFRESH_INTERVAL",
    "VERIFY_TLS",
    "RATE_LIMIT_ENABLED",
    "RATE_LIMIT_MAX_REQUESTS",
    "RATE_LIMIT_WINDOW_SECONDS",
    "TRANSPORT",
    "HOST",
    "PORT",
    "SERVER_NAME",
    "MCP_VERBOSE",
    "LOG_LEVEL",
    "LOG_JSON",
    "ACTION_WORDS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's shell and .env out of settings."""
    for key in list(os.environ):
        if key.upper() in _SETTINGS_ENV or key.upper().startswith(("API_SPEC_URL_", "API_BASE_URL_")):
            monkeypatch.delenv(key, raising=False)


def make_operation(
    method: str = "GET",
    path: str = "/users",
    identifier: str = "",
    **kwargs: Any,
) -> Operation:
    """Operation with sensible defaults for naming tests."""
    return Operation(identifier=identifier, method=method, path=path, **kwargs)


def make_settings(**overrides: Any) -> Settings:
    """Settings built only from ``overrides`` (no .env file)."""
    environ = overrides.pop("environ", {})
    return load_settings(env_file=None, environ=environ, **overrides)


class FakeApi:
    """In-memory API behind an httpx.MockTransport.

    Serves ``spec`` at /openapi.json on every host and records each
    other request in ``requests``.
    """

    def __init__(self, spec: dict[str, Any] | None = None):
        self.spec = copy.deepcopy(spec or USERS_SPEC)
        self.requests: list[httpx.Request] = []
        self.spec_status = 200
        self.responses: dict[tuple[str, str], httpx.Response] = {}

    def respond(self, method: str, path: str, response: httpx.Response) -> None:
        self.responses[(method.upper(), path)] = response

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/openapi.json":
            if self.spec_status != 200:
                return httpx.Response(self.spec_status, text="nope")
            return httpx.Response(200, json=self.spec)

        self.requests.append(request)
        canned = self.responses.get((request.method, request.url.path))
        if canned is not None:
            return canned

        if request.method == "GET" and request.url.path == "/users":
            return httpx.Response(200, json=[{"id": "1", "name": "Ada", "host": request.url.host}])
        if request.method == "GET" and request.url.path.startswith("/users/"):
            user_id = request.url.path.rsplit("/", 1)[-1]
            if user_id == "missing":
                return httpx.Response(404, text="user not found")
            return httpx.Response(200, json={"id": user_id, "name": "Ada", "host": request.url.host})
        if request.method == "POST" and request.url.path == "/users":
            return httpx.Response(201, json={"id": "2", **json.loads(request.content)})
        if request.method == "DELETE":
            return httpx.Response(204)
        if request.url.path.endswith("/activate"):
            return httpx.Response(200, text="activated")
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def spec() -> dict[str, Any]:
    return copy.deepcopy(USERS_SPEC)


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    def _factory(**overrides: Any) -> Settings:
        overrides.setdefault("api_spec_url", SPEC_URL)
        return make_settings(**overrides)
    return _factory
