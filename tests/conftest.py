"""Shared pytest fixtures for admission-pipeline tests."""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock

import pytest
from starlette.requests import Request
from starlette.types import Message

from admission_pipeline.store import InMemorySessionStore, Session


@pytest.fixture
def make_request() -> Any:
    """Factory for creating Starlette Request objects with a working receive channel."""

    def _make(
        method: str = "GET",
        path: str = "/",
        headers: dict[str, str] | None = None,
        query_string: str = "",
        body: bytes = b"",
        scheme: str = "http",
        disconnected: bool = False,
    ) -> Request:
        scope: dict[str, Any] = {
            "type": "http",
            "method": method,
            "scheme": scheme,
            "server": ("testserver", 443 if scheme == "https" else 80),
            "path": path,
            "query_string": query_string.encode(),
            "headers": [
                (k.lower().encode(), v.encode()) for k, v in (headers or {}).items()
            ],
            "root_path": "",
        }
        pending: list[Message] = [
            {"type": "http.request", "body": body, "more_body": False}
        ]

        async def receive() -> Message:
            if disconnected:
                return {"type": "http.disconnect"}
            if pending:
                return pending.pop(0)
            # Connection stays open: block until cancelled.
            await asyncio.Event().wait()
            return {"type": "http.disconnect"}

        return Request(scope, receive)

    return _make


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore(ttl_seconds=60)


@pytest.fixture
def mock_store() -> AsyncMock:
    """Mock session store that issues a fixed session id."""
    mock = AsyncMock()
    mock.get.return_value = None
    mock.create.return_value = ("new-session-id", Session())
    return mock


@pytest.fixture
def mock_load() -> AsyncMock:
    """Mock async principal loader."""
    mock = AsyncMock()
    mock.return_value = {"id": "user-456", "name": "Session User"}
    return mock
