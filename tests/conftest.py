"""Pytest fixtures for offline tests: fake HTTP responses, fake chat models, sample places."""

from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

import pytest

# Ensure placeholder keys exist so modules that read env on import succeed.
os.environ.setdefault("GOOGLE_MAPS_API_KEY", "test-maps-key")
os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")
os.environ["APP_ENV"] = "test"
os.environ.pop("REDIS_URL", None)

from tests.factories import make_attraction  # noqa: E402


class FakeResponse:
    """Lightweight stand-in for httpx.Response used in patched requests."""

    def __init__(self, payload: Any, status_code: int = 200, headers: Dict[str, str] | None = None,
                 content: bytes = b""):
        self._payload = payload
        self.status_code = status_code
        self.headers = headers or {}
        self.content = content
        self.text = ""

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


@pytest.fixture
def fake_response():
    """Factory that returns FakeResponse objects."""

    def _factory(payload: Any, status_code: int = 200, headers: Dict[str, str] | None = None) -> FakeResponse:
        return FakeResponse(payload, status_code=status_code, headers=headers)

    return _factory


class FakeChatModel:
    """Replays canned replies and records the messages it was given."""

    def __init__(self, replies: List[Any]):
        self.replies = list(replies)
        self.calls: List[List[Any]] = []
        self.bound_tools: Optional[List[Dict[str, Any]]] = None

    def bind_tools(self, tools):
        self.bound_tools = tools
        return self

    async def ainvoke(self, messages):
        self.calls.append(list(messages))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def fake_chat_model():
    return FakeChatModel


@pytest.fixture
def attraction_factory():
    return make_attraction
