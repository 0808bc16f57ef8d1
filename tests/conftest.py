"""Shared test fixtures for the travel agent test suite."""

from __future__ import annotations

import json
import os
from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

BASE_URL = "https://monde.test/api/v2"


def pytest_configure(config):
    """Seed test configuration before any test module imports the package."""
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key-123")
    os.environ.setdefault("MONDE_LOGIN", "agent@example.com")
    os.environ.setdefault("MONDE_PASSWORD", "test-password")
    os.environ["SALES_API_URL"] = ""
    os.environ["METRICS_ENABLED"] = "false"


def jsonapi_response(status_code: int = 200, data=None, **kwargs) -> httpx.Response:
    """Build a JSON:API-style response (``{"data": data}``)."""
    if data is None and status_code == 204:
        return httpx.Response(204)
    return httpx.Response(
        status_code,
        content=json.dumps({"data": data}),
        headers={"content-type": "application/vnd.api+json"},
        **kwargs,
    )


def token_response(token: str) -> httpx.Response:
    return jsonapi_response(201, {"type": "tokens", "attributes": {"token": token}})


@pytest.fixture
def make_monde_client():
    """Factory: ``MondeClient`` whose HTTP traffic goes to *handler*."""
    from travel_agent.services.monde_client import MondeClient

    def _make(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> MondeClient:
        http_client = httpx.AsyncClient(
            base_url=BASE_URL, transport=httpx.MockTransport(handler),
        )
        return MondeClient(BASE_URL, http_client=http_client, **kwargs)

    return _make


@pytest.fixture
def mock_registry():
    """A ``ToolRegistry`` stand-in with an async ``dispatch``."""
    registry = MagicMock()
    registry.schema.return_value = []
    registry.dispatch = AsyncMock(return_value=[{"id": "1", "name": "João Silva"}])
    return registry
