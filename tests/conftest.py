"""Pytest fixtures for Tasks API testing."""

import json
import os


# Disable OpenTelemetry before anything from the app is imported
os.environ["OTEL_SDK_DISABLED"] = "true"
os.environ["OTEL_ENABLED"] = "false"

from collections.abc import Callable

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from tasks_api.config import Settings
from tasks_api.main import create_app


LOG_URL = "http://logs.example.test/ingest"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite://",
        remote_log_url=LOG_URL,
        otel_enabled=False,
    )


@pytest.fixture
def shipped() -> list[dict]:
    """Payloads received by the fake log collector."""
    return []


@pytest.fixture
def log_handler(shipped: list[dict]) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        shipped.append(json.loads(request.content))
        return httpx.Response(202)

    return handler


@pytest.fixture
def app(settings: Settings, log_handler) -> FastAPI:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(log_handler))
    return create_app(settings, http_client=http_client)


@pytest.fixture
def client(app: FastAPI):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def drain(app: FastAPI, client: TestClient) -> Callable[[], None]:
    """Wait for fire-and-forget log shipments issued so far."""

    def _drain() -> None:
        client.portal.call(app.state.shipper.drain)

    return _drain
