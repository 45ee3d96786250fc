from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient

from pageserver.content.store import ContentStore
from pageserver.main import create_content_app, create_metrics_app
from pageserver.observability.metrics import MetricsRecorder, reset_metrics

TEST_DOCUMENT = b"<html><body>Test Content</body></html>"

_SETTINGS_ENV = (
    "WEB_INDEX_PATH",
    "WEB_PORT",
    "WEB_ADDR",
    "METRICS_PORT",
    "METRICS_ADDR",
    "ENABLE_TLS",
    "LOG_LEVEL",
    "KEEP_ALIVE_TIMEOUT",
    "GRACEFUL_SHUTDOWN_TIMEOUT",
)


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the tests.
    monkeypatch.chdir(tmp_path)
    reset_metrics()

    yield

    reset_metrics()


@pytest.fixture
def document() -> bytes:
    return TEST_DOCUMENT


@pytest.fixture
def store(document: bytes) -> ContentStore:
    return ContentStore.build(document)


@pytest.fixture
def metrics() -> MetricsRecorder:
    return MetricsRecorder()


@pytest.fixture
def index_file(tmp_path, document: bytes):
    path = tmp_path / "index.html"
    path.write_bytes(document)
    return path


@pytest.fixture
async def api_client(store: ContentStore, metrics: MetricsRecorder) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=create_content_app(store, metrics))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def metrics_client(metrics: MetricsRecorder) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=create_metrics_app(metrics))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
