"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncIterator

import logfire
import pytest

from homequest.core.change_stream import ChangeStream
from homequest.core.config import settings
from homequest.core.db_client import DocumentStore


TEST_SECRET_KEY = "test-signing-secret"


@pytest.fixture(autouse=True, scope="session")
def configure_test_logfire() -> None:
    """Keep Logfire local during tests."""
    logfire.configure(send_to_logfire=False, console=False)


@pytest.fixture(autouse=True)
def signing_secret(monkeypatch: pytest.MonkeyPatch) -> str:
    """Auth tokens need a signing secret; deployments must provide SECRET_KEY."""
    monkeypatch.setattr(settings, "secret_key", TEST_SECRET_KEY)
    return TEST_SECRET_KEY


@pytest.fixture
async def store(tmp_path) -> AsyncIterator[DocumentStore]:
    """A real document store on a temporary SQLite file, with instant trigger retries."""
    document_store = DocumentStore(
        db_path=str(tmp_path / "homequest.db"),
        change_stream=ChangeStream(retry_delay=0),
    )
    await document_store.connect()
    yield document_store
    await document_store.changes.drain()
    await document_store.close()
