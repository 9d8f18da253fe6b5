"""
Pytest configuration and fixtures for the Code Reveal API.

This module provides:
- Test settings with isolated test environment
- In-memory store and realtime broker fixtures
- A mocked host platform client
- A FastAPI test client wired with those fakes
"""

import shutil
import tempfile
from typing import Generator, Iterator
from unittest.mock import AsyncMock, MagicMock

import pytest
from app.core.config import Settings
from app.db.code_store import InMemoryCodeStore
from app.services.host_platform import HostPlatformClient
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.realtime import RealtimeBroker
from app.services.trigger_handler import TriggerHandler
from fastapi.testclient import TestClient


@pytest.fixture(scope="session")
def test_data_dir() -> Generator[str, None, None]:
    """Create a temporary directory for test data.

    Yields:
        str: Path to the temporary test data directory
    """
    temp_dir = tempfile.mkdtemp(prefix="code_reveal_test_")
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture(scope="session")
def test_settings(test_data_dir: str) -> Settings:
    """Create test settings with isolated test environment.

    Args:
        test_data_dir: Temporary directory for test data

    Returns:
        Settings: Configured settings instance for testing
    """
    return Settings(
        DEBUG=True,
        DATA_DIR=test_data_dir,
        ENVIRONMENT="testing",
        CODE_STORE_BACKEND="memory",
        HOST_API_URL="",
        TRIGGER_COMMAND="!medic",
    )


@pytest.fixture
def code_store() -> InMemoryCodeStore:
    return InMemoryCodeStore()


@pytest.fixture
def realtime_broker() -> RealtimeBroker:
    return RealtimeBroker(max_queue_size=4)


@pytest.fixture
def mock_host_platform() -> MagicMock:
    """Host platform client with async methods mocked out.

    ``get_username`` resolves every user to ``"medic_fan"``.
    """
    platform = MagicMock(spec=HostPlatformClient)
    platform.get_username = AsyncMock(return_value="medic_fan")
    platform.send_private_message = AsyncMock(return_value=None)
    platform.create_post = AsyncMock(return_value={"id": "t3_post1"})
    platform.close = AsyncMock(return_value=None)
    return platform


@pytest.fixture
def dispatcher(
    realtime_broker: RealtimeBroker,
    mock_host_platform: MagicMock,
    test_settings: Settings,
) -> NotificationDispatcher:
    return NotificationDispatcher(
        broker=realtime_broker,
        host_platform=mock_host_platform,
        settings=test_settings,
    )


@pytest.fixture
def trigger_handler(
    code_store: InMemoryCodeStore,
    dispatcher: NotificationDispatcher,
    mock_host_platform: MagicMock,
    test_settings: Settings,
) -> TriggerHandler:
    return TriggerHandler(
        store=code_store,
        dispatcher=dispatcher,
        settings=test_settings,
        host_platform=mock_host_platform,
    )


@pytest.fixture
def test_client(
    test_settings: Settings,
    code_store: InMemoryCodeStore,
    realtime_broker: RealtimeBroker,
    mock_host_platform: MagicMock,
) -> Iterator[TestClient]:
    """Create a FastAPI test client backed by in-memory fakes.

    The client is used as a context manager so the lifespan runs and all
    requests and WebSocket sessions share one event loop.
    """
    # Import app here to avoid triggering Settings validation at module load time
    from app.main import create_app

    app = create_app(
        test_settings,
        code_store=code_store,
        host_platform=mock_host_platform,
        realtime_broker=realtime_broker,
        instrument=False,
    )
    with TestClient(app) as client:
        yield client


def _user_headers(user_id: str = "t2_alice", username: str | None = None) -> dict:
    headers = {"X-User-Id": user_id}
    if username:
        headers["X-Username"] = username
    return headers


def _comment_event(
    body: str | None = "please !medic now",
    user_id: str | None = "t2_alice",
    username: str | None = "alice",
) -> dict:
    author: dict = {}
    if user_id is not None:
        author["id"] = user_id
    if username is not None:
        author["name"] = username
    comment: dict = {"id": "t1_comment"}
    if body is not None:
        comment["body"] = body
    return {"comment": comment, "author": author}


@pytest.fixture
def user_headers():
    """Identity headers as forwarded by the host platform proxy."""
    return _user_headers


@pytest.fixture
def comment_event():
    """Factory for on-comment-create payloads."""
    return _comment_event


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers.

    Args:
        config: Pytest configuration object
    """
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
