"""FastAPI dependencies for the code pipeline.

Services are created once in the application lifespan and stored on
``app.state``; these helpers hand them to routes.
"""

import logging
from typing import Optional

from app.db.code_store import CodeStore
from app.services.host_platform import HostPlatformClient
from app.services.realtime import RealtimeBroker
from app.services.trigger_handler import TriggerHandler
from fastapi import Request
from starlette.requests import HTTPConnection

logger = logging.getLogger(__name__)


def _require_state(connection: HTTPConnection, name: str):
    if not hasattr(connection.app.state, name):
        raise RuntimeError(f"{name} not initialized")
    return getattr(connection.app.state, name)


def get_code_store(request: Request) -> CodeStore:
    """Get code store from app state.

    Raises:
        RuntimeError: If the store was not initialized.
    """
    return _require_state(request, "code_store")


def get_trigger_handler(request: Request) -> TriggerHandler:
    return _require_state(request, "trigger_handler")


def get_host_platform(request: Request) -> Optional[HostPlatformClient]:
    """Get host platform client, or None when the integration is disabled."""
    return getattr(request.app.state, "host_platform", None)


def get_realtime_broker(connection: HTTPConnection) -> RealtimeBroker:
    """Get realtime broker from app state (HTTP or WebSocket connections)."""
    return _require_state(connection, "realtime_broker")
