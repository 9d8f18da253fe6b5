"""Explicit per-request identity supplied by the host platform.

The host identity proxy authenticates the caller and forwards who they are
as request headers. Routes receive a ``RequestContext`` through dependency
injection instead of reading ambient globals.
"""

from dataclasses import dataclass
from typing import Mapping, Optional

from fastapi import Request, WebSocket

USER_ID_HEADER = "x-user-id"
USERNAME_HEADER = "x-username"
POST_ID_HEADER = "x-post-id"
SUBREDDIT_HEADER = "x-subreddit-name"

# Application-defined WebSocket close code mirroring HTTP 401
WS_CLOSE_UNAUTHENTICATED = 4401


@dataclass(frozen=True)
class RequestContext:
    """Identity and post context for a single request."""

    user_id: Optional[str] = None
    username: Optional[str] = None
    post_id: Optional[str] = None
    subreddit_name: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "RequestContext":
        return cls(
            user_id=_clean(headers.get(USER_ID_HEADER)),
            username=_clean(headers.get(USERNAME_HEADER)),
            post_id=_clean(headers.get(POST_ID_HEADER)),
            subreddit_name=_clean(headers.get(SUBREDDIT_HEADER)),
        )


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def get_request_context(request: Request) -> RequestContext:
    """FastAPI dependency resolving the caller context for HTTP routes."""
    return RequestContext.from_headers(request.headers)


def get_websocket_context(websocket: WebSocket) -> RequestContext:
    """FastAPI dependency resolving the caller context for WebSocket routes."""
    return RequestContext.from_headers(websocket.headers)
