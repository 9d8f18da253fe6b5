"""
No-store headers for code status responses.

Code status is polled; a cached "Unavailable" would hide a freshly issued
code until the cache expired. Only the API surface is marked, so probes and
the metrics endpoint keep their default caching.
"""

from typing import Callable, Iterable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, private",
    "Pragma": "no-cache",
    "Expires": "0",
}


class CacheControlMiddleware(BaseHTTPMiddleware):
    """Mark responses under ``path_prefixes`` as uncacheable."""

    def __init__(self, app, path_prefixes: Iterable[str] = ("/api/",)):
        super().__init__(app)
        self.path_prefixes = tuple(path_prefixes)

    def applies_to(self, path: str) -> bool:
        return path.startswith(self.path_prefixes)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        if self.applies_to(request.url.path):
            response.headers.update(NO_STORE_HEADERS)
        return response
