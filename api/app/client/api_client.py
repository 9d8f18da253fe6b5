"""Client-side transport for the companion view.

``CodeRevealClient`` talks to the REST endpoints; ``PushSubscriber`` keeps a
WebSocket open on the caller's realtime channel and invokes a callback for
every availability event.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from app.core.context import (
    USER_ID_HEADER,
    USERNAME_HEADER,
    WS_CLOSE_UNAUTHENTICATED,
)
from app.models.codes import DeleteCodeResponse, InitResponse, RetrieveCodeResponse
from websockets.asyncio.client import connect as websockets_connect
from websockets.exceptions import ConnectionClosed, InvalidStatus

logger = logging.getLogger(__name__)

PushCallback = Callable[[Dict[str, Any]], Awaitable[None]]


def identity_headers(user_id: str, username: Optional[str] = None) -> Dict[str, str]:
    """Headers the host identity proxy would attach for ``user_id``."""
    headers = {USER_ID_HEADER: user_id}
    if username:
        headers[USERNAME_HEADER] = username
    return headers


class CodeRevealClient:
    """Async REST client for the code endpoints."""

    def __init__(
        self,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers or {},
            transport=transport,
            timeout=timeout,
        )

    async def close(self) -> None:
        if not self._client.is_closed:
            await self._client.aclose()

    async def init(self) -> InitResponse:
        response = await self._client.get("/api/init")
        response.raise_for_status()
        return InitResponse.model_validate(response.json())

    async def retrieve_code(self) -> RetrieveCodeResponse:
        """Fetch the caller's code status.

        Raises:
            httpx.HTTPError: On transport failures or non-2xx responses
        """
        response = await self._client.get("/api/retrieve-code")
        response.raise_for_status()
        return RetrieveCodeResponse.model_validate(response.json())

    async def delete_code(self) -> DeleteCodeResponse:
        response = await self._client.post("/api/delete-code")
        response.raise_for_status()
        return DeleteCodeResponse.model_validate(response.json())


class PushSubscriber:
    """Listen on the realtime WebSocket and reconnect when it drops.

    Example:
        subscriber = PushSubscriber("ws://localhost:8000/api/realtime", headers)
        await subscriber.listen_forever(on_event)
    """

    def __init__(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        reconnect_delay_seconds: float = 5.0,
    ):
        self.url = url
        self.headers = headers or {}
        self.reconnect_delay_seconds = reconnect_delay_seconds
        self._ws: Any = None
        self._listening = False

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    async def connect(self) -> Dict[str, Any]:
        """Open the socket and wait for the subscription acknowledgement."""
        self._ws = await websockets_connect(self.url, additional_headers=self.headers)
        raw = await self._ws.recv()
        ack = json.loads(raw)
        logger.info("Subscribed to realtime channel %s", ack.get("channel"))
        return ack

    async def _drop_connection(self) -> None:
        """Close the current socket, if any, and forget it."""
        ws, self._ws = self._ws, None
        if ws is None:
            return
        try:
            await ws.close()
        except Exception:
            logger.debug("Error closing realtime WebSocket", exc_info=True)

    async def close(self) -> None:
        self._listening = False
        await self._drop_connection()

    async def _dispatch(self, raw: Any, callback: PushCallback) -> None:
        try:
            event = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Received invalid JSON on realtime channel")
            return
        if not isinstance(event, dict):
            logger.warning(
                "Ignoring non-object realtime frame of type %s", type(event).__name__
            )
            return
        try:
            await callback(event)
        except Exception:
            logger.exception("Realtime event callback failed")

    async def listen_forever(self, callback: PushCallback) -> None:
        """Dispatch every received event to ``callback`` until closed.

        Stops without reconnecting when the server rejects the caller's
        identity.
        """
        self._listening = True
        while self._listening:
            try:
                if self._ws is None:
                    await self.connect()
                raw = await self._ws.recv()
                await self._dispatch(raw, callback)
            except asyncio.CancelledError:
                self._listening = False
                await self._drop_connection()
                raise
            except InvalidStatus as e:
                await self._drop_connection()
                if e.response.status_code in (401, 403):
                    logger.error(
                        "Realtime subscription rejected with HTTP %d, not retrying",
                        e.response.status_code,
                    )
                    self._listening = False
                    break
                logger.warning("Realtime handshake failed: %s, reconnecting", e)
                await asyncio.sleep(self.reconnect_delay_seconds)
            except ConnectionClosed as e:
                await self._drop_connection()
                if not self._listening:
                    break
                if e.rcvd is not None and e.rcvd.code == WS_CLOSE_UNAUTHENTICATED:
                    logger.error("Realtime subscription unauthenticated, not retrying")
                    self._listening = False
                    break
                logger.warning("Realtime WebSocket closed, reconnecting")
                await asyncio.sleep(self.reconnect_delay_seconds)
            except Exception:
                await self._drop_connection()
                if not self._listening:
                    break
                logger.exception("Realtime listen loop error, reconnecting")
                await asyncio.sleep(self.reconnect_delay_seconds)
