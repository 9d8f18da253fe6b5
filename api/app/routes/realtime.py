"""
WebSocket push channel for code availability.

A client connects once and is subscribed to its own ``code_{user_id}``
channel. The first frame acknowledges the subscription; every later frame
is a wake-up event telling the client to re-check the retrieval endpoint.
"""

import asyncio
import logging
from contextlib import suppress

from app.core.context import (
    WS_CLOSE_UNAUTHENTICATED,
    RequestContext,
    get_websocket_context,
)
from app.core.dependencies import get_realtime_broker
from app.services.realtime import RealtimeBroker, code_channel
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/realtime")
async def realtime_channel(
    websocket: WebSocket,
    context: RequestContext = Depends(get_websocket_context),
    broker: RealtimeBroker = Depends(get_realtime_broker),
) -> None:
    if not context.is_authenticated:
        logger.warning("Rejecting realtime subscription without user identity")
        # Accept first so the client sees the close code instead of an HTTP 403
        await websocket.accept()
        await websocket.close(code=WS_CLOSE_UNAUTHENTICATED)
        return

    channel = code_channel(context.user_id)
    await websocket.accept()

    async with broker.subscribe(channel) as subscription:
        await websocket.send_json({"type": "subscribed", "channel": channel})
        receiver = asyncio.create_task(_drain_client(websocket))
        try:
            while True:
                getter = asyncio.create_task(subscription.get())
                done, _ = await asyncio.wait(
                    {getter, receiver}, return_when=asyncio.FIRST_COMPLETED
                )
                if receiver in done:
                    getter.cancel()
                    with suppress(asyncio.CancelledError):
                        await getter
                    break
                await websocket.send_json(getter.result())
        except WebSocketDisconnect:
            pass
        finally:
            receiver.cancel()
            with suppress(asyncio.CancelledError):
                await receiver
    logger.debug("Realtime subscription closed for channel=%s", channel)


async def _drain_client(websocket: WebSocket) -> None:
    """Consume client frames until the socket disconnects."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return
