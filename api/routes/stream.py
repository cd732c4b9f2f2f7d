"""WebSocket push channel for live market state.

Each connection gets its own engine subscription: first an ``init``
snapshot, then one ``state`` message per tick or manual trade.
"""

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from engine.broadcast import Subscription
from engine.errors import EngineBusy

logger = logging.getLogger(__name__)

router = APIRouter()

_POLL_SECONDS = 0.5
_TRY_AGAIN_LATER = 1013


async def _pump(websocket: WebSocket, subscription: Subscription) -> None:
    """Forward announcements from the subscription queue to the socket."""
    while not subscription.closed:
        announcement = await asyncio.to_thread(subscription.get, _POLL_SECONDS)
        if announcement is None:
            continue
        await websocket.send_json(announcement.to_message())


async def _watch_disconnect(websocket: WebSocket) -> None:
    """Return once the client goes away; inbound messages are ignored."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws")
async def stream_state(websocket: WebSocket) -> None:
    kernel = websocket.app.state.wattwise["kernel"]
    await websocket.accept()
    try:
        subscription = await asyncio.to_thread(kernel.subscribe)
    except EngineBusy as e:
        logger.warning("WebSocket subscribe refused: %s", e)
        await websocket.close(code=_TRY_AGAIN_LATER)
        return
    pump = asyncio.ensure_future(_pump(websocket, subscription))
    watcher = asyncio.ensure_future(_watch_disconnect(websocket))
    try:
        done, _ = await asyncio.wait({pump, watcher}, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.error("WebSocket stream failed: %s", exc)
    finally:
        pump.cancel()
        watcher.cancel()
        kernel.unsubscribe(subscription)
