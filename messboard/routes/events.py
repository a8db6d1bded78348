# FILE: messboard/routes/events.py
"""
Lifecycle event streams (SSE and WebSocket)
"""
import asyncio
import json
import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse
from starlette.websockets import WebSocketState

from messboard.deps import get_hub
from messboard.services.notifier import BroadcastHub, Subscription

logger = logging.getLogger(__name__)
router = APIRouter()


def format_sse(envelope: dict) -> str:
    """One Server-Sent Events frame"""
    return f"event: {envelope['event']}\ndata: {json.dumps(envelope, ensure_ascii=False)}\n\n"


@router.get("/events")
async def stream_events(hub: BroadcastHub = Depends(get_hub)):
    """Server-Sent Events stream of created/deleted/swept events"""
    subscription = hub.subscribe()

    async def event_generator():
        try:
            # Tell late subscribers they are connected
            yield ": connected\n\n"
            async for envelope in subscription:
                yield format_sse(envelope)
        finally:
            subscription.close()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


async def _forward(websocket: WebSocket, subscription: Subscription) -> None:
    async for envelope in subscription:
        await websocket.send_json(envelope)


async def _receive(websocket: WebSocket) -> None:
    while True:
        data = await websocket.receive_json()
        if isinstance(data, dict) and data.get("type") == "ping":
            await websocket.send_json({"type": "pong"})
        else:
            await websocket.send_json({"type": "error", "message": "unknown_command"})


@router.websocket("/ws")
async def websocket_events(websocket: WebSocket):
    """WebSocket stream of lifecycle events"""
    hub: BroadcastHub = websocket.app.state.hub
    subscription = hub.subscribe()
    await websocket.accept()
    logger.info(f"WebSocket observer connected ({hub.subscriber_count} active)")

    forward = asyncio.create_task(_forward(websocket, subscription))
    receive = asyncio.create_task(_receive(websocket))
    try:
        done, pending = await asyncio.wait({forward, receive}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.error(f"WebSocket error: {exc}")
        if forward in done and websocket.application_state == WebSocketState.CONNECTED:
            await websocket.close()
    finally:
        subscription.close()
        logger.info(f"WebSocket observer disconnected ({hub.subscriber_count} active)")
