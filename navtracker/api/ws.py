"""WebSocket endpoint for real-time navigation updates."""

import asyncio
import logging

import orjson
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter()

# Will be set by main.py on startup
broadcaster = None


async def _forward(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        data = await queue.get()
        await websocket.send_bytes(data)


@router.websocket("/ws/navigation")
async def navigation_ws(websocket: WebSocket) -> None:
    """Stream navigation state: one snapshot, then every update."""
    await websocket.accept()

    if broadcaster is None:
        await websocket.close(code=1011, reason="Service not ready")
        return

    # Subscribe before the snapshot so no update falls in between
    queue = broadcaster.subscribe()
    forward: asyncio.Task | None = None
    try:
        state_data = await broadcaster.get_current_state()
        if state_data:
            snapshot = orjson.loads(state_data)
            snapshot["type"] = "snapshot"
            await websocket.send_bytes(orjson.dumps(snapshot))

        forward = asyncio.create_task(_forward(websocket, queue))
        # Client messages are ignored; reading is how the disconnect shows up
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    except WebSocketDisconnect:
        pass
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.exception("WebSocket error")
    finally:
        if forward is not None:
            forward.cancel()
            await asyncio.gather(forward, return_exceptions=True)
        broadcaster.unsubscribe(queue)
