"""Live in-app notification stream.

Endpoint:
- WS /notifications/stream - push each new in-app notification to the caller

The gateway forwards the authenticated user in `X-User-Id` on the upgrade
request, as for every other user endpoint.

Message protocol:
    Server -> Client:
    - {"type": "connected", "connection_id": "..."}
    - {"type": "notification", "data": {"id": "...", "title": "...", ...}}
    - {"type": "pong"}
    - {"type": "error", "message": "..."}

    Client -> Server:
    - {"type": "ping"}
"""

from __future__ import annotations

import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, WebSocket, status

from notification_service.infra.realtime import ConnectionManager, get_connection_manager

logger = logging.getLogger(__name__)

stream_router = APIRouter(prefix="/notifications", tags=["notifications"])


@stream_router.websocket("/stream")
async def notification_stream(
    websocket: WebSocket,
    manager: Annotated[ConnectionManager, Depends(get_connection_manager)],
    x_user_id: Annotated[str | None, Header()] = None,
) -> None:
    """Stream the caller's new in-app notifications until they disconnect."""
    if not x_user_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Missing X-User-Id header")
        return

    try:
        connection_id = await manager.connect(websocket, user_id=x_user_id)
    except ConnectionRefusedError as exc:
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER, reason=str(exc))
        return

    try:
        await websocket.send_json({"type": "connected", "connection_id": connection_id})
        async for raw_message in websocket.iter_text():
            await _handle_message(websocket, raw_message)
    except Exception:
        logger.exception("Notification stream error", extra={"user_id": x_user_id})
    finally:
        await manager.disconnect(connection_id)


async def _handle_message(websocket: WebSocket, raw_message: str) -> None:
    try:
        message = json.loads(raw_message)
    except json.JSONDecodeError:
        await websocket.send_json({"type": "error", "message": "Invalid JSON"})
        return

    if isinstance(message, dict) and message.get("type") == "ping":
        await websocket.send_json({"type": "pong"})
    else:
        await websocket.send_json({"type": "error", "message": "Unsupported message"})
