"""WebSocket endpoint for live pipeline notifications.

A client connects to ``/ws/notifications?token=...``.  Once authenticated
it is joined to both of its user rooms (crop suggestion and disease
detection) and receives every event the pipelines emit for that user.

Client messages are either a bare action name or ``{"action": name}``:

    joinCropSuggestionRoom / leaveCropSuggestionRoom
    joinDiseaseDetectionRoom / leaveDiseaseDetectionRoom

Each one is answered with ``roomJoined`` / ``roomLeft``.  A socket without
a valid token is closed with code 4401.
"""

from __future__ import annotations

import json

import structlog
from fastapi import WebSocket, WebSocketDisconnect

from src.api.auth import authenticate_websocket
from src.models.pipeline import PipelineKind
from src.pipeline.notification_hub import NotificationHub, room_name
from src.utils.errors import AuthenticationError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

AUTH_FAILED_CLOSE_CODE = 4401

_ROOM_ACTIONS: dict[str, tuple[str, PipelineKind]] = {
    "joinCropSuggestionRoom": ("join", PipelineKind.CROP_SUGGESTION),
    "leaveCropSuggestionRoom": ("leave", PipelineKind.CROP_SUGGESTION),
    "joinDiseaseDetectionRoom": ("join", PipelineKind.DISEASE_DETECTION),
    "leaveDiseaseDetectionRoom": ("leave", PipelineKind.DISEASE_DETECTION),
}


def parse_action(message: str) -> str:
    """Extract the action name from a raw client message."""
    text = message.strip()
    if text.startswith("{"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return ""
        if isinstance(data, dict):
            return str(data.get("action") or data.get("event") or "")
        return ""
    return text


async def websocket_notifications(websocket: WebSocket) -> None:
    """Serve one notification socket until the client disconnects.

    Parameters
    ----------
    websocket:
        The WebSocket connection managed by FastAPI / Starlette.
    """
    hub: NotificationHub = websocket.app.state.notification_hub

    await websocket.accept()
    try:
        user_id = authenticate_websocket(websocket)
    except AuthenticationError as exc:
        _logger.warning("websocket_auth_failed", error=exc.message)
        await websocket.close(code=AUTH_FAILED_CLOSE_CODE, reason="Authentication required")
        return

    connection_id = hub.connect(user_id, websocket.send_json)
    try:
        rooms = [room_name(user_id, kind) for kind in PipelineKind]
        for room in rooms:
            hub.join(connection_id, room)
        await hub.send_to(connection_id, "connected", {"userId": user_id, "rooms": rooms})

        while True:
            action = parse_action(await websocket.receive_text())
            await _handle_action(hub, connection_id, user_id, action)

    except WebSocketDisconnect:
        _logger.info("websocket_disconnected", user_id=user_id, connection_id=connection_id)

    finally:
        hub.disconnect(connection_id)


async def _handle_action(hub: NotificationHub, connection_id: str, user_id: str, action: str) -> None:
    if action == "ping":
        await hub.send_to(connection_id, "pong", {})
        return

    known = _ROOM_ACTIONS.get(action)
    if known is None:
        await hub.send_to(connection_id, "error", {"error": f"Unknown action: {action or '<empty>'}"})
        return

    verb, kind = known
    room = room_name(user_id, kind)
    if verb == "join":
        changed = hub.join(connection_id, room)
        await hub.send_to(connection_id, "roomJoined", {"room": room, "changed": changed})
    else:
        changed = hub.leave(connection_id, room)
        await hub.send_to(connection_id, "roomLeft", {"room": room, "changed": changed})
