"""WebSocket handlers for real-time dashboard notifications."""

import json
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from orderflow.utils.logging import get_logger

logger = get_logger(__name__)


class WebSocketMessage(BaseModel):
    """Client-to-server WebSocket message format."""

    type: str  # "ping"
    metadata: dict[str, Any] = {}


class ConnectionManager:
    """Manages WebSocket connections grouped by audience."""

    def __init__(self) -> None:
        self.active_connections: dict[str, set[WebSocket]] = {}

    async def connect(self, audience: str, websocket: WebSocket) -> None:
        """Accept and register a WebSocket connection."""
        await websocket.accept()
        self.active_connections.setdefault(audience, set()).add(websocket)
        logger.info("websocket_connected", audience=audience)

    def disconnect(self, audience: str, websocket: WebSocket) -> None:
        """Remove a WebSocket connection."""
        connections = self.active_connections.get(audience)
        if connections and websocket in connections:
            connections.discard(websocket)
            if not connections:
                del self.active_connections[audience]
            logger.info("websocket_disconnected", audience=audience)

    async def broadcast(self, audience: str, message: dict[str, Any]) -> None:
        """Send a message to every connection of an audience."""
        stale: list[WebSocket] = []

        for websocket in list(self.active_connections.get(audience, ())):
            try:
                await websocket.send_json(message)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.warning("websocket_send_failed", audience=audience, error=str(e))
                stale.append(websocket)

        for websocket in stale:
            self.disconnect(audience, websocket)


# Global connection manager
manager = ConnectionManager()


async def handle_websocket_audience(websocket: WebSocket, audience: str) -> None:
    """
    Keep a dashboard connection subscribed to an audience.

    Args:
        websocket: WebSocket connection
        audience: food-manager, food-kitchen, staff-{id} or user-{id}
    """
    await manager.connect(audience, websocket)

    await websocket.send_json(
        {
            "type": "connected",
            "audience": audience,
        }
    )

    try:
        while True:
            data = await websocket.receive_text()

            try:
                ws_message = WebSocketMessage(**json.loads(data))

                if ws_message.type == "ping":
                    await websocket.send_json({"type": "pong"})

            except (ValidationError, json.JSONDecodeError, TypeError) as e:
                await websocket.send_json(
                    {
                        "type": "error",
                        "message": "Invalid message format",
                        "details": str(e),
                    }
                )

    except WebSocketDisconnect:
        manager.disconnect(audience, websocket)
        logger.info("websocket_client_disconnected", audience=audience)
