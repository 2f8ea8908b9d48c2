"""
WebSocket Manager - Handles real-time connections and broadcasts.

This module manages WebSocket connections and tells every connected client
(editors, dashboards, agents) when the model graph has changed.
"""
import asyncio
import json
from typing import Optional, Set

from fastapi import WebSocket

from ..utils import get_logger

logger = get_logger("websocket")


class WebSocketManager:
    """
    Manages WebSocket connections and broadcasts.

    All connected clients receive model_updated events after a mutation,
    and re-fetch whatever they display through the REST API.
    """

    def __init__(self):
        self._connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        logger.info("WebSocket connected. Total connections: %d", len(self._connections))

    async def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection."""
        async with self._lock:
            self._connections.discard(websocket)
        logger.info("WebSocket disconnected. Total connections: %d", len(self._connections))

    async def broadcast(self, message: dict):
        """
        Broadcast a message to all connected clients.

        Clients that fail to receive it are dropped.
        """
        if not self._connections:
            return

        # Serialize once for all clients
        message_text = json.dumps(message)
        failed: Set[WebSocket] = set()

        async with self._lock:
            for websocket in self._connections:
                try:
                    await websocket.send_text(message_text)
                except Exception as e:
                    logger.debug("Dropping WebSocket client: %s", e)
                    failed.add(websocket)
            self._connections -= failed

    async def notify_model_updated(self, project_name: Optional[str] = None,
                                   can_undo: bool = False, can_redo: bool = False):
        """Tell every client the graph changed."""
        await self.broadcast({
            "type": "model_updated",
            "project": project_name,
            "canUndo": can_undo,
            "canRedo": can_redo,
        })

    @property
    def connection_count(self) -> int:
        """Get the number of active connections."""
        return len(self._connections)


# Global instance
ws_manager = WebSocketManager()
