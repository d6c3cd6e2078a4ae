# api/websocket.py
"""WebSocket endpoint pushing every recomputed view model to dashboards."""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter()


class ConnectionManager:
    """Track open dashboard sockets and fan out view models."""

    def __init__(self):
        self.connections: list[WebSocket] = []
        self.latest: dict | None = None

    async def connect(self, ws: WebSocket):
        await ws.accept()
        self.connections.append(ws)
        logger.info("WebSocket connected: total=%d", len(self.connections))
        if self.latest is not None:
            await ws.send_json(self.latest)

    def disconnect(self, ws: WebSocket):
        if ws in self.connections:
            self.connections.remove(ws)
        logger.info("WebSocket disconnected: total=%d", len(self.connections))

    async def broadcast(self, data: dict):
        """Send a view model to every client; drop sockets that fail."""
        self.latest = data
        dead: list[WebSocket] = []
        for ws in list(self.connections):
            try:
                await ws.send_json(data)
            except Exception:
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws)

    @property
    def active_count(self) -> int:
        return len(self.connections)


manager = ConnectionManager()


@router.websocket("/ws/mesh")
async def mesh_ws(websocket: WebSocket):
    """Streams view models as they are recomputed.

    A new client first receives the most recent view model, if any.
    Clients send "ping" to get "pong".
    """
    await manager.connect(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        manager.disconnect(websocket)
