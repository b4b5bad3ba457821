# sahar/ws.py
import json
import logging
from datetime import datetime
from typing import Any, Set

from fastapi import WebSocket

log = logging.getLogger("sahar.ws")


class ConnectionManager:
    """Kitchen screens and dashboards listening for order changes on /ws."""

    def __init__(self) -> None:
        self.listeners: Set[WebSocket] = set()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.listeners.add(websocket)
        log.debug("ws listener joined (%d)", len(self.listeners))

    def disconnect(self, websocket: WebSocket):
        self.listeners.discard(websocket)

    async def publish(self, event: str, **data: Any) -> int:
        """Push one event to every listener; returns how many received it."""
        message = json.dumps({"type": event, "at": datetime.now(), **data}, default=str)
        delivered = 0
        for ws in list(self.listeners):
            try:
                await ws.send_text(message)
                delivered += 1
            except Exception as e:
                # a closed screen is not an error for the sender
                log.warning("dropping ws listener after failed send: %s", e)
                self.disconnect(ws)
        return delivered

    async def order_created(self, order_id: int) -> int:
        return await self.publish("order_created", order_id=order_id)

    async def order_status(self, order_id: int, status: str) -> int:
        return await self.publish("order_status", order_id=order_id, status=status)


manager = ConnectionManager()
