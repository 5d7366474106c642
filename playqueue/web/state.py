"""PlaybackEvents — observable state bridge between the controller and WebSocket/CLI clients."""
import asyncio
import logging
from typing import Any

logger = logging.getLogger(__name__)


class PlaybackEvents:
    def __init__(self):
        self._subscribers: dict[str, asyncio.Queue] = {}
        self.history: list[tuple[str, Any]] = []
        self.history_limit = 100

    def subscribe(self, client_id: str) -> asyncio.Queue:
        """Register a new client. Returns a queue that receives (event, data) tuples."""
        q: asyncio.Queue = asyncio.Queue(maxsize=50)
        self._subscribers[client_id] = q
        return q

    def unsubscribe(self, client_id: str):
        self._subscribers.pop(client_id, None)

    @property
    def client_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: str, data: Any):
        """Push an event to all connected clients. Never blocks."""
        self.history = (self.history + [(event, data)])[-self.history_limit:]
        dead = []
        for cid, q in self._subscribers.items():
            try:
                q.put_nowait((event, data))
            except asyncio.QueueFull:
                # Client too slow — drop oldest
                try:
                    q.get_nowait()
                    q.put_nowait((event, data))
                except (asyncio.QueueEmpty, asyncio.QueueFull):
                    dead.append(cid)
        for cid in dead:
            logger.warning("Dropping stalled subscriber %s", cid)
            self._subscribers.pop(cid, None)

    def events(self, name: str) -> list[Any]:
        """Recent payloads published under `name`, oldest first."""
        return [data for event, data in self.history if event == name]
