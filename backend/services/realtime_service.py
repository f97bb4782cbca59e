import asyncio
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from fastapi import WebSocket, WebSocketDisconnect

import config

logger = logging.getLogger(__name__)

Event = Dict[str, Any]
Callback = Callable[[Event], None]


class ChangeFeed:
    """Row-level change notifications for the request and ambulance tables.

    Services publish after commit, one event per changed row, so subscribers
    only ever observe committed state.
    """

    def __init__(self):
        self._subscribers: List[Tuple[Callback, Optional[frozenset]]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callback, tables: Optional[Iterable[str]] = None) -> Callable[[], None]:
        entry = (callback, frozenset(tables) if tables else None)
        with self._lock:
            self._subscribers.append(entry)

        def unsubscribe():
            with self._lock:
                if entry in self._subscribers:
                    self._subscribers.remove(entry)

        return unsubscribe

    def publish(self, table: str, event: str, record: Any) -> Event:
        if hasattr(record, "model_dump"):
            record = record.model_dump(mode="json")
        message = {"table": table, "event": event, "record": record}

        with self._lock:
            subscribers = list(self._subscribers)
        for callback, tables in subscribers:
            if tables is not None and table not in tables:
                continue
            try:
                callback(message)
            except Exception as e:
                logger.exception(f"Change feed subscriber failed on {table} {event}: {e}")
        return message

    def clear(self):
        with self._lock:
            self._subscribers.clear()


change_feed = ChangeFeed()


class ConnectionManager:
    """Streams change feed events to connected websockets."""

    def __init__(self, feed: ChangeFeed, queue_size: int = config.WS_QUEUE_SIZE):
        self.feed = feed
        self.queue_size = queue_size
        self.active: List[WebSocket] = []

    async def stream(self, websocket: WebSocket, tables: Optional[Iterable[str]] = None):
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        overflow = asyncio.Event()

        # Publishers run in worker threads, hand events over to this loop
        def forward(message: Event):
            loop.call_soon_threadsafe(self._offer, queue, overflow, message)

        unsubscribe = self.feed.subscribe(forward, tables)
        await websocket.accept()
        self.active.append(websocket)

        sender = asyncio.create_task(self._send_events(websocket, queue))
        receiver = asyncio.create_task(self._wait_for_disconnect(websocket))
        dropped = asyncio.create_task(overflow.wait())
        try:
            done, pending = await asyncio.wait({sender, receiver, dropped}, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            for task in done - {dropped}:
                error = task.exception()
                if error is not None and not isinstance(error, WebSocketDisconnect):
                    logger.warning(f"Websocket stream ended: {error}")
            if dropped in done:
                # 1013: try again later
                await websocket.close(code=1013)
        finally:
            unsubscribe()
            self.disconnect(websocket)

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active:
            self.active.remove(websocket)

    @staticmethod
    def _offer(queue: asyncio.Queue, overflow: asyncio.Event, message: Event) -> bool:
        """Queue ``message`` unless the client has already fallen too far behind."""
        if overflow.is_set():
            return False
        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(f"Websocket client is {queue.maxsize} events behind, disconnecting it")
            overflow.set()
            return False
        return True

    async def _send_events(self, websocket: WebSocket, queue: asyncio.Queue):
        while True:
            message = await queue.get()
            await websocket.send_json(message)

    async def _wait_for_disconnect(self, websocket: WebSocket):
        while True:
            await websocket.receive_text()


manager = ConnectionManager(change_feed)
