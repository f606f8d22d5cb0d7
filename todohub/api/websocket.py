"""Adapter between a Starlette WebSocket and the gateway's Connection protocol."""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from typing import Any, Dict, Optional

from starlette.websockets import WebSocket, WebSocketDisconnect

logger = logging.getLogger("todohub.api.websocket")

OUTBOX_LIMIT = 1000


class WebSocketConnection:
    """
    ``send()`` may be called from any thread (the relay worker, a request
    thread, the event loop). Messages go through an asyncio queue drained by
    ``run_writer()``, so each client receives them in the order sent.

    At most ``max_pending`` messages wait for a slow client; beyond that
    ``send()`` raises ConnectionError and the message is dropped.
    """

    def __init__(
        self,
        websocket: WebSocket,
        loop: asyncio.AbstractEventLoop,
        connection_id: Optional[str] = None,
        max_pending: int = OUTBOX_LIMIT,
    ):
        self.id = connection_id or uuid.uuid4().hex
        self._websocket = websocket
        self._loop = loop
        self._outbox: "asyncio.Queue[Optional[Dict[str, Any]]]" = asyncio.Queue()
        self._max_pending = max_pending
        self._pending = 0
        self._pending_lock = threading.Lock()
        self._dropped_count = 0
        self._closed = False

    def send(self, message: Dict[str, Any]) -> None:
        if self._closed:
            raise ConnectionError(f"connection {self.id} is closed")
        with self._pending_lock:
            if self._pending >= self._max_pending:
                self._dropped_count += 1
                raise ConnectionError(f"outbox for {self.id} is full ({self._max_pending} pending)")
            self._pending += 1
        self._loop.call_soon_threadsafe(self._outbox.put_nowait, message)

    async def run_writer(self) -> None:
        while True:
            message = await self._outbox.get()
            if message is None:
                return
            with self._pending_lock:
                self._pending -= 1
            try:
                await self._websocket.send_json(message)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.debug("Writer for %s stopped: %s", self.id, e)
                self._closed = True
                return

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._loop.call_soon_threadsafe(self._outbox.put_nowait, None)

    @property
    def pending_count(self) -> int:
        with self._pending_lock:
            return self._pending

    @property
    def dropped_count(self) -> int:
        return self._dropped_count
