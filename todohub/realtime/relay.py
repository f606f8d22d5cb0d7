"""
Event Relay — process-wide, in-memory publish/subscribe point.

The Task Store publishes mutation events here; the Broadcast Gateway (or
any other listener) subscribes per event kind. Publishers never learn who
is listening and never wait for delivery.

Modes:
  - "thread": publish() enqueues non-blocking; a single background worker
    delivers events FIFO, so every listener sees events in publish order.
  - "sync":   publish() invokes the listeners inline (tests, CLI).

No persistence, no acknowledgement, no retries. A full queue drops the
event and counts it.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict
from queue import Empty, Full, Queue
from typing import Any, Callable, Dict, List, Optional

from todohub.realtime.events import MutationEvent

logger = logging.getLogger("todohub.realtime.relay")

Handler = Callable[[MutationEvent], None]


class EventRelay:

    def __init__(self, mode: str = "thread", max_queue_size: int = 10000, poll_interval: float = 0.05):
        if mode not in ("thread", "sync"):
            raise ValueError(f"relay mode must be thread/sync, got '{mode}'")
        self._mode = mode
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self._handlers_lock = threading.Lock()
        self._queue: Queue[MutationEvent] = Queue(maxsize=max_queue_size)
        self._poll_interval = poll_interval
        self._running = False
        self._worker: Optional[threading.Thread] = None
        self._start_lock = threading.Lock()
        self._dropped_count = 0
        self._handler_failures = 0

    # ── Subscription ──

    def subscribe(self, kind: str, handler: Handler) -> None:
        with self._handlers_lock:
            self._handlers[kind].append(handler)

    def unsubscribe(self, kind: str, handler: Handler) -> bool:
        with self._handlers_lock:
            handlers = self._handlers.get(kind, [])
            if handler in handlers:
                handlers.remove(handler)
                return True
        return False

    def handlers_for(self, kind: str) -> List[Handler]:
        with self._handlers_lock:
            return list(self._handlers.get(kind, []))

    # ── Publishing ──

    def publish(self, kind: str, payload: Any) -> bool:
        """
        Publish an event. Never raises and never blocks on delivery.

        Returns:
            True if the event was delivered (sync) or queued (thread),
            False if it was dropped because the queue is full.
        """
        event = MutationEvent(kind=kind, payload=payload)
        if self._mode == "sync":
            self._dispatch(event)
            return True

        if not self._running:
            self.start()
        try:
            self._queue.put_nowait(event)
            return True
        except Full:
            self._dropped_count += 1
            logger.warning("Relay queue full, dropped %s event", kind)
            return False

    def _dispatch(self, event: MutationEvent) -> None:
        for handler in self.handlers_for(event.kind):
            try:
                handler(event)
            except Exception:
                # A failing listener must not stop delivery to the others
                self._handler_failures += 1
                logger.exception("Relay handler %r failed for %s", handler, event.kind)

    # ── Worker lifecycle ──

    def start(self) -> None:
        """Start the delivery worker (thread mode only)."""
        if self._mode == "sync":
            return
        with self._start_lock:
            if self._running:
                return
            self._running = True
            self._worker = threading.Thread(
                target=self._worker_loop,
                name="todohub-event-relay",
                daemon=True,
            )
            self._worker.start()
        logger.info("Event relay started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the worker and deliver whatever is still queued."""
        self._running = False
        if self._worker and self._worker.is_alive():
            self._worker.join(timeout=timeout)
        self._worker = None
        self._drain()
        logger.info("Event relay stopped (dropped: %d)", self._dropped_count)

    def flush(self, timeout: float = 5.0) -> bool:
        """Block until every queued event has been delivered. False on timeout."""
        if self._mode == "sync":
            return True
        deadline = time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    def _worker_loop(self) -> None:
        while self._running:
            try:
                event = self._queue.get(timeout=self._poll_interval)
            except Empty:
                continue
            try:
                self._dispatch(event)
            finally:
                self._queue.task_done()

    def _drain(self) -> None:
        while True:
            try:
                event = self._queue.get_nowait()
            except Empty:
                break
            try:
                self._dispatch(event)
            finally:
                self._queue.task_done()

    # ── Introspection ──

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    @property
    def dropped_count(self) -> int:
        return self._dropped_count

    @property
    def handler_failures(self) -> int:
        return self._handler_failures
