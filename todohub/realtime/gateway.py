"""
Broadcast Gateway — keeps the "todos" room of live connections informed.

Per-connection state machine:

    connect ──► InRoom ◄──join/leave──► Connected (not in room)
                   │                          │
                   └──────── disconnect ──────┴──► Disconnected (terminal)

The gateway subscribes to the Event Relay and turns each mutation event
into a room multicast. Client messages (joinTodoRoom, leaveTodoRoom, ping)
are answered with a single notification to the sender only.

A connection is any object exposing ``id`` and ``send(message: dict)``.
Server→client messages are ``{"event": <name>, "data": {...}}``.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from todohub.engine.logging import log, log_broadcast
from todohub.realtime.events import EventKind, MutationEvent
from todohub.realtime.relay import EventRelay
from todohub.realtime.rooms import RoomRegistry

logger = logging.getLogger("todohub.realtime.gateway")

DEFAULT_ROOM = "todos"


class ServerEvent:
    TODO_CREATED = "todoCreated"
    TODO_UPDATED = "todoUpdated"
    TODO_DELETED = "todoDeleted"
    TODO_BULK_DELETED = "todoBulkDeleted"
    NOTIFICATION = "notification"


class ClientEvent:
    JOIN_ROOM = "joinTodoRoom"
    LEAVE_ROOM = "leaveTodoRoom"
    PING = "ping"
    GET_TODO_LIST = "getTodoList"
    GET_TODO = "getTodo"


NOTIFICATION_TYPES = ("success", "info", "warning", "error")


class Connection(Protocol):
    id: str

    def send(self, message: Dict[str, Any]) -> None:
        ...


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def notification(message: str, type: str = "info", data: Any = None) -> Dict[str, Any]:
    """Build a ``notification`` server message."""
    if type not in NOTIFICATION_TYPES:
        raise ValueError(f"notification type must be one of {NOTIFICATION_TYPES}, got '{type}'")
    body: Dict[str, Any] = {"message": message, "type": type, "timestamp": _now()}
    if data is not None:
        body["data"] = data
    return {"event": ServerEvent.NOTIFICATION, "data": body}


class BroadcastGateway:

    def __init__(
        self,
        relay: Optional[EventRelay] = None,
        rooms: Optional[RoomRegistry] = None,
        room: str = DEFAULT_ROOM,
    ):
        self._rooms = rooms or RoomRegistry()
        self._room = room
        self._connections: Dict[str, Connection] = {}
        self._lock = threading.Lock()
        self._relay: Optional[EventRelay] = None
        if relay is not None:
            self.attach(relay)

    # ── Relay wiring ──

    def attach(self, relay: EventRelay) -> None:
        """Subscribe to every mutation event kind on ``relay``."""
        self._relay = relay
        relay.subscribe(EventKind.CREATED, self.on_todo_created)
        relay.subscribe(EventKind.UPDATED, self.on_todo_updated)
        relay.subscribe(EventKind.DELETED, self.on_todo_deleted)
        relay.subscribe(EventKind.BULK_DELETED, self.on_todo_bulk_deleted)

    def detach(self) -> None:
        if self._relay is None:
            return
        self._relay.unsubscribe(EventKind.CREATED, self.on_todo_created)
        self._relay.unsubscribe(EventKind.UPDATED, self.on_todo_updated)
        self._relay.unsubscribe(EventKind.DELETED, self.on_todo_deleted)
        self._relay.unsubscribe(EventKind.BULK_DELETED, self.on_todo_bulk_deleted)
        self._relay = None

    # ── Connection lifecycle ──

    def connect(self, connection: Connection) -> str:
        """Register a connection, place it in the room and welcome it."""
        with self._lock:
            self._connections[connection.id] = connection
            self._rooms.join(self._room, connection.id)
        logger.info("Client connected: %s (joined %s)", connection.id, self._room)
        self._send(connection, notification("Connected to TodoList real-time updates", "success"))
        return connection.id

    def disconnect(self, connection_id: str) -> None:
        """Drop a connection from every room. Safe to call more than once."""
        with self._lock:
            known = self._connections.pop(connection_id, None) is not None
            self._rooms.leave_all(connection_id)
        if known:
            logger.info("Client disconnected: %s", connection_id)

    def is_connected(self, connection_id: str) -> bool:
        with self._lock:
            return connection_id in self._connections

    def in_room(self, connection_id: str) -> bool:
        return self._rooms.is_member(self._room, connection_id)

    # ── Client messages ──

    def handle_message(self, connection_id: str, kind: str, data: Any = None) -> None:
        """Handle one client→server message. Each draws exactly one reply."""
        # Membership changes happen under the same lock as disconnect()
        with self._lock:
            connection = self._connections.get(connection_id)
            if connection is not None and kind == ClientEvent.JOIN_ROOM:
                self._rooms.join(self._room, connection_id)
            elif connection is not None and kind == ClientEvent.LEAVE_ROOM:
                self._rooms.leave(self._room, connection_id)
        if connection is None:
            logger.debug("Ignoring %s from unknown connection %s", kind, connection_id)
            return

        if kind == ClientEvent.JOIN_ROOM:
            logger.info("Client %s joined %s room", connection_id, self._room)
            reply = notification("Joined todo updates room", "info")
        elif kind == ClientEvent.LEAVE_ROOM:
            logger.info("Client %s left %s room", connection_id, self._room)
            reply = notification("Left todo updates room", "info")
        elif kind == ClientEvent.PING:
            reply = notification("pong", "info")
        elif kind == ClientEvent.GET_TODO_LIST:
            reply = notification("getTodoList request received - use REST API to fetch data", "info")
        elif kind == ClientEvent.GET_TODO:
            reply = notification(f"getTodo request for {data} - use REST API to fetch data", "info")
        else:
            logger.warning("Unknown message %r from %s", kind, connection_id)
            reply = notification(f"Unknown message type: {kind}", "error")

        self._send(connection, reply)

    # ── Relay handlers ──

    def on_todo_created(self, event: MutationEvent) -> None:
        self.broadcast(ServerEvent.TODO_CREATED, self._todo_event_data(event.payload, "created"))

    def on_todo_updated(self, event: MutationEvent) -> None:
        self.broadcast(ServerEvent.TODO_UPDATED, self._todo_event_data(event.payload, "updated"))

    def on_todo_deleted(self, event: MutationEvent) -> None:
        todo_id = event.payload["id"]
        title = event.payload.get("title")
        self.broadcast(ServerEvent.TODO_DELETED, {"id": todo_id, "deleted_id": todo_id})
        self.notify_room(f'Todo "{title or todo_id}" was deleted', "info")

    def on_todo_bulk_deleted(self, event: MutationEvent) -> None:
        count = event.payload["count"]
        self.broadcast(
            ServerEvent.TODO_BULK_DELETED,
            {"ids": list(event.payload["ids"]), "deleted_count": count},
        )
        self.notify_room(f"{count} todos were deleted", "info")

    @staticmethod
    def _todo_event_data(todo: Dict[str, Any], action: str) -> Dict[str, Any]:
        return {
            "id": todo["id"],
            "todo": todo,
            "action": action,
            "timestamp": _now(),
            "message": f'Todo "{todo.get("title")}" was {action}',
        }

    # ── Multicast ──

    def notify_room(self, message: str, type: str = "info", data: Any = None) -> int:
        """Send a notification to every room member."""
        envelope = notification(message, type, data)
        return self._multicast(envelope)

    def broadcast(self, event: str, data: Dict[str, Any]) -> int:
        return self._multicast({"event": event, "data": data})

    def _multicast(self, message: Dict[str, Any]) -> int:
        """
        Send ``message`` to the current membership snapshot.
        Returns the number of successful deliveries.
        """
        member_ids = self._rooms.members(self._room)
        with self._lock:
            targets = [self._connections[cid] for cid in member_ids if cid in self._connections]

        delivered = 0
        failures = 0
        for connection in targets:
            if self._send(connection, message):
                delivered += 1
            else:
                failures += 1

        log(log_broadcast(message["event"], self._room, delivered, failures))
        logger.debug("Emitted %s to %d member(s) of %s", message["event"], delivered, self._room)
        return delivered

    @staticmethod
    def _send(connection: Connection, message: Dict[str, Any]) -> bool:
        try:
            connection.send(message)
            return True
        except Exception:
            # One broken connection must not affect delivery to the others
            logger.warning("Send to %s failed", getattr(connection, "id", "?"), exc_info=True)
            return False

    # ── Statistics ──

    @property
    def room(self) -> str:
        return self._room

    @property
    def connected_count(self) -> int:
        with self._lock:
            return len(self._connections)

    @property
    def room_count(self) -> int:
        return self._rooms.size(self._room)
