"""Thread-safe registry of room name -> member connection ids."""

from __future__ import annotations

import threading
from typing import Dict, FrozenSet, List, Set


class RoomRegistry:
    """
    Room membership shared by concurrent connect/disconnect/join/leave calls.

    Every read and write holds the same lock; ``members()`` returns a frozen
    snapshot so a multicast never iterates a set that is being mutated.
    """

    def __init__(self):
        self._rooms: Dict[str, Set[str]] = {}
        self._lock = threading.RLock()

    def join(self, room: str, connection_id: str) -> bool:
        """Add a member. Returns False if it was already in the room."""
        with self._lock:
            members = self._rooms.setdefault(room, set())
            if connection_id in members:
                return False
            members.add(connection_id)
            return True

    def leave(self, room: str, connection_id: str) -> bool:
        """Remove a member. Returns False if it was not in the room."""
        with self._lock:
            members = self._rooms.get(room)
            if not members or connection_id not in members:
                return False
            members.discard(connection_id)
            if not members:
                del self._rooms[room]
            return True

    def leave_all(self, connection_id: str) -> List[str]:
        """Remove a connection from every room; returns the rooms it left."""
        with self._lock:
            left = [room for room, members in self._rooms.items() if connection_id in members]
            for room in left:
                self.leave(room, connection_id)
            return left

    def members(self, room: str) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._rooms.get(room, ()))

    def is_member(self, room: str, connection_id: str) -> bool:
        with self._lock:
            return connection_id in self._rooms.get(room, ())

    def size(self, room: str) -> int:
        with self._lock:
            return len(self._rooms.get(room, ()))

    def rooms(self) -> List[str]:
        with self._lock:
            return sorted(self._rooms)
