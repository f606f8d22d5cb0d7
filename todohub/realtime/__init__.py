"""TodoHub Realtime — event relay, room registry, broadcast gateway."""

from todohub.realtime.events import EventKind, MutationEvent  # noqa: F401
from todohub.realtime.gateway import BroadcastGateway  # noqa: F401
from todohub.realtime.relay import EventRelay  # noqa: F401
from todohub.realtime.rooms import RoomRegistry  # noqa: F401
