"""
In-process realtime fan-out.

The registry is the only long-lived shared mutable state in the service: the
set of live sessions and, per session, the rooms it has declared interest in.
HTTP handlers publish from worker threads while the websocket endpoint mutates
interest sets from the event loop, so every operation runs under one lock.
Transports must never block inside `send`.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol

from agenthq.core.auth import Principal

logger = logging.getLogger(__name__)


class RoomKind(str, Enum):
    CHANNEL = "channel"
    WORKSPACE = "workspace"


class EventKind(str, Enum):
    MESSAGE_CREATED = "message.created"
    HANDOFF_CREATED = "handoff.created"
    HANDOFF_UPDATED = "handoff.updated"


# Id key each room kind uses on the wire.
ROOM_ID_FIELDS = {RoomKind.CHANNEL: "channelId", RoomKind.WORKSPACE: "workspaceId"}

Room = tuple[RoomKind, str]


@dataclass(frozen=True)
class Event:
    kind: EventKind
    payload: dict[str, Any]

    def frame(self, room_kind: RoomKind, room_id: str) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            ROOM_ID_FIELDS[room_kind]: room_id,
            "payload": self.payload,
        }


class Transport(Protocol):
    def writable(self) -> bool: ...

    def send(self, frame: dict[str, Any]) -> None: ...


@dataclass(eq=False)
class Session:
    transport: Transport
    principal: Optional[Principal] = None
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)


class RealtimeRegistry:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._interests: dict[str, set[Room]] = {}
        self._sessions: dict[str, Session] = {}
        self._rooms: dict[Room, dict[str, Session]] = {}

    def register(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.session_id] = session
            self._interests.setdefault(session.session_id, set())

    def deregister(self, session: Session) -> None:
        with self._lock:
            self._sessions.pop(session.session_id, None)
            for room in self._interests.pop(session.session_id, set()):
                self._drop_from_room(room, session.session_id)

    def subscribe(self, session: Session, room_kind: RoomKind, room_id: str) -> bool:
        """
        Idempotently adds interest in a room. Returns False for a session
        that is not (or no longer) registered.
        """
        room = (RoomKind(room_kind), room_id)
        with self._lock:
            interests = self._interests.get(session.session_id)
            if interests is None:
                return False
            interests.add(room)
            self._rooms.setdefault(room, {})[session.session_id] = session
            return True

    def unsubscribe(self, session: Session, room_kind: RoomKind, room_id: str) -> None:
        room = (RoomKind(room_kind), room_id)
        with self._lock:
            interests = self._interests.get(session.session_id)
            if interests is not None:
                interests.discard(room)
            self._drop_from_room(room, session.session_id)

    def revoke(self, principal_id: str) -> int:
        """
        Drops every room interest held by sessions of the given principal.
        The sessions stay registered. Returns the number of sessions touched.
        """
        touched = 0
        with self._lock:
            for session in self._sessions.values():
                if session.principal is None or session.principal.id != principal_id:
                    continue
                for room in self._interests.get(session.session_id, set()):
                    self._drop_from_room(room, session.session_id)
                self._interests[session.session_id] = set()
                touched += 1
        return touched

    def _drop_from_room(self, room: Room, session_id: str) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.pop(session_id, None)
        if not members:
            del self._rooms[room]

    def publish(self, room_kind: RoomKind, room_id: str, event: Event) -> int:
        """
        Delivers the event to every session interested in the room, in call
        order. Sessions whose transport is not writable are skipped; there is
        no queueing or retry. Returns the number of sessions written to.
        """
        room_kind = RoomKind(room_kind)
        frame = event.frame(room_kind, room_id)
        delivered = 0
        with self._lock:
            for session in list(self._rooms.get((room_kind, room_id), {}).values()):
                if not session.transport.writable():
                    continue
                try:
                    session.transport.send(frame)
                except (RuntimeError, OSError):
                    logger.debug("dropped %s for session %s", event.kind.value, session.session_id, exc_info=True)
                    continue
                delivered += 1
        return delivered

    def subscribers(self, room_kind: RoomKind, room_id: str) -> list[Session]:
        with self._lock:
            return list(self._rooms.get((RoomKind(room_kind), room_id), {}).values())

    def rooms_for(self, session: Session) -> set[Room]:
        with self._lock:
            return set(self._interests.get(session.session_id, set()))

    def is_registered(self, session: Session) -> bool:
        with self._lock:
            return session.session_id in self._sessions

    def session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def room_count(self) -> int:
        with self._lock:
            return len(self._rooms)


class QueueTransport:
    """
    Transport bound to an event loop. `send` may be called from any thread;
    frames land on an asyncio queue in call order and are drained by the socket writer.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._open = True

    def writable(self) -> bool:
        return self._open and not self._loop.is_closed()

    def send(self, frame: dict[str, Any]) -> None:
        self._loop.call_soon_threadsafe(self._outbox.put_nowait, frame)

    def close(self) -> None:
        self._open = False

    async def next_frame(self) -> dict[str, Any]:
        return await self._outbox.get()


registry = RealtimeRegistry()


def get_registry() -> RealtimeRegistry:
    return registry
