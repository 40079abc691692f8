from __future__ import annotations

import logging
from typing import Any, Optional, Union

from pydantic import ValidationError
from sqlalchemy.orm import Session as DbSession

from agenthq.core.access import can_access_workspace
from agenthq.core.auth import AgentPrincipal
from agenthq.core.realtime import EventKind, Event, RealtimeRegistry, RoomKind, Session
from agenthq.core.workspaces import get_agent, get_channel
from agenthq.schemas.realtime import ChannelFrame, ControlFrame, PingFrame, WorkspaceFrame, control_frame_adapter

logger = logging.getLogger(__name__)

PONG = {"type": "pong"}


def parse_control_frame(raw: Union[str, bytes]) -> Optional[ControlFrame]:
    """Returns None for anything that is not a well-formed control frame."""
    try:
        return control_frame_adapter.validate_json(raw)
    except ValidationError as e:
        logger.debug("ignoring malformed control frame: %s", e.errors(include_url=False))
        return None


def _room_of(frame: Union[ChannelFrame, WorkspaceFrame]) -> tuple[RoomKind, str]:
    if isinstance(frame, ChannelFrame):
        return RoomKind.CHANNEL, frame.channelId
    return RoomKind.WORKSPACE, frame.workspaceId


def authorize_join(db: DbSession, session: Session, room_kind: RoomKind, room_id: str) -> bool:
    """
    A join is allowed only for a session with an established identity that
    passes the workspace access check for the room. Agents are re-read so a
    deactivation after the handshake takes effect.
    """
    principal = session.principal
    if principal is None:
        return False
    if isinstance(principal, AgentPrincipal):
        agent = get_agent(db, principal.id)
        if agent is None or not agent.is_active:
            return False
        principal = AgentPrincipal(agent=agent)

    if room_kind == RoomKind.CHANNEL:
        channel = get_channel(db, room_id)
        if channel is None:
            return False
        workspace_id = channel.workspace_id
    else:
        workspace_id = room_id
    return can_access_workspace(db, principal, workspace_id)


def apply_control_frame(
    db: DbSession,
    registry: RealtimeRegistry,
    session: Session,
    frame: ControlFrame,
) -> Optional[dict[str, Any]]:
    """
    Applies one control frame. Returns a reply frame to send back on the
    same connection, if any. Joins are never acknowledged.
    """
    if isinstance(frame, PingFrame):
        return PONG

    room_kind, room_id = _room_of(frame)
    if frame.type.startswith("leave_"):
        registry.unsubscribe(session, room_kind, room_id)
        return None

    if not authorize_join(db, session, room_kind, room_id):
        logger.info(
            "dropped %s for session %s: %s %s not permitted",
            frame.type,
            session.session_id,
            room_kind.value,
            room_id,
        )
        return None
    registry.subscribe(session, room_kind, room_id)
    return None


def publish_message_created(registry: RealtimeRegistry, channel_id: str, payload: dict[str, Any]) -> int:
    return registry.publish(RoomKind.CHANNEL, channel_id, Event(EventKind.MESSAGE_CREATED, payload))


def publish_handoff_event(
    registry: RealtimeRegistry,
    kind: EventKind,
    workspace_id: str,
    payload: dict[str, Any],
) -> int:
    if kind not in (EventKind.HANDOFF_CREATED, EventKind.HANDOFF_UPDATED):
        raise ValueError(f"not a handoff event: {kind}")
    return registry.publish(RoomKind.WORKSPACE, workspace_id, Event(kind, payload))
