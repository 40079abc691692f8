from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import desc, select, update
from sqlalchemy.orm import Session

from agenthq.core.errors import InvalidTransition, NotFound, ValidationFailed
from agenthq.core.workspaces import get_channel, get_workspace_member
from agenthq.db.models import Handoff
from agenthq.utils.time import now_utc


class HandoffStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"


class HandoffPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @property
    def rank(self) -> int:
        # Display ordering only.
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    HandoffPriority.LOW: 0,
    HandoffPriority.MEDIUM: 1,
    HandoffPriority.HIGH: 2,
    HandoffPriority.URGENT: 3,
}

ALLOWED_TRANSITIONS: dict[HandoffStatus, frozenset[HandoffStatus]] = {
    HandoffStatus.OPEN: frozenset({HandoffStatus.IN_PROGRESS}),
    HandoffStatus.IN_PROGRESS: frozenset({HandoffStatus.RESOLVED}),
    HandoffStatus.RESOLVED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, nxt in ALLOWED_TRANSITIONS.items() if not nxt)


def _coerce_status(value) -> Optional[HandoffStatus]:
    try:
        return HandoffStatus(value)
    except ValueError:
        return None


def _label(value) -> Optional[str]:
    if value is None:
        return None
    return value.value if isinstance(value, Enum) else str(value)


def check_transition(current: str, requested: str) -> HandoffStatus:
    """
    Validates `current -> requested` against the transition table and returns
    the requested status. Raises InvalidTransition otherwise.
    """
    cur = _coerce_status(current)
    req = _coerce_status(requested)
    if cur is None or req is None or req not in ALLOWED_TRANSITIONS[cur]:
        raise InvalidTransition(_label(current), _label(requested))
    return req


def transition(handoff: Handoff, requested: str, now: Optional[datetime] = None) -> Handoff:
    """
    Applies a legal transition to the in-memory handoff. `resolved_at` is set
    on entry to a terminal status and never touched otherwise.
    """
    nxt = check_transition(handoff.status, requested)
    handoff.status = nxt.value
    if nxt in TERMINAL_STATUSES:
        handoff.resolved_at = now or now_utc()
    return handoff


def create_handoff(
    db: Session,
    workspace_id: str,
    title: str,
    description: Optional[str] = None,
    priority: HandoffPriority = HandoffPriority.MEDIUM,
    channel_id: Optional[str] = None,
    from_agent_id: Optional[str] = None,
    to_human_id: Optional[str] = None,
) -> Handoff:
    if channel_id is not None:
        channel = get_channel(db, channel_id)
        if channel is None or channel.workspace_id != workspace_id:
            raise NotFound("channel not found")
    if to_human_id is not None and get_workspace_member(db, workspace_id, to_human_id) is None:
        raise ValidationFailed("to_human_id is not a member of this workspace")

    handoff = Handoff(
        workspace_id=workspace_id,
        channel_id=channel_id,
        title=title,
        description=description,
        # Every handoff starts OPEN.
        status=HandoffStatus.OPEN.value,
        priority=HandoffPriority(priority).value,
        from_agent_id=from_agent_id,
        to_human_id=to_human_id,
    )
    db.add(handoff)
    db.commit()
    db.refresh(handoff)
    return handoff


def get_handoff(db: Session, handoff_id: str) -> Optional[Handoff]:
    return db.get(Handoff, handoff_id)


def get_handoffs_for_workspace(
    db: Session,
    workspace_id: str,
    status: Optional[HandoffStatus] = None,
) -> list[Handoff]:
    stmt = select(Handoff).where(Handoff.workspace_id == workspace_id)
    if status is not None:
        stmt = stmt.where(Handoff.status == HandoffStatus(status).value)
    rows = db.execute(stmt.order_by(desc(Handoff.created_at))).scalars()
    return list(rows)


def update_handoff_status(db: Session, handoff: Handoff, requested: str) -> Handoff:
    """
    Persists a transition as a compare-and-set on the current status, so two
    racing requests cannot both move the same handoff.
    """
    current = handoff.status
    nxt = check_transition(current, requested)
    resolved_at = now_utc() if nxt in TERMINAL_STATUSES else handoff.resolved_at

    result = db.execute(
        update(Handoff)
        .where(Handoff.id == handoff.id, Handoff.status == current)
        .values(status=nxt.value, resolved_at=resolved_at)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        db.refresh(handoff)
        raise InvalidTransition(handoff.status, _label(requested))
    db.commit()
    db.refresh(handoff)
    return handoff
