from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agenthq.core.access import check_handoff_access, check_workspace_access
from agenthq.core.auth import AgentPrincipal, Principal, require_principal
from agenthq.core.handoffs import (
    HandoffStatus,
    create_handoff,
    get_handoffs_for_workspace,
    update_handoff_status,
)
from agenthq.core.protocol import publish_handoff_event
from agenthq.core.realtime import EventKind, RealtimeRegistry, get_registry
from agenthq.db.models import Handoff
from agenthq.db.session import get_db
from agenthq.schemas.handoffs import HandoffCreate, HandoffOut, HandoffUpdate
from agenthq.utils.time import iso


router = APIRouter(tags=["handoffs"])


def handoff_out(h: Handoff) -> HandoffOut:
    return HandoffOut(
        id=h.id,
        workspace_id=h.workspace_id,
        channel_id=h.channel_id,
        title=h.title,
        description=h.description,
        status=h.status,
        priority=h.priority,
        from_agent_id=h.from_agent_id,
        to_human_id=h.to_human_id,
        resolved_at=iso(h.resolved_at),
        created_at=iso(h.created_at),
    )


@router.get("/workspaces/{workspace_id}/handoffs", response_model=list[HandoffOut])
def list_handoffs(
    workspace_id: str,
    status: Optional[HandoffStatus] = Query(default=None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_principal),
):
    check_workspace_access(db, principal, workspace_id)
    return [handoff_out(h) for h in get_handoffs_for_workspace(db, workspace_id, status=status)]


@router.post("/workspaces/{workspace_id}/handoffs", response_model=HandoffOut, status_code=201)
def post_handoff(
    workspace_id: str,
    body: HandoffCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_principal),
    registry: RealtimeRegistry = Depends(get_registry),
):
    check_workspace_access(db, principal, workspace_id)
    handoff = create_handoff(
        db,
        workspace_id=workspace_id,
        title=body.title,
        description=body.description,
        priority=body.priority,
        channel_id=body.channel_id,
        from_agent_id=principal.id if isinstance(principal, AgentPrincipal) else None,
        to_human_id=body.to_human_id,
    )
    out = handoff_out(handoff)
    publish_handoff_event(registry, EventKind.HANDOFF_CREATED, workspace_id, out.model_dump(mode="json"))
    return out


@router.patch("/handoffs/{handoff_id}", response_model=HandoffOut)
def patch_handoff(
    handoff_id: str,
    body: HandoffUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_principal),
    registry: RealtimeRegistry = Depends(get_registry),
):
    handoff = check_handoff_access(db, principal, handoff_id)
    handoff = update_handoff_status(db, handoff, body.status)
    out = handoff_out(handoff)
    publish_handoff_event(registry, EventKind.HANDOFF_UPDATED, handoff.workspace_id, out.model_dump(mode="json"))
    return out
