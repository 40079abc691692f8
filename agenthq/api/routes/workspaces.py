from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from agenthq.core.access import check_agent_access, check_workspace_access
from agenthq.core.auth import HumanPrincipal, Principal, require_human, require_principal
from agenthq.core.errors import NotFound
from agenthq.core.realtime import RealtimeRegistry, get_registry
from agenthq.core.workspaces import (
    add_workspace_member,
    create_agent,
    create_channel,
    create_workspace,
    get_agents_for_workspace,
    get_channels_for_workspace,
    get_human_by_email,
    get_workspaces_for_human,
    set_agent_active,
)
from agenthq.db.models import Agent, Channel, Workspace
from agenthq.db.session import get_db
from agenthq.schemas.workspaces import (
    AgentCreate,
    AgentOut,
    AgentUpdate,
    ChannelCreate,
    ChannelOut,
    MemberCreate,
    MemberOut,
    WorkspaceCreate,
    WorkspaceOut,
)
from agenthq.utils.time import iso


router = APIRouter(tags=["workspaces"])


def workspace_out(ws: Workspace) -> WorkspaceOut:
    return WorkspaceOut(id=ws.id, name=ws.name, slug=ws.slug, created_at=iso(ws.created_at))


def channel_out(c: Channel) -> ChannelOut:
    return ChannelOut(
        id=c.id,
        workspace_id=c.workspace_id,
        name=c.name,
        description=c.description,
        is_private=bool(c.is_private),
        created_at=iso(c.created_at),
    )


def agent_out(a: Agent, api_key: Optional[str] = None) -> AgentOut:
    return AgentOut(
        id=a.id,
        workspace_id=a.workspace_id,
        name=a.name,
        description=a.description,
        key_prefix=a.key_prefix,
        is_active=bool(a.is_active),
        last_seen_at=iso(a.last_seen_at),
        created_at=iso(a.created_at),
        api_key=api_key,
    )


@router.get("/workspaces", response_model=list[WorkspaceOut])
def list_workspaces(
    db: Session = Depends(get_db),
    principal: HumanPrincipal = Depends(require_human),
):
    return [workspace_out(ws) for ws in get_workspaces_for_human(db, principal.id)]


@router.post("/workspaces", response_model=WorkspaceOut, status_code=201)
def post_workspace(
    body: WorkspaceCreate,
    db: Session = Depends(get_db),
    principal: HumanPrincipal = Depends(require_human),
):
    ws = create_workspace(db, name=body.name, slug=body.slug)
    add_workspace_member(db, workspace_id=ws.id, human_id=principal.id, role="owner")
    return workspace_out(ws)


@router.post("/workspaces/{workspace_id}/members", response_model=MemberOut, status_code=201)
def post_member(
    workspace_id: str,
    body: MemberCreate,
    db: Session = Depends(get_db),
    principal: HumanPrincipal = Depends(require_human),
):
    check_workspace_access(db, principal, workspace_id)
    human = get_human_by_email(db, body.email)
    if human is None:
        raise NotFound("user not found")
    member = add_workspace_member(db, workspace_id=workspace_id, human_id=human.id, role=body.role)
    return MemberOut(
        workspace_id=member.workspace_id,
        human_id=member.human_id,
        role=member.role,
        joined_at=iso(member.joined_at),
    )


@router.get("/workspaces/{workspace_id}/channels", response_model=list[ChannelOut])
def list_channels(
    workspace_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_principal),
):
    check_workspace_access(db, principal, workspace_id)
    return [channel_out(c) for c in get_channels_for_workspace(db, workspace_id)]


@router.post("/workspaces/{workspace_id}/channels", response_model=ChannelOut, status_code=201)
def post_channel(
    workspace_id: str,
    body: ChannelCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_principal),
):
    check_workspace_access(db, principal, workspace_id)
    channel = create_channel(
        db,
        workspace_id=workspace_id,
        name=body.name,
        description=body.description,
        is_private=body.is_private,
    )
    return channel_out(channel)


@router.get("/workspaces/{workspace_id}/agents", response_model=list[AgentOut])
def list_agents(
    workspace_id: str,
    db: Session = Depends(get_db),
    principal: HumanPrincipal = Depends(require_human),
):
    check_workspace_access(db, principal, workspace_id)
    return [agent_out(a) for a in get_agents_for_workspace(db, workspace_id)]


@router.post("/workspaces/{workspace_id}/agents", response_model=AgentOut, status_code=201)
def post_agent(
    workspace_id: str,
    body: AgentCreate,
    db: Session = Depends(get_db),
    principal: HumanPrincipal = Depends(require_human),
):
    check_workspace_access(db, principal, workspace_id)
    agent, key = create_agent(db, workspace_id=workspace_id, name=body.name, description=body.description)
    # The only response that ever carries the key.
    return agent_out(agent, api_key=key.token)


@router.patch("/agents/{agent_id}", response_model=AgentOut)
def patch_agent(
    agent_id: str,
    body: AgentUpdate,
    db: Session = Depends(get_db),
    principal: HumanPrincipal = Depends(require_human),
    registry: RealtimeRegistry = Depends(get_registry),
):
    agent = check_agent_access(db, principal, agent_id)
    agent = set_agent_active(db, agent, body.is_active)
    if not agent.is_active:
        # Live sockets keep their connection but lose every room.
        registry.revoke(agent.id)
    return agent_out(agent)
