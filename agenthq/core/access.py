from __future__ import annotations

from sqlalchemy.orm import Session

from agenthq.core.auth import AgentPrincipal, HumanPrincipal, Principal
from agenthq.core.errors import Forbidden, NotFound
from agenthq.core.handoffs import get_handoff
from agenthq.core.workspaces import get_agent, get_channel, get_workspace_member
from agenthq.db.models import Agent, Channel, Handoff


def can_access_workspace(db: Session, principal: Principal, workspace_id: str) -> bool:
    if isinstance(principal, HumanPrincipal):
        return get_workspace_member(db, workspace_id, principal.id) is not None
    if isinstance(principal, AgentPrincipal):
        # Agents are scoped by their own record, never by membership rows.
        return principal.agent.workspace_id == workspace_id
    raise TypeError(f"unknown principal: {principal!r}")


def check_workspace_access(db: Session, principal: Principal, workspace_id: str) -> None:
    if can_access_workspace(db, principal, workspace_id):
        return
    if isinstance(principal, AgentPrincipal):
        raise Forbidden("agent does not belong to this workspace")
    raise Forbidden("not a member of this workspace")


def check_channel_access(db: Session, principal: Principal, channel_id: str) -> Channel:
    channel = get_channel(db, channel_id)
    if channel is None:
        raise NotFound("channel not found")
    check_workspace_access(db, principal, channel.workspace_id)
    return channel


def check_handoff_access(db: Session, principal: Principal, handoff_id: str) -> Handoff:
    handoff = get_handoff(db, handoff_id)
    if handoff is None:
        raise NotFound("handoff not found")
    check_workspace_access(db, principal, handoff.workspace_id)
    return handoff


def check_agent_access(db: Session, principal: Principal, agent_id: str) -> Agent:
    agent = get_agent(db, agent_id)
    if agent is None:
        raise NotFound("agent not found")
    check_workspace_access(db, principal, agent.workspace_id)
    return agent
