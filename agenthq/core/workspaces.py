from __future__ import annotations

import re
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from agenthq.core.errors import ValidationFailed
from agenthq.db.models import Agent, Channel, Human, Workspace, WorkspaceMember
from agenthq.utils.hashing import AgentKey, agent_key_hash, hash_password, new_agent_key
from agenthq.utils.time import now_utc


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (name or "").strip().lower()).strip("-")
    return slug or "workspace"


# Humans


def get_human(db: Session, human_id: str) -> Optional[Human]:
    return db.get(Human, human_id)


def get_human_by_email(db: Session, email: str) -> Optional[Human]:
    return db.execute(
        select(Human).where(Human.email == (email or "").strip().lower())
    ).scalar_one_or_none()


def create_human(db: Session, email: str, name: str, password: str) -> Human:
    human = Human(email=email.strip().lower(), name=name, password_hash=hash_password(password))
    db.add(human)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationFailed("email already registered")
    db.refresh(human)
    return human


def register_human(
    db: Session,
    email: str,
    name: str,
    password: str,
    workspace_slug: Optional[str] = None,
) -> tuple[Human, Workspace]:
    """
    Creates a human with a personal workspace (owner membership and a
    `general` channel) in one transaction; nothing is kept if any part fails.
    """
    if get_human_by_email(db, email) is not None:
        raise ValidationFailed("email already registered")

    human = Human(email=email.strip().lower(), name=name, password_hash=hash_password(password))
    ws = Workspace(name=f"{name}'s Workspace", slug=workspace_slug or slugify(name))
    db.add_all([human, ws])
    try:
        # Ids are assigned at flush; the membership and channel need them.
        db.flush()
        db.add_all(
            [
                WorkspaceMember(workspace_id=ws.id, human_id=human.id, role="owner"),
                Channel(workspace_id=ws.id, name="general", description="General discussion"),
            ]
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationFailed("email already registered or workspace slug taken")
    db.refresh(human)
    db.refresh(ws)
    return human, ws


# Workspaces


def get_workspace(db: Session, workspace_id: str) -> Optional[Workspace]:
    return db.get(Workspace, workspace_id)


def get_workspaces_for_human(db: Session, human_id: str) -> list[Workspace]:
    rows = db.execute(
        select(Workspace)
        .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
        .where(WorkspaceMember.human_id == human_id)
        .order_by(Workspace.created_at)
    ).scalars()
    return list(rows)


def create_workspace(db: Session, name: str, slug: Optional[str] = None) -> Workspace:
    ws = Workspace(name=name, slug=slug or slugify(name))
    db.add(ws)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationFailed("workspace slug already taken")
    db.refresh(ws)
    return ws


def add_workspace_member(db: Session, workspace_id: str, human_id: str, role: str = "member") -> WorkspaceMember:
    member = WorkspaceMember(workspace_id=workspace_id, human_id=human_id, role=role)
    db.add(member)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationFailed("already a member of this workspace")
    db.refresh(member)
    return member


def get_workspace_member(db: Session, workspace_id: str, human_id: str) -> Optional[WorkspaceMember]:
    return db.execute(
        select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.human_id == human_id,
        )
    ).scalar_one_or_none()


# Agents


def get_agent(db: Session, agent_id: str) -> Optional[Agent]:
    return db.get(Agent, agent_id)


def get_agent_by_key(db: Session, token: str) -> Optional[Agent]:
    return db.execute(
        select(Agent).where(Agent.api_key_hash == agent_key_hash(token))
    ).scalar_one_or_none()


def get_agents_for_workspace(db: Session, workspace_id: str) -> list[Agent]:
    rows = db.execute(
        select(Agent).where(Agent.workspace_id == workspace_id).order_by(Agent.created_at)
    ).scalars()
    return list(rows)


def create_agent(
    db: Session,
    workspace_id: str,
    name: str,
    description: Optional[str] = None,
) -> tuple[Agent, AgentKey]:
    """
    Returns the agent together with its key. The plain token is not stored
    and cannot be recovered later.
    """
    key = new_agent_key()
    agent = Agent(
        workspace_id=workspace_id,
        name=name,
        description=description,
        api_key_hash=key.digest,
        key_prefix=key.prefix,
        is_active=True,
    )
    db.add(agent)
    db.commit()
    db.refresh(agent)
    return agent, key


def set_agent_active(db: Session, agent: Agent, is_active: bool) -> Agent:
    agent.is_active = is_active
    db.commit()
    db.refresh(agent)
    return agent


def touch_agent(db: Session, agent: Agent) -> None:
    agent.last_seen_at = now_utc()
    db.commit()
    db.refresh(agent)


# Channels


def get_channel(db: Session, channel_id: str) -> Optional[Channel]:
    return db.get(Channel, channel_id)


def get_channels_for_workspace(db: Session, workspace_id: str) -> list[Channel]:
    rows = db.execute(
        select(Channel).where(Channel.workspace_id == workspace_id).order_by(Channel.created_at)
    ).scalars()
    return list(rows)


def create_channel(
    db: Session,
    workspace_id: str,
    name: str,
    description: Optional[str] = None,
    is_private: bool = False,
) -> Channel:
    channel = Channel(
        workspace_id=workspace_id,
        name=name,
        description=description,
        is_private=is_private,
    )
    db.add(channel)
    db.commit()
    db.refresh(channel)
    return channel
