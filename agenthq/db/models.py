from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKeyConstraint,
    Index,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import JSON

from agenthq.utils.time import now_utc


def json_column():
    # Portable JSON type (JSONB on Postgres).
    return JSON().with_variant(JSONB, "postgresql")


def new_id() -> str:
    return str(uuid.uuid4())


def created_at_column():
    # Python-side default keeps sub-second precision on SQLite, where now() is second-granular.
    return mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc, server_default=func.now()
    )


class Base(DeclarativeBase):
    pass


class Workspace(Base):
    __tablename__ = "workspaces"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    created_at: Mapped[datetime] = created_at_column()


class Human(Base):
    __tablename__ = "humans"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    avatar_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = created_at_column()


class WorkspaceMember(Base):
    __tablename__ = "workspace_members"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    workspace_id: Mapped[str] = mapped_column(Text, nullable=False)
    human_id: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'member'"))
    joined_at: Mapped[datetime] = created_at_column()

    __table_args__ = (
        ForeignKeyConstraint(["workspace_id"], ["workspaces.id"]),
        ForeignKeyConstraint(["human_id"], ["humans.id"]),
        UniqueConstraint("workspace_id", "human_id"),
        Index("ix_workspace_members_human", "human_id"),
    )


class Agent(Base):
    __tablename__ = "agents"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    workspace_id: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    api_key_hash: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    key_prefix: Mapped[str] = mapped_column(Text, nullable=False)  # safe to display/log
    avatar_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    last_seen_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (
        ForeignKeyConstraint(["workspace_id"], ["workspaces.id"]),
        Index("ix_agents_workspace", "workspace_id"),
    )


class Channel(Base):
    __tablename__ = "channels"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    workspace_id: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Stored only; access is decided by workspace membership.
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (
        ForeignKeyConstraint(["workspace_id"], ["workspaces.id"]),
        Index("ix_channels_workspace", "workspace_id"),
    )


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    channel_id: Mapped[str] = mapped_column(Text, nullable=False)
    author_type: Mapped[str] = mapped_column(Text, nullable=False)  # human|agent|system
    author_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # null iff system
    content: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'TEXT'"))
    # `metadata` is reserved on declarative classes.
    meta: Mapped[Optional[dict[str, Any]]] = mapped_column("metadata", json_column(), nullable=True)
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (
        ForeignKeyConstraint(["channel_id"], ["channels.id"]),
        Index("ix_messages_channel_created", "channel_id", "created_at"),
        CheckConstraint(
            "(author_type = 'system' AND author_id IS NULL) OR "
            "(author_type IN ('human', 'agent') AND author_id IS NOT NULL)",
            name="ck_messages_author",
        ),
    )


class Handoff(Base):
    __tablename__ = "handoffs"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    workspace_id: Mapped[str] = mapped_column(Text, nullable=False)
    channel_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'OPEN'"))
    priority: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'MEDIUM'"))
    from_agent_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    to_human_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (
        ForeignKeyConstraint(["workspace_id"], ["workspaces.id"]),
        ForeignKeyConstraint(["channel_id"], ["channels.id"]),
        ForeignKeyConstraint(["from_agent_id"], ["agents.id"]),
        ForeignKeyConstraint(["to_human_id"], ["humans.id"]),
        Index("ix_handoffs_workspace_status", "workspace_id", "status"),
    )


class Memory(Base):
    __tablename__ = "memories"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    agent_id: Mapped[str] = mapped_column(Text, nullable=False)
    key: Mapped[str] = mapped_column(Text, nullable=False)
    value: Mapped[Any] = mapped_column(json_column(), nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc, server_default=func.now()
    )

    __table_args__ = (
        ForeignKeyConstraint(["agent_id"], ["agents.id"]),
        UniqueConstraint("agent_id", "key", name="uq_memories_agent_key"),
    )
