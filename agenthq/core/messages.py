from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from sqlalchemy import and_, desc, or_, select
from sqlalchemy.orm import Session

from agenthq.core.errors import ValidationFailed
from agenthq.core.workspaces import get_agent, get_human
from agenthq.db.models import Message


class MessageType(str, Enum):
    TEXT = "TEXT"
    SYSTEM = "SYSTEM"
    HANDOFF = "HANDOFF"


@dataclass(frozen=True)
class HumanAuthor:
    human_id: str
    kind = "human"


@dataclass(frozen=True)
class AgentAuthor:
    agent_id: str
    kind = "agent"


@dataclass(frozen=True)
class SystemAuthor:
    kind = "system"


Author = Union[HumanAuthor, AgentAuthor, SystemAuthor]


def author_columns(author: Author) -> tuple[str, Optional[str]]:
    if isinstance(author, HumanAuthor):
        return author.kind, author.human_id
    if isinstance(author, AgentAuthor):
        return author.kind, author.agent_id
    if isinstance(author, SystemAuthor):
        return author.kind, None
    raise TypeError(f"unknown author: {author!r}")


def author_of(message: Message) -> Author:
    if message.author_type == "human" and message.author_id:
        return HumanAuthor(message.author_id)
    if message.author_type == "agent" and message.author_id:
        return AgentAuthor(message.author_id)
    if message.author_type == "system":
        return SystemAuthor()
    raise ValueError(f"message {message.id} has malformed author {message.author_type}/{message.author_id}")


def author_name(db: Session, author: Author) -> str:
    if isinstance(author, HumanAuthor):
        human = get_human(db, author.human_id)
        return human.name if human else "Unknown"
    if isinstance(author, AgentAuthor):
        agent = get_agent(db, author.agent_id)
        return agent.name if agent else "Unknown Agent"
    if isinstance(author, SystemAuthor):
        return "System"
    raise TypeError(f"unknown author: {author!r}")


def create_message(
    db: Session,
    channel_id: str,
    author: Author,
    content: str,
    message_type: MessageType = MessageType.TEXT,
    meta: Optional[dict] = None,
) -> Message:
    author_type, author_id = author_columns(author)
    message = Message(
        channel_id=channel_id,
        author_type=author_type,
        author_id=author_id,
        content=content,
        message_type=MessageType(message_type).value,
        meta=meta,
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def get_message(db: Session, message_id: str) -> Optional[Message]:
    return db.get(Message, message_id)


def get_messages_for_channel(
    db: Session,
    channel_id: str,
    limit: int = 50,
    before: Optional[str] = None,
) -> list[Message]:
    """
    Returns up to `limit` messages in chronological order. `before` is a
    message id; only messages older than it are returned.
    """
    stmt = select(Message).where(Message.channel_id == channel_id)
    if before:
        cursor = get_message(db, before)
        if cursor is None or cursor.channel_id != channel_id:
            raise ValidationFailed("invalid before cursor")
        stmt = stmt.where(
            or_(
                Message.created_at < cursor.created_at,
                and_(Message.created_at == cursor.created_at, Message.id < cursor.id),
            )
        )
    rows = db.execute(
        stmt.order_by(desc(Message.created_at), desc(Message.id)).limit(limit)
    ).scalars()
    return list(reversed(list(rows)))
