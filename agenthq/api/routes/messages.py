from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agenthq.core.access import check_channel_access
from agenthq.core.auth import AgentPrincipal, HumanPrincipal, Principal, require_principal
from agenthq.core.messages import (
    AgentAuthor,
    Author,
    HumanAuthor,
    author_name,
    author_of,
    create_message,
    get_messages_for_channel,
)
from agenthq.core.protocol import publish_message_created
from agenthq.core.realtime import RealtimeRegistry, get_registry
from agenthq.db.models import Message
from agenthq.db.session import get_db
from agenthq.schemas.messages import MessageCreate, MessageOut
from agenthq.utils.time import iso


router = APIRouter(prefix="/channels/{channel_id}", tags=["messages"])


def message_out(db: Session, m: Message) -> MessageOut:
    author = author_of(m)
    return MessageOut(
        id=m.id,
        channel_id=m.channel_id,
        author_type=m.author_type,
        author_id=m.author_id,
        author_name=author_name(db, author),
        content=m.content,
        message_type=m.message_type,
        metadata=m.meta,
        created_at=iso(m.created_at),
    )


def _author_for(principal: Principal) -> Author:
    if isinstance(principal, HumanPrincipal):
        return HumanAuthor(principal.id)
    if isinstance(principal, AgentPrincipal):
        return AgentAuthor(principal.id)
    raise TypeError(f"unknown principal: {principal!r}")


@router.get("/messages", response_model=list[MessageOut])
def get_messages(
    channel_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    before: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_principal),
):
    check_channel_access(db, principal, channel_id)
    messages = get_messages_for_channel(db, channel_id, limit=limit, before=before)
    return [message_out(db, m) for m in messages]


@router.post("/messages", response_model=MessageOut, status_code=201)
def post_message(
    channel_id: str,
    body: MessageCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_principal),
    registry: RealtimeRegistry = Depends(get_registry),
):
    check_channel_access(db, principal, channel_id)
    message = create_message(
        db,
        channel_id=channel_id,
        author=_author_for(principal),
        content=body.content,
        meta=body.metadata,
    )
    out = message_out(db, message)
    # Committed above; subscribers only ever hear about durable messages.
    publish_message_created(registry, channel_id, out.model_dump(mode="json"))
    return out
