from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from agenthq.core.handoffs import HandoffPriority, HandoffStatus


class HandoffCreate(BaseModel):
    # No `status` field: every handoff starts OPEN.
    title: str = Field(min_length=1)
    description: Optional[str] = None
    priority: HandoffPriority = HandoffPriority.MEDIUM
    channel_id: Optional[str] = None
    to_human_id: Optional[str] = None


class HandoffUpdate(BaseModel):
    status: HandoffStatus


class HandoffOut(BaseModel):
    id: str
    workspace_id: str
    channel_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    status: HandoffStatus
    priority: HandoffPriority
    from_agent_id: Optional[str] = None
    to_human_id: Optional[str] = None
    resolved_at: Optional[str] = None
    created_at: str
