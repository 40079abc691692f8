from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class MessageCreate(BaseModel):
    content: str = Field(min_length=1)
    metadata: Optional[dict] = None


class MessageOut(BaseModel):
    id: str
    channel_id: str
    author_type: Literal["human", "agent", "system"]
    author_id: Optional[str] = None
    author_name: str
    content: str
    message_type: str
    metadata: Optional[dict] = None
    created_at: str
