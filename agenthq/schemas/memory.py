from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class MemorySet(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(min_length=1)
    value: Any
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")


class MemoryOut(BaseModel):
    id: str
    agent_id: str
    key: str
    value: Any = None
    expires_at: Optional[str] = None
    created_at: str
    updated_at: str
