from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class WorkspaceCreate(BaseModel):
    name: str = Field(min_length=1)
    slug: Optional[str] = Field(default=None, pattern="^[a-z0-9][a-z0-9-]*$")


class WorkspaceOut(BaseModel):
    id: str
    name: str
    slug: str
    created_at: str


class MemberCreate(BaseModel):
    email: EmailStr
    role: str = Field(default="member", pattern="^(owner|member)$")


class MemberOut(BaseModel):
    workspace_id: str
    human_id: str
    role: str
    joined_at: str


class ChannelCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    is_private: bool = False


class ChannelOut(BaseModel):
    id: str
    workspace_id: str
    name: str
    description: Optional[str] = None
    is_private: bool
    created_at: str


class AgentCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None


class AgentUpdate(BaseModel):
    is_active: bool


class AgentOut(BaseModel):
    id: str
    workspace_id: str
    name: str
    description: Optional[str] = None
    key_prefix: str
    is_active: bool
    last_seen_at: Optional[str] = None
    created_at: str
    # Only returned at creation time:
    api_key: Optional[str] = None
