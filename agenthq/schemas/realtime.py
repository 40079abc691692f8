from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class ChannelFrame(BaseModel):
    type: Literal["join_channel", "leave_channel"]
    channelId: str = Field(min_length=1)


class WorkspaceFrame(BaseModel):
    type: Literal["join_workspace", "leave_workspace"]
    workspaceId: str = Field(min_length=1)


class PingFrame(BaseModel):
    type: Literal["ping"]


ControlFrame = Annotated[
    Union[ChannelFrame, WorkspaceFrame, PingFrame],
    Field(discriminator="type"),
]

control_frame_adapter: TypeAdapter[ControlFrame] = TypeAdapter(ControlFrame)
