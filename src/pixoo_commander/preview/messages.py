"""
Pydantic models for WebSocket messages sent by the frame preview server.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class FrameMessage(BaseModel):
    """A rendered frame, hex-encoded row-major as sent to the device."""

    type: Literal["frame"] = "frame"
    timestamp: datetime
    scene_id: Optional[str] = None
    size: int
    data: str


class SceneChangeMessage(BaseModel):
    """Sent when the active scene changes (scene_id is None when no scene is left)."""

    type: Literal["scene_change"] = "scene_change"
    timestamp: datetime
    scene_id: Optional[str] = None


# Discriminated union for parsing any preview message
PreviewMessage = Annotated[
    Union[FrameMessage, SceneChangeMessage],
    Field(discriminator="type"),
]
