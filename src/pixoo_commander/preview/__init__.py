"""
Live frame preview over WebSocket.

Clients connect to the preview server and receive every rendered frame as
JSON, so a browser or terminal viewer can mirror the panel without a device.
"""

from pixoo_commander.preview.messages import FrameMessage, PreviewMessage, SceneChangeMessage
from pixoo_commander.preview.server import FramePreviewServer

__all__ = [
    "FrameMessage",
    "FramePreviewServer",
    "PreviewMessage",
    "SceneChangeMessage",
]
