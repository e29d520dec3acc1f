"""
WebSocket server mirroring rendered frames.

FramePreviewServer owns an asyncio event loop on a daemon thread. Scenes hand
it frames from their render threads; the server fans them out to every
connected viewer with websockets' broadcast(). A viewer that connects late is
first told which scene is active and then sent the latest frame.
"""

import asyncio
import threading
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from websockets.asyncio.server import broadcast, serve
from websockets.exceptions import ConnectionClosed

from pixoo_commander.logging_config import get_logger
from pixoo_commander.pixel_buffer import PixelBuffer
from pixoo_commander.preview.messages import FrameMessage, SceneChangeMessage

if TYPE_CHECKING:
    from websockets.asyncio.server import Server, ServerConnection

    from pixoo_commander.scene import Scene

logger = get_logger(__name__)


class FramePreviewServer:
    """
    Live frame preview over WebSocket.

    publish_frame() has the scene frame-listener signature and
    publish_scene_change() the scene-manager listener signature, so both
    register directly. Scenes re-render on a fixed period even when nothing
    moved; with ``skip_unchanged`` a frame identical to the previous one from
    the same scene is not sent again.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 8766, skip_unchanged: bool = True):
        """
        Initialize the server (not started).

        Args:
            host: Interface to bind
            port: TCP port to bind
            skip_unchanged: Drop frames identical to the last published one
        """
        self._host = host
        self._port = port
        self._skip_unchanged = skip_unchanged

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._server: Optional["Server"] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._startup_error: Optional[BaseException] = None

        self._lock = threading.Lock()
        self._viewers: set["ServerConnection"] = set()
        self._last_frame: Optional[FrameMessage] = None
        self._last_scene: Optional[SceneChangeMessage] = None
        self._frames_sent = 0
        self._frames_skipped = 0

    @property
    def url(self) -> str:
        return f"ws://{self._host}:{self._port}"

    @property
    def is_running(self) -> bool:
        return self._server is not None

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._viewers)

    @property
    def last_frame(self) -> Optional[FrameMessage]:
        """Most recently published frame, replayed to new viewers."""
        with self._lock:
            return self._last_frame

    @property
    def frames_sent(self) -> int:
        return self._frames_sent

    @property
    def frames_skipped(self) -> int:
        """Frames dropped as identical to their predecessor."""
        return self._frames_skipped

    # Lifecycle

    def start(self, timeout: float = 5.0) -> None:
        """
        Bind the server and start serving on a background thread.

        Raises:
            RuntimeError: If the port could not be bound within ``timeout``
        """
        if self.is_running:
            logger.warning(f"Preview server already running on {self.url}")
            return

        self._ready.clear()
        self._startup_error = None
        self._thread = threading.Thread(target=self._serve_forever, name="FramePreview", daemon=True)
        self._thread.start()

        if not self._ready.wait(timeout) or self._startup_error is not None:
            reason = self._startup_error or f"no response within {timeout}s"
            self._thread = None
            raise RuntimeError(f"Preview server could not start on {self.url}: {reason}")

        logger.info(f"Preview server listening on {self.url}")

    def stop(self, timeout: float = 2.0) -> None:
        """Close every viewer connection and shut the server down."""
        server, loop, thread = self._server, self._loop, self._thread
        if server is None or loop is None:
            return

        # close() also closes the open connections
        loop.call_soon_threadsafe(server.close)
        if thread is not None:
            thread.join(timeout)

        self._server = None
        self._loop = None
        self._thread = None
        with self._lock:
            self._viewers.clear()
        logger.info(f"Preview server on {self.url} stopped")

    def _serve_forever(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

        async def run() -> None:
            async with serve(self._handle_viewer, self._host, self._port) as server:
                self._loop = loop
                self._server = server
                self._ready.set()
                await server.wait_closed()

        try:
            loop.run_until_complete(run())
        except OSError as e:
            self._startup_error = e
            self._ready.set()
        except Exception as e:
            logger.exception(f"Preview server crashed: {e}")
            self._ready.set()
        finally:
            self._server = None
            loop.close()

    # Publishing

    def publish_frame(self, scene: Optional["Scene"], buffer: PixelBuffer) -> None:
        """
        Send a rendered frame to every viewer. Safe to call from any thread.

        Args:
            scene: Scene that rendered the frame (None for ad-hoc frames)
            buffer: Rendered frame
        """
        scene_id = scene.id if scene is not None else None
        data = buffer.encode()

        with self._lock:
            previous = self._last_frame
            if (
                self._skip_unchanged
                and previous is not None
                and previous.scene_id == scene_id
                and previous.data == data
            ):
                self._frames_skipped += 1
                return
            message = FrameMessage(timestamp=datetime.now(), scene_id=scene_id, size=buffer.size, data=data)
            self._last_frame = message

        if self._send(message.model_dump_json()):
            with self._lock:
                self._frames_sent += 1

    def publish_scene_change(self, scene_id: Optional[str]) -> None:
        """Tell every viewer which scene is now active. Safe to call from any thread."""
        message = SceneChangeMessage(timestamp=datetime.now(), scene_id=scene_id)
        with self._lock:
            self._last_scene = message
        self._send(message.model_dump_json())

    def _send(self, payload: str) -> bool:
        loop = self._loop
        if loop is None or self._server is None:
            return False
        loop.call_soon_threadsafe(self._broadcast, payload)
        return True

    def _broadcast(self, payload: str) -> None:
        """Runs on the server loop; broadcast() drops viewers that cannot keep up."""
        with self._lock:
            viewers = list(self._viewers)
        broadcast(viewers, payload)

    async def _handle_viewer(self, websocket: "ServerConnection") -> None:
        with self._lock:
            self._viewers.add(websocket)
            replay = [message for message in (self._last_scene, self._last_frame) if message is not None]

        logger.debug(f"Preview viewer connected from {websocket.remote_address}")
        try:
            for message in replay:
                await websocket.send(message.model_dump_json())

            # Viewers are receive-only; drain until they hang up
            async for message in websocket:
                logger.debug(f"Ignoring message from preview viewer: {message!r}")
        except ConnectionClosed as e:
            logger.debug(f"Preview viewer connection closed: {e}")
        finally:
            with self._lock:
                self._viewers.discard(websocket)
            logger.debug(f"Preview viewer {websocket.remote_address} disconnected")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
