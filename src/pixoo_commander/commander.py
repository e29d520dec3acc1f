"""
Main Commander API - User-facing interface for Pixoo Commander.

This module provides the Commander class that wires the device link, the
widget registry, the scene manager and the optional preview server together
and exposes the operations an editor UI needs.
"""

from typing import Any, Optional

import requests

from pixoo_commander.config import DiscoverySettings, LinkSettings
from pixoo_commander.device_link import DeviceLink, LinkState, StateListener
from pixoo_commander.exceptions import NotFoundError
from pixoo_commander.logging_config import get_logger
from pixoo_commander.pixel_buffer import DEFAULT_SIZE, PixelBuffer
from pixoo_commander.plugin import WidgetTypeMetadata
from pixoo_commander.preview import FramePreviewServer
from pixoo_commander.registry import PluginRegistry
from pixoo_commander.scanner import DeviceScanner, DiscoveredDevice
from pixoo_commander.scene import Scene, SceneListener, SceneManager
from pixoo_commander.widget import Widget

logger = get_logger(__name__)

WELCOME_SCENE_NAME = "Welcome Scene"


class Commander:
    """
    Main user-facing API for driving a Pixoo display.

    Provides:
    - Scene CRUD with a single active scene
    - Widget CRUD within the active scene
    - Device connection, brightness and discovery
    - Widget type metadata for editor palettes
    - Optional live frame preview over WebSocket
    """

    def __init__(
        self,
        size: int = DEFAULT_SIZE,
        link_settings: Optional[LinkSettings] = None,
        registry: Optional[PluginRegistry] = None,
        load_builtins: bool = True,
        load_entry_points: bool = True,
        address: Optional[str] = None,
        discovery_settings: Optional[DiscoverySettings] = None,
        session: Optional[requests.Session] = None,
        run_loop: bool = True,
        preview_server: bool = False,
        preview_host: str = "127.0.0.1",
        preview_port: int = 8766,
    ):
        """
        Initialize commander.

        Args:
            size: Panel edge length in pixels
            link_settings: Endpoint negotiation and retry policy
            registry: Widget registry to use (a new one if None)
            load_builtins: Install the core widgets into the registry
            load_entry_points: Install plugins advertised under the
                ``pixoo_commander.plugins`` entry point group
            address: Device address for a later connect()
            discovery_settings: Scanner policy
            session: HTTP session shared by the link and the scanner
            run_loop: Render the active scene on a background thread
            preview_server: Start a WebSocket frame preview server
            preview_host: Host for the preview server
            preview_port: Port for the preview server
        """
        self._registry = registry if registry is not None else PluginRegistry()
        if load_builtins:
            self._registry.load_builtin_plugins()
        if load_entry_points:
            self._registry.load_entry_point_plugins()

        self._link = DeviceLink(address=address, size=size, settings=link_settings, session=session)
        self._scanner = DeviceScanner(settings=discovery_settings, session=session)
        self._scenes = SceneManager(self._link, self._registry, run_loop=run_loop)

        self._preview: Optional[FramePreviewServer] = None
        if preview_server:
            self.start_preview(preview_host, preview_port)

    @property
    def registry(self) -> PluginRegistry:
        return self._registry

    @property
    def link(self) -> DeviceLink:
        return self._link

    @property
    def scanner(self) -> DeviceScanner:
        return self._scanner

    @property
    def scene_manager(self) -> SceneManager:
        return self._scenes

    @property
    def buffer(self) -> PixelBuffer:
        """Live frame buffer for preview painting."""
        return self._link.buffer

    @property
    def preview(self) -> Optional[FramePreviewServer]:
        return self._preview

    # Connection

    @property
    def connection_state(self) -> LinkState:
        return self._link.state

    @property
    def is_connected(self) -> bool:
        return self._link.is_connected

    def connect(self, address: Optional[str] = None) -> None:
        """
        Connect to a device.

        Raises:
            NoAddressError: If no address is known
            AllEndpointsFailedError: If the device did not accept any endpoint
        """
        self._link.connect(address)

    def disconnect(self) -> None:
        self._link.disconnect()

    def on_connection_change(self, listener: StateListener) -> None:
        """Register a callback for link state transitions."""
        self._link.add_state_listener(listener)

    def set_brightness(self, level: int) -> None:
        """
        Set panel brightness (0-100).

        Raises:
            OutOfRangeError: If level is out of range
            NotConnectedError: If not connected
        """
        self._link.set_brightness(level)

    def set_channel(self, channel: int) -> None:
        """Switch the device to a built-in channel."""
        self._link.set_channel(channel)

    def scan(self, base_address: Optional[str] = None, count: int = 254) -> list[DiscoveredDevice]:
        """
        Discover devices.

        Args:
            base_address: First three octets to scan; the common ranges if None
            count: Hosts to probe per range
        """
        if base_address is None:
            return self._scanner.scan_common_ranges()
        return self._scanner.scan_range(base_address, count)

    # Widget types

    def widget_metadata(self) -> dict[str, WidgetTypeMetadata]:
        """Metadata for every registered widget type."""
        return self._registry.get_metadata()

    def load_plugin(self, module_name: str) -> bool:
        """Install a plugin module into the registry."""
        return self._registry.load_plugin(module_name)

    # Scenes

    @property
    def scenes(self) -> list[Scene]:
        return self._scenes.scenes

    @property
    def active_scene(self) -> Optional[Scene]:
        return self._scenes.active_scene

    def create_scene(self, name: str, description: str = "") -> Scene:
        """Create a scene; the first one becomes active."""
        return self._scenes.create_scene(name, description)

    def delete_scene(self, scene_id: str) -> bool:
        return self._scenes.delete_scene(scene_id)

    def set_active_scene(self, scene_id: str) -> Scene:
        return self._scenes.set_active_scene(scene_id)

    def on_scene_change(self, listener: SceneListener) -> None:
        """Register a callback fired with the new active scene id."""
        self._scenes.add_scene_listener(listener)

    def create_default_scene(self) -> Scene:
        """
        Create the Welcome Scene with a clock, a counter and a progress bar.

        Returns:
            The new scene
        """
        scene = self._scenes.create_scene(WELCOME_SCENE_NAME, "Default scene with example widgets")
        scene.add_widget("clock", {"x": 2, "y": 2, "width": 60, "height": 10, "format24": True, "color": "cyan"})
        scene.add_widget("counter", {"x": 2, "y": 20, "color": "yellow", "increment": 1, "max_value": 100})
        scene.add_widget(
            "progressbar",
            {"x": 10, "y": 40, "width": 40, "height": 6, "color": (255, 100, 100), "speed": 1},
        )
        return scene

    # Widgets on the active scene

    def _require_active_scene(self) -> Scene:
        scene = self._scenes.active_scene
        if scene is None:
            raise NotFoundError("No active scene")
        return scene

    def add_widget(self, type_tag: str, config: Optional[dict[str, Any]] = None) -> Widget:
        """
        Add a widget to the active scene.

        Raises:
            NotFoundError: If there is no active scene
            UnknownWidgetTypeError: If the type tag is not registered
        """
        return self._require_active_scene().add_widget(type_tag, config)

    def remove_widget(self, widget_id: str) -> bool:
        scene = self._scenes.active_scene
        return scene.remove_widget(widget_id) if scene is not None else False

    def set_widget_enabled(self, widget_id: str, enabled: bool) -> None:
        self._require_active_scene().set_widget_enabled(widget_id, enabled)

    def update_widget_config(self, widget_id: str, partial: dict[str, Any]) -> Widget:
        return self._require_active_scene().update_widget_config(widget_id, partial)

    # Preview

    def start_preview(self, host: str = "127.0.0.1", port: int = 8766) -> FramePreviewServer:
        """Start the WebSocket frame preview and attach it to every scene."""
        if self._preview is not None:
            return self._preview

        self._preview = FramePreviewServer(host, port)
        self._preview.start()
        self._scenes.add_scene_listener(self._on_scene_change_for_preview)
        for scene in self._scenes.scenes:
            scene.add_frame_listener(self._preview.publish_frame)
        logger.info(f"Frame preview at {self._preview.url}")
        return self._preview

    def _on_scene_change_for_preview(self, scene_id: Optional[str]) -> None:
        if self._preview is None:
            return
        scene = self._scenes.get_scene(scene_id) if scene_id else None
        if scene is not None:
            scene.add_frame_listener(self._preview.publish_frame)
        self._preview.publish_scene_change(scene_id)

    # Lifecycle

    def close(self) -> None:
        """Stop rendering, the preview server and the device link."""
        self._scenes.shutdown()
        if self._preview is not None:
            self._preview.stop()
            self._preview = None
        self._link.close()
        self._scanner.close()
        logger.debug("Commander closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - close."""
        self.close()
        return False
