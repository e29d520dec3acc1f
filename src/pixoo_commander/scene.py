"""
Scenes and the scene manager.

A scene is an ordered collection of widgets rendered onto the device link's
frame buffer by a fixed-period render loop. The manager keeps at most one
scene active: switching stops the old scene completely before the new one
starts.
"""

import threading
from typing import Any, Callable, Optional

from pixoo_commander.device_link import DeviceLink
from pixoo_commander.exceptions import ConfigurationError, NotFoundError, PixooError, PluginError
from pixoo_commander.logging_config import get_logger
from pixoo_commander.pixel_buffer import PixelBuffer
from pixoo_commander.registry import PluginRegistry
from pixoo_commander.widget import Widget, now_ms

logger = get_logger(__name__)

DEFAULT_REFRESH_RATE = 1000
MIN_REFRESH_RATE = 100

FrameListener = Callable[["Scene", PixelBuffer], None]
SceneListener = Callable[[Optional[str]], None]


def _listener_name(listener: Callable) -> str:
    return getattr(listener, "__name__", repr(listener))


class Scene:
    """
    Ordered set of widgets sharing one frame buffer.

    Each render tick clears the buffer, ticks every enabled widget in
    insertion order (later widgets win where pixels overlap), then pushes the
    frame when the link is connected. A failing widget or push is logged and
    never stops the tick or the loop.

    Ticks run under a re-entrant tick lock, so stop() returns only after any
    in-flight tick has finished and no tick can start afterwards.
    """

    def __init__(
        self,
        scene_id: str,
        name: str,
        link: DeviceLink,
        registry: PluginRegistry,
        description: str = "",
        refresh_rate: int = DEFAULT_REFRESH_RATE,
    ):
        """
        Initialize an inactive, empty scene.

        Args:
            scene_id: Identifier unique within the manager
            name: Display name
            link: Device link owning the frame buffer and pushing frames
            registry: Registry used to instantiate widgets by type tag
            description: Free-form description
            refresh_rate: Render period in ms (floored at 100)
        """
        self.id = scene_id
        self.name = name
        self.description = description
        self._link = link
        self._registry = registry
        self._refresh_rate = max(MIN_REFRESH_RATE, int(refresh_rate))

        self._widgets: dict[str, Widget] = {}
        self._widget_counter = 0
        self._frame_listeners: list[FrameListener] = []

        self._active = False
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._tick_lock = threading.RLock()

    @property
    def buffer(self) -> PixelBuffer:
        """Frame buffer the widgets draw into."""
        return self._link.buffer

    @property
    def is_active(self) -> bool:
        """Check if the scene is started."""
        return self._active

    @property
    def refresh_rate(self) -> int:
        """Render period in milliseconds."""
        return self._refresh_rate

    @property
    def widgets(self) -> list[Widget]:
        """Widgets in draw order."""
        with self._tick_lock:
            return list(self._widgets.values())

    # Widgets

    def add_widget(self, type_tag: str, config: Optional[dict[str, Any]] = None) -> Widget:
        """
        Instantiate a widget type and append it to the draw order.

        The widget is initialized immediately if the scene is active.

        Args:
            type_tag: Registered widget type tag
            config: Config overrides

        Returns:
            The new widget

        Raises:
            UnknownWidgetTypeError: If the tag is not registered
            ConfigurationError: If the config fails validation
        """
        with self._tick_lock:
            self._widget_counter += 1
            widget_id = f"widget_{self._widget_counter}"
            widget = self._registry.create_widget_instance(type_tag, widget_id, self.buffer, config)
            self._widgets[widget_id] = widget

            if self._active:
                self._init_widget(widget)

        logger.debug(f"Scene {self.name}: added {type_tag} widget {widget_id}")
        return widget

    def remove_widget(self, widget_id: str) -> bool:
        """Destroy and remove a widget. Returns False if it does not exist."""
        with self._tick_lock:
            widget = self._widgets.pop(widget_id, None)
            if widget is None:
                return False
            self._destroy_widget(widget)

        logger.debug(f"Scene {self.name}: removed widget {widget_id}")
        return True

    def get_widget(self, widget_id: str) -> Optional[Widget]:
        """Look up a widget by id."""
        with self._tick_lock:
            return self._widgets.get(widget_id)

    def _require_widget(self, widget_id: str) -> Widget:
        widget = self.get_widget(widget_id)
        if widget is None:
            raise NotFoundError(f"Widget {widget_id} does not exist in scene {self.id}")
        return widget

    def set_widget_enabled(self, widget_id: str, enabled: bool) -> None:
        """
        Enable or disable a widget.

        Raises:
            NotFoundError: If the widget does not exist
        """
        widget = self._require_widget(widget_id)
        with self._tick_lock:
            widget.set_enabled(enabled)

    def update_widget_config(self, widget_id: str, partial: dict[str, Any]) -> Widget:
        """
        Merge a partial config into a widget.

        Raises:
            NotFoundError: If the widget does not exist
            ConfigurationError: If the merged config fails validation
        """
        widget = self._require_widget(widget_id)
        with self._tick_lock:
            widget.update_config(partial)
        return widget

    def _init_widget(self, widget: Widget) -> None:
        try:
            widget.init()
        except Exception as e:
            logger.exception(f"Failed to initialize widget {widget.id}: {e}")

    def _destroy_widget(self, widget: Widget) -> None:
        try:
            widget.destroy()
        except Exception as e:
            logger.exception(f"Failed to stop widget {widget.id}: {e}")

    # Frame listeners

    def add_frame_listener(self, listener: FrameListener) -> None:
        """Register a callback invoked with (scene, buffer) after every render. No-op if already registered."""
        if listener not in self._frame_listeners:
            self._frame_listeners.append(listener)

    def remove_frame_listener(self, listener: FrameListener) -> bool:
        """Unregister a frame callback. Returns False if it was not registered."""
        if listener in self._frame_listeners:
            self._frame_listeners.remove(listener)
            return True
        return False

    def _notify_frame(self, buffer: PixelBuffer) -> None:
        for listener in list(self._frame_listeners):
            try:
                listener(self, buffer)
            except Exception as e:
                logger.exception(f"Error in frame listener '{_listener_name(listener)}': {e}")

    # Lifecycle

    def start(self, run_loop: bool = True) -> None:
        """
        Activate the scene.

        Initializes every widget (failures are logged per widget) and starts
        the render thread.

        Args:
            run_loop: If False, activate without a render thread; the caller
                drives ticks through render()
        """
        with self._tick_lock:
            if self._active:
                return
            self._active = True

            for widget in self._widgets.values():
                self._init_widget(widget)

            if run_loop:
                self._stop_event.clear()
                self._thread = threading.Thread(
                    target=self._run,
                    name=f"Scene-{self.id}",
                    daemon=True,
                )
                self._thread.start()

        logger.info(f"Scene {self.name} started")

    def stop(self) -> None:
        """
        Deactivate the scene.

        Cancels the render loop, waits for an in-flight tick, then tears down
        every widget. Safe to call from inside a tick.
        """
        with self._tick_lock:
            if not self._active:
                return
            self._active = False
            self._stop_event.set()
            thread = self._thread
            self._thread = None

        if thread is not None and thread is not threading.current_thread():
            thread.join()

        with self._tick_lock:
            for widget in self._widgets.values():
                self._destroy_widget(widget)

        logger.info(f"Scene {self.name} stopped")

    def set_refresh_rate(self, rate: int) -> None:
        """Change the render period (floored at 100 ms). Applies from the next period."""
        self._refresh_rate = max(MIN_REFRESH_RATE, int(rate))
        logger.debug(f"Scene {self.name}: refresh rate set to {self._refresh_rate}ms")

    def _run(self) -> None:
        """Render loop body for the scene's thread."""
        stop_event = self._stop_event
        while not stop_event.wait(self._refresh_rate / 1000.0):
            try:
                self.render()
            except Exception as e:
                logger.exception(f"Error during scene render: {e}")

    # Rendering

    def _compose(self, now: Optional[float], buffer: PixelBuffer) -> None:
        now = now_ms() if now is None else now
        buffer.clear()

        for widget in list(self._widgets.values()):
            if not widget.enabled:
                continue
            try:
                widget.tick(now)
            except PluginError as e:
                logger.error(f"Widget {widget.id} failed to render: {e}")
            except Exception as e:
                logger.exception(f"Error rendering widget {widget.id}: {e}")

    def render(self, now: Optional[float] = None, push: bool = True) -> bool:
        """
        Run one render tick.

        Args:
            now: Tick time in ms (monotonic clock if None)
            push: Push the frame if the link is connected

        Returns:
            False if the scene is not active and nothing was rendered
        """
        with self._tick_lock:
            if not self._active:
                return False

            self._compose(now, self.buffer)

            if push and self._link.is_connected:
                try:
                    self._link.push()
                except PixooError as e:
                    logger.warning(f"Failed to push to device: {e}")

            self._notify_frame(self.buffer)
        return True

    def render_preview(self, now: Optional[float] = None) -> PixelBuffer:
        """
        Render one frame without pushing it.

        An active scene renders into the link's buffer as a normal tick does.
        An inactive scene renders into a private buffer of the same size, so
        the frame owned by the active scene is left untouched.

        Returns:
            The buffer holding the preview frame
        """
        with self._tick_lock:
            if self._active:
                self._compose(now, self.buffer)
                self._notify_frame(self.buffer)
                return self.buffer

            target = PixelBuffer(self.buffer.size)
            widgets = list(self._widgets.values())
            originals = [widget.rebind(target) for widget in widgets]
            try:
                self._compose(now, target)
            finally:
                for widget, original in zip(widgets, originals):
                    widget.rebind(original)
            self._notify_frame(target)
            return target

    def to_dict(self) -> dict[str, Any]:
        """Snapshot for UI consumers."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "refresh_rate": self._refresh_rate,
            "widgets": [widget.to_dict() for widget in self.widgets],
        }

    def __repr__(self) -> str:
        return f"Scene(id={self.id!r}, name={self.name!r}, widgets={len(self._widgets)})"


class SceneManager:
    """
    Owns the scenes and enforces a single active scene.

    Args:
        link: Device link shared by every scene
        registry: Widget registry shared by every scene
        run_loop: Start a render thread for the active scene (False when the
            caller drives render() itself)
    """

    def __init__(self, link: DeviceLink, registry: PluginRegistry, run_loop: bool = True):
        self._link = link
        self._registry = registry
        self._run_loop = run_loop

        self._scenes: dict[str, Scene] = {}
        self._scene_counter = 0
        self._active_scene: Optional[Scene] = None
        self._listeners: list[SceneListener] = []
        self._lock = threading.RLock()
        # Serializes switches; accessors only take _lock
        self._switch_lock = threading.RLock()

    @property
    def link(self) -> DeviceLink:
        return self._link

    @property
    def registry(self) -> PluginRegistry:
        return self._registry

    @property
    def scenes(self) -> list[Scene]:
        """All scenes in creation order."""
        with self._lock:
            return list(self._scenes.values())

    @property
    def active_scene(self) -> Optional[Scene]:
        with self._lock:
            return self._active_scene

    @property
    def active_scene_id(self) -> Optional[str]:
        with self._lock:
            return self._active_scene.id if self._active_scene else None

    def get_scene(self, scene_id: str) -> Optional[Scene]:
        """Look up a scene by id."""
        with self._lock:
            return self._scenes.get(scene_id)

    def create_scene(self, name: str, description: str = "") -> Scene:
        """
        Create a scene. The first scene created becomes active.

        Raises:
            ConfigurationError: If name is blank
        """
        if not name or not name.strip():
            raise ConfigurationError("Scene name is required")

        with self._lock:
            self._scene_counter += 1
            scene_id = f"scene_{self._scene_counter}"
            scene = Scene(scene_id, name.strip(), self._link, self._registry, description)
            self._scenes[scene_id] = scene
            first = len(self._scenes) == 1

        logger.info(f"Scene created: {scene.name} ({scene_id})")
        if first:
            self.set_active_scene(scene_id)
        return scene

    def delete_scene(self, scene_id: str) -> bool:
        """
        Stop and remove a scene.

        Deleting the active scene activates the first remaining scene, if any.

        Returns:
            False if the scene does not exist
        """
        with self._switch_lock:
            with self._lock:
                scene = self._scenes.pop(scene_id, None)
                if scene is None:
                    return False
                was_active = self._active_scene is scene
                if was_active:
                    self._active_scene = None
                remaining = next(iter(self._scenes), None)

            scene.stop()
            logger.info(f"Scene deleted: {scene.name} ({scene_id})")

            if not was_active:
                return True
            if remaining is not None:
                self.set_active_scene(remaining)
            else:
                self._notify(None)
        return True

    def set_active_scene(self, scene_id: str) -> Scene:
        """
        Make a scene the only active one.

        The current scene is fully stopped before the new one starts. Scene
        lifecycle calls run outside the accessor lock.

        Raises:
            NotFoundError: If the scene does not exist
        """
        with self._switch_lock:
            with self._lock:
                scene = self._scenes.get(scene_id)
                if scene is None:
                    raise NotFoundError(f"Scene with ID {scene_id} does not exist")
                previous = self._active_scene
                self._active_scene = scene

            if previous is not None:
                previous.stop()
            scene.start(run_loop=self._run_loop)

            self._notify(scene_id)
        return scene

    def add_scene_listener(self, listener: SceneListener) -> None:
        """Register a callback fired with the new active scene id (None when none is left)."""
        with self._lock:
            self._listeners.append(listener)

    def remove_scene_listener(self, listener: SceneListener) -> bool:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)
                return True
            return False

    def _notify(self, scene_id: Optional[str]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(scene_id)
            except Exception as e:
                logger.exception(f"Error in scene listener '{_listener_name(listener)}': {e}")

    def shutdown(self) -> None:
        """Stop the active scene."""
        with self._switch_lock:
            with self._lock:
                scene = self._active_scene
            if scene is not None:
                scene.stop()
        logger.debug("Scene manager shut down")
