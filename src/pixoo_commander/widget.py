"""
Widget runtime: the drawable units a scene composites into the frame buffer.

Every widget exposes the same tick contract so a scene can drive it without
knowing its kind. Three cadence strategies exist:

- Widget: redraws via on_render() every ``update_interval`` ms.
- AnimatedWidget: advances a frame counter via on_animation_frame() every
  ``animation_speed`` ms, independent of ``update_interval``.
- DataWidget: refreshes a cached value via fetch_data() every
  ``data_fetch_interval`` ms, and redraws via on_render_with_data() every
  ``update_interval`` ms with whatever data is cached.

All intervals are in milliseconds and every cadence check is inclusive: a
widget last drawn at t fires again at exactly t + interval.
"""

import time
from typing import Any, ClassVar, Optional, Sequence

from pydantic import ValidationError

from pixoo_commander.config import AnimatedWidgetConfig, DataWidgetConfig, WidgetConfig
from pixoo_commander.exceptions import ConfigurationError
from pixoo_commander.font import iter_text_pixels
from pixoo_commander.font import text_width as font_text_width
from pixoo_commander.logging_config import get_logger
from pixoo_commander.pixel_buffer import PixelBuffer
from pixoo_commander.utils import WHITE

logger = get_logger(__name__)


def now_ms() -> float:
    """Monotonic clock in milliseconds."""
    return time.monotonic() * 1000.0


def _is_due(last: Optional[float], interval: float, now: float) -> bool:
    """Check a cadence: never fired, or at least ``interval`` ms since it last did."""
    return last is None or now - last >= interval


class Widget:
    """
    Base widget with a single redraw cadence.

    Subclasses set the class metadata (TYPE, NAME, DESCRIPTION, ICON), point
    ``config_model`` at a WidgetConfig subclass carrying their defaults, and
    override the hooks they need: on_init(), on_destroy(), on_render() and
    on_config_update().

    A widget draws only through the primitives below. Coordinates are local
    to the widget: they are offset by (x, y) and clipped to the widget's own
    width x height rectangle before reaching the shared buffer.
    """

    TYPE: ClassVar[str] = "base"
    NAME: ClassVar[str] = "Base Widget"
    DESCRIPTION: ClassVar[str] = "Base widget class"
    ICON: ClassVar[str] = "🔲"
    config_model: ClassVar[type[WidgetConfig]] = WidgetConfig

    def __init__(self, widget_id: str, buffer: PixelBuffer, config: Optional[dict[str, Any]] = None):
        """
        Initialize widget in the uninitialized state.

        Args:
            widget_id: Identifier unique within the owning scene
            buffer: Shared frame buffer to draw into
            config: User overrides merged over the type defaults

        Raises:
            ConfigurationError: If the merged config fails validation
        """
        self._id = widget_id
        self._buffer = buffer
        self._initialized = False
        self._last_draw: Optional[float] = None

        self.config: dict[str, Any] = self._validate({**self.default_config(), **(config or {})})
        self._sync_from_config()

    @classmethod
    def default_config(cls) -> dict[str, Any]:
        """Type-specific defaults taken from the config model."""
        return cls.config_model().model_dump()

    def _validate(self, merged: dict[str, Any]) -> dict[str, Any]:
        try:
            return self.config_model.model_validate(merged).model_dump()
        except ValidationError as e:
            raise ConfigurationError(f"Invalid config for widget '{self._id}' ({self.TYPE}): {e}") from e

    def _sync_from_config(self) -> None:
        """Re-derive the mirrored geometry, enabled flag and cadence fields."""
        self.x: int = self.config["x"]
        self.y: int = self.config["y"]
        self.width: int = self.config["width"]
        self.height: int = self.config["height"]
        self.enabled: bool = self.config["enabled"]
        self.update_interval: int = self.config["update_interval"]

    def _reset_clocks(self) -> None:
        self._last_draw = None

    @property
    def id(self) -> str:
        """Widget identifier."""
        return self._id

    @property
    def type(self) -> str:
        """Registry type tag."""
        return type(self).TYPE

    @property
    def initialized(self) -> bool:
        """Check if the widget is initialized."""
        return self._initialized

    @property
    def buffer(self) -> PixelBuffer:
        """Shared frame buffer."""
        return self._buffer

    def rebind(self, buffer: PixelBuffer) -> PixelBuffer:
        """
        Point drawing at another buffer.

        Returns:
            The buffer drawn into before the call
        """
        previous = self._buffer
        self._buffer = buffer
        return previous

    # Lifecycle

    def init(self) -> None:
        """Initialize the widget. No-op if already initialized."""
        if self._initialized:
            return

        self._reset_clocks()
        self.on_init()
        self._initialized = True
        logger.debug(f"Widget {self._id} initialized")

    def destroy(self) -> None:
        """Tear the widget down. No-op if not initialized. Config is kept."""
        if not self._initialized:
            return

        try:
            self.on_destroy()
        finally:
            self._initialized = False
            logger.debug(f"Widget {self._id} destroyed")

    def tick(self, now: Optional[float] = None) -> bool:
        """
        Run one render-cycle turn.

        Args:
            now: Current time in ms (monotonic clock if None)

        Returns:
            True if the widget drew this tick
        """
        if not self._initialized or not self.enabled:
            return False

        now = now_ms() if now is None else now
        if not _is_due(self._last_draw, self.update_interval, now):
            return False

        self.on_render()
        self._last_draw = now
        return True

    def update_config(self, partial: dict[str, Any]) -> None:
        """
        Merge a partial config over the current one.

        Keys absent from ``partial`` keep their values. Mirrored fields are
        re-derived and on_config_update() runs afterwards.

        Args:
            partial: Fields to change

        Raises:
            ConfigurationError: If the merged config fails validation; the
                current config is left untouched
        """
        self.config = self._validate({**self.config, **partial})
        self._sync_from_config()
        self.on_config_update()

    def set_enabled(self, enabled: bool) -> None:
        """Enable or disable drawing."""
        self.enabled = bool(enabled)
        self.config["enabled"] = self.enabled

    def to_dict(self) -> dict[str, Any]:
        """Snapshot for UI consumers."""
        return {
            "id": self._id,
            "type": self.type,
            "config": dict(self.config),
            "enabled": self.enabled,
        }

    # Hooks

    def on_init(self) -> None:
        """Called once when the widget becomes initialized."""
        pass

    def on_destroy(self) -> None:
        """Called once when the widget is torn down."""
        pass

    def on_render(self) -> None:
        """Draw the widget."""
        pass

    def on_config_update(self) -> None:
        """Resync derived per-instance state after update_config()."""
        pass

    # Drawing primitives

    def set_pixel(self, x: int, y: int, color: Sequence[int]) -> None:
        """Set one pixel in widget-local coordinates, clipped to the widget."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            return
        self._buffer.set(self.x + x, self.y + y, color)

    def draw_rect(
        self,
        x: int,
        y: int,
        width: int,
        height: int,
        color: Sequence[int],
        filled: bool = False,
    ) -> None:
        """Draw a filled or outlined rectangle."""
        if width <= 0 or height <= 0:
            return

        if filled:
            for dy in range(height):
                for dx in range(width):
                    self.set_pixel(x + dx, y + dy, color)
            return

        for dx in range(width):
            self.set_pixel(x + dx, y, color)
            self.set_pixel(x + dx, y + height - 1, color)
        for dy in range(height):
            self.set_pixel(x, y + dy, color)
            self.set_pixel(x + width - 1, y + dy, color)

    def draw_line(self, x1: int, y1: int, x2: int, y2: int, color: Sequence[int]) -> None:
        """Draw a line with integer Bresenham stepping, both ends inclusive."""
        dx = abs(x2 - x1)
        dy = abs(y2 - y1)
        sx = 1 if x1 < x2 else -1
        sy = 1 if y1 < y2 else -1
        err = dx - dy

        x, y = x1, y1
        while True:
            self.set_pixel(x, y, color)
            if x == x2 and y == y2:
                break
            e2 = 2 * err
            if e2 > -dy:
                err -= dy
                x += sx
            if e2 < dx:
                err += dx
                y += sy

    def draw_text(self, text: str, x: int, y: int, color: Sequence[int] = WHITE) -> None:
        """Draw text in the 5x7 font with its top-left corner at (x, y)."""
        for dx, dy in iter_text_pixels(text):
            self.set_pixel(x + dx, y + dy, color)

    @staticmethod
    def text_width(text: str) -> int:
        """Pixel width of a string in the 5x7 font."""
        return font_text_width(text)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self._id!r}, type={self.type!r})"


class AnimatedWidget(Widget):
    """
    Widget that advances a frame counter on its own cadence.

    ``animation_speed`` replaces ``update_interval`` as the redraw cadence.
    Subclasses implement on_animation_frame(frame).
    """

    TYPE: ClassVar[str] = "animated"
    NAME: ClassVar[str] = "Animated Widget"
    DESCRIPTION: ClassVar[str] = "Base class for frame-driven widgets"
    config_model: ClassVar[type[WidgetConfig]] = AnimatedWidgetConfig

    def __init__(self, widget_id: str, buffer: PixelBuffer, config: Optional[dict[str, Any]] = None):
        self.frame = 0
        super().__init__(widget_id, buffer, config)

    def _sync_from_config(self) -> None:
        super()._sync_from_config()
        self.animation_speed: int = self.config["animation_speed"]

    def tick(self, now: Optional[float] = None) -> bool:
        if not self._initialized or not self.enabled:
            return False

        now = now_ms() if now is None else now
        if not _is_due(self._last_draw, self.animation_speed, now):
            return False

        self.on_animation_frame(self.frame)
        self.frame += 1
        self._last_draw = now
        return True

    def reset_animation(self) -> None:
        """Restart the frame counter."""
        self.frame = 0

    def on_animation_frame(self, frame: int) -> None:
        """Draw animation frame number ``frame``."""
        pass


class DataWidget(Widget):
    """
    Widget that renders periodically fetched data.

    Fetching and drawing run on independent cadences and may both fire on
    the same tick. A failing fetch is logged and the previously cached data
    is kept; the fetch is retried on the next tick.
    """

    TYPE: ClassVar[str] = "data"
    NAME: ClassVar[str] = "Data Widget"
    DESCRIPTION: ClassVar[str] = "Base class for data-driven widgets"
    config_model: ClassVar[type[WidgetConfig]] = DataWidgetConfig

    def __init__(self, widget_id: str, buffer: PixelBuffer, config: Optional[dict[str, Any]] = None):
        self.data: Any = None
        self._last_fetch: Optional[float] = None
        super().__init__(widget_id, buffer, config)

    def _sync_from_config(self) -> None:
        super()._sync_from_config()
        self.data_fetch_interval: int = self.config["data_fetch_interval"]

    def _reset_clocks(self) -> None:
        super()._reset_clocks()
        self._last_fetch = None

    def tick(self, now: Optional[float] = None) -> bool:
        if not self._initialized or not self.enabled:
            return False

        now = now_ms() if now is None else now

        if _is_due(self._last_fetch, self.data_fetch_interval, now):
            try:
                self.data = self.fetch_data()
                self._last_fetch = now
            except Exception as e:
                logger.warning(f"Failed to fetch data for widget {self._id}: {e}")

        if not _is_due(self._last_draw, self.update_interval, now):
            return False

        self.on_render_with_data(self.data)
        self._last_draw = now
        return True

    def refresh_data(self) -> None:
        """Force a fetch on the next tick."""
        self._last_fetch = None

    def fetch_data(self) -> Any:
        """Fetch fresh data. Must bound its own I/O with timeouts."""
        return None

    def on_render_with_data(self, data: Any) -> None:
        """Draw using the cached data, which may be None or stale."""
        pass
