"""
Core Widgets Plugin.

Essential widgets shipped with Pixoo Commander:
- clock: digital clock, 24h or 12h
- weather: current conditions from a JSON weather API
- counter: incrementing counter with wrap-around
- progressbar: animated progress bar
- textscroller: horizontally scrolling text
- bouncingball: ball bouncing inside the widget
- systeminfo: memory, CPU and time from psutil
"""

from datetime import datetime
from typing import Any, Literal, Optional, Sequence

import psutil
import requests
from pydantic import Field

from pixoo_commander.config import AnimatedWidgetConfig, Color, DataWidgetConfig, WidgetConfig
from pixoo_commander.font import CHAR_ADVANCE
from pixoo_commander.pixel_buffer import PixelBuffer
from pixoo_commander.plugin import WidgetPlugin
from pixoo_commander.registry import PluginRegistry
from pixoo_commander.widget import AnimatedWidget, DataWidget, Widget


def _fill_background(widget: Widget, color: Sequence[int]) -> None:
    """Fill the widget rectangle unless the color is black."""
    if any(color):
        widget.draw_rect(0, 0, widget.width, widget.height, color, filled=True)


# Clock


class ClockConfig(WidgetConfig):
    format24: bool = True
    show_seconds: bool = True
    color: Color = (255, 255, 255)
    background_color: Color = (0, 0, 0)


class ClockWidget(Widget):
    """Displays the current local time."""

    TYPE = "clock"
    NAME = "Digital Clock"
    DESCRIPTION = "Displays current time"
    ICON = "🕐"
    config_model = ClockConfig

    def now(self) -> datetime:
        return datetime.now()

    def format_time(self, moment: datetime) -> str:
        """Format a time as HH:MM[:SS] or h:MM[:SS] AM/PM."""
        show_seconds = self.config["show_seconds"]
        if self.config["format24"]:
            return moment.strftime("%H:%M:%S" if show_seconds else "%H:%M")

        hour = moment.hour % 12 or 12
        suffix = "AM" if moment.hour < 12 else "PM"
        seconds = f":{moment.second:02d}" if show_seconds else ""
        return f"{hour}:{moment.minute:02d}{seconds} {suffix}"

    def on_render(self) -> None:
        _fill_background(self, self.config["background_color"])
        self.draw_text(self.format_time(self.now()), 2, 2, self.config["color"])


# Weather

# WMO weather interpretation codes, grouped to short labels that fit the panel
_WEATHER_CONDITIONS: tuple[tuple[range, str], ...] = (
    (range(0, 1), "Sunny"),
    (range(1, 4), "Cloudy"),
    (range(45, 49), "Foggy"),
    (range(51, 68), "Rainy"),
    (range(71, 78), "Snowy"),
    (range(80, 83), "Rainy"),
    (range(85, 87), "Snowy"),
    (range(95, 100), "Storm"),
)


def weather_condition(code: Optional[int]) -> str:
    """Map a WMO weather code to a short condition label."""
    if code is None:
        return "Unknown"
    for codes, label in _WEATHER_CONDITIONS:
        if code in codes:
            return label
    return "Unknown"


class WeatherConfig(DataWidgetConfig):
    location: str = "London"
    latitude: float = Field(default=51.5074, ge=-90, le=90)
    longitude: float = Field(default=-0.1278, ge=-180, le=180)
    units: Literal["metric", "imperial"] = "metric"
    api_url: str = "https://api.open-meteo.com/v1/forecast"
    request_timeout: float = Field(default=5.0, gt=0)
    color: Color = (255, 255, 255)
    humidity_color: Color = (100, 150, 255)


class WeatherWidget(DataWidget):
    """
    Shows current temperature, condition and humidity.

    Conditions come from an Open-Meteo compatible endpoint. Until the first
    successful fetch the widget shows "Loading...", and after a failed fetch
    it keeps showing the last good reading.
    """

    TYPE = "weather"
    NAME = "Weather Display"
    DESCRIPTION = "Shows current weather information"
    ICON = "🌤️"
    config_model = WeatherConfig

    def __init__(self, widget_id: str, buffer: PixelBuffer, config: Optional[dict[str, Any]] = None):
        self.session: Optional[requests.Session] = None
        self._owns_session = False
        super().__init__(widget_id, buffer, config)

    def on_init(self) -> None:
        if self.session is None:
            self.session = requests.Session()
            self._owns_session = True

    def on_destroy(self) -> None:
        if self._owns_session and self.session is not None:
            self.session.close()
            self.session = None
            self._owns_session = False

    @property
    def unit_symbol(self) -> str:
        return "°C" if self.config["units"] == "metric" else "°F"

    def fetch_data(self) -> dict[str, Any]:
        params = {
            "latitude": self.config["latitude"],
            "longitude": self.config["longitude"],
            "current": "temperature_2m,relative_humidity_2m,weather_code",
            "temperature_unit": "celsius" if self.config["units"] == "metric" else "fahrenheit",
        }
        http = self.session if self.session is not None else requests
        response = http.get(self.config["api_url"], params=params, timeout=self.config["request_timeout"])
        response.raise_for_status()

        current = response.json()["current"]
        return {
            "temperature": round(current["temperature_2m"]),
            "condition": weather_condition(current.get("weather_code")),
            "humidity": round(current.get("relative_humidity_2m", 0)),
        }

    def on_render_with_data(self, data: Any) -> None:
        color = self.config["color"]
        if not data:
            self.draw_text("Loading...", 2, 2, color)
            return

        self.draw_text(f"{data['temperature']}{self.unit_symbol}", 2, 2, color)
        self.draw_text(data["condition"], 2, 12, color)
        self.draw_text(f"{data['humidity']}%", 2, 22, self.config["humidity_color"])


# Counter


class CounterConfig(WidgetConfig):
    initial_value: int = 0
    increment: int = 1
    max_value: int = 999
    auto_increment: bool = True
    color: Color = (0, 255, 0)


class CounterWidget(Widget):
    """Counts up by ``increment`` on every redraw, wrapping to 0 past ``max_value``."""

    TYPE = "counter"
    NAME = "Counter"
    DESCRIPTION = "Simple incrementing counter"
    ICON = "🔢"
    config_model = CounterConfig

    def __init__(self, widget_id: str, buffer: PixelBuffer, config: Optional[dict[str, Any]] = None):
        super().__init__(widget_id, buffer, config)
        self._reset_count()

    def _reset_count(self) -> None:
        self.count: int = self.config["initial_value"]
        self.increment: int = self.config["increment"] or 1

    def on_render(self) -> None:
        if self.config["auto_increment"]:
            self.count += self.increment
            if self.count > self.config["max_value"]:
                self.count = 0

        self.draw_text(str(self.count), 2, 2, self.config["color"])

    def on_config_update(self) -> None:
        self._reset_count()


# Progress bar


class ProgressBarConfig(AnimatedWidgetConfig):
    width: int = Field(default=40, ge=1)
    height: int = Field(default=8, ge=1)
    color: Color = (0, 255, 0)
    background_color: Color = (64, 64, 64)
    speed: int = Field(default=2, ge=1)
    ping_pong: bool = True


class ProgressBarWidget(AnimatedWidget):
    """Progress fill that sweeps 0..100%, either bouncing back or wrapping."""

    TYPE = "progressbar"
    NAME = "Progress Bar"
    DESCRIPTION = "Animated progress bar"
    ICON = "📊"
    config_model = ProgressBarConfig

    def __init__(self, widget_id: str, buffer: PixelBuffer, config: Optional[dict[str, Any]] = None):
        self.progress = 0
        self.direction = 1
        super().__init__(widget_id, buffer, config)

    def reset_animation(self) -> None:
        super().reset_animation()
        self.progress = 0
        self.direction = 1

    def on_animation_frame(self, frame: int) -> None:
        self.draw_rect(0, 0, self.width, self.height, self.config["background_color"], filled=True)

        filled = (self.progress * self.width) // 100
        if filled > 0:
            self.draw_rect(0, 0, filled, self.height, self.config["color"], filled=True)

        self.progress += self.config["speed"] * self.direction

        if self.config["ping_pong"]:
            if self.progress >= 100:
                self.progress = 100
                self.direction = -1
            elif self.progress <= 0:
                self.progress = 0
                self.direction = 1
        elif self.progress > 100:
            self.progress = 0


# Text scroller


class TextScrollerConfig(AnimatedWidgetConfig):
    text: str = "Hello World!"
    color: Color = (255, 255, 255)
    background_color: Color = (0, 0, 0)
    scroll_speed: int = Field(default=1, ge=1)
    direction: Literal["left", "right"] = "left"


class TextScrollerWidget(AnimatedWidget):
    """Scrolls a line of text across the widget, vertically centered."""

    TYPE = "textscroller"
    NAME = "Text Scroller"
    DESCRIPTION = "Scrolling text display"
    ICON = "📜"
    config_model = TextScrollerConfig

    def __init__(self, widget_id: str, buffer: PixelBuffer, config: Optional[dict[str, Any]] = None):
        self.scroll_position = 0
        super().__init__(widget_id, buffer, config)

    def reset_animation(self) -> None:
        super().reset_animation()
        self.scroll_position = 0

    def on_animation_frame(self, frame: int) -> None:
        _fill_background(self, self.config["background_color"])

        text = self.config["text"]
        span = len(text) * CHAR_ADVANCE
        if self.config["direction"] == "left":
            text_x = self.width - self.scroll_position
        else:
            text_x = self.scroll_position - span
        text_y = self.height // 2 - 4

        self.scroll_position += self.config["scroll_speed"]
        if self.scroll_position > self.width + span:
            self.scroll_position = 0

        self.draw_text(text, text_x, text_y, self.config["color"])


# Bouncing ball


class BouncingBallConfig(AnimatedWidgetConfig):
    ball_size: int = Field(default=2, ge=1)
    color: Color = (255, 100, 100)
    background_color: Color = (0, 0, 0)
    speed: int = Field(default=1, ge=1)


class BouncingBallWidget(AnimatedWidget):
    """Square ball that bounces off the widget edges."""

    TYPE = "bouncingball"
    NAME = "Bouncing Ball"
    DESCRIPTION = "Animated bouncing ball"
    ICON = "⚽"
    config_model = BouncingBallConfig

    def __init__(self, widget_id: str, buffer: PixelBuffer, config: Optional[dict[str, Any]] = None):
        super().__init__(widget_id, buffer, config)
        self.ball_x = self.width // 2
        self.ball_y = self.height // 2
        self.velocity_x = 1
        self.velocity_y = 1

    @property
    def ball_size(self) -> int:
        return self.config["ball_size"]

    def on_animation_frame(self, frame: int) -> None:
        _fill_background(self, self.config["background_color"])

        size = self.ball_size
        speed = self.config["speed"]
        self.ball_x += self.velocity_x * speed
        self.ball_y += self.velocity_y * speed

        max_x = max(0, self.width - size)
        max_y = max(0, self.height - size)
        if self.ball_x <= 0 or self.ball_x >= max_x:
            self.velocity_x *= -1
            self.ball_x = max(0, min(self.ball_x, max_x))
        if self.ball_y <= 0 or self.ball_y >= max_y:
            self.velocity_y *= -1
            self.ball_y = max(0, min(self.ball_y, max_y))

        self.draw_rect(self.ball_x, self.ball_y, size, size, self.config["color"], filled=True)

    def on_config_update(self) -> None:
        self.ball_x = max(0, min(self.ball_x, self.width - self.ball_size))
        self.ball_y = max(0, min(self.ball_y, self.height - self.ball_size))


# System info


class SystemInfoConfig(DataWidgetConfig):
    data_fetch_interval: int = Field(default=5000, ge=0)
    show_memory: bool = True
    show_time: bool = True
    color: Color = (100, 255, 100)


class SystemInfoWidget(DataWidget):
    """Shows memory use, CPU load and the current time of the host."""

    TYPE = "systeminfo"
    NAME = "System Info"
    DESCRIPTION = "Shows basic system information"
    ICON = "💻"
    config_model = SystemInfoConfig

    def fetch_data(self) -> dict[str, str]:
        memory = psutil.virtual_memory()
        return {
            "memory": f"{memory.used / 1024**3:.1f}GB",
            "cpu": f"{psutil.cpu_percent(interval=None):.0f}%",
            "time": datetime.now().strftime("%H:%M:%S"),
        }

    def on_render_with_data(self, data: Any) -> None:
        color = self.config["color"]
        if not data:
            self.draw_text("Loading...", 2, 2, color)
            return

        y = 2
        if self.config["show_memory"]:
            self.draw_text(f"RAM: {data['memory']}", 2, y, color)
            y += 10

        self.draw_text(f"CPU: {data['cpu']}", 2, y, color)
        y += 10

        if self.config["show_time"]:
            self.draw_text(data["time"], 2, y, color)


CORE_WIDGETS: tuple[type[Widget], ...] = (
    ClockWidget,
    WeatherWidget,
    CounterWidget,
    ProgressBarWidget,
    TextScrollerWidget,
    BouncingBallWidget,
    SystemInfoWidget,
)


def create_plugin() -> WidgetPlugin:
    """Build the core widgets plugin record."""
    return WidgetPlugin(
        id="core-widgets",
        name="Core Widgets",
        version="1.0.0",
        description="Essential widgets for Pixoo Commander",
        widgets=CORE_WIDGETS,
    )


def install(registry: PluginRegistry) -> None:
    """Register the core widgets with ``registry``."""
    registry.register_plugin(create_plugin())
