#!/usr/bin/env python3
"""
Demo script for writing a widget plugin.

This script demonstrates:
- Declaring a widget config model with typed, validated fields
- Subclassing AnimatedWidget with an on_animation_frame() hook
- Bundling the widget into a WidgetPlugin and registering it
- Rendering frames without a device and printing them as text

A plugin shipped as its own module would expose the same registration as
``install(registry)`` and be loaded with Commander.load_plugin("module.name").
"""

import logging
from pydantic import Field

from pixoo_commander import Commander, PixelBuffer, PluginRegistry, WidgetPlugin
from pixoo_commander.config import AnimatedWidgetConfig, Color
from pixoo_commander.logging_config import get_logger, setup_logging
from pixoo_commander.widget import AnimatedWidget

setup_logging(level=logging.INFO)

logger = get_logger(__name__)


class SweepConfig(AnimatedWidgetConfig):
    width: int = Field(default=16, ge=1)
    height: int = Field(default=16, ge=1)
    color: Color = (255, 0, 255)


class SweepWidget(AnimatedWidget):
    """Vertical line sweeping left to right."""

    TYPE = "sweep"
    NAME = "Sweep"
    DESCRIPTION = "Vertical line sweeping across the widget"
    ICON = "〰️"
    config_model = SweepConfig

    def on_animation_frame(self, frame: int) -> None:
        column = frame % self.width
        self.draw_line(column, 0, column, self.height - 1, self.config["color"])


def install(registry: PluginRegistry) -> None:
    registry.register_plugin(
        WidgetPlugin(
            id="demo-sweep",
            name="Sweep Demo",
            version="0.1.0",
            widgets=[SweepWidget],
        )
    )


def print_frame(buffer: PixelBuffer, size: int) -> None:
    for row in buffer.rows()[:size]:
        print("".join("#" if any(color) else "." for color in row[:size]))


def on_frame(scene, buffer: PixelBuffer) -> None:
    logger.info(f"Frame rendered for {scene.name}")


def main():
    """Main demo function."""
    print("\n" + "=" * 60)
    print("Custom Widget Plugin Demo")
    print("=" * 60)

    with Commander(run_loop=False) as commander:
        install(commander.registry)
        metadata = commander.widget_metadata()["sweep"]
        print(f"\n✓ Registered {metadata.icon} {metadata.name}: {metadata.description}")
        print(f"  Configurable fields: {', '.join(metadata.config_schema.get('properties', {}))}")

        scene = commander.create_scene("Sweep")
        scene.add_frame_listener(on_frame)
        commander.add_widget("sweep", {"animation_speed": 0})

        for frame in range(3):
            scene.render(now=frame * 100)
            print()
            print_frame(commander.buffer, 16)

    print("\nDemo complete!")


if __name__ == "__main__":
    main()
