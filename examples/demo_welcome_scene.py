#!/usr/bin/env python3
"""
Demo script for the Welcome Scene.

This script demonstrates:
- Creating a Commander with the built-in widgets
- Building the default scene (clock, counter, progress bar)
- Connecting to a Pixoo device when an address is given
- Mirroring rendered frames over the WebSocket preview server

Usage:
    python demo_welcome_scene.py [DEVICE_ADDRESS]
"""

import logging
import sys
import time

from pixoo_commander import Commander, PixooError
from pixoo_commander.device_link import LinkState
from pixoo_commander.logging_config import get_logger, set_module_level, setup_logging

# Set up rich logging to see what's happening
setup_logging(level=logging.INFO)

logger = get_logger(__name__)

# Enable debug logging for the device link to see every command sent
set_module_level("pixoo_commander.device_link", logging.DEBUG)


def on_connection_change(state: LinkState) -> None:
    print(f"[LINK] {state.value}")


def on_scene_change(scene_id) -> None:
    print(f"[SCENE] active scene is now {scene_id}")


def main():
    """Main demo function."""
    address = sys.argv[1] if len(sys.argv) > 1 else None

    print("\n" + "=" * 60)
    print("Pixoo Commander Welcome Scene Demo")
    print("=" * 60)

    print("\n1. Creating commander...")
    commander = Commander(address=address, preview_server=True)
    print(f"   ✓ {len(commander.widget_metadata())} widget types available")
    print(f"   ✓ Frame preview at {commander.preview.url}")

    commander.on_connection_change(on_connection_change)
    commander.on_scene_change(on_scene_change)

    if address:
        print(f"\n2. Connecting to {address}...")
        try:
            commander.connect()
            commander.set_brightness(60)
            print(f"   ✓ Connected on {commander.link.endpoint}")
        except PixooError as e:
            print(f"   ✗ Failed to connect: {e}")
            print("\nRendering to the preview only.")
    else:
        print("\n2. No device address given, rendering to the preview only")

    print("\n3. Creating the Welcome Scene...")
    scene = commander.create_default_scene()
    for widget in scene.widgets:
        print(f"   ✓ {widget.id}: {widget.type} at ({widget.x}, {widget.y})")

    print("\n" + "=" * 60)
    print("Rendering... (Press Ctrl+C to exit)")
    print("=" * 60)

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\n\nShutting down...")
    finally:
        commander.close()
        print("✓ Commander closed")
        print("\nDemo complete!")


if __name__ == "__main__":
    main()
