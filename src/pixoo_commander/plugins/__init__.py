"""
Widget plugins for Pixoo Commander.

Each plugin module exposes ``install(registry)``, which registers its
widgets with the registry it is given.
"""

from .core_widgets import CORE_WIDGETS, create_plugin

__all__ = [
    "CORE_WIDGETS",
    "create_plugin",
]
