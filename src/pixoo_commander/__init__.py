"""
Pixoo Commander: scene and widget engine for Divoom Pixoo LED matrices

Compose scenes from configurable widgets, render them into a shared pixel
buffer on a fixed-period loop, and stream the frames to a Pixoo device over
its write-only HTTP protocol. Widget types are extensible through plugins
installed into an explicit registry.
"""

__version__ = "0.1.0"

# Main API
from .commander import Commander

# Configuration models
from .config import (
    AnimatedWidgetConfig,
    Color,
    DataWidgetConfig,
    DiscoverySettings,
    Endpoint,
    LinkSettings,
    WidgetConfig,
)

# Device communication
from .device_link import DeviceLink, LinkState

# Exceptions
from .exceptions import (
    AllEndpointsFailedError,
    ConfigurationError,
    ConnectionLostError,
    DuplicatePluginError,
    InvalidPluginError,
    NoAddressError,
    NotConnectedError,
    NotFoundError,
    OutOfRangeError,
    PixooError,
    PluginError,
    TransportError,
    UnknownWidgetTypeError,
)

# Logging configuration
from .logging_config import (
    get_logger,
    set_module_level,
    setup_logging,
)
from .pixel_buffer import PixelBuffer

# Plugin development
from .plugin import WidgetPlugin, WidgetTypeMetadata
from .registry import PluginRegistry
from .scanner import DeviceScanner, DiscoveredDevice
from .scene import Scene, SceneManager
from .widget import AnimatedWidget, DataWidget, Widget

__all__ = [
    # Version
    "__version__",
    # Main API
    "Commander",
    "Scene",
    "SceneManager",
    "PixelBuffer",
    # Device communication
    "DeviceLink",
    "LinkState",
    "DeviceScanner",
    "DiscoveredDevice",
    # Configuration models
    "Color",
    "Endpoint",
    "LinkSettings",
    "DiscoverySettings",
    "WidgetConfig",
    "AnimatedWidgetConfig",
    "DataWidgetConfig",
    # Logging configuration
    "setup_logging",
    "get_logger",
    "set_module_level",
    # Exceptions
    "PixooError",
    "ConfigurationError",
    "UnknownWidgetTypeError",
    "OutOfRangeError",
    "NoAddressError",
    "InvalidPluginError",
    "DuplicatePluginError",
    "TransportError",
    "ConnectionLostError",
    "AllEndpointsFailedError",
    "NotConnectedError",
    "PluginError",
    "NotFoundError",
    # Plugin development
    "Widget",
    "AnimatedWidget",
    "DataWidget",
    "WidgetPlugin",
    "WidgetTypeMetadata",
    "PluginRegistry",
]
