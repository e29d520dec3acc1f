"""
Plugin architecture for widget packs.

A plugin is a named, versioned bundle of widget classes plus optional
init/destroy hooks. Plugin modules expose an ``install(registry)`` entry
point that builds their plugin and hands it to the registry they are given;
nothing registers itself through global state.
"""

from typing import Any, Optional, Sequence

from pydantic import BaseModel, Field

from pixoo_commander.widget import Widget


class WidgetTypeMetadata(BaseModel):
    """Display metadata for one registered widget type."""

    type: str
    name: str
    description: str = "No description available"
    icon: str = "🔲"
    configurable: bool = False
    config_schema: dict[str, Any] = Field(default_factory=dict)


class WidgetPlugin:
    """
    Base class for widget plugins.

    Subclass to add init()/destroy() behaviour, or instantiate directly for
    a plain bundle of widget classes.
    """

    def __init__(
        self,
        id: str,
        name: str,
        version: str,
        description: str = "",
        widgets: Optional[Sequence[type[Widget]]] = None,
    ):
        """
        Initialize plugin record.

        Args:
            id: Unique plugin identifier (e.g., "core-widgets")
            name: Human-readable name
            version: Version string
            description: Short description
            widgets: Widget classes this plugin provides
        """
        self.id = id
        self.name = name
        self.version = version
        self.description = description
        self.widgets: list[type[Widget]] = list(widgets or [])

    def init(self) -> None:
        """Called after the plugin's widget types are registered."""
        pass

    def destroy(self) -> None:
        """Called after the plugin's widget types are unregistered."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, version={self.version!r})"
