"""
Plugin registry for widget types.

The registry maps widget type tags to widget classes and keeps the plugin
records that contributed them. It is an ordinary object passed explicitly to
whoever needs it (scene manager, UI, plugin install functions).
"""

import importlib
import threading
from importlib.metadata import entry_points
from typing import Any, Optional

from pixoo_commander.config import BASE_CONFIG_MODELS
from pixoo_commander.exceptions import (
    ConfigurationError,
    DuplicatePluginError,
    InvalidPluginError,
    PluginError,
    UnknownWidgetTypeError,
)
from pixoo_commander.logging_config import get_logger
from pixoo_commander.pixel_buffer import PixelBuffer
from pixoo_commander.plugin import WidgetPlugin, WidgetTypeMetadata
from pixoo_commander.widget import AnimatedWidget, DataWidget, Widget

logger = get_logger(__name__)

BUILTIN_PLUGIN_MODULES: tuple[str, ...] = ("pixoo_commander.plugins.core_widgets",)
ENTRY_POINT_GROUP = "pixoo_commander.plugins"

_RUNTIME_BASES = (Widget, AnimatedWidget, DataWidget)


def _declared(widget_class: type, attr: str) -> Optional[Any]:
    """Class attribute declared by the widget itself, ignoring the runtime base classes."""
    for klass in widget_class.__mro__:
        if klass in _RUNTIME_BASES:
            return None
        if attr in vars(klass):
            return vars(klass)[attr]
    return None


class PluginRegistry:
    """
    Registry of widget plugins and widget types.

    Widget type registration is last-wins so an implementation can be
    hot-reloaded; plugin registration rejects duplicate plugin ids.
    Failures inside plugin hooks are logged and never reach the caller.
    """

    def __init__(self):
        """Initialize empty registry."""
        self._plugins: dict[str, WidgetPlugin] = {}
        self._widget_types: dict[str, type[Widget]] = {}
        self._loaded_modules: set[str] = set()
        self._lock = threading.RLock()

    # Widget types

    def register_widget_type(self, type_tag: str, widget_class: type[Widget]) -> None:
        """
        Register a widget class under a type tag.

        Args:
            type_tag: Tag used by scenes to instantiate the widget
            widget_class: Widget subclass
        """
        with self._lock:
            if type_tag in self._widget_types:
                logger.warning(f"Widget type '{type_tag}' is already registered, overwriting")
            self._widget_types[type_tag] = widget_class
        logger.debug(f"Widget type registered: {type_tag}")

    def unregister_widget_type(self, type_tag: str) -> bool:
        """Remove a widget type. Returns False if it was not registered."""
        with self._lock:
            return self._widget_types.pop(type_tag, None) is not None

    def get_widget_type(self, type_tag: str) -> Optional[type[Widget]]:
        """Look up a widget class by tag."""
        with self._lock:
            return self._widget_types.get(type_tag)

    def list_widget_types(self) -> list[str]:
        """List registered type tags in registration order."""
        with self._lock:
            return list(self._widget_types.keys())

    def validate_widget_class(self, widget_class: Any) -> list[str]:
        """
        Check that a class can be registered as a widget type.

        Args:
            widget_class: Candidate class

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not isinstance(widget_class, type) or not issubclass(widget_class, Widget):
            return [f"{widget_class!r} is not a Widget subclass"]

        if not _declared(widget_class, "TYPE"):
            errors.append(f"{widget_class.__name__} does not declare a TYPE")

        try:
            widget_class.default_config()
        except Exception as e:
            errors.append(f"{widget_class.__name__} config model cannot produce defaults: {e}")

        return errors

    def create_widget_instance(
        self,
        type_tag: str,
        widget_id: str,
        buffer: PixelBuffer,
        config: Optional[dict[str, Any]] = None,
    ) -> Widget:
        """
        Instantiate a registered widget type.

        Args:
            type_tag: Registered tag
            widget_id: Identifier for the new widget
            buffer: Frame buffer the widget draws into
            config: User config overrides

        Returns:
            New, uninitialized widget

        Raises:
            UnknownWidgetTypeError: If the tag is not registered
            ConfigurationError: If the config fails validation
        """
        widget_class = self.get_widget_type(type_tag)
        if widget_class is None:
            raise UnknownWidgetTypeError(f"Unknown widget type: {type_tag}")
        return widget_class(widget_id, buffer, config)

    def get_metadata(self) -> dict[str, WidgetTypeMetadata]:
        """
        Describe every registered widget type for display.

        Returns:
            Mapping of type tag to metadata. Undeclared names default to the
            tag; undeclared descriptions and icons use placeholders.
        """
        with self._lock:
            items = list(self._widget_types.items())

        metadata = {}
        for type_tag, widget_class in items:
            config_model = widget_class.config_model
            configurable = config_model not in BASE_CONFIG_MODELS
            metadata[type_tag] = WidgetTypeMetadata(
                type=type_tag,
                name=_declared(widget_class, "NAME") or type_tag,
                description=_declared(widget_class, "DESCRIPTION") or "No description available",
                icon=_declared(widget_class, "ICON") or "🔲",
                configurable=configurable,
                config_schema=config_model.model_json_schema() if configurable else {},
            )
        return metadata

    # Plugins

    def register_plugin(self, plugin: WidgetPlugin) -> None:
        """
        Register a plugin and every widget type it provides.

        Args:
            plugin: Plugin record

        Raises:
            InvalidPluginError: If id, name or version is missing
            DuplicatePluginError: If a plugin with the same id is registered
        """
        if not getattr(plugin, "id", None) or not getattr(plugin, "name", None) or not getattr(plugin, "version", None):
            raise InvalidPluginError("Plugin must have id, name, and version properties")

        widgets = list(getattr(plugin, "widgets", None) or [])
        logger.debug(f"Registering plugin: {plugin.id} with {len(widgets)} widgets")

        with self._lock:
            if plugin.id in self._plugins:
                raise DuplicatePluginError(f"Plugin with ID {plugin.id} is already registered")
            self._plugins[plugin.id] = plugin

            for widget_class in widgets:
                errors = self.validate_widget_class(widget_class)
                if errors:
                    logger.warning(f"Plugin {plugin.id}: skipping widget: {'; '.join(errors)}")
                    continue
                self.register_widget_type(widget_class.TYPE, widget_class)

        try:
            plugin.init()
        except PluginError as e:
            logger.error(f"Plugin {plugin.id} failed to initialize: {e}")
        except Exception as e:
            logger.exception(f"Failed to initialize plugin {plugin.id}: {e}")

        logger.info(f"Plugin registered: {plugin.name} v{plugin.version}")

    def unregister_plugin(self, plugin_id: str) -> bool:
        """
        Unregister a plugin, its widget types, and run its cleanup hook.

        Widget types that were since overwritten by another class are left
        in place.

        Args:
            plugin_id: Plugin identifier

        Returns:
            False if the plugin is unknown, True otherwise
        """
        with self._lock:
            plugin = self._plugins.get(plugin_id)
            if plugin is None:
                return False

            for widget_class in plugin.widgets:
                type_tag = _declared(widget_class, "TYPE")
                if type_tag and self._widget_types.get(type_tag) is widget_class:
                    del self._widget_types[type_tag]

        try:
            plugin.destroy()
        except PluginError as e:
            logger.error(f"Plugin {plugin_id} failed to clean up: {e}")
        except Exception as e:
            logger.exception(f"Failed to cleanup plugin {plugin_id}: {e}")

        with self._lock:
            self._plugins.pop(plugin_id, None)

        logger.info(f"Plugin unregistered: {plugin_id}")
        return True

    def get_plugin(self, plugin_id: str) -> Optional[WidgetPlugin]:
        """Look up a plugin by id."""
        with self._lock:
            return self._plugins.get(plugin_id)

    def list_plugins(self) -> list[WidgetPlugin]:
        """List registered plugins."""
        with self._lock:
            return list(self._plugins.values())

    # Loading

    def load_plugin(self, module_name: str) -> bool:
        """
        Import a plugin module and run its ``install(registry)`` entry point.

        Args:
            module_name: Dotted module path

        Returns:
            True if the plugin was installed, False if it was already loaded
            or failed to load (the failure is logged)
        """
        with self._lock:
            if module_name in self._loaded_modules:
                logger.warning(f"Plugin {module_name} is already loaded")
                return False

        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            logger.error(f"Failed to import plugin {module_name}: {e}")
            return False

        install = getattr(module, "install", None)
        if not callable(install):
            logger.error(f"Plugin {module_name} has no install(registry) function")
            return False

        try:
            install(self)
        except ConfigurationError as e:
            logger.error(f"Failed to install plugin {module_name}: {e}")
            return False
        except Exception as e:
            logger.exception(f"Failed to install plugin {module_name}: {e}")
            return False

        with self._lock:
            self._loaded_modules.add(module_name)
        logger.info(f"Plugin loaded: {module_name}")
        return True

    def load_builtin_plugins(self) -> None:
        """Load the plugins shipped with the package."""
        for module_name in BUILTIN_PLUGIN_MODULES:
            self.load_plugin(module_name)

    def load_entry_point_plugins(self, group: str = ENTRY_POINT_GROUP) -> int:
        """
        Install plugins advertised by installed distributions.

        Each entry point must resolve to an ``install(registry)`` callable.
        An entry point whose target was already installed is skipped.

        Args:
            group: Entry point group name

        Returns:
            Number of plugins installed
        """
        installed = 0
        for entry_point in entry_points(group=group):
            if self.is_loaded(entry_point.value):
                logger.debug(f"Plugin entry point {entry_point.name} is already loaded")
                continue

            try:
                install = entry_point.load()
                install(self)
            except ConfigurationError as e:
                logger.error(f"Failed to install plugin entry point {entry_point.name}: {e}")
                continue
            except Exception as e:
                logger.exception(f"Failed to install plugin entry point {entry_point.name}: {e}")
                continue

            with self._lock:
                self._loaded_modules.add(entry_point.value)
            installed += 1
            logger.info(f"Plugin entry point installed: {entry_point.name}")
        return installed

    def is_loaded(self, module_name: str) -> bool:
        """Check if a plugin module has been loaded."""
        with self._lock:
            return module_name in self._loaded_modules
