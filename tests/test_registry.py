import logging

import pytest

from conftest import FakeEntryPoint, fake_entry_points
from pixoo_commander.config import WidgetConfig
from pixoo_commander.exceptions import (
    DuplicatePluginError,
    InvalidPluginError,
    PluginError,
    UnknownWidgetTypeError,
)
from pixoo_commander.plugin import WidgetPlugin
from pixoo_commander.plugins.core_widgets import CORE_WIDGETS
from pixoo_commander.registry import PluginRegistry
from pixoo_commander.widget import Widget


class BareWidget(Widget):
    TYPE = "bare"


class FancyConfig(WidgetConfig):
    sparkle: int = 3


class FancyWidget(Widget):
    TYPE = "fancy"
    NAME = "Fancy"
    DESCRIPTION = "Sparkles"
    ICON = "✨"
    config_model = FancyConfig


class NoTypeWidget(Widget):
    pass


class HookedPlugin(WidgetPlugin):
    def __init__(self, *args, fail_with=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_with = fail_with
        self.inits = 0
        self.destroys = 0

    def init(self):
        self.inits += 1
        if self.fail_with:
            raise self.fail_with

    def destroy(self):
        self.destroys += 1
        if self.fail_with:
            raise self.fail_with


def test_builtin_plugin_registers_core_widgets(registry):
    assert registry.list_widget_types() == [
        "clock",
        "weather",
        "counter",
        "progressbar",
        "textscroller",
        "bouncingball",
        "systeminfo",
    ]
    plugin = registry.get_plugin("core-widgets")
    assert plugin.name == "Core Widgets"
    assert plugin.version == "1.0.0"
    assert list(plugin.widgets) == list(CORE_WIDGETS)


def test_register_plugin_runs_init():
    registry = PluginRegistry()
    plugin = HookedPlugin("p", "P", "1.0", widgets=[BareWidget])

    registry.register_plugin(plugin)

    assert plugin.inits == 1
    assert registry.get_widget_type("bare") is BareWidget


@pytest.mark.parametrize("error", [RuntimeError("boom"), PluginError("no resources")])
def test_plugin_init_failure_is_logged_not_raised(error, caplog):
    registry = PluginRegistry()
    plugin = HookedPlugin("p", "P", "1.0", widgets=[BareWidget], fail_with=error)

    with caplog.at_level(logging.ERROR):
        registry.register_plugin(plugin)

    assert registry.get_plugin("p") is plugin
    assert "initialize" in caplog.text


@pytest.mark.parametrize(
    "plugin",
    [
        WidgetPlugin("", "Name", "1.0"),
        WidgetPlugin("id", "", "1.0"),
        WidgetPlugin("id", "Name", ""),
    ],
)
def test_register_plugin_requires_identity(plugin):
    registry = PluginRegistry()
    with pytest.raises(InvalidPluginError):
        registry.register_plugin(plugin)
    assert registry.list_plugins() == []


def test_duplicate_plugin_leaves_widget_types_unchanged(registry):
    before = registry.list_widget_types()
    duplicate = WidgetPlugin("core-widgets", "Other", "2.0", widgets=[BareWidget, FancyWidget])

    with pytest.raises(DuplicatePluginError):
        registry.register_plugin(duplicate)

    assert registry.list_widget_types() == before
    assert registry.get_plugin("core-widgets").version == "1.0.0"


def test_widget_without_type_is_skipped(caplog):
    registry = PluginRegistry()
    with caplog.at_level(logging.WARNING):
        registry.register_plugin(WidgetPlugin("p", "P", "1.0", widgets=[NoTypeWidget, BareWidget]))

    assert registry.list_widget_types() == ["bare"]
    assert "does not declare a TYPE" in caplog.text


def test_register_widget_type_overwrites_with_warning(caplog):
    registry = PluginRegistry()
    registry.register_widget_type("bare", BareWidget)

    with caplog.at_level(logging.WARNING):
        registry.register_widget_type("bare", FancyWidget)

    assert registry.get_widget_type("bare") is FancyWidget
    assert "already registered" in caplog.text


def test_unregister_plugin_removes_its_types_and_calls_destroy():
    registry = PluginRegistry()
    plugin = HookedPlugin("p", "P", "1.0", widgets=[BareWidget, FancyWidget])
    registry.register_plugin(plugin)

    assert registry.unregister_plugin("p") is True

    assert plugin.destroys == 1
    assert registry.list_widget_types() == []
    assert registry.get_plugin("p") is None
    assert registry.unregister_plugin("p") is False


def test_unregister_plugin_keeps_overwritten_types():
    registry = PluginRegistry()
    registry.register_plugin(WidgetPlugin("p", "P", "1.0", widgets=[BareWidget]))
    registry.register_widget_type("bare", FancyWidget)

    registry.unregister_plugin("p")

    assert registry.get_widget_type("bare") is FancyWidget


def test_unregister_plugin_survives_destroy_failure():
    registry = PluginRegistry()
    plugin = HookedPlugin("p", "P", "1.0", widgets=[BareWidget])
    registry.register_plugin(plugin)
    plugin.fail_with = RuntimeError("cleanup failed")

    assert registry.unregister_plugin("p") is True
    assert registry.get_plugin("p") is None


def test_unregister_widget_type():
    registry = PluginRegistry()
    registry.register_widget_type("bare", BareWidget)
    assert registry.unregister_widget_type("bare") is True
    assert registry.unregister_widget_type("bare") is False


def test_metadata_defaults_for_undeclared_fields():
    registry = PluginRegistry()
    registry.register_widget_type("bare", BareWidget)

    meta = registry.get_metadata()["bare"]

    assert meta.name == "bare"
    assert meta.description == "No description available"
    assert meta.icon == "🔲"
    assert meta.configurable is False
    assert meta.config_schema == {}


def test_metadata_for_configurable_widget():
    registry = PluginRegistry()
    registry.register_widget_type("fancy", FancyWidget)

    meta = registry.get_metadata()["fancy"]

    assert meta.name == "Fancy"
    assert meta.description == "Sparkles"
    assert meta.icon == "✨"
    assert meta.configurable is True
    assert "sparkle" in meta.config_schema["properties"]


def test_core_widget_metadata(registry):
    metadata = registry.get_metadata()
    assert metadata["clock"].name == "Digital Clock"
    assert metadata["clock"].icon == "🕐"
    assert metadata["clock"].configurable is True
    assert "color" in metadata["clock"].config_schema["properties"]


def test_create_widget_instance(registry, buffer):
    widget = registry.create_widget_instance("counter", "widget_1", buffer, {"x": 4})
    assert widget.id == "widget_1"
    assert widget.type == "counter"
    assert widget.x == 4
    assert widget.buffer is buffer


def test_create_unknown_widget_type_raises(registry, buffer):
    with pytest.raises(UnknownWidgetTypeError):
        registry.create_widget_instance("hologram", "widget_1", buffer)


def test_validate_widget_class():
    registry = PluginRegistry()
    assert registry.validate_widget_class(BareWidget) == []
    assert registry.validate_widget_class(NoTypeWidget)
    assert registry.validate_widget_class(object)


def test_load_plugin_by_module_name():
    registry = PluginRegistry()

    assert registry.load_plugin("pixoo_commander.plugins.core_widgets") is True
    assert registry.is_loaded("pixoo_commander.plugins.core_widgets")
    assert "clock" in registry.list_widget_types()


def test_load_plugin_twice_warns_and_returns_false(registry, caplog):
    with caplog.at_level(logging.WARNING):
        assert registry.load_plugin("pixoo_commander.plugins.core_widgets") is False
    assert "already loaded" in caplog.text


def test_load_missing_plugin_returns_false():
    registry = PluginRegistry()
    assert registry.load_plugin("pixoo_commander.plugins.does_not_exist") is False
    assert registry.list_plugins() == []


def test_load_module_without_install_returns_false():
    registry = PluginRegistry()
    assert registry.load_plugin("pixoo_commander.font") is False


def install_bare(registry):
    registry.register_plugin(WidgetPlugin("extra", "Extra", "1.0", widgets=[BareWidget]))


def test_load_entry_point_plugins(monkeypatch):
    advertised = fake_entry_points(
        FakeEntryPoint("extra", "extra_widgets:install", install_bare),
        FakeEntryPoint("broken", "broken_widgets:install", ImportError("no module named broken_widgets")),
    )
    monkeypatch.setattr("pixoo_commander.registry.entry_points", advertised)
    registry = PluginRegistry()

    assert registry.load_entry_point_plugins() == 1
    assert advertised.requested == ["pixoo_commander.plugins"]
    assert "bare" in registry.list_widget_types()
    assert registry.is_loaded("extra_widgets:install")
    assert not registry.is_loaded("broken_widgets:install")


def test_load_entry_point_plugins_skips_installed(monkeypatch):
    calls = []
    monkeypatch.setattr(
        "pixoo_commander.registry.entry_points",
        fake_entry_points(FakeEntryPoint("extra", "extra_widgets:install", calls.append)),
    )
    registry = PluginRegistry()

    assert registry.load_entry_point_plugins() == 1
    assert registry.load_entry_point_plugins() == 0
    assert calls == [registry]


def test_failing_entry_point_install_is_logged(monkeypatch, caplog):
    def install_fails(registry):
        raise RuntimeError("bad plugin")

    monkeypatch.setattr(
        "pixoo_commander.registry.entry_points",
        fake_entry_points(FakeEntryPoint("bad", "bad_widgets:install", install_fails)),
    )
    registry = PluginRegistry()

    with caplog.at_level(logging.ERROR):
        assert registry.load_entry_point_plugins() == 0
    assert "bad" in caplog.text
    assert registry.list_plugins() == []
