import socket

import pytest

from conftest import FakeEntryPoint, FakeSession, connection_error, fake_entry_points, last_payload
from pixoo_commander import Commander
from pixoo_commander.device_link import LinkState
from pixoo_commander.exceptions import (
    AllEndpointsFailedError,
    NoAddressError,
    NotConnectedError,
    NotFoundError,
    OutOfRangeError,
)
from pixoo_commander.plugin import WidgetPlugin
from pixoo_commander.plugins.core_widgets import ClockWidget, CounterWidget, ProgressBarWidget
from pixoo_commander.registry import PluginRegistry
from pixoo_commander.widget import Widget

ADDRESS = "192.168.1.77"


class ExtraWidget(Widget):
    TYPE = "extra"


@pytest.fixture
def commander(session):
    commander = Commander(address=ADDRESS, session=session, run_loop=False)
    yield commander
    commander.close()


def test_builtin_widget_metadata(commander):
    metadata = commander.widget_metadata()

    assert set(metadata) == {
        "clock",
        "weather",
        "counter",
        "progressbar",
        "textscroller",
        "bouncingball",
        "systeminfo",
    }
    assert metadata["clock"].name == "Digital Clock"
    assert metadata["clock"].configurable


def test_without_builtins_registry_is_empty(session):
    with Commander(session=session, load_builtins=False, load_entry_points=False, run_loop=False) as commander:
        assert commander.widget_metadata() == {}


def test_entry_point_plugins_are_installed(session, monkeypatch):
    def install_extra(registry):
        registry.register_plugin(WidgetPlugin("extra", "Extra", "1.0", widgets=[ExtraWidget]))

    monkeypatch.setattr(
        "pixoo_commander.registry.entry_points",
        fake_entry_points(FakeEntryPoint("extra", "extra_widgets:install", install_extra)),
    )

    with Commander(session=session, run_loop=False) as commander:
        assert "extra" in commander.widget_metadata()
        assert "clock" in commander.widget_metadata()


def test_entry_point_plugins_can_be_skipped(session, monkeypatch):
    advertised = fake_entry_points()
    monkeypatch.setattr("pixoo_commander.registry.entry_points", advertised)

    with Commander(session=session, load_entry_points=False, run_loop=False):
        assert advertised.requested == []


def test_shared_registry(session):
    registry = PluginRegistry()
    with Commander(session=session, registry=registry, run_loop=False) as commander:
        assert commander.registry is registry
        assert registry.is_loaded("pixoo_commander.plugins.core_widgets")


def test_default_scene(commander):
    scene = commander.create_default_scene()

    assert scene.name == "Welcome Scene"
    assert commander.active_scene is scene
    assert scene.is_active

    clock, counter, bar = scene.widgets
    assert isinstance(clock, ClockWidget)
    assert (clock.x, clock.y, clock.width, clock.height) == (2, 2, 60, 10)
    assert clock.config["color"] == (0, 255, 255)
    assert isinstance(counter, CounterWidget)
    assert (counter.x, counter.y) == (2, 20)
    assert counter.config["max_value"] == 100
    assert isinstance(bar, ProgressBarWidget)
    assert (bar.x, bar.y, bar.width, bar.height) == (10, 40, 40, 6)
    assert bar.config["color"] == (255, 100, 100)


def test_default_scene_renders(commander):
    scene = commander.create_default_scene()

    assert scene.render(now=0)

    assert not commander.buffer.is_blank()
    # Progress bar starts empty
    assert commander.buffer.get(10, 40) == (64, 64, 64)


def test_widget_operations_target_active_scene(commander):
    commander.create_scene("Main")

    widget = commander.add_widget("counter", {"initial_value": 5})
    commander.update_widget_config(widget.id, {"increment": 3})
    commander.set_widget_enabled(widget.id, False)

    scene = commander.active_scene
    assert scene.get_widget(widget.id) is widget
    assert widget.increment == 3
    assert not widget.enabled
    assert commander.remove_widget(widget.id)
    assert scene.get_widget(widget.id) is None
    assert not commander.remove_widget(widget.id)


def test_widget_operations_need_active_scene(commander):
    with pytest.raises(NotFoundError):
        commander.add_widget("clock")
    with pytest.raises(NotFoundError):
        commander.set_widget_enabled("widget_1", True)
    with pytest.raises(NotFoundError):
        commander.update_widget_config("widget_1", {"x": 1})
    assert not commander.remove_widget("widget_1")


def test_scene_change_listener(commander):
    changes = []
    commander.on_scene_change(changes.append)

    first = commander.create_scene("One")
    second = commander.create_scene("Two")
    commander.set_active_scene(second.id)
    commander.delete_scene(second.id)
    commander.delete_scene(first.id)

    assert changes == [first.id, second.id, first.id, None]
    assert commander.active_scene is None
    assert commander.scenes == []


# Device


def test_connect_and_brightness(commander, session):
    states = []
    commander.on_connection_change(states.append)

    commander.connect()
    commander.set_brightness(40)

    assert commander.is_connected
    assert commander.connection_state is LinkState.CONNECTED
    assert states == [LinkState.CONNECTING, LinkState.CONNECTED]
    assert session.urls()[0] == f"http://{ADDRESS}:80/post"
    assert last_payload(session) == {"Command": "Channel/SetBrightness", "Brightness": 40}


def test_brightness_validation(commander):
    commander.connect()
    with pytest.raises(OutOfRangeError):
        commander.set_brightness(101)


def test_brightness_needs_connection(commander):
    with pytest.raises(NotConnectedError):
        commander.set_brightness(50)


def test_connect_without_address(session):
    with Commander(session=session, run_loop=False) as commander:
        with pytest.raises(NoAddressError):
            commander.connect()


def test_connect_failure_leaves_disconnected():
    offline = FakeSession(default=connection_error())
    with Commander(address=ADDRESS, session=offline, run_loop=False) as commander:
        with pytest.raises(AllEndpointsFailedError):
            commander.connect()
        assert commander.connection_state is LinkState.DISCONNECTED


def test_render_pushes_when_connected(commander, session):
    commander.connect()
    scene = commander.create_default_scene()
    session.calls.clear()

    scene.render(now=0)

    payload = last_payload(session)
    assert payload["Command"] == "Draw/SendHttpGif"
    assert payload["PicData"] == commander.buffer.encode()


def test_disconnect(commander):
    commander.connect()
    commander.disconnect()
    assert not commander.is_connected


def test_close_keeps_injected_session_open(session):
    commander = Commander(address=ADDRESS, session=session, run_loop=False)
    commander.create_default_scene()

    commander.close()

    assert not session.closed
    assert not commander.active_scene.is_active


def test_preview_mirrors_active_scene(session):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    with Commander(session=session, run_loop=False, preview_server=True, preview_port=port) as commander:
        scene = commander.create_default_scene()
        scene.render(now=0)

        frame = commander.preview.last_frame
        assert frame.scene_id == scene.id
        assert frame.data == commander.buffer.encode()
        assert commander.preview.is_running

    assert commander.preview is None
