import pytest

from conftest import non_black_pixels
from pixoo_commander.config import DataWidgetConfig, WidgetConfig
from pixoo_commander.exceptions import ConfigurationError
from pixoo_commander.pixel_buffer import PixelBuffer
from pixoo_commander.widget import AnimatedWidget, DataWidget, Widget


class RecordingWidget(Widget):
    TYPE = "recording"

    def __init__(self, widget_id, buffer, config=None):
        self.renders = 0
        self.destroyed = 0
        self.config_updates = 0
        super().__init__(widget_id, buffer, config)

    def on_render(self):
        self.renders += 1

    def on_destroy(self):
        self.destroyed += 1

    def on_config_update(self):
        self.config_updates += 1


class FrameWidget(AnimatedWidget):
    TYPE = "frames"

    def __init__(self, widget_id, buffer, config=None):
        self.frames = []
        super().__init__(widget_id, buffer, config)

    def on_animation_frame(self, frame):
        self.frames.append(frame)


class FeedWidget(DataWidget):
    TYPE = "feed"

    def __init__(self, widget_id, buffer, config=None, results=None):
        self.results = list(results or [])
        self.fetch_times = []
        self.drawn = []
        self.current_time = 0
        super().__init__(widget_id, buffer, config)

    def fetch_data(self):
        self.fetch_times.append(self.current_time)
        result = self.results.pop(0) if self.results else "fresh"
        if isinstance(result, Exception):
            raise result
        return result

    def on_render_with_data(self, data):
        self.drawn.append(data)

    def tick(self, now=None):
        self.current_time = now
        return super().tick(now)


def make(widget_class, buffer, **config):
    widget = widget_class("w1", buffer, config)
    widget.init()
    return widget


# Cadence


def test_first_tick_draws_immediately(buffer):
    widget = make(RecordingWidget, buffer, update_interval=1000)
    assert widget.tick(0) is True
    assert widget.renders == 1


def test_cadence_boundary_is_inclusive(buffer):
    widget = make(RecordingWidget, buffer, update_interval=1000)

    assert widget.tick(0) is True
    assert widget.tick(999) is False
    assert widget.tick(1000) is True
    assert widget.tick(1000) is False
    assert widget.tick(1999) is False
    assert widget.tick(2000) is True
    assert widget.renders == 3


def test_uninitialized_widget_does_not_draw(buffer):
    widget = RecordingWidget("w1", buffer)
    assert widget.tick(0) is False
    assert widget.renders == 0


def test_disabled_widget_does_not_draw(buffer):
    widget = make(RecordingWidget, buffer)
    widget.set_enabled(False)

    assert widget.tick(0) is False
    assert widget.config["enabled"] is False

    widget.set_enabled(True)
    assert widget.tick(0) is True


# Lifecycle


def test_destroy_is_idempotent(buffer):
    widget = make(RecordingWidget, buffer)
    assert widget.initialized

    widget.destroy()
    widget.destroy()

    assert not widget.initialized
    assert widget.destroyed == 1


def test_destroy_before_init_is_noop(buffer):
    widget = RecordingWidget("w1", buffer)
    widget.destroy()
    assert widget.destroyed == 0


def test_reinit_resets_cadence(buffer):
    widget = make(RecordingWidget, buffer, update_interval=1000)
    widget.tick(0)
    widget.destroy()
    widget.init()

    assert widget.tick(10) is True


# Configuration


def test_defaults_come_from_config_model(buffer):
    widget = RecordingWidget("w1", buffer)
    assert widget.config == WidgetConfig().model_dump()
    assert (widget.x, widget.y, widget.width, widget.height) == (0, 0, 64, 64)


def test_update_config_is_partial_merge(buffer):
    widget = make(RecordingWidget, buffer, x=5, y=6, width=20, height=10, label="hello")
    before = dict(widget.config)

    widget.update_config({"y": 7})

    assert widget.config["y"] == 7
    assert widget.y == 7
    assert {k: v for k, v in widget.config.items() if k != "y"} == {k: v for k, v in before.items() if k != "y"}
    assert widget.config_updates == 1


def test_update_config_rejects_invalid_values_and_keeps_config(buffer):
    widget = make(RecordingWidget, buffer, width=20)
    before = dict(widget.config)

    with pytest.raises(ConfigurationError):
        widget.update_config({"width": 0})

    assert widget.config == before
    assert widget.width == 20


def test_invalid_initial_config_raises(buffer):
    with pytest.raises(ConfigurationError):
        RecordingWidget("w1", buffer, {"update_interval": "often"})


def test_to_dict(buffer):
    widget = make(RecordingWidget, buffer, x=3)
    snapshot = widget.to_dict()
    assert snapshot["id"] == "w1"
    assert snapshot["type"] == "recording"
    assert snapshot["enabled"] is True
    assert snapshot["config"]["x"] == 3


# Drawing


def test_drawing_is_offset_and_clipped_to_widget(buffer):
    widget = make(RecordingWidget, buffer, x=10, y=20, width=4, height=3)

    widget.draw_rect(-5, -5, 30, 30, (255, 0, 0), filled=True)

    lit = non_black_pixels(buffer)
    assert len(lit) == 4 * 3
    assert all(10 <= x < 14 and 20 <= y < 23 for x, y in lit)


def test_outlined_rect(buffer):
    widget = make(RecordingWidget, buffer, width=10, height=10)
    widget.draw_rect(0, 0, 4, 4, (0, 255, 0))

    lit = set(non_black_pixels(buffer))
    assert (1, 1) not in lit
    assert {(0, 0), (3, 0), (0, 3), (3, 3)} <= lit
    assert len(lit) == 12


def test_draw_line_includes_both_ends(buffer):
    widget = make(RecordingWidget, buffer, width=10, height=10)
    widget.draw_line(0, 0, 4, 4, (0, 0, 255))

    assert set(non_black_pixels(buffer)) == {(i, i) for i in range(5)}


def test_draw_text_stays_in_glyph_cells(buffer):
    widget = make(RecordingWidget, buffer, x=2, y=2, width=60, height=10)
    widget.draw_text("12:34", 2, 2, (255, 255, 255))

    lit = non_black_pixels(buffer)
    assert lit
    width = Widget.text_width("12:34")
    assert all(4 <= x < 4 + width and 4 <= y < 4 + 7 for x, y in lit)


def test_lowercase_renders_like_uppercase():
    upper = PixelBuffer(16)
    lower = PixelBuffer(16)
    make(RecordingWidget, upper, width=16, height=16).draw_text("A", 0, 0)
    make(RecordingWidget, lower, width=16, height=16).draw_text("a", 0, 0)
    assert upper == lower


# AnimatedWidget


def test_animation_uses_its_own_speed(buffer):
    widget = make(FrameWidget, buffer, animation_speed=100, update_interval=5000)

    for now in (0, 50, 100, 150, 200):
        widget.tick(now)

    assert widget.frames == [0, 1, 2]


def test_reset_animation_restarts_frame_counter(buffer):
    widget = make(FrameWidget, buffer, animation_speed=100)
    widget.tick(0)
    widget.tick(100)

    widget.reset_animation()
    widget.tick(200)

    assert widget.frames == [0, 1, 0]


# DataWidget


def test_data_widget_fetch_and_draw_cadences(buffer):
    widget = make(FeedWidget, buffer, data_fetch_interval=30000, update_interval=1000)

    draws = sum(1 for t in range(0, 30001, 1000) if widget.tick(t))

    assert widget.fetch_times == [0, 30000]
    assert draws == 31
    assert len(widget.drawn) == 31


def test_data_widget_draws_none_before_first_fetch(buffer):
    widget = FeedWidget("w1", buffer, {"data_fetch_interval": 30000}, results=[ValueError("offline")])
    widget.init()
    widget.tick(0)

    assert widget.drawn == [None]


def test_failed_fetch_keeps_stale_data_and_retries_next_tick(buffer):
    widget = FeedWidget(
        "w1",
        buffer,
        {"data_fetch_interval": 30000, "update_interval": 1000},
        results=["first", RuntimeError("timeout"), "second"],
    )
    widget.init()

    widget.tick(0)
    widget.tick(30000)
    assert widget.data == "first"
    assert widget.drawn[-1] == "first"

    widget.tick(31000)
    assert widget.fetch_times == [0, 30000, 31000]
    assert widget.data == "second"


def test_refresh_data_forces_fetch_on_next_tick(buffer):
    widget = make(FeedWidget, buffer, data_fetch_interval=30000)
    widget.tick(0)

    widget.refresh_data()
    widget.tick(500)

    assert widget.fetch_times == [0, 500]


def test_data_widget_config_defaults(buffer):
    widget = FeedWidget("w1", buffer)
    assert widget.data_fetch_interval == DataWidgetConfig().data_fetch_interval == 30000
