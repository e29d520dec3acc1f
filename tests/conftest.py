"""Shared fixtures: a scripted HTTP session, a manual clock and a sleep recorder."""

import threading
from typing import Any, Optional

import pytest
import requests

from pixoo_commander.pixel_buffer import PixelBuffer
from pixoo_commander.registry import PluginRegistry


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code: int = 200, payload: Any = None, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.closed = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError(f"Response body is not JSON: {self.text!r}")
        return self._payload

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} Error")

    def close(self) -> None:
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class FakeSession:
    """
    Scripted replacement for requests.Session.

    Outcomes are queued per URL with script(); the last outcome for a URL
    repeats once the queue is down to one entry. URLs with no script get
    ``default``. An outcome is a FakeResponse or an exception to raise.
    """

    def __init__(self, default: Any = None):
        self.default = default if default is not None else FakeResponse()
        self.calls: list[dict[str, Any]] = []
        self.closed = False
        self._scripts: dict[str, list[Any]] = {}
        self._lock = threading.Lock()

    def script(self, url: str, *outcomes: Any) -> None:
        with self._lock:
            self._scripts[url] = list(outcomes)

    def _next(self, url: str) -> Any:
        with self._lock:
            queue = self._scripts.get(url)
            if not queue:
                return self.default
            return queue.pop(0) if len(queue) > 1 else queue[0]

    def _request(self, method: str, url: str, **kwargs) -> FakeResponse:
        with self._lock:
            self.calls.append({"method": method, "url": url, **kwargs})
        outcome = self._next(url)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def post(self, url: str, **kwargs) -> FakeResponse:
        return self._request("POST", url, **kwargs)

    def get(self, url: str, **kwargs) -> FakeResponse:
        return self._request("GET", url, **kwargs)

    def urls(self, method: str = "POST") -> list[str]:
        with self._lock:
            return [call["url"] for call in self.calls if call["method"] == method]

    def payloads(self) -> list[dict[str, Any]]:
        with self._lock:
            return [call["json"] for call in self.calls if call["method"] == "POST"]

    def close(self) -> None:
        self.closed = True


class FakeEntryPoint:
    """Stand-in for importlib.metadata.EntryPoint resolving to a given object."""

    def __init__(self, name: str, value: str, target: Any):
        self.name = name
        self.value = value
        self._target = target

    def load(self) -> Any:
        if isinstance(self._target, BaseException):
            raise self._target
        return self._target


def fake_entry_points(*advertised: FakeEntryPoint):
    """Replacement for importlib.metadata.entry_points serving a fixed list."""
    requested: list[str] = []

    def entry_points(group: str) -> list[FakeEntryPoint]:
        requested.append(group)
        return list(advertised)

    entry_points.requested = requested
    return entry_points


class SleepRecorder:
    """Records requested sleeps instead of sleeping."""

    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


class ManualClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def buffer() -> PixelBuffer:
    return PixelBuffer(64)


@pytest.fixture
def registry() -> PluginRegistry:
    registry = PluginRegistry()
    registry.load_builtin_plugins()
    return registry


def non_black_pixels(buffer: PixelBuffer) -> list[tuple[int, int]]:
    """Coordinates of every lit pixel."""
    return [
        (x, y)
        for y, row in enumerate(buffer.rows())
        for x, color in enumerate(row)
        if color != (0, 0, 0)
    ]


def connection_error(message: str = "unreachable") -> requests.ConnectionError:
    return requests.ConnectionError(message)


def last_payload(session: FakeSession) -> Optional[dict[str, Any]]:
    payloads = session.payloads()
    return payloads[-1] if payloads else None
