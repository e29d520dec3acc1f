"""
Write-only HTTP link to a Pixoo device.

The device accepts JSON commands over HTTP POST but the link never reads a
response: a command counts as delivered the moment the transport call returns
without raising. Connecting therefore means finding the first (port, path)
pair that accepts a request at the network level, and sending means
best-effort delivery with a bounded number of retries.
"""

import threading
import time
from enum import Enum
from typing import Any, Callable, Optional, Sequence, Union

import requests

from pixoo_commander.config import Endpoint, LinkSettings
from pixoo_commander.exceptions import (
    AllEndpointsFailedError,
    ConnectionLostError,
    NoAddressError,
    NotConnectedError,
    OutOfRangeError,
    TransportError,
)
from pixoo_commander.logging_config import get_logger
from pixoo_commander.pixel_buffer import DEFAULT_SIZE, PixelBuffer
from pixoo_commander.protocol import (
    AnyCommand,
    GetChannelIndex,
    SendHttpGif,
    SendHttpText,
    SetBrightness,
    SetChannelIndex,
    command_name,
    to_payload,
)
from pixoo_commander.utils import WHITE, RGBColor

logger = get_logger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}


class LinkState(str, Enum):
    """Connection state of the device link."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


StateListener = Callable[[LinkState], None]


def is_connection_loss(error: BaseException) -> bool:
    """Classify transport errors that mean the device is gone."""
    return isinstance(error, (requests.ConnectionError, requests.Timeout))


def _is_int(value: object) -> bool:
    # bool is an int subclass but never a valid level or index
    return isinstance(value, int) and not isinstance(value, bool)


class DeviceLink:
    """
    Client bound to a single Pixoo device.

    Owns the frame buffer that the active scene draws into, negotiates the
    endpoint on connect, and pushes frames and control commands with retry
    and exponential backoff. The negotiated endpoint and the connection
    state always change together under one lock, so a sender never sees a
    connected link without an endpoint.
    """

    def __init__(
        self,
        address: Optional[str] = None,
        size: int = DEFAULT_SIZE,
        settings: Optional[LinkSettings] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the link in the disconnected state.

        Args:
            address: Device IP address or hostname (may be set later)
            size: Panel edge length in pixels
            settings: Endpoint candidates, timeouts and retry policy
            session: HTTP session to use (a new requests.Session if None)
            sleep: Function used to wait between retries, in seconds
        """
        self._address = address.strip() if address else None
        self._settings = settings or LinkSettings()
        self._owns_session = session is None
        self._session = session if session is not None else requests.Session()
        self._sleep = sleep
        self._buffer = PixelBuffer(size)

        self._state = LinkState.DISCONNECTED
        self._endpoint: Optional[Endpoint] = None
        self._last_good_endpoint: Optional[Endpoint] = None
        self._lock = threading.RLock()
        self._listeners: list[StateListener] = []

    @property
    def address(self) -> Optional[str]:
        """Target device address."""
        return self._address

    @property
    def buffer(self) -> PixelBuffer:
        """Frame buffer shared with the rendering scene."""
        return self._buffer

    @property
    def size(self) -> int:
        """Panel edge length in pixels."""
        return self._buffer.size

    @property
    def settings(self) -> LinkSettings:
        """Negotiation and retry policy."""
        return self._settings

    @property
    def state(self) -> LinkState:
        """Current connection state."""
        with self._lock:
            return self._state

    @property
    def is_connected(self) -> bool:
        """Check if a command may be sent."""
        with self._lock:
            return self._state is LinkState.CONNECTED and self._endpoint is not None

    @property
    def endpoint(self) -> Optional[Endpoint]:
        """Negotiated endpoint, or None while disconnected."""
        with self._lock:
            return self._endpoint

    @property
    def last_good_endpoint(self) -> Optional[Endpoint]:
        """Endpoint of the most recent successful connection."""
        with self._lock:
            return self._last_good_endpoint

    # State listeners

    def add_state_listener(self, listener: StateListener) -> None:
        """Register a callback fired with the new state on every transition."""
        with self._lock:
            self._listeners.append(listener)

    def remove_state_listener(self, listener: StateListener) -> bool:
        """Unregister a state callback. Returns False if it was not registered."""
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)
                return True
            return False

    def _transition(self, state: LinkState, endpoint: Optional[Endpoint]) -> None:
        """Change state and endpoint atomically, then notify listeners."""
        with self._lock:
            changed = state is not self._state
            self._state = state
            self._endpoint = endpoint
            listeners = list(self._listeners)

        if not changed:
            return

        for listener in listeners:
            try:
                listener(state)
            except Exception as e:
                logger.exception(f"Error in link state listener '{getattr(listener, '__name__', listener)}': {e}")

    # Connection

    def _candidates(self) -> list[Endpoint]:
        """Remembered endpoint first, then the configured candidates in order."""
        candidates: list[Endpoint] = []
        with self._lock:
            if self._last_good_endpoint is not None:
                candidates.append(self._last_good_endpoint)
        for endpoint in self._settings.endpoints:
            if endpoint not in candidates:
                candidates.append(endpoint)
        return candidates

    def connect(self, address: Optional[str] = None) -> Endpoint:
        """
        Negotiate an endpoint with the device.

        Sends Channel/GetIndex to each candidate with a short timeout. The
        first candidate whose request completes without a network error is
        adopted and remembered for future connects.

        Args:
            address: Device address; None or a blank string keeps the current one

        Returns:
            The negotiated endpoint

        Raises:
            NoAddressError: If no address is set
            AllEndpointsFailedError: If every candidate failed
        """
        if address is not None and address.strip():
            self._address = address.strip()

        if not self._address:
            raise NoAddressError("Device address not set")

        self._transition(LinkState.CONNECTING, None)

        last_error: Optional[BaseException] = None
        probe = GetChannelIndex()
        for endpoint in self._candidates():
            logger.debug(f"Trying connection to {self._address}:{endpoint}")
            try:
                self._post(endpoint.url(self._address), probe, self._settings.connect_timeout)
            except requests.RequestException as e:
                last_error = e
                logger.debug(f"Failed to connect on {endpoint}: {e}")
                continue

            with self._lock:
                self._last_good_endpoint = endpoint
            self._transition(LinkState.CONNECTED, endpoint)
            logger.info(f"Connected to Pixoo device at {self._address}:{endpoint}")
            return endpoint

        self._transition(LinkState.DISCONNECTED, None)
        raise AllEndpointsFailedError(
            f"Failed to connect to Pixoo device at {self._address} on any endpoint. "
            f"Last error: {last_error or 'Unknown error'}",
            last_error=last_error,
        )

    def disconnect(self) -> None:
        """Drop to disconnected without contacting the device."""
        if self.state is LinkState.DISCONNECTED:
            return
        self._transition(LinkState.DISCONNECTED, None)
        logger.info("Device link disconnected")

    # Transport

    def _post(self, url: str, command: Union[AnyCommand, dict[str, Any]], timeout: float) -> None:
        """POST a command and discard the response unread."""
        response = self._session.post(
            url,
            json=to_payload(command),
            headers=JSON_HEADERS,
            timeout=timeout,
            stream=True,
        )
        response.close()

    def send(self, command: Union[AnyCommand, dict[str, Any]]) -> None:
        """
        Transmit a command with retries.

        Makes up to ``max_attempts`` attempts with exponential backoff between
        them. Success means the transport call returned; the response is not
        inspected.

        Args:
            command: Command model or raw payload dict

        Raises:
            NotConnectedError: If the link is not connected
            ConnectionLostError: If the final attempt failed with a network
                error; the link is now disconnected
            TransportError: If the final attempt failed for another reason
        """
        with self._lock:
            if self._state is not LinkState.CONNECTED or self._endpoint is None:
                raise NotConnectedError("Not connected to Pixoo device")
            url = self._endpoint.url(self._address)

        name = command_name(command)
        attempts = self._settings.max_attempts

        for attempt in range(1, attempts + 1):
            try:
                self._post(url, command, self._settings.send_timeout)
            except requests.RequestException as e:
                logger.warning(f"Attempt {attempt}/{attempts} failed for command {name}: {e}")

                if attempt < attempts:
                    self._sleep(self._settings.backoff_delay_ms(attempt) / 1000.0)
                    continue

                if is_connection_loss(e):
                    logger.error(f"Connection lost while sending {name}, marking device as disconnected")
                    self._transition(LinkState.DISCONNECTED, None)
                    raise ConnectionLostError(f"Failed to send {name}: {e}") from e
                raise TransportError(f"Failed to send {name}: {e}") from e

            suffix = f" (attempt {attempt})" if attempt > 1 else ""
            logger.debug(f"Command sent to Pixoo device: {name}{suffix}")
            return

    # Commands

    def push(self, buffer: Optional[PixelBuffer] = None) -> None:
        """
        Send a full frame to the device.

        Args:
            buffer: Frame to send; the link's own buffer if None
        """
        frame = buffer if buffer is not None else self._buffer
        self.send(
            SendHttpGif(
                PicNum=1,
                PicWidth=frame.size,
                PicHeight=frame.size,
                PicData=frame.encode(),
                PicSpeed=1000,
                PicId=1,
            )
        )

    def draw_text(self, text: str, x: int, y: int, color: Sequence[int] = WHITE) -> None:
        """Ask the device to render a text overlay itself."""
        self.send(
            SendHttpText(
                TextId=1,
                x=x,
                y=y,
                dir=0,
                font=0,
                TextWidth=len(text) * 6,
                TextString=text,
                speed=0,
                color=RGBColor.from_value(tuple(color)).to_css(),
            )
        )

    def set_brightness(self, level: int) -> None:
        """
        Set panel brightness.

        Raises:
            OutOfRangeError: If level is not an integer in 0..100
        """
        if not _is_int(level) or not 0 <= level <= 100:
            raise OutOfRangeError(f"Brightness level must be an integer between 0 and 100, got {level!r}")
        self.send(SetBrightness(Brightness=level))

    def set_channel(self, channel: int) -> None:
        """
        Switch the device to one of its built-in channels.

        Raises:
            OutOfRangeError: If channel is not a non-negative integer
        """
        if not _is_int(channel) or channel < 0:
            raise OutOfRangeError(f"Channel index must be a non-negative integer, got {channel!r}")
        self.send(SetChannelIndex(SelectIndex=channel))

    def close(self) -> None:
        """Disconnect and release the HTTP session if this link created it."""
        self.disconnect()
        if self._owns_session:
            self._session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - close."""
        self.close()
        return False
