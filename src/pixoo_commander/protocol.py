"""
Typed command payloads for the Pixoo HTTP control protocol.

Every request is a JSON object POSTed to the negotiated endpoint, with a
``Command`` field selecting the operation. Responses are never read on the
control path; only discovery parses Device/GetDeviceInfo replies.
"""

from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class CommandName(str, Enum):
    """Command selectors understood by the device."""

    GET_CHANNEL_INDEX = "Channel/GetIndex"
    GET_DEVICE_INFO = "Device/GetDeviceInfo"
    SEND_HTTP_GIF = "Draw/SendHttpGif"
    SEND_HTTP_TEXT = "Draw/SendHttpText"
    SET_BRIGHTNESS = "Channel/SetBrightness"
    SET_CHANNEL_INDEX = "Channel/SetIndex"


class DeviceCommand(BaseModel):
    """Base class for all device commands."""

    command: CommandName = Field(alias="Command")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_payload(self) -> dict[str, Any]:
        """Serialise to the wire field names."""
        return self.model_dump(by_alias=True, mode="json")


class GetChannelIndex(DeviceCommand):
    """Lightweight connectivity probe."""

    command: Literal[CommandName.GET_CHANNEL_INDEX] = Field(default=CommandName.GET_CHANNEL_INDEX, alias="Command")


class GetDeviceInfo(DeviceCommand):
    """Discovery probe; the reply identifies the device when readable."""

    command: Literal[CommandName.GET_DEVICE_INFO] = Field(default=CommandName.GET_DEVICE_INFO, alias="Command")


class SendHttpGif(DeviceCommand):
    """Full-frame push of a hex-encoded picture."""

    command: Literal[CommandName.SEND_HTTP_GIF] = Field(default=CommandName.SEND_HTTP_GIF, alias="Command")
    pic_num: int = Field(default=1, ge=1, alias="PicNum")
    pic_width: int = Field(ge=1, alias="PicWidth")
    pic_height: int = Field(ge=1, alias="PicHeight")
    pic_data: str = Field(alias="PicData")
    pic_speed: int = Field(default=1000, ge=0, alias="PicSpeed")
    pic_id: int = Field(default=1, alias="PicId")


class SendHttpText(DeviceCommand):
    """Device-rendered text overlay."""

    command: Literal[CommandName.SEND_HTTP_TEXT] = Field(default=CommandName.SEND_HTTP_TEXT, alias="Command")
    text_id: int = Field(default=1, alias="TextId")
    x: int = 0
    y: int = 0
    dir: int = 0
    font: int = 0
    text_width: int = Field(ge=0, alias="TextWidth")
    text_string: str = Field(alias="TextString")
    speed: int = 0
    color: str = "rgb(255, 255, 255)"


class SetBrightness(DeviceCommand):
    """Panel brightness in percent."""

    command: Literal[CommandName.SET_BRIGHTNESS] = Field(default=CommandName.SET_BRIGHTNESS, alias="Command")
    brightness: int = Field(ge=0, le=100, alias="Brightness")


class SetChannelIndex(DeviceCommand):
    """Switch the device to a built-in channel."""

    command: Literal[CommandName.SET_CHANNEL_INDEX] = Field(default=CommandName.SET_CHANNEL_INDEX, alias="Command")
    select_index: int = Field(ge=0, alias="SelectIndex")


AnyCommand = Union[
    GetChannelIndex,
    GetDeviceInfo,
    SendHttpGif,
    SendHttpText,
    SetBrightness,
    SetChannelIndex,
]


def command_name(command: Union[DeviceCommand, dict[str, Any]]) -> str:
    """Return the Command selector of a model or raw payload, for logging."""
    if isinstance(command, DeviceCommand):
        return command.command.value
    return str(command.get("Command", "<unknown>"))


def to_payload(command: Union[DeviceCommand, dict[str, Any]]) -> dict[str, Any]:
    """Normalise a command model or raw payload dict to a JSON-ready dict."""
    if isinstance(command, DeviceCommand):
        return command.to_payload()
    return dict(command)
