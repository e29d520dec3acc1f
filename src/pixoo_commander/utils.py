"""Colour handling shared by widget configs, the frame buffer and the device link."""

import re
from typing import Union

from pydantic import BaseModel, Field

RGB = tuple[int, int, int]

BLACK: RGB = (0, 0, 0)
WHITE: RGB = (255, 255, 255)

NAMED_COLORS: dict[str, RGB] = {
    "black": BLACK,
    "off": BLACK,
    "white": WHITE,
    "red": (255, 0, 0),
    "green": (0, 255, 0),
    "blue": (0, 0, 255),
    "yellow": (255, 255, 0),
    "cyan": (0, 255, 255),
    "magenta": (255, 0, 255),
    "orange": (255, 128, 0),
    "purple": (128, 0, 255),
    "pink": (255, 64, 128),
    "gray": (64, 64, 64),
    "grey": (64, 64, 64),
}

_HEX_PATTERN = re.compile(r"#?([0-9a-f]{6}|[0-9a-f]{3})")
_CSS_PATTERN = re.compile(r"rgb\(\s*(-?\d+)\s*,\s*(-?\d+)\s*,\s*(-?\d+)\s*\)")

ColorValue = Union[str, list, tuple, "RGBColor"]


def clamp_channel(value: int) -> int:
    """Clamp a colour channel into 0..255."""
    return max(0, min(255, int(value)))


class RGBColor(BaseModel):
    """
    One panel colour.

    Configs may give colours as palette names, ``#rrggbb`` or ``#rgb`` hex
    (the ``#`` is optional, matching the device's own frame encoding),
    ``rgb(r, g, b)`` strings, or 3-element sequences. Sequence and ``rgb()``
    channels are clamped; everything else must already be in range.
    """

    r: int = Field(ge=0, le=255)
    g: int = Field(ge=0, le=255)
    b: int = Field(ge=0, le=255)

    @classmethod
    def from_channels(cls, r: int, g: int, b: int) -> "RGBColor":
        return cls(r=clamp_channel(r), g=clamp_channel(g), b=clamp_channel(b))

    @classmethod
    def from_string(cls, text: str) -> "RGBColor":
        """
        Parse a palette name, hex string or ``rgb()`` string.

        Raises:
            ValueError: If the text is none of those
        """
        key = text.strip().lower()

        if key in NAMED_COLORS:
            return cls.from_channels(*NAMED_COLORS[key])

        match = _HEX_PATTERN.fullmatch(key)
        if match:
            digits = match.group(1)
            if len(digits) == 3:
                digits = "".join(digit * 2 for digit in digits)
            return cls(r=int(digits[0:2], 16), g=int(digits[2:4], 16), b=int(digits[4:6], 16))

        match = _CSS_PATTERN.fullmatch(key)
        if match:
            return cls.from_channels(*(int(part) for part in match.groups()))

        raise ValueError(f"Unknown color {text!r}: expected a name, #rrggbb or rgb(r, g, b)")

    @classmethod
    def from_value(cls, value: ColorValue) -> "RGBColor":
        """
        Build a colour from any config representation.

        Raises:
            ValueError: If the value cannot be read as a colour
        """
        if isinstance(value, RGBColor):
            return value
        if isinstance(value, str):
            return cls.from_string(value)
        if isinstance(value, (list, tuple)) and len(value) == 3:
            return cls.from_channels(*value)
        raise ValueError(f"Unsupported color value: {value!r}")

    def as_tuple(self) -> RGB:
        return (self.r, self.g, self.b)

    def to_hex(self) -> str:
        """Six lowercase hex digits, no prefix, as in the frame encoding."""
        return f"{self.r:02x}{self.g:02x}{self.b:02x}"

    def to_css(self) -> str:
        """``rgb(r, g, b)`` as the device's text command expects."""
        return f"rgb({self.r}, {self.g}, {self.b})"


def parse_color(value: ColorValue) -> RGB:
    """Normalise any accepted colour representation to an (r, g, b) tuple."""
    return RGBColor.from_value(value).as_tuple()
