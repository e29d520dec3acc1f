"""
Pydantic configuration models for the device link, discovery and widgets.

Link and discovery settings carry every tunable constant of the wire
protocol (candidate endpoints, timeouts, retry budget, discovery heuristics)
so firmware-specific behaviour can be adjusted without touching the link code.
Widget config models supply type-specific defaults and validate user overrides.
"""

from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

from pixoo_commander.utils import parse_color

Color = Annotated[tuple[int, int, int], BeforeValidator(parse_color)]


class Endpoint(BaseModel):
    """A (port, path) pair a device may accept commands on."""

    port: int = Field(ge=1, le=65535)
    path: str = "/post"

    model_config = ConfigDict(frozen=True)

    @field_validator("path")
    @classmethod
    def validate_path(cls, v):
        """Paths are absolute."""
        if not v.startswith("/"):
            raise ValueError(f"Endpoint path must start with '/', got '{v}'")
        return v

    def url(self, address: str) -> str:
        """Build the POST URL for a device address."""
        return f"http://{address}:{self.port}{self.path}"

    def __str__(self) -> str:
        return f"{self.port}{self.path}"


# Probing order used by both connect and discovery
DEFAULT_ENDPOINTS: tuple[Endpoint, ...] = (
    Endpoint(port=80, path="/post"),
    Endpoint(port=64, path="/post"),
    Endpoint(port=80, path="/api/post"),
    Endpoint(port=8080, path="/post"),
    Endpoint(port=443, path="/post"),
)


class LinkSettings(BaseModel):
    """
    Retry and negotiation policy for the device link.

    Timeouts are in seconds, backoff values in milliseconds.
    """

    endpoints: list[Endpoint] = Field(default_factory=lambda: list(DEFAULT_ENDPOINTS))
    connect_timeout: float = Field(default=3.0, gt=0)
    send_timeout: float = Field(default=5.0, gt=0)
    max_attempts: int = Field(default=3, ge=1)
    backoff_base_ms: int = Field(default=1000, ge=0)
    backoff_cap_ms: int = Field(default=3000, ge=0)

    @field_validator("endpoints")
    @classmethod
    def validate_endpoints(cls, v):
        if not v:
            raise ValueError("At least one candidate endpoint is required")
        return v

    def backoff_delay_ms(self, attempt: int) -> int:
        """
        Delay to wait after a failed attempt before the next one.

        Args:
            attempt: 1-based number of the attempt that just failed

        Returns:
            min(base * 2^(attempt-1), cap) in milliseconds
        """
        return min(self.backoff_base_ms * 2 ** (attempt - 1), self.backoff_cap_ms)


class DiscoverySettings(BaseModel):
    """
    Heuristics for recognising a Pixoo on the network.

    The device firmware is undocumented, so the indicator keys, threshold and
    field fallbacks are policy rather than protocol.
    """

    endpoints: list[Endpoint] = Field(default_factory=lambda: list(DEFAULT_ENDPOINTS))
    probe_timeout: float = Field(default=5.0, gt=0)
    max_workers: int = Field(default=32, ge=1)
    indicator_keys: list[str] = Field(
        default_factory=lambda: ["error_code", "ReturnCode", "DeviceName", "DeviceId", "brightness", "channel"]
    )
    indicator_threshold: int = Field(default=2, ge=1)
    name_keys: list[str] = Field(default_factory=lambda: ["DeviceName", "device_name", "name"])
    default_name: str = "Pixoo Device"
    device_model_keys: list[str] = Field(default_factory=lambda: ["DeviceModel", "model", "HardwareInfo"])
    default_model: str = "Unknown"
    size_tokens: list[int] = Field(default_factory=lambda: [64, 32, 16])
    default_size: int = Field(default=64, ge=1)
    common_ranges: list[str] = Field(
        default_factory=lambda: ["192.168.1", "192.168.0", "192.168.2", "10.0.0", "10.0.1"]
    )


class WidgetConfig(BaseModel):
    """
    Options shared by every widget.

    Unknown keys are kept so plugins can carry extra options without
    declaring a schema. Intervals are in milliseconds.
    """

    x: int = 0
    y: int = 0
    width: int = Field(default=64, ge=1)
    height: int = Field(default=64, ge=1)
    update_interval: int = Field(default=1000, ge=0)
    enabled: bool = True

    model_config = ConfigDict(extra="allow")


class AnimatedWidgetConfig(WidgetConfig):
    """Options for frame-driven widgets."""

    animation_speed: int = Field(default=100, ge=0)


class DataWidgetConfig(WidgetConfig):
    """Options for widgets that periodically fetch data."""

    data_fetch_interval: int = Field(default=30000, ge=0)


BASE_CONFIG_MODELS: tuple[type[WidgetConfig], ...] = (WidgetConfig, AnimatedWidgetConfig, DataWidgetConfig)
