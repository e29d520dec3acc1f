"""
Exception hierarchy for Pixoo Commander.

Configuration errors are raised synchronously to the caller and never retried.
Transport errors come from the device link after its retry budget is spent.
Plugin errors describe failures inside untrusted widget or plugin code; the
core logs them and keeps running.
"""

from typing import Optional


class PixooError(Exception):
    """Base exception for all Pixoo Commander errors."""

    pass


class ConfigurationError(PixooError):
    """Invalid parameters at the API boundary."""

    pass


class UnknownWidgetTypeError(ConfigurationError):
    """Raised when a widget type tag is not registered."""

    pass


class OutOfRangeError(ConfigurationError):
    """Raised when a numeric parameter falls outside its allowed range."""

    pass


class NoAddressError(ConfigurationError):
    """Raised when connecting without a device address."""

    pass


class InvalidPluginError(ConfigurationError):
    """Raised when a plugin is missing its id, name or version."""

    pass


class DuplicatePluginError(ConfigurationError):
    """Raised when registering a plugin whose id is already registered."""

    pass


class TransportError(PixooError):
    """Network-level failure talking to the device."""

    pass


class ConnectionLostError(TransportError):
    """Transport failure while connected; the link has dropped to disconnected."""

    pass


class AllEndpointsFailedError(TransportError):
    """
    Raised when no candidate endpoint accepted the connectivity probe.

    Attributes:
        last_error: The transport exception from the final candidate, if any
    """

    def __init__(self, message: str, last_error: Optional[BaseException] = None):
        super().__init__(message)
        self.last_error = last_error


class NotConnectedError(PixooError):
    """Raised when sending while the link is not connected."""

    pass


class PluginError(PixooError):
    """
    Failure reported by a plugin or widget hook.

    Hooks may raise it for expected failures; the core logs it without a
    traceback and carries on. It never propagates past the registry or scene.
    """

    pass


class NotFoundError(PixooError):
    """Raised when a required scene, widget or plugin lookup fails."""

    pass
