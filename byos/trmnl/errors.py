"""Errors raised by the device and rendering pipeline."""


class ByosError(Exception):
    """Base class for server errors."""


class InvalidIdentifier(ByosError, ValueError):
    """Hardware identifier is not a six-octet MAC address."""


class DeviceNotRegistered(ByosError):
    """No device matched the presented identity and none could be created."""

    def __init__(self, message: str = "Device not registered. Please run setup first."):
        super().__init__(message)


class RenderFailure(ByosError):
    """Building or rasterizing a screen failed."""


class PersistenceWriteFailure(ByosError):
    """A write to the device directory failed."""
