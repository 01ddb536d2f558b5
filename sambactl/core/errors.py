"""Domain-specific errors for sambactl."""

from __future__ import annotations

from enum import IntEnum


class ErrorKind(IntEnum):
    INTERNAL = 1
    UNKNOWN = 2
    DEVICE_NOT_FOUND = 100
    CONFIGURATION = 101
    INTERFACE_IN_USE = 102
    USB_WRITE = 103
    USB_READ = 104
    PROTOCOL = 200
    HANDSHAKE_FAILED = 201
    INVALID_FIRMWARE = 202
    FLASH_FAILED = 203
    PROFILE = 300


_DESCRIPTIONS: dict[int, str] = {
    ErrorKind.INTERNAL: "Internal error (invalid use of the library)",
    ErrorKind.UNKNOWN: "Unknown error",
    ErrorKind.DEVICE_NOT_FOUND: "Device not found on USB bus",
    ErrorKind.CONFIGURATION: "Error trying to configure the USB link",
    ErrorKind.INTERFACE_IN_USE: "USB interface is already claimed by another program",
    ErrorKind.USB_WRITE: "USB write error",
    ErrorKind.USB_READ: "USB read error",
    ErrorKind.PROTOCOL: "SAM-BA protocol error",
    ErrorKind.HANDSHAKE_FAILED: "Boot monitor handshake failed",
    ErrorKind.INVALID_FIRMWARE: "Invalid firmware image",
    ErrorKind.FLASH_FAILED: "Flash programming did not complete",
    ErrorKind.PROFILE: "Invalid flash profile",
}


def strerror(code: int) -> str:
    """Return the description for an error code, or "Unknown error"."""
    return _DESCRIPTIONS.get(code, _DESCRIPTIONS[ErrorKind.UNKNOWN])


class SambactlError(Exception):
    """Base error for sambactl."""

    kind: ErrorKind = ErrorKind.UNKNOWN


class InternalError(SambactlError):
    """Raised on programmer misuse, e.g. using a closed session."""

    kind = ErrorKind.INTERNAL


class TransportError(SambactlError):
    """Raised by transport implementations when a USB primitive fails."""


class DeviceNotFoundError(SambactlError):
    """Raised when no enumerated USB device matches the requested identity."""

    kind = ErrorKind.DEVICE_NOT_FOUND


class ConfigurationError(SambactlError):
    """Raised when the USB link cannot be opened or configured."""

    kind = ErrorKind.CONFIGURATION


class InterfaceInUseError(SambactlError):
    """Raised when claiming a USB interface fails."""

    kind = ErrorKind.INTERFACE_IN_USE


class HandshakeFailedError(SambactlError):
    """Raised when the boot monitor does not acknowledge the probe."""

    kind = ErrorKind.HANDSHAKE_FAILED


class UsbWriteError(SambactlError):
    """Raised when a bulk write to the device fails."""

    kind = ErrorKind.USB_WRITE


class UsbReadError(SambactlError):
    """Raised when a bulk read from the device fails."""

    kind = ErrorKind.USB_READ


class ProtocolError(SambactlError):
    """Raised when the boot monitor reply is malformed."""

    kind = ErrorKind.PROTOCOL


class InvalidFirmwareError(SambactlError):
    """Raised when an image or driver fails pre-flash sanity checks."""

    kind = ErrorKind.INVALID_FIRMWARE


class FlashError(SambactlError):
    """Raised when a flashing operation stops before completion.

    The device may hold a partially written image. ``phase`` names the
    orchestrator state the failure happened in; ``page`` and ``address``
    locate it when known. The underlying error is chained as ``__cause__``.
    """

    kind = ErrorKind.FLASH_FAILED

    def __init__(
        self,
        message: str,
        *,
        phase: str,
        page: int | None = None,
        address: int | None = None,
    ) -> None:
        super().__init__(message)
        self.phase = phase
        self.page = page
        self.address = address


class ProfileLoadError(SambactlError):
    """Raised when loading flash profile sources fails."""

    kind = ErrorKind.PROFILE


class ProfileValidationError(SambactlError):
    """Raised when a profile file does not conform to schema or semantics."""

    kind = ErrorKind.PROFILE
