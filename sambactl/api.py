"""Stable public API for building tooling on top of sambactl.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sambactl.core.errors import (
    ConfigurationError,
    DeviceNotFoundError,
    ErrorKind,
    FlashError,
    HandshakeFailedError,
    InterfaceInUseError,
    InternalError,
    InvalidFirmwareError,
    ProfileLoadError,
    ProfileValidationError,
    ProtocolError,
    SambactlError,
    TransportError,
    UsbReadError,
    UsbWriteError,
    strerror,
)
from sambactl.core.model import (
    DeviceHandle,
    DeviceIdentity,
    FirmwareVariant,
    FlashProfile,
    FlashReport,
    FlashState,
    TargetSelector,
)
from sambactl.core.protocol import BootMonitor
from sambactl.core.service import SambaService
from sambactl.transports.base import UsbTransport
from sambactl.transports.pyusb_bulk import PyUSBTransport

__all__ = [
    "SambactlError",
    "ErrorKind",
    "strerror",
    "ConfigurationError",
    "DeviceNotFoundError",
    "FlashError",
    "HandshakeFailedError",
    "InterfaceInUseError",
    "InternalError",
    "InvalidFirmwareError",
    "ProfileLoadError",
    "ProfileValidationError",
    "ProtocolError",
    "TransportError",
    "UsbReadError",
    "UsbWriteError",
    "BootMonitor",
    "DeviceHandle",
    "DeviceIdentity",
    "FirmwareVariant",
    "FlashProfile",
    "FlashReport",
    "FlashState",
    "TargetSelector",
    "UsbTransport",
    "PyUSBTransport",
    "Client",
]


class Client:
    """Public client for interacting with sambactl core capabilities.

    A `Client` wraps profile loading, device discovery, session handling and
    the boot monitor command set behind a stable API intended for third-party
    tools (GUI/TUI/services/scripts). Every call opens its own session and
    closes it before returning; use :meth:`connect` to batch commands.
    """

    def __init__(self, *, transport: UsbTransport | None = None) -> None:
        self._service = SambaService(transport=transport)

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    @property
    def runtime_warnings(self) -> tuple[str, ...]:
        return self._service.runtime_warnings

    def list_profiles(self) -> list[FlashProfile]:
        return self._service.list_profiles()

    def list_devices(self) -> list[DeviceHandle]:
        return self._service.list_devices()

    def find_device(self, target: TargetSelector | None = None) -> DeviceHandle:
        target = target or TargetSelector()
        return self._service.resolve_target(target.variant, target.vendor_id, target.product_id)

    @contextmanager
    def connect(self, target: TargetSelector | None = None) -> Iterator[BootMonitor]:
        with self._service.connect(target) as monitor:
            yield monitor

    def version(self, target: TargetSelector | None = None) -> str:
        return self._service.version(target)

    def read(self, address: int, *, width: int = 4, target: TargetSelector | None = None) -> int:
        return self._service.peek(address, width, target)

    def write(self, address: int, value: int, *, width: int = 4, target: TargetSelector | None = None) -> None:
        self._service.poke(address, value, width, target)

    def dump(self, address: int, length: int, *, target: TargetSelector | None = None) -> bytes:
        return self._service.dump(address, length, target=target)

    def execute(self, code: bytes, address: int, *, target: TargetSelector | None = None) -> None:
        self._service.execute(code, address, target)

    def flash(
        self,
        image: bytes,
        driver: bytes,
        *,
        profile_id: str = "nxt",
        address: int | None = None,
        verify: bool = True,
        target: TargetSelector | None = None,
    ) -> FlashReport:
        return self._service.flash(
            image,
            driver,
            profile_id=profile_id,
            address=address,
            verify=verify,
            target=target,
        )

    def boot(self, *, profile_id: str = "nxt", target: TargetSelector | None = None) -> int:
        return self._service.boot(profile_id, target)
