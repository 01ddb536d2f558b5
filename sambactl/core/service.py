"""Service layer used by CLI and future UI frontends."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sambactl.core.errors import ConfigurationError, InternalError
from sambactl.core.flash import FlashOrchestrator, ProgressCallback
from sambactl.core.model import DeviceHandle, FirmwareVariant, FlashProfile, FlashReport, TargetSelector
from sambactl.core.profile_loader import load_profiles
from sambactl.core.protocol import BootMonitor
from sambactl.core.session import discover, open_session, scan
from sambactl.transports.base import UsbTransport
from sambactl.transports.pyusb_bulk import PyUSBTransport, backend_available

LOGGER = logging.getLogger(__name__)

_WIDTHS = (1, 2, 4)


class SambaService:
    def __init__(self, *, transport: UsbTransport | None = None) -> None:
        loaded = load_profiles()
        self.profiles = loaded.profiles
        self.load_warnings = loaded.warnings
        self.runtime_warnings = _runtime_warnings() if transport is None else ()
        self.transport = transport or PyUSBTransport()

    def list_profiles(self) -> list[FlashProfile]:
        return sorted(self.profiles.values(), key=lambda p: p.id)

    def profile(self, profile_id: str) -> FlashProfile:
        profile = self.profiles.get(profile_id)
        if profile is None:
            available = ", ".join(sorted(self.profiles))
            raise ConfigurationError(f"Unknown flash profile '{profile_id}'. Available: {available}")
        return profile

    def list_devices(self) -> list[DeviceHandle]:
        return scan(self.transport)

    def resolve_target(
        self,
        variant: FirmwareVariant | None = None,
        vendor_id: int | None = None,
        product_id: int | None = None,
    ) -> DeviceHandle:
        return discover(self.transport, variant, vendor_id, product_id)

    @contextmanager
    def connect(self, target: TargetSelector | None = None) -> Iterator[BootMonitor]:
        """Open a session to the target and yield a monitor; the session is closed on exit."""
        target = target or TargetSelector()
        device = self.resolve_target(target.variant, target.vendor_id, target.product_id)
        with open_session(self.transport, device) as session:
            yield BootMonitor(session)

    def version(self, target: TargetSelector | None = None) -> str:
        with self.connect(target) as monitor:
            return monitor.version()

    def peek(self, address: int, width: int = 4, target: TargetSelector | None = None) -> int:
        _check_width(width)
        with self.connect(target) as monitor:
            if width == 1:
                return monitor.read_byte(address)
            if width == 2:
                return monitor.read_halfword(address)
            return monitor.read_word(address)

    def poke(self, address: int, value: int, width: int = 4, target: TargetSelector | None = None) -> None:
        _check_width(width)
        with self.connect(target) as monitor:
            if width == 1:
                monitor.write_byte(address, value)
            elif width == 2:
                monitor.write_halfword(address, value)
            else:
                monitor.write_word(address, value)

    def dump(
        self,
        address: int,
        length: int,
        chunk_size: int = 0x1000,
        target: TargetSelector | None = None,
    ) -> bytes:
        data = bytearray()
        with self.connect(target) as monitor:
            for offset in range(0, length, chunk_size):
                data += monitor.receive_buffer(address + offset, min(chunk_size, length - offset))
        return bytes(data)

    def execute(self, code: bytes, address: int, target: TargetSelector | None = None) -> None:
        """Upload a routine into RAM and jump to it."""
        if not code:
            raise InternalError("Refusing to execute an empty routine")
        with self.connect(target) as monitor:
            LOGGER.info("Uploading %d byte(s) to 0x%08X and jumping there", len(code), address)
            monitor.send_buffer(address, code)
            monitor.jump(address)

    def flash(
        self,
        image: bytes,
        driver: bytes,
        *,
        profile_id: str = "nxt",
        address: int | None = None,
        verify: bool = True,
        progress: ProgressCallback | None = None,
        target: TargetSelector | None = None,
    ) -> FlashReport:
        profile = self.profile(profile_id)
        with self.connect(target) as monitor:
            orchestrator = FlashOrchestrator(monitor, profile)
            return orchestrator.run(image, driver, address=address, verify=verify, progress=progress)

    def boot(self, profile_id: str = "nxt", target: TargetSelector | None = None) -> int:
        """Jump to the start of flash, handing control to the flashed firmware."""
        profile = self.profile(profile_id)
        with self.connect(target) as monitor:
            monitor.jump(profile.flash_base)
        return profile.flash_base


def _check_width(width: int) -> None:
    if width not in _WIDTHS:
        raise InternalError(f"Access width must be one of {_WIDTHS}, got {width}")


def _runtime_warnings() -> tuple[str, ...]:
    warnings: list[str] = []
    if not backend_available():
        warnings.append("No libusb backend found for pyusb; USB commands will fail.")
    return tuple(warnings)
