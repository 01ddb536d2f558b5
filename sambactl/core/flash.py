"""Flash programming through an in-RAM driver staged via the boot monitor.

The boot monitor cannot drive the embedded flash controller's key/command
sequence itself, so programming runs in four steps:

1. Unlock the lock regions covered by the image and upload the driver
   routine to RAM.
2. For each page, publish the page index (and destination address when the
   profile asks for one), upload the zero-padded page into the staging
   buffer, and jump into the driver. The monitor regains control once the
   driver returns.
3. Wait for the controller to go idle, optionally relock the regions.
4. Optionally read every page back and compare against the image.

Any failure leaves the orchestrator in ``FAILED`` and raises ``FlashError``;
no further commands are issued and the flash may hold a partial image.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator

from sambactl.core.errors import FlashError, InternalError, InvalidFirmwareError, ProtocolError, SambactlError
from sambactl.core.model import FlashProfile, FlashRegion, FlashReport, FlashState
from sambactl.core.protocol import BootMonitor

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def validate_image(profile: FlashProfile, address: int, image: bytes) -> None:
    """Pre-flight checks on the destination and image size."""
    if not image:
        raise InvalidFirmwareError("Firmware image is empty")
    flash_end = profile.flash_base + profile.flash_size
    if not profile.flash_base <= address < flash_end:
        raise InvalidFirmwareError(
            f"Destination 0x{address:08X} is outside flash "
            f"0x{profile.flash_base:08X}..0x{flash_end - 1:08X}"
        )
    if (address - profile.flash_base) % profile.page_size:
        raise InvalidFirmwareError(
            f"Destination 0x{address:08X} is not aligned to the {profile.page_size}-byte page size"
        )
    if address + len(image) > flash_end:
        raise InvalidFirmwareError(
            f"Image of {len(image)} bytes does not fit in flash at 0x{address:08X} "
            f"({flash_end - address} bytes available)"
        )


def validate_driver(profile: FlashProfile, driver: bytes) -> None:
    if not driver:
        raise InvalidFirmwareError("Flash driver routine is empty")
    if len(driver) > profile.driver.max_size:
        raise InvalidFirmwareError(
            f"Flash driver is {len(driver)} bytes, larger than the {profile.driver.max_size}-byte limit "
            f"of profile '{profile.id}'"
        )


def split_pages(profile: FlashProfile, address: int, image: bytes) -> Iterator[FlashRegion]:
    """Yield page-sized regions; the final partial page is zero-padded."""
    size = profile.page_size
    for offset in range(0, len(image), size):
        chunk = image[offset : offset + size]
        yield FlashRegion(address=address + offset, data=chunk.ljust(size, b"\x00"))


class FlashOrchestrator:
    """Runs one flashing operation against a borrowed :class:`BootMonitor`.

    An instance is single-use: after ``DONE`` or ``FAILED`` it refuses to run
    again, and the caller must reopen a session to retry.
    """

    def __init__(self, monitor: BootMonitor, profile: FlashProfile) -> None:
        self.monitor = monitor
        self.profile = profile
        self.state = FlashState.IDLE

    def _transition(self, state: FlashState) -> None:
        LOGGER.info("Flash %s -> %s", self.state.value, state.value)
        self.state = state

    def _fail(
        self,
        exc: SambactlError,
        *,
        phase: FlashState | None = None,
        page: int | None = None,
        address: int | None = None,
    ) -> FlashError:
        phase_name = (phase or self.state).value
        self.state = FlashState.FAILED
        where = f" at page {page} (0x{address:08X})" if page is not None and address is not None else ""
        LOGGER.error("Flash failed during %s%s: %s", phase_name, where, exc)
        return FlashError(
            f"Flashing did not complete: {phase_name} failed{where}: {exc}",
            phase=phase_name,
            page=page,
            address=address,
        )

    def _page_index(self, address: int) -> int:
        return (address - self.profile.flash_base) // self.profile.page_size

    def wait_ready(self) -> None:
        """Poll the controller status register until its ready bit is set."""
        controller = self.profile.controller
        for _ in range(controller.ready_poll_limit):
            status = self.monitor.read_word(controller.status_register)
            if status & controller.ready_mask:
                return
        raise ProtocolError(
            f"Flash controller status 0x{controller.status_register:08X} not ready "
            f"after {controller.ready_poll_limit} polls"
        )

    def _region_command(self, region: int, command: int) -> None:
        controller = self.profile.controller
        page = region * self.profile.pages_per_region
        self.wait_ready()
        self.monitor.write_word(controller.mode_register, controller.command_mode)
        self.monitor.write_word(controller.command_register, (controller.key << 24) | (page << 8) | command)
        self.monitor.write_word(controller.mode_register, controller.program_mode)

    def _regions_for(self, address: int, length: int) -> range:
        first = self._page_index(address) // self.profile.pages_per_region
        last = self._page_index(address + length - 1) // self.profile.pages_per_region
        return range(first, last + 1)

    def stage_driver(self, driver: bytes, address: int, length: int) -> None:
        for region in self._regions_for(address, length):
            LOGGER.debug("Unlocking flash region %d", region)
            self._region_command(region, self.profile.controller.unlock_command)
        self.monitor.send_buffer(self.profile.driver.load_address, driver)

    def program_page(self, region: FlashRegion) -> None:
        driver = self.profile.driver
        self.wait_ready()
        self.monitor.write_word(driver.page_index_address, self._page_index(region.address))
        if driver.destination_address is not None:
            self.monitor.write_word(driver.destination_address, region.address)
        self.monitor.send_buffer(driver.staging_address, region.data)
        self.monitor.jump(driver.load_address)

    def run(
        self,
        image: bytes,
        driver: bytes,
        *,
        address: int | None = None,
        verify: bool = True,
        progress: ProgressCallback | None = None,
    ) -> FlashReport:
        if self.state is not FlashState.IDLE:
            raise InternalError(f"Flash operation already {self.state.value}; open a new session to retry")

        image = bytes(image)
        start = self.profile.flash_base if address is None else address
        validate_image(self.profile, start, image)
        validate_driver(self.profile, bytes(driver))
        pages = list(split_pages(self.profile, start, image))

        try:
            self.stage_driver(bytes(driver), start, len(image))
        except SambactlError as exc:
            raise self._fail(exc, phase=FlashState.DRIVER_STAGED) from exc
        self._transition(FlashState.DRIVER_STAGED)

        self._transition(FlashState.PROGRAMMING)
        for number, region in enumerate(pages):
            try:
                self.program_page(region)
            except SambactlError as exc:
                raise self._fail(exc, page=self._page_index(region.address), address=region.address) from exc
            if progress is not None:
                progress(number + 1, len(pages))
        try:
            self.wait_ready()
            if self.profile.lock_after_write:
                for lock_region in self._regions_for(start, len(image)):
                    self._region_command(lock_region, self.profile.controller.lock_command)
        except SambactlError as exc:
            raise self._fail(exc) from exc

        if verify:
            self._transition(FlashState.VERIFYING)
            end = start + len(image)
            for region in pages:
                length = min(self.profile.page_size, end - region.address)
                try:
                    readback = self.monitor.receive_buffer(region.address, length)
                except SambactlError as exc:
                    raise self._fail(exc, page=self._page_index(region.address), address=region.address) from exc
                if readback != region.data[:length]:
                    mismatch = next(i for i, (a, b) in enumerate(zip(readback, region.data)) if a != b)
                    err = ProtocolError(f"readback differs from the image at page offset {mismatch}")
                    raise self._fail(err, page=self._page_index(region.address), address=region.address) from err

        self._transition(FlashState.DONE)
        return FlashReport(
            profile_id=self.profile.id,
            address=start,
            image_size=len(image),
            pages_written=len(pages),
            verified=verify,
        )
