"""Transport interfaces."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

from sambactl.core.model import UsbDeviceInfo


class UsbTransport(Protocol):
    """Blocking USB primitives consumed by the session manager.

    Implementations raise ``TransportError`` when a primitive fails.
    """

    def enumerate(self) -> Sequence[UsbDeviceInfo]:
        """Return every device currently visible on the bus."""

    def open(self, device_ref: Any) -> Any:
        """Open a device and return an opaque handle."""

    def set_configuration(self, handle: Any, config_id: int) -> None:
        """Select the given USB configuration."""

    def claim_interface(self, handle: Any, interface: int) -> None:
        """Claim an interface for exclusive use."""

    def release_interface(self, handle: Any, interface: int) -> None:
        """Release a previously claimed interface."""

    def close(self, handle: Any) -> None:
        """Close the handle and free its resources."""

    def bulk_write(self, handle: Any, endpoint: int, data: bytes) -> None:
        """Write all of ``data`` to a bulk OUT endpoint."""

    def bulk_read(self, handle: Any, endpoint: int, max_len: int) -> bytes:
        """Read up to ``max_len`` bytes from a bulk IN endpoint."""
