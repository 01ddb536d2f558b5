"""USB bulk transport implementation using pyusb."""

from __future__ import annotations

from typing import Any

from sambactl.core.errors import TransportError
from sambactl.core.model import UsbDeviceInfo


def _usb() -> Any:
    try:
        import usb.core  # type: ignore
        import usb.util  # type: ignore
    except Exception as exc:  # pragma: no cover - import failure path
        raise TransportError(
            "USB transport requires 'pyusb'. Install dependency and retry."
        ) from exc
    return usb


class PyUSBTransport:
    """Bulk transfers through libusb via pyusb.

    ``timeout_ms`` bounds every transfer; 0 blocks until the device answers.
    """

    def __init__(self, *, timeout_ms: int = 5000) -> None:
        self.timeout_ms = timeout_ms

    def enumerate(self) -> list[UsbDeviceInfo]:
        usb = _usb()
        try:
            devices = usb.core.find(find_all=True)
        except usb.core.NoBackendError as exc:
            raise TransportError("No libusb backend available for USB enumeration") from exc
        return [
            UsbDeviceInfo(vendor_id=dev.idVendor, product_id=dev.idProduct, device_ref=dev)
            for dev in devices
        ]

    def open(self, device_ref: Any) -> Any:
        # pyusb opens the underlying libusb handle lazily on first use.
        return device_ref

    def set_configuration(self, handle: Any, config_id: int) -> None:
        usb = _usb()
        try:
            handle.set_configuration(config_id)
        except usb.core.USBError as exc:
            raise TransportError(f"set_configuration({config_id}) failed: {exc}") from exc

    def claim_interface(self, handle: Any, interface: int) -> None:
        usb = _usb()
        try:
            if handle.is_kernel_driver_active(interface):
                handle.detach_kernel_driver(interface)
        except NotImplementedError:
            pass
        except usb.core.USBError as exc:
            raise TransportError(f"Could not detach kernel driver from interface {interface}: {exc}") from exc
        try:
            usb.util.claim_interface(handle, interface)
        except usb.core.USBError as exc:
            raise TransportError(f"claim_interface({interface}) failed: {exc}") from exc

    def release_interface(self, handle: Any, interface: int) -> None:
        usb = _usb()
        try:
            usb.util.release_interface(handle, interface)
        except usb.core.USBError as exc:
            raise TransportError(f"release_interface({interface}) failed: {exc}") from exc

    def close(self, handle: Any) -> None:
        usb = _usb()
        usb.util.dispose_resources(handle)

    def bulk_write(self, handle: Any, endpoint: int, data: bytes) -> None:
        usb = _usb()
        try:
            written = handle.write(endpoint, data, timeout=self.timeout_ms)
        except usb.core.USBTimeoutError as exc:
            raise TransportError(f"Bulk write to endpoint 0x{endpoint:02X} timed out") from exc
        except usb.core.USBError as exc:
            raise TransportError(f"Bulk write to endpoint 0x{endpoint:02X} failed: {exc}") from exc
        if written != len(data):
            raise TransportError(
                f"Short bulk write to endpoint 0x{endpoint:02X}: {written} of {len(data)} bytes"
            )

    def bulk_read(self, handle: Any, endpoint: int, max_len: int) -> bytes:
        usb = _usb()
        try:
            data = handle.read(endpoint, max_len, timeout=self.timeout_ms)
        except usb.core.USBTimeoutError as exc:
            raise TransportError(f"Bulk read from endpoint 0x{endpoint:02X} timed out") from exc
        except usb.core.USBError as exc:
            raise TransportError(f"Bulk read from endpoint 0x{endpoint:02X} failed: {exc}") from exc
        return bytes(data)


def backend_available() -> bool:
    try:
        import usb.backend.libusb1  # type: ignore
    except Exception:
        return False
    return usb.backend.libusb1.get_backend() is not None
