"""USB session management: discovery, open/handshake, interface ownership."""

from __future__ import annotations

import logging
from typing import Any

from sambactl.core.errors import (
    ConfigurationError,
    DeviceNotFoundError,
    HandshakeFailedError,
    InterfaceInUseError,
    InternalError,
    TransportError,
)
from sambactl.core.model import DeviceHandle, DeviceIdentity, FirmwareVariant, VariantSpec
from sambactl.core.registry import KNOWN_IDENTITIES, classify, identity_of, variant_spec
from sambactl.transports.base import UsbTransport

USB_CONFIGURATION = 1
HANDSHAKE_PROBE = b"N#"
HANDSHAKE_ACK = b"\n\r"
LOGGER = logging.getLogger(__name__)


def scan(transport: UsbTransport) -> list[DeviceHandle]:
    """Return every enumerated device that runs a known firmware variant."""
    found: list[DeviceHandle] = []
    for info in transport.enumerate():
        variant = classify(info.vendor_id, info.product_id)
        if variant is FirmwareVariant.UNKNOWN:
            continue
        found.append(DeviceHandle(variant=variant, identity=KNOWN_IDENTITIES[variant], device_ref=info.device_ref))
    return found


def discover(
    transport: UsbTransport,
    desired_variant: FirmwareVariant | None = None,
    vendor_id: int | None = None,
    product_id: int | None = None,
) -> DeviceHandle:
    """Locate the first device matching a variant, an explicit id pair, or any known variant.

    A desired variant takes precedence over explicit ids. Without either, each
    enumerated device is checked against the known identities in registry order.
    """
    wanted: DeviceIdentity | None = None
    if desired_variant is not None and desired_variant is not FirmwareVariant.UNKNOWN:
        wanted = identity_of(desired_variant)
    elif vendor_id is not None or product_id is not None:
        if vendor_id is None or product_id is None:
            raise ConfigurationError("Both vendor and product ID are required for explicit discovery")
        wanted = DeviceIdentity(vendor_id=vendor_id, product_id=product_id)

    devices = transport.enumerate()
    for info in devices:
        if wanted is not None:
            if info.vendor_id == wanted.vendor_id and info.product_id == wanted.product_id:
                variant = classify(info.vendor_id, info.product_id)
                return DeviceHandle(variant=variant, identity=wanted, device_ref=info.device_ref)
            continue
        for variant, identity in KNOWN_IDENTITIES.items():
            if info.vendor_id == identity.vendor_id and info.product_id == identity.product_id:
                return DeviceHandle(variant=variant, identity=identity, device_ref=info.device_ref)

    target = str(wanted) if wanted is not None else "any known boot monitor"
    raise DeviceNotFoundError(
        f"No USB device matching {target} among {len(devices)} enumerated device(s). "
        "Ensure the device is connected and in the expected mode."
    )


class Session:
    """An open USB link to one device, owning its handle and claimed interface.

    A session is consumed by :meth:`close`; any later use raises ``InternalError``.
    """

    def __init__(self, transport: UsbTransport, handle: Any, device: DeviceHandle) -> None:
        self._transport = transport
        self._handle = handle
        self._closed = False
        self.device = device
        self.spec: VariantSpec = variant_spec(device.variant)
        self.interface: int | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise InternalError(f"Session for {self.device.identity} is already closed")

    def select_interface(self, interface: int) -> None:
        self._ensure_open()
        if self.interface is not None:
            previous = self.interface
            self.interface = None
            try:
                self._transport.release_interface(self._handle, previous)
            except TransportError as exc:
                LOGGER.warning("Releasing interface %d failed: %s", previous, exc)
        try:
            self._transport.claim_interface(self._handle, interface)
        except TransportError as exc:
            raise InterfaceInUseError(
                f"USB interface {interface} of {self.device.identity} is already claimed by another program"
            ) from exc
        self.interface = interface

    def write(self, data: bytes) -> None:
        """Bulk-write to the variant's OUT endpoint; raises ``TransportError``."""
        self._ensure_open()
        self._transport.bulk_write(self._handle, self.spec.out_endpoint, data)

    def read(self, max_len: int) -> bytes:
        """Bulk-read from the variant's IN endpoint; raises ``TransportError``."""
        self._ensure_open()
        return self._transport.bulk_read(self._handle, self.spec.in_endpoint, max_len)

    def close(self) -> None:
        self._ensure_open()
        self._closed = True
        try:
            if self.interface is not None:
                interface = self.interface
                self.interface = None
                try:
                    self._transport.release_interface(self._handle, interface)
                except TransportError as exc:
                    LOGGER.warning("Releasing interface %d failed: %s", interface, exc)
        finally:
            self._transport.close(self._handle)
            self._handle = None
        LOGGER.info("Closed session with %s", self.device.identity)

    def __enter__(self) -> Session:
        return self

    def __exit__(self, *exc_info: object) -> None:
        if not self._closed:
            self.close()


def _handshake(session: Session) -> None:
    try:
        session.write(HANDSHAKE_PROBE)
        reply = session.read(len(HANDSHAKE_ACK))
    except TransportError as exc:
        raise HandshakeFailedError(f"Handshake with {session.device.identity} failed: {exc}") from exc
    if reply != HANDSHAKE_ACK:
        raise HandshakeFailedError(
            f"Handshake with {session.device.identity} failed: expected {HANDSHAKE_ACK!r}, got {reply!r}"
        )


def open_session(transport: UsbTransport, device: DeviceHandle) -> Session:
    """Open, configure and claim a discovered device, handshaking when the variant needs it."""
    try:
        handle = transport.open(device.device_ref)
    except TransportError as exc:
        raise ConfigurationError(f"Could not open USB device {device.identity}: {exc}") from exc

    try:
        transport.set_configuration(handle, USB_CONFIGURATION)
    except TransportError as exc:
        try:
            transport.close(handle)
        except TransportError as close_exc:
            LOGGER.warning("Closing %s after a failed open also failed: %s", device.identity, close_exc)
        raise ConfigurationError(
            f"Could not select configuration {USB_CONFIGURATION} on {device.identity}: {exc}"
        ) from exc

    session = Session(transport, handle, device)
    try:
        session.select_interface(session.spec.interface)
        if session.spec.requires_handshake:
            _handshake(session)
    except BaseException:
        try:
            session.close()
        except TransportError as close_exc:
            LOGGER.warning("Closing %s after a failed open also failed: %s", device.identity, close_exc)
        raise

    LOGGER.info(
        "Opened %s session with %s on interface %d",
        device.variant.value,
        device.identity,
        session.interface,
    )
    return session
