"""Core data models used across registry, session, protocol, and CLI."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class FirmwareVariant(Enum):
    UNKNOWN = "unknown"
    BOOT_ASSISTANT = "samba"
    VENDOR_FIRMWARE = "lego"


@dataclass(frozen=True)
class DeviceIdentity:
    vendor_id: int
    product_id: int

    def __str__(self) -> str:
        return f"{self.vendor_id:04X}:{self.product_id:04X}"


@dataclass(frozen=True)
class VariantSpec:
    interface: int
    out_endpoint: int
    in_endpoint: int
    requires_handshake: bool


@dataclass(frozen=True)
class UsbDeviceInfo:
    vendor_id: int
    product_id: int
    device_ref: Any


@dataclass(frozen=True)
class DeviceHandle:
    variant: FirmwareVariant
    identity: DeviceIdentity
    device_ref: Any


@dataclass(frozen=True)
class TargetSelector:
    """Which device to open: a variant, an explicit id pair, or (neither) any known device."""

    variant: FirmwareVariant | None = None
    vendor_id: int | None = None
    product_id: int | None = None


@dataclass(frozen=True)
class ReadByte:
    address: int


@dataclass(frozen=True)
class ReadHalfword:
    address: int


@dataclass(frozen=True)
class ReadWord:
    address: int


@dataclass(frozen=True)
class WriteByte:
    address: int
    value: int


@dataclass(frozen=True)
class WriteHalfword:
    address: int
    value: int


@dataclass(frozen=True)
class WriteWord:
    address: int
    value: int


@dataclass(frozen=True)
class SendBuffer:
    address: int
    data: bytes


@dataclass(frozen=True)
class ReceiveBuffer:
    address: int
    length: int


@dataclass(frozen=True)
class Jump:
    address: int


@dataclass(frozen=True)
class GetVersion:
    pass


Command = Union[
    ReadByte,
    ReadHalfword,
    ReadWord,
    WriteByte,
    WriteHalfword,
    WriteWord,
    SendBuffer,
    ReceiveBuffer,
    Jump,
    GetVersion,
]

# int for scalar reads, bytes for ReceiveBuffer, str for GetVersion,
# None for acknowledgement-only commands.
Response = Union[int, bytes, str, None]


@dataclass(frozen=True)
class FlashRegion:
    address: int
    data: bytes


@dataclass(frozen=True)
class FlashController:
    mode_register: int
    command_register: int
    status_register: int
    ready_mask: int
    key: int
    unlock_command: int
    lock_command: int
    command_mode: int
    program_mode: int
    ready_poll_limit: int = 1000


@dataclass(frozen=True)
class DriverConvention:
    load_address: int
    max_size: int
    staging_address: int
    page_index_address: int
    destination_address: int | None = None


@dataclass(frozen=True)
class FlashProfile:
    id: str
    name: str
    page_size: int
    flash_base: int
    flash_size: int
    lock_regions: int
    controller: FlashController
    driver: DriverConvention
    lock_after_write: bool = False

    @property
    def page_count(self) -> int:
        return self.flash_size // self.page_size

    @property
    def pages_per_region(self) -> int:
        return self.page_count // self.lock_regions


class FlashState(Enum):
    IDLE = "idle"
    DRIVER_STAGED = "driver-staged"
    PROGRAMMING = "programming"
    VERIFYING = "verifying"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class FlashReport:
    profile_id: str
    address: int
    image_size: int
    pages_written: int
    verified: bool
