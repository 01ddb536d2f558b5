"""SAM-BA command encoding, reply decoding, and the command engine.

The boot monitor takes short ASCII commands: a one-letter mnemonic, an
8-digit uppercase hex address, optional comma-separated hex fields, and a
terminating ``#``. Scalar reads and block reads answer with raw bytes
(little-endian for multi-byte values); the version query answers with text
ending in ``\\n\\r``. Encoding and decoding are pure functions so they can
be exercised without a device; :class:`BootMonitor` ties them to a session.
"""

from __future__ import annotations

import logging
import struct

from sambactl.core.errors import InternalError, ProtocolError, TransportError, UsbReadError, UsbWriteError
from sambactl.core.model import (
    Command,
    GetVersion,
    Jump,
    ReadByte,
    ReadHalfword,
    ReadWord,
    ReceiveBuffer,
    Response,
    SendBuffer,
    WriteByte,
    WriteHalfword,
    WriteWord,
)
from sambactl.core.session import Session

LINE_TERMINATOR = b"\n\r"
MAX_BUFFER_LENGTH = 0xFFFF
MAX_VERSION_REPLY = 256
LOGGER = logging.getLogger(__name__)

# mnemonic, value width in bytes
_SCALAR_READS: dict[type, tuple[str, int]] = {
    ReadByte: ("o", 1),
    ReadHalfword: ("h", 2),
    ReadWord: ("w", 4),
}
_SCALAR_WRITES: dict[type, tuple[str, int]] = {
    WriteByte: ("O", 1),
    WriteHalfword: ("H", 2),
    WriteWord: ("W", 4),
}
_LE_FORMATS = {1: "<B", 2: "<H", 4: "<I"}


def _check_address(address: int) -> None:
    if not 0 <= address <= 0xFFFFFFFF:
        raise InternalError(f"Address {address:#x} is outside the 32-bit address space")


def _check_length(length: int) -> None:
    if not 0 <= length <= MAX_BUFFER_LENGTH:
        raise InternalError(f"Buffer length {length} is outside 0..{MAX_BUFFER_LENGTH}")


def mnemonic_of(command: Command) -> str:
    if isinstance(command, GetVersion):
        return "V"
    if isinstance(command, SendBuffer):
        return "S"
    if isinstance(command, ReceiveBuffer):
        return "R"
    if isinstance(command, Jump):
        return "G"
    entry = _SCALAR_READS.get(type(command)) or _SCALAR_WRITES.get(type(command))
    if entry is None:
        raise InternalError(f"Unsupported command {command!r}")
    return entry[0]


def describe(command: Command) -> str:
    """Short human-readable label, e.g. ``w@0x00202300``."""
    address = getattr(command, "address", None)
    if address is None:
        return mnemonic_of(command)
    return f"{mnemonic_of(command)}@0x{address:08X}"


def encode(command: Command) -> bytes:
    """Return the command line sent on the wire, without any trailing payload."""
    if isinstance(command, GetVersion):
        return b"V#"

    _check_address(command.address)
    if isinstance(command, Jump):
        return f"G{command.address:08X}#".encode("ascii")
    if isinstance(command, SendBuffer):
        _check_length(len(command.data))
        return f"S{command.address:08X},{len(command.data):04X}#".encode("ascii")
    if isinstance(command, ReceiveBuffer):
        _check_length(command.length)
        return f"R{command.address:08X},{command.length:04X}#".encode("ascii")

    read = _SCALAR_READS.get(type(command))
    if read is not None:
        return f"{read[0]}{command.address:08X},#".encode("ascii")

    write = _SCALAR_WRITES.get(type(command))
    if write is not None:
        mnemonic, width = write
        if not 0 <= command.value < (1 << (8 * width)):
            raise InternalError(f"Value {command.value:#x} does not fit in {width} byte(s)")
        return f"{mnemonic}{command.address:08X},{command.value:0{2 * width}X}#".encode("ascii")

    raise InternalError(f"Unsupported command {command!r}")


def payload_of(command: Command) -> bytes:
    """Raw bytes sent after the command line (only SendBuffer has any)."""
    if isinstance(command, SendBuffer):
        return bytes(command.data)
    return b""


def expected_reply_length(command: Command) -> int | None:
    """Exact reply size in bytes, 0 for no reply, or None for a terminated text reply."""
    if isinstance(command, GetVersion):
        return None
    if isinstance(command, ReceiveBuffer):
        return command.length
    read = _SCALAR_READS.get(type(command))
    if read is not None:
        return read[1]
    return 0


def decode(command: Command, reply: bytes) -> Response:
    """Validate and convert a raw reply into the command's response value."""
    if isinstance(command, GetVersion):
        if not reply.endswith(LINE_TERMINATOR):
            raise ProtocolError(f"Version reply {reply!r} is not terminated by {LINE_TERMINATOR!r}")
        try:
            return reply[: -len(LINE_TERMINATOR)].decode("ascii").strip()
        except UnicodeDecodeError as exc:
            raise ProtocolError(f"Version reply {reply!r} is not ASCII text") from exc

    expected = expected_reply_length(command)
    if len(reply) != expected:
        raise ProtocolError(
            f"{describe(command)}: expected {expected} reply byte(s), got {len(reply)}"
        )
    if isinstance(command, ReceiveBuffer):
        return bytes(reply)
    read = _SCALAR_READS.get(type(command))
    if read is not None:
        (value,) = struct.unpack(_LE_FORMATS[read[1]], reply)
        return value
    return None


class BootMonitor:
    """Issues SAM-BA commands over a borrowed session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def _send(self, command: Command, data: bytes) -> None:
        try:
            self.session.write(data)
        except TransportError as exc:
            raise UsbWriteError(f"{describe(command)}: USB write failed: {exc}") from exc

    def _receive(self, command: Command, max_len: int) -> bytes:
        try:
            return self.session.read(max_len)
        except TransportError as exc:
            raise UsbReadError(f"{describe(command)}: USB read failed: {exc}") from exc

    def execute(self, command: Command) -> Response:
        line = encode(command)
        payload = payload_of(command)
        LOGGER.debug("-> %s (+%d payload bytes)", line.decode("ascii"), len(payload))

        self._send(command, line)
        if payload:
            self._send(command, payload)

        expected = expected_reply_length(command)
        if expected is None:
            reply = self._receive(command, MAX_VERSION_REPLY)
        elif expected == 0:
            return decode(command, b"")
        else:
            reply = self._receive(command, expected)
        LOGGER.debug("<- %d byte(s)", len(reply))
        return decode(command, reply)

    def read_byte(self, address: int) -> int:
        return self.execute(ReadByte(address))

    def read_halfword(self, address: int) -> int:
        return self.execute(ReadHalfword(address))

    def read_word(self, address: int) -> int:
        return self.execute(ReadWord(address))

    def write_byte(self, address: int, value: int) -> None:
        self.execute(WriteByte(address, value))

    def write_halfword(self, address: int, value: int) -> None:
        self.execute(WriteHalfword(address, value))

    def write_word(self, address: int, value: int) -> None:
        self.execute(WriteWord(address, value))

    def send_buffer(self, address: int, data: bytes) -> None:
        self.execute(SendBuffer(address, bytes(data)))

    def receive_buffer(self, address: int, length: int) -> bytes:
        return self.execute(ReceiveBuffer(address, length))

    def jump(self, address: int) -> None:
        self.execute(Jump(address))

    def version(self) -> str:
        return self.execute(GetVersion())
