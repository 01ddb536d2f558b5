from __future__ import annotations

import pytest

from fakes import FakeMonitor

from sambactl.core.errors import InternalError, ProtocolError, UsbReadError, UsbWriteError
from sambactl.core.model import (
    GetVersion,
    Jump,
    ReadByte,
    ReadHalfword,
    ReadWord,
    ReceiveBuffer,
    SendBuffer,
    WriteByte,
    WriteHalfword,
    WriteWord,
)
from sambactl.core.protocol import BootMonitor, decode, encode, expected_reply_length, payload_of

PAGE_SIZE = 256


@pytest.mark.parametrize(
    ("command", "wire"),
    [
        (ReadByte(0x00202000), b"o00202000,#"),
        (ReadHalfword(0xFFFFFF68), b"hFFFFFF68,#"),
        (ReadWord(0x1), b"w00000001,#"),
        (WriteByte(0x00202000, 0xA), b"O00202000,0A#"),
        (WriteHalfword(0x00202000, 0xBEEF), b"H00202000,BEEF#"),
        (WriteWord(0xFFFFFF64, 0x5A000004), b"WFFFFFF64,5A000004#"),
        (SendBuffer(0x00202100, b"\x00" * 256), b"S00202100,0100#"),
        (ReceiveBuffer(0x00100000, 0xFFFF), b"R00100000,FFFF#"),
        (Jump(0x00202000), b"G00202000#"),
        (GetVersion(), b"V#"),
    ],
)
def test_encode_wire_forms(command, wire: bytes) -> None:
    assert encode(command) == wire


def test_only_send_buffer_has_payload() -> None:
    assert payload_of(SendBuffer(0, b"abc")) == b"abc"
    assert payload_of(WriteWord(0, 1)) == b""


def test_expected_reply_lengths() -> None:
    assert expected_reply_length(ReadByte(0)) == 1
    assert expected_reply_length(ReadHalfword(0)) == 2
    assert expected_reply_length(ReadWord(0)) == 4
    assert expected_reply_length(ReceiveBuffer(0, 17)) == 17
    assert expected_reply_length(WriteWord(0, 0)) == 0
    assert expected_reply_length(Jump(0)) == 0
    assert expected_reply_length(GetVersion()) is None


@pytest.mark.parametrize("address", [0, 1, 0x00202300, 0x7FFFFFFF, 0xFFFFFFFC, 0xFFFFFFFF])
@pytest.mark.parametrize("value", [0, 1, 0x12345678, 0xFFFFFFFF])
def test_read_word_decodes_little_endian_reply(address: int, value: int) -> None:
    command = ReadWord(address)
    assert encode(command) == f"w{address:08X},#".encode("ascii")
    assert decode(command, value.to_bytes(4, "little")) == value


def test_decode_halfword_and_byte() -> None:
    assert decode(ReadHalfword(0), b"\x34\x12") == 0x1234
    assert decode(ReadByte(0), b"\xAB") == 0xAB


def test_short_scalar_reply_is_protocol_error() -> None:
    with pytest.raises(ProtocolError):
        decode(ReadWord(0x100), b"\x01\x02\x03")
    with pytest.raises(ProtocolError):
        decode(ReadHalfword(0x100), b"")


def test_receive_buffer_length_mismatch_is_protocol_error() -> None:
    with pytest.raises(ProtocolError):
        decode(ReceiveBuffer(0, 4), b"\x00" * 5)


def test_version_decode() -> None:
    assert decode(GetVersion(), b"v1.4 Nov 10 2004 14:47:41\n\r") == "v1.4 Nov 10 2004 14:47:41"
    with pytest.raises(ProtocolError):
        decode(GetVersion(), b"v1.4")
    with pytest.raises(ProtocolError):
        decode(GetVersion(), b"\xff\xfe\n\r")


@pytest.mark.parametrize(
    "command",
    [
        ReadWord(1 << 32),
        ReadWord(-1),
        WriteByte(0, 0x100),
        WriteHalfword(0, 0x10000),
        WriteWord(0, -1),
        SendBuffer(0, b"\x00" * 0x10000),
        ReceiveBuffer(0, 0x10000),
    ],
)
def test_out_of_range_fields_are_rejected(command) -> None:
    with pytest.raises(InternalError):
        encode(command)


@pytest.mark.parametrize("value", [0, 1, 0xFFFFFFFF, 0x5A5AA5A5])
def test_write_word_then_read_word_round_trip(monitor: BootMonitor, value: int) -> None:
    monitor.write_word(0x00202300, value)
    assert monitor.read_word(0x00202300) == value


def test_halfword_and_byte_round_trip(monitor: BootMonitor) -> None:
    monitor.write_halfword(0x00200010, 0xBEEF)
    monitor.write_byte(0x00200020, 0x7F)
    assert monitor.read_halfword(0x00200010) == 0xBEEF
    assert monitor.read_byte(0x00200020) == 0x7F


@pytest.mark.parametrize("length", [0, 1, PAGE_SIZE - 1, PAGE_SIZE, PAGE_SIZE + 1])
def test_send_then_receive_buffer_round_trip(monitor: BootMonitor, length: int) -> None:
    data = bytes((i * 7 + 3) & 0xFF for i in range(length))
    monitor.send_buffer(0x00202100, data)
    assert monitor.receive_buffer(0x00202100, length) == data


def test_send_buffer_writes_command_then_payload(fake: FakeMonitor, monitor: BootMonitor) -> None:
    start = len(fake.calls)
    monitor.send_buffer(0x00202100, b"\x01\x02")

    writes = [call for call in fake.calls[start:] if call[0] == "bulk_write"]
    assert writes == [("bulk_write", 0x01, b"S00202100,0002#"), ("bulk_write", 0x01, b"\x01\x02")]


def test_zero_length_transfers_skip_payload_and_read(fake: FakeMonitor, monitor: BootMonitor) -> None:
    start = len(fake.calls)
    monitor.send_buffer(0x00202100, b"")
    assert monitor.receive_buffer(0x00202100, 0) == b""

    assert fake.commands_after(start) == [
        ("bulk_write", 0x01, b"S00202100,0000#"),
        ("bulk_write", 0x01, b"R00202100,0000#"),
    ]


def test_jump_and_version(fake: FakeMonitor, monitor: BootMonitor) -> None:
    monitor.jump(0x00202000)
    assert fake.jumps == [0x00202000]
    assert monitor.version() == "v1.4 Nov 10 2004 14:47:41"


def test_execute_dispatches_commands(monitor: BootMonitor) -> None:
    assert monitor.execute(WriteWord(0x00200000, 42)) is None
    assert monitor.execute(ReadWord(0x00200000)) == 42


def test_write_failure_maps_to_usb_write_error(fake: FakeMonitor, monitor: BootMonitor) -> None:
    fake.fail_write_at = fake._writes

    with pytest.raises(UsbWriteError) as exc:
        monitor.write_word(0x00202300, 1)

    assert "W@0x00202300" in str(exc.value)


def test_read_failure_maps_to_usb_read_error(fake: FakeMonitor, monitor: BootMonitor) -> None:
    fake.fail_read_at = fake._reads

    with pytest.raises(UsbReadError):
        monitor.read_word(0x00202300)


def test_truncated_reply_from_device_is_protocol_error(fake: FakeMonitor, monitor: BootMonitor) -> None:
    fake.version_reply = b"v1.4"

    with pytest.raises(ProtocolError):
        monitor.version()
