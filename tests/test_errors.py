from sambactl.core.errors import (
    DeviceNotFoundError,
    ErrorKind,
    HandshakeFailedError,
    SambactlError,
    UsbWriteError,
    strerror,
)


def test_strerror_maps_known_codes() -> None:
    assert strerror(ErrorKind.DEVICE_NOT_FOUND) == "Device not found on USB bus"
    assert strerror(201) == "Boot monitor handshake failed"


def test_strerror_unknown_code() -> None:
    assert strerror(9999) == "Unknown error"


def test_error_classes_carry_kind() -> None:
    assert DeviceNotFoundError.kind is ErrorKind.DEVICE_NOT_FOUND
    assert HandshakeFailedError("x").kind is ErrorKind.HANDSHAKE_FAILED
    assert isinstance(UsbWriteError("x"), SambactlError)
    assert strerror(UsbWriteError.kind) == "USB write error"
