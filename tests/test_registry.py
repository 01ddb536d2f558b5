import pytest

from sambactl.core.errors import ConfigurationError
from sambactl.core.model import DeviceIdentity, FirmwareVariant
from sambactl.core.registry import classify, identity_of, parse_variant, variant_spec


def test_classify_known_identities() -> None:
    assert classify(0x03EB, 0x6124) is FirmwareVariant.BOOT_ASSISTANT
    assert classify(0x0694, 0x0002) is FirmwareVariant.VENDOR_FIRMWARE


def test_classify_unknown_pair() -> None:
    assert classify(0x03EB, 0x0002) is FirmwareVariant.UNKNOWN
    assert classify(0x1234, 0x5678) is FirmwareVariant.UNKNOWN


def test_identity_of_round_trips_classify() -> None:
    for variant in (FirmwareVariant.BOOT_ASSISTANT, FirmwareVariant.VENDOR_FIRMWARE):
        identity = identity_of(variant)
        assert classify(identity.vendor_id, identity.product_id) is variant


def test_identity_of_unknown_is_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        identity_of(FirmwareVariant.UNKNOWN)


def test_boot_assistant_uses_data_interface_and_handshake() -> None:
    spec = variant_spec(FirmwareVariant.BOOT_ASSISTANT)
    assert spec.interface == 1
    assert (spec.out_endpoint, spec.in_endpoint) == (0x01, 0x82)
    assert spec.requires_handshake is True


def test_unknown_variant_skips_handshake() -> None:
    assert variant_spec(FirmwareVariant.UNKNOWN).requires_handshake is False


def test_parse_variant_accepts_value_and_name() -> None:
    assert parse_variant("samba") is FirmwareVariant.BOOT_ASSISTANT
    assert parse_variant("Vendor_Firmware") is FirmwareVariant.VENDOR_FIRMWARE
    with pytest.raises(ConfigurationError):
        parse_variant("jtag")


def test_identity_str_is_usb_style() -> None:
    assert str(DeviceIdentity(0x03EB, 0x6124)) == "03EB:6124"
