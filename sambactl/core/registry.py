"""Known boot monitor variants and their USB identities."""

from __future__ import annotations

from sambactl.core.errors import ConfigurationError
from sambactl.core.model import DeviceIdentity, FirmwareVariant, VariantSpec

# Registry order is also discovery order when scanning for any known variant.
KNOWN_IDENTITIES: dict[FirmwareVariant, DeviceIdentity] = {
    FirmwareVariant.BOOT_ASSISTANT: DeviceIdentity(vendor_id=0x03EB, product_id=0x6124),
    FirmwareVariant.VENDOR_FIRMWARE: DeviceIdentity(vendor_id=0x0694, product_id=0x0002),
}

_VARIANT_SPECS: dict[FirmwareVariant, VariantSpec] = {
    FirmwareVariant.BOOT_ASSISTANT: VariantSpec(
        interface=1,
        out_endpoint=0x01,
        in_endpoint=0x82,
        requires_handshake=True,
    ),
    FirmwareVariant.VENDOR_FIRMWARE: VariantSpec(
        interface=0,
        out_endpoint=0x01,
        in_endpoint=0x82,
        requires_handshake=True,
    ),
    FirmwareVariant.UNKNOWN: VariantSpec(
        interface=0,
        out_endpoint=0x01,
        in_endpoint=0x82,
        requires_handshake=False,
    ),
}


def classify(vendor_id: int, product_id: int) -> FirmwareVariant:
    for variant, identity in KNOWN_IDENTITIES.items():
        if identity.vendor_id == vendor_id and identity.product_id == product_id:
            return variant
    return FirmwareVariant.UNKNOWN


def identity_of(variant: FirmwareVariant) -> DeviceIdentity:
    identity = KNOWN_IDENTITIES.get(variant)
    if identity is None:
        raise ConfigurationError(f"Firmware variant '{variant.value}' has no canonical USB identity")
    return identity


def variant_spec(variant: FirmwareVariant) -> VariantSpec:
    return _VARIANT_SPECS[variant]


def parse_variant(name: str) -> FirmwareVariant:
    lowered = name.strip().lower()
    for variant in FirmwareVariant:
        if variant.value == lowered or variant.name.lower() == lowered:
            return variant
    known = ", ".join(v.value for v in KNOWN_IDENTITIES)
    raise ConfigurationError(f"Unknown firmware variant '{name}'. Known: {known}")
