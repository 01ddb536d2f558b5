from __future__ import annotations

from pathlib import Path

import pytest

from sambactl.core.errors import ProfileValidationError
from sambactl.core.profile_loader import load_profiles

PROFILE_TEMPLATE = """
id: {id}
name: {name}
page_size: {page_size}
lock_after_write: {lock_after_write}
flash:
  base: 0x00100000
  size: 65536
  lock_regions: 4
controller:
  mode_register: 0xFFFFFF60
  command_register: 0xFFFFFF64
  status_register: 0xFFFFFF68
  ready_mask: 0x1
  key: 0x5A
  unlock_command: 0x4
  lock_command: 0x2
  command_mode: 0x00050100
  program_mode: 0x00340100
driver:
  load_address: 0x00202000
  max_size: 256
  staging_address: {staging_address}
  page_index_address: 0x00202300
"""


def _write_profile(path: Path, **overrides: object) -> None:
    fields = {
        "id": "custom",
        "name": "Custom Board",
        "page_size": 256,
        "lock_after_write": "false",
        "staging_address": "0x00202100",
    }
    fields.update(overrides)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(PROFILE_TEMPLATE.format(**fields), encoding="utf-8")


def _user_dir(tmp_path: Path) -> Path:
    return tmp_path / "cfg" / "sambactl" / "profiles"


def test_load_packaged_profile() -> None:
    loaded = load_profiles()
    assert "nxt" in loaded.profiles
    profile = loaded.profiles["nxt"]
    assert profile.page_size == 256
    assert profile.flash_base == 0x00100000
    assert profile.page_count == 1024
    assert profile.pages_per_region == 64
    assert profile.controller.status_register == 0xFFFFFF68
    assert profile.driver.destination_address is None
    assert profile.lock_after_write is False
    assert loaded.warnings == ()


def test_user_profile_loads_with_bool_flag(tmp_path: Path) -> None:
    _write_profile(_user_dir(tmp_path) / "custom.yaml", lock_after_write="true")

    profile = load_profiles().profiles["custom"]

    assert profile.lock_after_write is True
    assert profile.flash_size == 65536
    assert profile.controller.ready_poll_limit == 1000


def test_user_profile_in_data_dir_is_found(tmp_path: Path) -> None:
    _write_profile(tmp_path / "data" / "sambactl" / "profiles" / "other.yml", id="other")

    assert "other" in load_profiles().profiles


def test_user_profile_override_packaged(tmp_path: Path) -> None:
    _write_profile(_user_dir(tmp_path) / "nxt.yaml", id="nxt", name="Patched NXT")

    loaded = load_profiles()

    assert loaded.profiles["nxt"].name == "Patched NXT"
    assert loaded.profiles["nxt"].flash_size == 65536
    assert any("overrides" in warning for warning in loaded.warnings)


def test_missing_required_keys_rejected(tmp_path: Path) -> None:
    path = _user_dir(tmp_path) / "missing.yaml"
    path.parent.mkdir(parents=True)
    path.write_text("id: missing\nname: Missing\npage_size: 256\n", encoding="utf-8")

    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_unknown_keys_rejected(tmp_path: Path) -> None:
    path = _user_dir(tmp_path) / "extra.yaml"
    _write_profile(path)
    path.write_text(path.read_text(encoding="utf-8") + "erase_first: true\n", encoding="utf-8")

    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_bad_bool_string_rejected(tmp_path: Path) -> None:
    _write_profile(_user_dir(tmp_path) / "custom.yaml", lock_after_write="maybe")

    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_duplicate_yaml_keys_rejected(tmp_path: Path) -> None:
    path = _user_dir(tmp_path) / "dup.yaml"
    _write_profile(path)
    path.write_text(path.read_text(encoding="utf-8") + "page_size: 512\n", encoding="utf-8")

    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_page_size_must_be_power_of_two(tmp_path: Path) -> None:
    _write_profile(_user_dir(tmp_path) / "custom.yaml", page_size=384)

    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_staging_overlapping_driver_rejected(tmp_path: Path) -> None:
    _write_profile(_user_dir(tmp_path) / "custom.yaml", staging_address="0x00202080")

    with pytest.raises(ProfileValidationError, match="overlaps"):
        load_profiles()


def test_root_must_be_mapping(tmp_path: Path) -> None:
    path = _user_dir(tmp_path) / "list.yaml"
    path.parent.mkdir(parents=True)
    path.write_text("- nxt\n", encoding="utf-8")

    with pytest.raises(ProfileValidationError):
        load_profiles()
