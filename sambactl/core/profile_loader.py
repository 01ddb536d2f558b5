"""Flash profile loading and validation for YAML-based sambactl profiles."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from sambactl.core.errors import ProfileLoadError, ProfileValidationError
from sambactl.core.model import DriverConvention, FlashController, FlashProfile

LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ProfileValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedProfiles:
    profiles: dict[str, FlashProfile]
    warnings: tuple[str, ...]


def _load_schema_validator() -> Any:
    schema_text = resources.files("sambactl.schemas").joinpath("flash_profile.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _profile_dirs() -> tuple[Path, Path]:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_config / "sambactl/profiles", xdg_data / "sambactl/profiles"


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ProfileLoadError(f"Could not read profile file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ProfileValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ProfileValidationError(f"Profile file {path} must contain a mapping at root")
    return loaded


def _normalize_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise ProfileValidationError(f"{context} must be boolean true/false")


def _check_semantics(profile: FlashProfile, source: Path | Traversable) -> None:
    if profile.page_size & (profile.page_size - 1):
        raise ProfileValidationError(f"{profile.id}.page_size must be a power of two ({source})")
    if profile.flash_base % profile.page_size:
        raise ProfileValidationError(f"{profile.id}.flash.base must be page aligned ({source})")
    if profile.flash_size % profile.page_size:
        raise ProfileValidationError(f"{profile.id}.flash.size must be a multiple of page_size ({source})")
    if profile.page_count % profile.lock_regions:
        raise ProfileValidationError(
            f"{profile.id}.flash.lock_regions must evenly divide the {profile.page_count} pages ({source})"
        )
    driver = profile.driver
    driver_end = driver.load_address + driver.max_size
    staging_end = driver.staging_address + profile.page_size
    if driver.staging_address < driver_end and driver.load_address < staging_end:
        raise ProfileValidationError(
            f"{profile.id}.driver.staging_address overlaps the driver load region ({source})"
        )


def _build_profile(doc: dict[str, Any], source: Path | Traversable) -> FlashProfile:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ProfileValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    controller = doc["controller"]
    driver = doc["driver"]
    profile = FlashProfile(
        id=doc["id"],
        name=doc["name"],
        page_size=int(doc["page_size"]),
        flash_base=int(doc["flash"]["base"]),
        flash_size=int(doc["flash"]["size"]),
        lock_regions=int(doc["flash"]["lock_regions"]),
        controller=FlashController(
            mode_register=int(controller["mode_register"]),
            command_register=int(controller["command_register"]),
            status_register=int(controller["status_register"]),
            ready_mask=int(controller["ready_mask"]),
            key=int(controller["key"]),
            unlock_command=int(controller["unlock_command"]),
            lock_command=int(controller["lock_command"]),
            command_mode=int(controller["command_mode"]),
            program_mode=int(controller["program_mode"]),
            ready_poll_limit=int(controller.get("ready_poll_limit", 1000)),
        ),
        driver=DriverConvention(
            load_address=int(driver["load_address"]),
            max_size=int(driver["max_size"]),
            staging_address=int(driver["staging_address"]),
            page_index_address=int(driver["page_index_address"]),
            destination_address=int(driver["destination_address"])
            if "destination_address" in driver
            else None,
        ),
        lock_after_write=_normalize_bool(
            doc.get("lock_after_write", False),
            context=f"{doc['id']}.lock_after_write",
        ),
    )
    _check_semantics(profile, source)
    return profile


def _iter_packaged_profile_paths() -> list[Traversable]:
    profile_root = resources.files("sambactl.profiles")
    return [item for item in profile_root.iterdir() if item.name.endswith((".yml", ".yaml"))]


def _iter_user_profile_paths() -> list[Path]:
    paths: list[Path] = []
    for directory in _profile_dirs():
        if not directory.exists() or not directory.is_dir():
            continue
        paths.extend(sorted(p for p in directory.iterdir() if p.suffix in {".yml", ".yaml"}))
    return paths


def load_profiles() -> LoadedProfiles:
    profiles: dict[str, FlashProfile] = {}
    warnings: list[str] = []

    for path in sorted(_iter_packaged_profile_paths(), key=lambda p: p.name):
        doc = _read_yaml(path)
        profile = _build_profile(doc, path)
        profiles[profile.id] = profile

    for path in _iter_user_profile_paths():
        doc = _read_yaml(path)
        profile = _build_profile(doc, path)
        if profile.id in profiles:
            warning = f"User profile '{profile.id}' overrides packaged profile"
            LOGGER.warning(warning)
            warnings.append(warning)
        profiles[profile.id] = profile

    return LoadedProfiles(profiles=profiles, warnings=tuple(warnings))
