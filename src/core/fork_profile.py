"""Typed fork-profile parsing.

This module loads YAML profiles that replace the chain-specific constants of
the genesis merge: excluded modules, literal prefixes, skipped storage values,
parachain context, and the well-known storage keys of the runtime layout.
"""

from __future__ import annotations

from dataclasses import fields
from pathlib import Path
from typing import Mapping, Sequence, cast

import yaml

from core.errors import ForkOffProfileError
from core.types import ForkProfile, StorageItemRef, WellKnownKeys

_ROOT_KEYS = {
    "version",
    "excluded_modules",
    "extra_prefixes",
    "skipped_storage",
    "relay_chain",
    "para_id",
    "well_known_keys",
}


def load_fork_profile(profile_path: str | Path) -> ForkProfile:
    """Load and validate a YAML fork profile from disk.

    Omitted fields keep their defaults, so a profile only lists what differs
    from the default runtime layout.

    Args:
        profile_path: File path to YAML profile.

    Returns:
        Fully validated fork profile.

    Raises:
        ForkOffProfileError: If file is invalid or schema checks fail.
    """
    payload = _load_yaml_payload(Path(profile_path))
    root_mapping = _expect_mapping(payload, "fork profile root")
    _validate_keys(root_mapping, _ROOT_KEYS, "fork profile")
    _parse_version(root_mapping)
    defaults = ForkProfile()
    return ForkProfile(
        excluded_modules=_string_tuple(
            root_mapping, "excluded_modules", defaults.excluded_modules
        ),
        extra_prefixes=tuple(
            _parse_prefix(prefix)
            for prefix in _string_tuple(root_mapping, "extra_prefixes", defaults.extra_prefixes)
        ),
        skipped_storage=_parse_skipped_storage(root_mapping, defaults.skipped_storage),
        relay_chain=_optional_string(root_mapping, "relay_chain") or defaults.relay_chain,
        para_id=_parse_para_id(root_mapping, defaults.para_id),
        well_known_keys=_parse_well_known_keys(root_mapping),
    )


def _load_yaml_payload(profile_file: Path) -> object:
    profile_file = profile_file.expanduser().resolve()
    if not profile_file.exists():
        raise ForkOffProfileError(
            f"Fork profile does not exist at {profile_file}. Provide a valid YAML file path."
        )
    try:
        payload = cast(object, yaml.safe_load(profile_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise ForkOffProfileError(
            f"Failed to read fork profile at {profile_file}: {error}. "
            "Check file permissions and retry."
        ) from error
    except yaml.YAMLError as error:
        raise ForkOffProfileError(
            f"Failed to parse YAML fork profile at {profile_file}: {error}. "
            "Fix YAML syntax and retry."
        ) from error
    if payload is None:
        raise ForkOffProfileError(f"Fork profile at {profile_file} is empty. Define 'version'.")
    return payload


def _expect_mapping(value: object, context: str) -> Mapping[str, object]:
    if isinstance(value, Mapping):
        normalized_mapping = {}
        for key, payload in value.items():
            if not isinstance(key, str):
                raise ForkOffProfileError(
                    f"Invalid {context}: expected string keys, got {type(key).__name__}."
                )
            normalized_mapping[key] = payload
        return normalized_mapping
    raise ForkOffProfileError(
        f"Invalid {context}: expected object mapping, got {type(value).__name__}."
    )


def _expect_sequence(value: object, context: str) -> Sequence[object]:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return value
    raise ForkOffProfileError(f"Invalid {context}: expected list, got {type(value).__name__}.")


def _parse_version(root_mapping: Mapping[str, object]) -> int:
    raw_version = root_mapping.get("version")
    if not isinstance(raw_version, int) or isinstance(raw_version, bool):
        raise ForkOffProfileError("Fork profile field 'version' must be an integer. Set version: 1.")
    if raw_version != 1:
        raise ForkOffProfileError(f"Unsupported fork profile version {raw_version}. Use version: 1.")
    return raw_version


def _string_tuple(
    root_mapping: Mapping[str, object],
    field_name: str,
    default_value: tuple[str, ...],
) -> tuple[str, ...]:
    raw_value = root_mapping.get(field_name)
    if raw_value is None:
        return default_value
    rows = _expect_sequence(raw_value, f"fork profile field '{field_name}'")
    values = []
    for row in rows:
        if not isinstance(row, str) or not row.strip():
            raise ForkOffProfileError(
                f"Fork profile field '{field_name}' must contain non-empty strings."
            )
        values.append(row.strip())
    return tuple(values)


def _parse_prefix(raw_prefix: str) -> str:
    prefix = raw_prefix.lower()
    if not prefix.startswith("0x") or not _is_hex(prefix[2:]):
        raise ForkOffProfileError(
            f"Invalid prefix '{raw_prefix}' in fork profile: expected 0x-prefixed hex."
        )
    return prefix


def _parse_skipped_storage(
    root_mapping: Mapping[str, object],
    default_value: tuple[StorageItemRef, ...],
) -> tuple[StorageItemRef, ...]:
    if root_mapping.get("skipped_storage") is None:
        return default_value
    references = []
    for row in _string_tuple(root_mapping, "skipped_storage", ()):
        pallet, separator, item = row.partition(".")
        if not separator or not pallet or not item:
            raise ForkOffProfileError(
                f"Invalid skipped_storage entry '{row}': expected 'Pallet.StorageItem'."
            )
        references.append(StorageItemRef(pallet=pallet, item=item))
    return tuple(references)


def _parse_para_id(root_mapping: Mapping[str, object], default_value: int) -> int:
    raw_value = root_mapping.get("para_id")
    if raw_value is None:
        return default_value
    if isinstance(raw_value, bool) or not isinstance(raw_value, int) or raw_value < 0:
        raise ForkOffProfileError("Fork profile field 'para_id' must be a non-negative integer.")
    return raw_value


def _parse_well_known_keys(root_mapping: Mapping[str, object]) -> WellKnownKeys:
    raw_keys = root_mapping.get("well_known_keys")
    if raw_keys is None:
        return WellKnownKeys()
    keys_mapping = _expect_mapping(raw_keys, "fork profile well_known_keys")
    field_names = {item.name for item in fields(WellKnownKeys)}
    _validate_keys(keys_mapping, field_names, "fork profile well_known_keys")
    overrides: dict[str, str] = {}
    for field_name in sorted(field_names):
        value = _optional_string(keys_mapping, field_name)
        if value is not None:
            overrides[field_name] = _parse_prefix(value)
    return WellKnownKeys(**overrides)


def _optional_string(mapping: Mapping[str, object], field_name: str) -> str | None:
    raw_value = mapping.get(field_name)
    if raw_value is None:
        return None
    if isinstance(raw_value, str):
        normalized_value = raw_value.strip()
        return normalized_value if normalized_value else None
    raise ForkOffProfileError(f"Fork profile field '{field_name}' must be a string when provided.")


def _validate_keys(mapping: Mapping[str, object], allowed_keys: set[str], context: str) -> None:
    unknown_keys = sorted(set(mapping) - allowed_keys)
    if unknown_keys:
        raise ForkOffProfileError(f"{context} contains unknown fields: {', '.join(unknown_keys)}.")


def _is_hex(value: str) -> bool:
    return all(character in "0123456789abcdef" for character in value)
