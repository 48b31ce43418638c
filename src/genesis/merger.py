"""Genesis merge of live state into a forked chain spec.

This module copies the retained part of a snapshot into the forked template
and then applies fixed deletions and overrides. Steps run in a fixed order,
so every override wins over a copied live value for the same key.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, MutableMapping, Sequence

from core.constants import FORK_NAME_SUFFIX
from core.errors import ForkOffMergeError
from core.logging_config import get_logger
from core.types import (
    ForkProfile,
    MergeSummary,
    ModuleDescriptor,
    StorageEntry,
    StorageItemRef,
)
from genesis.prefix_registry import PrefixRegistry
from node.hashing import storage_value_key

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class GenesisMerge:
    """Merged forked spec and its counters."""

    spec: dict[str, Any]
    summary: MergeSummary


def merge_genesis(
    snapshot: Iterable[StorageEntry],
    original_spec: Mapping[str, Any],
    forked_template: Mapping[str, Any],
    registry: PrefixRegistry,
    runtime_hex: str,
    profile: ForkProfile,
    skipped_keys: Sequence[str] = (),
    root_public_key: str | None = None,
) -> GenesisMerge:
    """Build the forked genesis spec.

    Neither the snapshot nor the input specs are modified; the result is a
    fresh document, so equal inputs always produce an equal output.

    Args:
        snapshot: Live state entries.
        original_spec: Spec describing the live chain.
        forked_template: Spec template the fork is built on.
        registry: Retained storage prefixes.
        runtime_hex: Hex of the runtime code to install.
        profile: Parachain context and well-known storage keys.
        skipped_keys: Resolved keys to delete from the forked state.
        root_public_key: Optional ``0x`` public key installed as sudo key.

    Returns:
        Forked spec with merge counters.

    Raises:
        ForkOffMergeError: If a spec lacks required fields.
    """
    forked_spec = copy.deepcopy(dict(forked_template))
    top = raw_top(forked_spec, "forked template")
    keys = profile.well_known_keys

    _copy_identity(original_spec, forked_spec)
    forked_spec["relayChain"] = profile.relay_chain
    forked_spec["paraId"] = profile.para_id

    merged_count = _merge_entries(snapshot, registry, top)
    _LOGGER.info("genesis_entries_merged", merged_count=merged_count)

    deleted_keys = []
    # Without the upgrade marker the runtime upgrade hooks run on the first block.
    if top.pop(keys.last_runtime_upgrade, None) is not None:
        deleted_keys.append(keys.last_runtime_upgrade)
    for key in skipped_keys:
        if top.pop(key, None) is not None:
            deleted_keys.append(key)

    overridden_keys = [keys.code, keys.force_era]
    top[keys.code] = "0x" + _strip_hex_prefix(runtime_hex.strip())
    top[keys.force_era] = keys.force_era_value
    if root_public_key is not None:
        top[keys.sudo_key] = root_public_key
        overridden_keys.append(keys.sudo_key)

    summary = MergeSummary(
        merged_count=merged_count,
        deleted_keys=tuple(deleted_keys),
        overridden_keys=tuple(overridden_keys),
    )
    _LOGGER.info(
        "genesis_merge_completed",
        name=forked_spec.get("name"),
        merged_count=merged_count,
        deleted_keys=len(summary.deleted_keys),
        overridden_keys=len(summary.overridden_keys),
        sudo_overridden=root_public_key is not None,
    )
    return GenesisMerge(spec=forked_spec, summary=summary)


def raw_top(spec: MutableMapping[str, Any], context: str) -> MutableMapping[str, Any]:
    """Return ``spec["genesis"]["raw"]["top"]``.

    Raises:
        ForkOffMergeError: If the spec is not a raw chain spec.
    """
    genesis = spec.get("genesis")
    raw = genesis.get("raw") if isinstance(genesis, MutableMapping) else None
    top = raw.get("top") if isinstance(raw, MutableMapping) else None
    if not isinstance(top, MutableMapping):
        raise ForkOffMergeError(
            f"The {context} has no genesis.raw.top mapping. "
            "Build chain specs with 'build-spec --raw'."
        )
    return top


def _copy_identity(original_spec: Mapping[str, Any], forked_spec: dict[str, Any]) -> None:
    for field_name in ("name", "id"):
        value = original_spec.get(field_name)
        if not isinstance(value, str):
            raise ForkOffMergeError(
                f"The original spec has no string '{field_name}' field. "
                "Rebuild it with the node binary's build-spec command."
            )
        forked_spec[field_name] = value + FORK_NAME_SUFFIX
    if "protocolId" in original_spec:
        forked_spec["protocolId"] = original_spec["protocolId"]
    else:
        forked_spec.pop("protocolId", None)


def _merge_entries(
    snapshot: Iterable[StorageEntry],
    registry: PrefixRegistry,
    top: MutableMapping[str, Any],
) -> int:
    """Copy retained entries into the raw top mapping, overwriting."""
    merged_count = 0
    for entry in snapshot:
        if entry.value is None or not registry.matches(entry.key):
            continue
        top[entry.key] = entry.value
        merged_count += 1
    return merged_count


def _strip_hex_prefix(value: str) -> str:
    return value[2:] if value.lower().startswith("0x") else value


def resolve_skipped_keys(
    modules: Iterable[ModuleDescriptor],
    references: Sequence[StorageItemRef],
) -> tuple[str, ...]:
    """Resolve skipped storage references to storage keys using node metadata.

    Raises:
        ForkOffMergeError: If a referenced pallet or storage item does not exist.
    """
    storage_by_module = {module.name: set(module.storage_items) for module in modules}
    resolved = []
    for reference in references:
        items = storage_by_module.get(reference.pallet)
        if items is None or reference.item not in items:
            raise ForkOffMergeError(
                f"Cannot resolve skipped storage {reference}: not found in node metadata. "
                "Fix skipped_storage in the fork profile for this chain."
            )
        resolved.append(storage_value_key(reference.pallet, reference.item))
    return tuple(resolved)
