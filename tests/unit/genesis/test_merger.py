"""Unit tests for the genesis merge."""

from __future__ import annotations

import json

import pytest

from core.constants import (
    CODE_KEY,
    FORCE_ERA_KEY,
    LAST_RUNTIME_UPGRADE_KEY,
    SUDO_KEY,
    SYSTEM_ACCOUNT_PREFIX,
)
from core.errors import ForkOffMergeError
from core.types import ForkProfile, ModuleDescriptor, StorageEntry, StorageItemRef
from genesis.merger import merge_genesis, resolve_skipped_keys
from genesis.prefix_registry import PrefixRegistry
from node.hashing import module_prefix, storage_value_key
from tests.fixture_paths import load_fixture_json

ALICE_PUBLIC_KEY = "0xd43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d"
ACCOUNT_KEY = SYSTEM_ACCOUNT_PREFIX + "aa"


def _load_spec(name: str) -> dict:
    return load_fixture_json(f"specs/{name}")


def _merge(snapshot, registry=None, profile=None, **kwargs):
    return merge_genesis(
        snapshot,
        _load_spec("original.json"),
        _load_spec("fork_template.json"),
        registry or PrefixRegistry(),
        runtime_hex=kwargs.pop("runtime_hex", "abcd"),
        profile=profile or ForkProfile(),
        **kwargs,
    )


def test_merge_copies_account_entry_and_applies_overrides() -> None:
    """Retained entries are copied, then fixed overrides are applied."""
    snapshot = [
        StorageEntry(ACCOUNT_KEY, "0x01"),
        StorageEntry(LAST_RUNTIME_UPGRADE_KEY, "0xff"),
        StorageEntry("0x1234", "0x99"),
    ]

    merge = _merge(snapshot)
    top = merge.spec["genesis"]["raw"]["top"]

    assert top[ACCOUNT_KEY] == "0x01"
    assert LAST_RUNTIME_UPGRADE_KEY not in top
    assert "0x1234" not in top
    assert top[CODE_KEY] == "0xabcd"
    assert top[FORCE_ERA_KEY] == "0x02"
    assert top["0xbbbb01"] == "0x02"
    assert merge.summary.merged_count == 1


def test_merge_sets_identity_and_parachain_fields() -> None:
    """Forked spec should carry the original identity with a fork suffix."""
    merge = _merge([], profile=ForkProfile(relay_chain="rococo", para_id=2000))

    assert merge.spec["name"] == "Shibuya Testnet-fork"
    assert merge.spec["id"] == "shibuya-fork"
    assert merge.spec["protocolId"] == "sby"
    assert merge.spec["relayChain"] == "rococo"
    assert merge.spec["paraId"] == 2000


def test_merge_removes_protocol_id_when_original_has_none() -> None:
    """A missing original protocolId should be removed from the fork."""
    original = _load_spec("original.json")
    del original["protocolId"]

    merge = merge_genesis(
        [],
        original,
        _load_spec("fork_template.json"),
        PrefixRegistry(),
        runtime_hex="00",
        profile=ForkProfile(),
    )

    assert "protocolId" not in merge.spec


def test_overrides_win_over_live_values() -> None:
    """Live values under code, force-era and sudo keys should be overwritten."""
    registry = PrefixRegistry()
    registry.add_prefix(CODE_KEY, "override")
    registry.add_prefix(FORCE_ERA_KEY, "override")
    registry.add_prefix(SUDO_KEY, "override")
    snapshot = [
        StorageEntry(CODE_KEY, "0xdead"),
        StorageEntry(FORCE_ERA_KEY, "0x00"),
        StorageEntry(SUDO_KEY, "0x" + "11" * 32),
    ]

    merge = _merge(snapshot, registry=registry, root_public_key=ALICE_PUBLIC_KEY)
    top = merge.spec["genesis"]["raw"]["top"]

    assert top[CODE_KEY] == "0xabcd"
    assert top[FORCE_ERA_KEY] == "0x02"
    assert top[SUDO_KEY] == ALICE_PUBLIC_KEY
    assert SUDO_KEY in merge.summary.overridden_keys


def test_sudo_key_untouched_without_root_account() -> None:
    """Without a root account the live sudo key should stay."""
    registry = PrefixRegistry()
    registry.add_prefix(SUDO_KEY, "override")

    merge = _merge([StorageEntry(SUDO_KEY, "0x" + "11" * 32)], registry=registry)

    assert merge.spec["genesis"]["raw"]["top"][SUDO_KEY] == "0x" + "11" * 32


def test_merge_skips_null_values() -> None:
    """Entries without a value are not copied or counted."""
    merge = _merge([StorageEntry(ACCOUNT_KEY, None)])

    assert ACCOUNT_KEY not in merge.spec["genesis"]["raw"]["top"]
    assert merge.summary.merged_count == 0


def test_merge_deletes_skipped_keys() -> None:
    """Resolved skipped keys should be removed after the copy."""
    skipped_key = storage_value_key("ParasScheduler", "SessionStartBlock")
    registry = PrefixRegistry()
    registry.add_prefix(module_prefix("ParasScheduler"), "ParasScheduler")

    merge = _merge(
        [StorageEntry(skipped_key, "0x0a000000")],
        registry=registry,
        skipped_keys=(skipped_key,),
    )

    assert skipped_key not in merge.spec["genesis"]["raw"]["top"]
    assert merge.summary.deleted_keys == (skipped_key,)


def test_merge_is_deterministic_and_leaves_inputs_untouched() -> None:
    """Equal inputs should produce equal outputs without mutating the template."""
    template = _load_spec("fork_template.json")
    snapshot = [StorageEntry(ACCOUNT_KEY, "0x01")]

    first = merge_genesis(
        snapshot, _load_spec("original.json"), template, PrefixRegistry(), "00", ForkProfile()
    )
    second = merge_genesis(
        snapshot, _load_spec("original.json"), template, PrefixRegistry(), "00", ForkProfile()
    )

    assert json.dumps(first.spec, sort_keys=True) == json.dumps(second.spec, sort_keys=True)
    assert template == _load_spec("fork_template.json")


def test_merge_rejects_template_without_raw_top() -> None:
    """Non-raw templates should raise a merge error."""
    with pytest.raises(ForkOffMergeError):
        merge_genesis(
            [],
            _load_spec("original.json"),
            {"name": "Development", "genesis": {"runtime": {}}},
            PrefixRegistry(),
            "00",
            ForkProfile(),
        )


def test_resolve_skipped_keys_uses_metadata() -> None:
    """Existing storage items should resolve to their storage key."""
    modules = [ModuleDescriptor("ParasScheduler", ("SessionStartBlock",))]

    keys = resolve_skipped_keys(modules, (StorageItemRef("ParasScheduler", "SessionStartBlock"),))

    assert keys == (storage_value_key("ParasScheduler", "SessionStartBlock"),)


def test_resolve_skipped_keys_rejects_unknown_item() -> None:
    """An unresolvable skipped item should be fatal."""
    modules = [ModuleDescriptor("Balances", ("TotalIssuance",))]

    with pytest.raises(ForkOffMergeError):
        resolve_skipped_keys(modules, (StorageItemRef("ParasScheduler", "SessionStartBlock"),))


def test_merge_keeps_only_non_excluded_module_prefixes() -> None:
    """One entry per module prefix should survive only for retained modules."""
    modules = [
        ModuleDescriptor(name, ("Item",))
        for name in ("System", "Session", "Babe", "Balances", "Assets")
    ]
    registry = PrefixRegistry.from_modules(modules, ForkProfile())
    snapshot = [StorageEntry(module_prefix(module.name) + "00", "0x01") for module in modules]
    snapshot.append(StorageEntry(ACCOUNT_KEY, "0x02"))

    merge = _merge(snapshot, registry=registry)
    top = merge.spec["genesis"]["raw"]["top"]
    merged_keys = {entry.key for entry in snapshot if entry.key in top}

    assert merged_keys == {
        module_prefix("Balances") + "00",
        module_prefix("Assets") + "00",
        ACCOUNT_KEY,
    }
    assert merge.summary.merged_count == 3
