"""Unit tests for storage prefix selection."""

from __future__ import annotations

from core.constants import SYSTEM_ACCOUNT_PREFIX
from core.types import ForkProfile, ModuleDescriptor
from genesis.prefix_registry import PrefixRegistry
from node.hashing import module_prefix


def _modules() -> list[ModuleDescriptor]:
    return [
        ModuleDescriptor("System", ("Account", "Number")),
        ModuleDescriptor("Balances", ("TotalIssuance",)),
        ModuleDescriptor("Babe", ("Authorities",)),
        ModuleDescriptor("Utility", ()),
        ModuleDescriptor("Assets", ("Asset",)),
    ]


def test_registry_always_includes_account_prefix() -> None:
    """The account prefix should be present even though System is excluded."""
    registry = PrefixRegistry.from_modules(_modules(), ForkProfile())

    assert registry.prefixes[0] == SYSTEM_ACCOUNT_PREFIX
    assert module_prefix("System") not in registry.prefixes


def test_registry_skips_excluded_and_storageless_modules() -> None:
    """Only non-excluded modules with storage should contribute prefixes."""
    registry = PrefixRegistry.from_modules(_modules(), ForkProfile())

    assert [label for _, label in registry.items()] == ["System.Account", "Balances", "Assets"]
    assert len(registry) == 3


def test_registry_matches_by_prefix() -> None:
    """Keys should match when they start with any retained prefix."""
    registry = PrefixRegistry.from_modules(_modules(), ForkProfile())
    balances_key = module_prefix("Balances") + "c2261276cc9d1f8598ea4b6a74b15c2f"
    account_key = SYSTEM_ACCOUNT_PREFIX + "de1e86a9a8c739864cf3cc5ec2bea59f"
    system_number_key = module_prefix("System") + "02a5c1b19ab7a04f536c519aca4983ac"

    assert registry.matches(balances_key)
    assert registry.matches(account_key.upper().replace("0X", "0x"))
    assert not registry.matches(system_number_key)
    assert not registry.matches(module_prefix("Babe") + "00")


def test_registry_adds_profile_extra_prefixes() -> None:
    """Literal prefixes from the profile should be retained."""
    number_key = module_prefix("System") + "02a5c1b19ab7a04f536c519aca4983ac"
    profile = ForkProfile(extra_prefixes=(number_key,))

    registry = PrefixRegistry.from_modules(_modules(), profile)

    assert registry.matches(number_key)
    assert registry.items()[-1] == (number_key, "override")


def test_registry_ignores_duplicate_prefixes() -> None:
    """Adding the same prefix twice should be a no-op."""
    registry = PrefixRegistry()

    assert registry.add_prefix("0xAB", "first") is True
    assert registry.add_prefix("0xab", "second") is False
    assert len(registry) == 2
