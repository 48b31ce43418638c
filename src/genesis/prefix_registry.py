"""Storage prefix selection for the genesis merge.

This module decides which module namespaces of the live state are copied
into the fork. Consensus-critical modules are excluded because their live
state would break block authoring and finality on the forked chain.
"""

from __future__ import annotations

from typing import Iterable

from core.constants import DEFAULT_EXCLUDED_MODULES, SYSTEM_ACCOUNT_PREFIX
from core.types import ForkProfile, ModuleDescriptor
from node.hashing import module_prefix


class PrefixRegistry:
    """Ordered set of retained storage prefixes.

    The account-storage prefix is always present. Module prefixes are added
    from metadata unless excluded, and literal prefixes can be added for
    one-off inclusion of a skipped module or a single storage item.
    """

    def __init__(
        self,
        account_prefix: str = SYSTEM_ACCOUNT_PREFIX,
        excluded_modules: Iterable[str] = DEFAULT_EXCLUDED_MODULES,
    ) -> None:
        self._labels: dict[str, str] = {}
        self._by_length: dict[int, set[str]] = {}
        self._excluded_modules = frozenset(excluded_modules)
        self.add_prefix(account_prefix, label="System.Account")

    @classmethod
    def from_modules(
        cls,
        modules: Iterable[ModuleDescriptor],
        profile: ForkProfile,
    ) -> "PrefixRegistry":
        """Build a registry from metadata modules and a fork profile."""
        registry = cls(
            account_prefix=profile.well_known_keys.account_prefix,
            excluded_modules=profile.excluded_modules,
        )
        for module in modules:
            registry.add_module(module)
        for prefix in profile.extra_prefixes:
            registry.add_prefix(prefix, label="override")
        return registry

    @property
    def prefixes(self) -> tuple[str, ...]:
        return tuple(self._labels)

    @property
    def excluded_modules(self) -> frozenset[str]:
        return self._excluded_modules

    def items(self) -> tuple[tuple[str, str], ...]:
        """Return ``(prefix, label)`` pairs in insertion order."""
        return tuple(self._labels.items())

    def add_module(self, module: ModuleDescriptor) -> bool:
        """Add a module's prefix when it has storage and is not excluded.

        Returns:
            Whether the module prefix was added.
        """
        if not module.has_storage or module.name in self._excluded_modules:
            return False
        return self.add_prefix(module_prefix(module.name), label=module.name)

    def add_prefix(self, prefix: str, label: str) -> bool:
        """Add a literal prefix; duplicates are ignored."""
        normalized = prefix.lower()
        if normalized in self._labels:
            return False
        self._labels[normalized] = label
        self._by_length.setdefault(len(normalized), set()).add(normalized)
        return True

    def matches(self, key: str) -> bool:
        """Return whether key starts with any retained prefix."""
        normalized = key.lower()
        return any(
            normalized[:length] in prefixes for length, prefixes in self._by_length.items()
        )

    def __len__(self) -> int:
        return len(self._labels)
