"""Shared typed models.

This module defines immutable data models used by the node client,
snapshot fetchers, genesis merger, and CLI to keep interfaces explicit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from core.constants import (
    CODE_KEY,
    DEFAULT_EXCLUDED_MODULES,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_PARA_ID,
    DEFAULT_RELAY_CHAIN,
    DEFAULT_SKIPPED_STORAGE,
    FORCE_ERA_KEY,
    FORCE_ERA_NONE_VALUE,
    LAST_RUNTIME_UPGRADE_KEY,
    SUDO_KEY,
    SYSTEM_ACCOUNT_PREFIX,
)


@dataclass(frozen=True)
class StorageEntry:
    """One key/value pair of node state.

    Attributes:
        key: Hex storage key with ``0x`` prefix.
        value: Hex stored bytes, or None when the key had no value.
    """

    key: str
    value: str | None

    def to_payload(self) -> list[str | None]:
        """Return the two-element JSON array form used by the cache file."""
        return [self.key, self.value]


@dataclass(frozen=True)
class ModuleDescriptor:
    """Runtime module (pallet) as reported by node metadata.

    Attributes:
        name: Module name, e.g. ``Balances``.
        storage_items: Names of declared storage items.
    """

    name: str
    storage_items: tuple[str, ...] = ()

    @property
    def has_storage(self) -> bool:
        return len(self.storage_items) > 0


@dataclass(frozen=True)
class WellKnownKeys:
    """Fixed storage keys rewritten by the genesis merger.

    The defaults match the Substrate FRAME layout. Chains with a different
    storage layout override them through a fork profile.
    """

    account_prefix: str = SYSTEM_ACCOUNT_PREFIX
    last_runtime_upgrade: str = LAST_RUNTIME_UPGRADE_KEY
    code: str = CODE_KEY
    force_era: str = FORCE_ERA_KEY
    force_era_value: str = FORCE_ERA_NONE_VALUE
    sudo_key: str = SUDO_KEY


@dataclass(frozen=True)
class StorageItemRef:
    """Reference to a plain storage value, e.g. ``ParasScheduler.SessionStartBlock``."""

    pallet: str
    item: str

    def __str__(self) -> str:
        return f"{self.pallet}.{self.item}"


@dataclass(frozen=True)
class ForkProfile:
    """Chain-specific merge settings.

    Attributes:
        excluded_modules: Modules whose live state is never copied.
        extra_prefixes: Literal prefixes always retained.
        skipped_storage: Storage values deleted from the forked state.
        relay_chain: Relay chain id written to the forked spec.
        para_id: Parachain id written to the forked spec.
        well_known_keys: Storage keys rewritten by the merger.
    """

    excluded_modules: tuple[str, ...] = DEFAULT_EXCLUDED_MODULES
    extra_prefixes: tuple[str, ...] = ()
    skipped_storage: tuple[StorageItemRef, ...] = tuple(
        StorageItemRef(*item.split(".", 1)) for item in DEFAULT_SKIPPED_STORAGE
    )
    relay_chain: str = DEFAULT_RELAY_CHAIN
    para_id: int = DEFAULT_PARA_ID
    well_known_keys: WellKnownKeys = field(default_factory=WellKnownKeys)


@dataclass(frozen=True)
class FetchSummary:
    """Result counters of one snapshot fetch.

    Attributes:
        batch_count: Non-empty batches flushed to the writer.
        request_count: Key-listing or pair requests issued.
        entry_count: Entries flushed to the writer.
    """

    batch_count: int
    request_count: int
    entry_count: int


@dataclass(frozen=True)
class MergeSummary:
    """Result counters of one genesis merge.

    Attributes:
        merged_count: Snapshot entries copied into the forked state.
        deleted_keys: Keys removed from the forked state.
        overridden_keys: Keys set to fixed values after the copy.
    """

    merged_count: int
    deleted_keys: tuple[str, ...]
    overridden_keys: tuple[str, ...]


@dataclass(frozen=True)
class FetchOptions:
    """Snapshot acquisition options.

    Attributes:
        strategy: ``paged`` or ``chunked``.
        batch_size: Keys per page for the paged strategy.
        chunks_level: Partition depth for the chunked strategy.
        quick_mode: Fetch final-level chunks concurrently.
        max_concurrency: Cap on concurrent chunk requests in quick mode.
        refresh: Delete an existing cache before fetching.
    """

    strategy: str
    batch_size: int
    chunks_level: int
    quick_mode: bool = False
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    refresh: bool = False


@dataclass(frozen=True)
class ForkOptions:
    """Options for one end-to-end fork run.

    Attributes:
        fetch: Snapshot acquisition options.
        profile: Chain-specific merge settings.
        root_account: Optional account installed as sudo key.
        original_chain: Optional ``--chain`` for the original spec.
        fork_chain: Optional ``--chain`` for the forked template.
    """

    fetch: FetchOptions
    profile: ForkProfile = field(default_factory=ForkProfile)
    root_account: str | None = None
    original_chain: str | None = None
    fork_chain: str | None = None


@dataclass(frozen=True)
class ForkRunResult:
    """Outcome of a fork run.

    Attributes:
        forked_spec_path: Path of the written forked genesis.
        snapshot_entries: Entries loaded from the cache.
        merge: Merge counters.
        cache_reused: Whether an existing cache was reused.
    """

    forked_spec_path: Path
    snapshot_entries: int
    merge: MergeSummary
    cache_reused: bool
