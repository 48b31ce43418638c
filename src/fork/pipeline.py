"""Fork orchestration.

This module coordinates artifact checks, snapshot acquisition, metadata
decoding, chain spec generation, and the genesis merge for one fork run.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from core.config import ForkOffConfig
from core.logging_config import get_logger
from core.types import (
    FetchOptions,
    ForkOptions,
    ForkProfile,
    ForkRunResult,
    ModuleDescriptor,
)
from core.fork_profile import load_fork_profile
from genesis.chain_spec_builder import build_chain_spec, ensure_executable
from genesis.merger import merge_genesis, resolve_skipped_keys
from genesis.prefix_registry import PrefixRegistry
from genesis.runtime_blob import load_runtime_hex
from genesis.spec_io import write_genesis_spec
from node.hashing import account_public_key
from node.metadata import decode_modules, load_runtime_config
from node.rpc_client import HttpNodeClient, NodeClient
from snapshot.cache import SnapshotAcquisition, acquire_snapshot, load_snapshot

_LOGGER = get_logger(__name__)


class ManagedNodeClient(NodeClient, Protocol):
    """Node client that is also an async context manager."""

    async def __aenter__(self) -> Any: ...

    async def __aexit__(self, *exc_info: object) -> None: ...


NodeClientFactory = Callable[[str], ManagedNodeClient]


@dataclass(frozen=True)
class NodeIdentity:
    """Chain name and genesis hash reported by the identity endpoint."""

    chain_name: str
    genesis_hash: str


def build_fork_options(config: ForkOffConfig) -> ForkOptions:
    """Build fork options from config, loading the fork profile if set."""
    profile = load_fork_profile(config.profile_path) if config.profile_path else ForkProfile()
    return ForkOptions(
        fetch=FetchOptions(
            strategy=config.fetch_strategy,
            batch_size=config.batch_size,
            chunks_level=config.chunks_level,
            quick_mode=config.quick_mode,
            max_concurrency=config.max_concurrency,
        ),
        profile=profile,
        root_account=config.root_account,
        original_chain=config.original_chain,
        fork_chain=config.fork_chain,
    )


class ForkPipelineRunner:
    """Runner for one end-to-end fork job."""

    def __init__(
        self,
        options: ForkOptions,
        config: ForkOffConfig,
        client_factory: NodeClientFactory | None = None,
    ) -> None:
        self._options = options
        self._config = config
        self._client_factory = client_factory or self._default_client

    def run(self) -> ForkRunResult:
        """Execute the fork job and return its outcome."""
        return asyncio.run(self.run_async())

    async def run_async(self) -> ForkRunResult:
        config = self._config
        ensure_executable(config.binary_path)
        runtime_hex = load_runtime_hex(config.runtime_wasm_path, config.runtime_hex_path)
        root_public_key = (
            account_public_key(self._options.root_account)
            if self._options.root_account
            else None
        )
        acquisition = await self.acquire()
        modules = await self.load_modules()
        registry = PrefixRegistry.from_modules(modules, self._options.profile)
        skipped_keys = resolve_skipped_keys(modules, self._options.profile.skipped_storage)
        _log_registry(registry)

        original_spec = build_chain_spec(
            config.binary_path,
            config.original_spec_path,
            chain=self._options.original_chain,
        )
        forked_template = build_chain_spec(
            config.binary_path,
            config.fork_template_path,
            chain=self._options.fork_chain,
            dev_default=True,
        )
        snapshot = load_snapshot(acquisition.cache_path)
        merge = merge_genesis(
            snapshot,
            original_spec,
            forked_template,
            registry,
            runtime_hex=runtime_hex,
            profile=self._options.profile,
            skipped_keys=skipped_keys,
            root_public_key=root_public_key,
        )
        write_genesis_spec(config.forked_spec_path, merge.spec)
        _LOGGER.info(
            "fork_completed",
            forked_spec_path=str(config.forked_spec_path),
            snapshot_entries=len(snapshot),
            merged_count=merge.summary.merged_count,
            cache_reused=acquisition.reused,
        )
        return ForkRunResult(
            forked_spec_path=config.forked_spec_path,
            snapshot_entries=len(snapshot),
            merge=merge.summary,
            cache_reused=acquisition.reused,
        )

    async def acquire(self) -> SnapshotAcquisition:
        """Reuse or fetch the snapshot cache."""
        storage_path = self._config.storage_path
        if self._options.fetch.refresh or not storage_path.exists():
            await self.log_node_identity()
        async with self._client_factory(self._config.rpc_endpoint) as client:
            return await acquire_snapshot(client, storage_path, self._options.fetch)

    async def load_modules(self) -> tuple[ModuleDescriptor, ...]:
        """Fetch and decode runtime metadata into module descriptors."""
        runtime_config = load_runtime_config(self._config.schema_path)
        async with self._client_factory(self._config.rpc_endpoint) as client:
            metadata_hex = await client.get_metadata()
        modules = decode_modules(metadata_hex, runtime_config)
        _LOGGER.info("metadata_decoded", modules=len(modules))
        return modules

    async def log_node_identity(self) -> NodeIdentity:
        """Log chain name and genesis hash of the identity endpoint."""
        async with self._client_factory(self._config.identity_endpoint) as client:
            identity = NodeIdentity(
                chain_name=await client.get_chain_name(),
                genesis_hash=await client.get_genesis_hash(),
            )
        _LOGGER.info(
            "node_identity",
            endpoint=self._config.identity_endpoint,
            chain_name=identity.chain_name,
            genesis_hash=identity.genesis_hash,
        )
        return identity

    def _default_client(self, endpoint: str) -> HttpNodeClient:
        return HttpNodeClient(
            endpoint,
            timeout=self._config.rpc_timeout,
            max_attempts=self._config.rpc_max_attempts,
            max_connections=self._config.max_concurrency,
        )


def run_fork(
    options: ForkOptions,
    config: ForkOffConfig,
    client_factory: NodeClientFactory | None = None,
) -> ForkRunResult:
    """Run a fork job end to end."""
    return ForkPipelineRunner(options, config, client_factory).run()


def fetch_snapshot(
    options: ForkOptions,
    config: ForkOffConfig,
    client_factory: NodeClientFactory | None = None,
) -> SnapshotAcquisition:
    """Acquire the snapshot cache without building a fork."""
    return asyncio.run(ForkPipelineRunner(options, config, client_factory).acquire())


def load_prefix_registry(
    options: ForkOptions,
    config: ForkOffConfig,
    client_factory: NodeClientFactory | None = None,
) -> PrefixRegistry:
    """Build the prefix registry from the node's current metadata."""
    runner = ForkPipelineRunner(options, config, client_factory)
    modules = asyncio.run(runner.load_modules())
    return PrefixRegistry.from_modules(modules, options.profile)


def _log_registry(registry: PrefixRegistry) -> None:
    _LOGGER.info(
        "prefix_registry_built",
        prefixes=len(registry),
        excluded_modules=sorted(registry.excluded_modules),
    )
