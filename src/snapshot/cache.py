"""Snapshot cache acquisition and loading.

This module decides whether a run reuses an existing cache file or fetches
a fresh snapshot, and parses cache files strictly so a malformed cache is a
fatal error rather than an empty state.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from core.constants import FETCH_STRATEGY_CHUNKED, PARTIAL_CACHE_SUFFIX
from core.errors import ForkOffCacheError
from core.logging_config import get_logger
from core.types import FetchOptions, FetchSummary, StorageEntry
from node.rpc_client import NodeClient
from snapshot.chunked_fetcher import fetch_chunked_snapshot
from snapshot.paged_fetcher import fetch_paged_snapshot
from snapshot.stream_writer import SnapshotStreamWriter

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class SnapshotAcquisition:
    """Outcome of snapshot acquisition.

    Attributes:
        cache_path: Final cache file path.
        reused: Whether an existing cache was reused without fetching.
        block_hash: Block the snapshot was taken at, when fetched.
        summary: Fetch counters, when fetched.
    """

    cache_path: Path
    reused: bool
    block_hash: str | None = None
    summary: FetchSummary | None = None


def partial_cache_path(cache_path: Path) -> Path:
    """Return the in-progress path a fetch writes before it completes."""
    return cache_path.with_name(cache_path.name + PARTIAL_CACHE_SUFFIX)


async def acquire_snapshot(
    client: NodeClient,
    cache_path: Path,
    options: FetchOptions,
) -> SnapshotAcquisition:
    """Reuse the cache file when present, otherwise fetch it from the node.

    A fetch writes to a ``.partial`` sibling and renames it into place only
    after the array is closed, so an interrupted fetch never leaves a file
    that a later run would mistake for a complete cache.

    Args:
        client: Node client for state queries.
        cache_path: Cache file location.
        options: Fetch strategy options.

    Returns:
        Acquisition outcome.

    Raises:
        ForkOffRpcError: If fetching fails.
    """
    if options.refresh and cache_path.exists():
        cache_path.unlink()
        _LOGGER.info("snapshot_cache_deleted", cache_path=str(cache_path))
    if cache_path.exists():
        _LOGGER.warning(
            "snapshot_cache_reused",
            cache_path=str(cache_path),
            hint="Delete the cache file or pass --refresh to fetch the latest state.",
        )
        return SnapshotAcquisition(cache_path=cache_path, reused=True)
    block_hash = await client.get_block_hash()
    _LOGGER.info(
        "snapshot_fetch_started",
        block_hash=block_hash,
        strategy=options.strategy,
        cache_path=str(cache_path),
    )
    partial_path = partial_cache_path(cache_path)
    if partial_path.exists():
        partial_path.unlink()
    with SnapshotStreamWriter(partial_path) as writer:
        summary = await _run_fetcher(client, writer, block_hash, options)
    partial_path.replace(cache_path)
    _LOGGER.info(
        "snapshot_cache_written",
        cache_path=str(cache_path),
        entries=summary.entry_count,
        batches=summary.batch_count,
        requests=summary.request_count,
    )
    return SnapshotAcquisition(
        cache_path=cache_path,
        reused=False,
        block_hash=block_hash,
        summary=summary,
    )


async def _run_fetcher(
    client: NodeClient,
    writer: SnapshotStreamWriter,
    block_hash: str,
    options: FetchOptions,
) -> FetchSummary:
    if options.strategy == FETCH_STRATEGY_CHUNKED:
        return await fetch_chunked_snapshot(
            client,
            writer,
            block_hash,
            chunks_level=options.chunks_level,
            quick_mode=options.quick_mode,
            max_concurrency=options.max_concurrency,
        )
    return await fetch_paged_snapshot(client, writer, block_hash, batch_size=options.batch_size)


def load_snapshot(cache_path: Path) -> list[StorageEntry]:
    """Load and validate a snapshot cache file.

    Args:
        cache_path: Cache JSON path.

    Returns:
        Entries in file order.

    Raises:
        ForkOffCacheError: If the file is missing, is not valid JSON, has
            malformed entries, or repeats a key.
    """
    if not cache_path.exists():
        raise ForkOffCacheError(
            f"Snapshot cache not found at {cache_path}. Run the fetch step first."
        )
    try:
        payload = json.loads(cache_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as error:
        raise ForkOffCacheError(
            f"Failed to parse snapshot cache at {cache_path}: {error.msg}. "
            "Delete the cache file and rerun to fetch it again."
        ) from error
    if not isinstance(payload, list):
        raise ForkOffCacheError(
            f"Invalid snapshot cache at {cache_path}: expected a JSON array at top level. "
            "Delete the cache file and rerun to fetch it again."
        )
    entries: list[StorageEntry] = []
    seen_keys: set[str] = set()
    for index, row in enumerate(payload):
        entry = _parse_entry(cache_path, index, row)
        if entry.key in seen_keys:
            raise ForkOffCacheError(
                f"Invalid snapshot cache at {cache_path}: key {entry.key} appears twice. "
                "Delete the cache file and rerun to fetch it again."
            )
        seen_keys.add(entry.key)
        entries.append(entry)
    _LOGGER.info("snapshot_cache_loaded", cache_path=str(cache_path), entries=len(entries))
    return entries


def _parse_entry(cache_path: Path, index: int, row: Any) -> StorageEntry:
    if (
        isinstance(row, list)
        and len(row) == 2
        and isinstance(row[0], str)
        and (row[1] is None or isinstance(row[1], str))
    ):
        return StorageEntry(key=row[0], value=row[1])
    raise ForkOffCacheError(
        f"Invalid snapshot cache entry #{index} at {cache_path}: "
        "expected [key, value] with hex string key and hex string or null value. "
        "Delete the cache file and rerun to fetch it again."
    )
