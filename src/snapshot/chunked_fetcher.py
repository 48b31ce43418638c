"""Prefix-partitioned snapshot fetcher.

This module splits the key space into ``256 ** chunks_level`` prefix chunks
and fetches each chunk with one ``state_getPairs`` request. Deeper levels
keep single responses small at the cost of more requests.
"""

from __future__ import annotations

import asyncio

from core.constants import (
    BYTE_FANOUT,
    DEFAULT_MAX_CONCURRENCY,
    FETCH_STRATEGY_CHUNKED,
    KEY_SPACE_ROOT,
)
from core.errors import ForkOffConfigError
from core.types import FetchSummary
from node.rpc_client import NodeClient
from snapshot.progress import FetchProgressTracker
from snapshot.stream_writer import SnapshotStreamWriter


def child_prefixes(prefix: str) -> list[str]:
    """Return the 256 one-byte extensions of prefix in ascending order."""
    return [f"{prefix}{byte:02x}" for byte in range(BYTE_FANOUT)]


async def fetch_chunked_snapshot(
    client: NodeClient,
    writer: SnapshotStreamWriter,
    at: str,
    chunks_level: int,
    quick_mode: bool = False,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    root_prefix: str = KEY_SPACE_ROOT,
) -> FetchSummary:
    """Fetch every key/value pair at block ``at`` chunk by chunk.

    Pending prefixes live on an explicit stack. Without quick mode chunks
    are fetched sequentially in ascending prefix order. With quick mode the
    256 chunks under each final-level parent are fetched concurrently,
    bounded by ``max_concurrency``, and awaited together before the next
    parent starts; entries then land in completion order.

    Args:
        client: Node client.
        writer: Open snapshot writer.
        at: Block hash pinning the state.
        chunks_level: Number of leading key bytes used for partitioning.
        quick_mode: Fetch final-level chunks concurrently.
        max_concurrency: Cap on in-flight chunk requests.
        root_prefix: Prefix whose sub-space is partitioned.

    Returns:
        Batch, request, and entry counters.

    Raises:
        ForkOffConfigError: If ``chunks_level`` or ``max_concurrency`` is invalid.
        ForkOffRpcError: If a chunk request fails.
    """
    if chunks_level < 0:
        raise ForkOffConfigError(f"chunks_level must be zero or positive, got {chunks_level}.")
    if max_concurrency < 1:
        raise ForkOffConfigError(f"max_concurrency must be positive, got {max_concurrency}.")
    progress = FetchProgressTracker(
        strategy=FETCH_STRATEGY_CHUNKED,
        total_units=BYTE_FANOUT**chunks_level,
    )
    fetcher = _ChunkFetcher(client, writer, at, progress, asyncio.Semaphore(max_concurrency))
    pending: list[tuple[str, int]] = [(root_prefix, chunks_level)]
    while pending:
        prefix, levels_remaining = pending.pop()
        if levels_remaining == 0:
            await fetcher.fetch(prefix)
        elif quick_mode and levels_remaining == 1:
            await asyncio.gather(*(fetcher.fetch(child) for child in child_prefixes(prefix)))
        else:
            pending.extend(
                (child, levels_remaining - 1) for child in reversed(child_prefixes(prefix))
            )
    progress.log_finished()
    return FetchSummary(
        batch_count=fetcher.batch_count,
        request_count=progress.completed_units,
        entry_count=progress.entry_count,
    )


class _ChunkFetcher:
    """Fetch and flush single chunks under a shared concurrency limit."""

    def __init__(
        self,
        client: NodeClient,
        writer: SnapshotStreamWriter,
        at: str,
        progress: FetchProgressTracker,
        semaphore: asyncio.Semaphore,
    ) -> None:
        self._client = client
        self._writer = writer
        self._at = at
        self._progress = progress
        self._semaphore = semaphore
        self.batch_count = 0

    async def fetch(self, prefix: str) -> None:
        async with self._semaphore:
            entries = await self._client.get_pairs(prefix, self._at)
        if entries:
            self._writer.write_batch(entries)
            self.batch_count += 1
        self._progress.advance(len(entries))
