"""Cursor-paginated snapshot fetcher.

This module walks the whole key space at one fixed block in ascending key
order, ``batch_size`` keys at a time, and streams each resolved page to the
snapshot writer before requesting the next one.
"""

from __future__ import annotations

from core.constants import DEFAULT_BATCH_SIZE, FETCH_STRATEGY_PAGED, KEY_SPACE_ROOT
from core.errors import ForkOffConfigError, ForkOffRpcError
from core.types import FetchSummary
from node.rpc_client import NodeClient
from snapshot.progress import FetchProgressTracker
from snapshot.stream_writer import SnapshotStreamWriter


async def fetch_paged_snapshot(
    client: NodeClient,
    writer: SnapshotStreamWriter,
    at: str,
    batch_size: int = DEFAULT_BATCH_SIZE,
    prefix: str = KEY_SPACE_ROOT,
) -> FetchSummary:
    """Fetch every key/value pair under prefix at block ``at``.

    The cursor starts before the first key and moves to the last key of each
    page. A page shorter than ``batch_size`` ends the walk. Because block and
    cursor are fixed, no key is skipped or repeated.

    Args:
        client: Node client.
        writer: Open snapshot writer.
        at: Block hash pinning the state.
        batch_size: Maximum keys per page.
        prefix: Key-space prefix to enumerate.

    Returns:
        Batch, request, and entry counters.

    Raises:
        ForkOffConfigError: If ``batch_size`` is not positive.
        ForkOffRpcError: If a call fails or the node does not advance the cursor.
    """
    if batch_size < 1:
        raise ForkOffConfigError(f"batch_size must be positive, got {batch_size}.")
    progress = FetchProgressTracker(strategy=FETCH_STRATEGY_PAGED)
    start_key: str | None = None
    request_count = 0
    batch_count = 0
    while True:
        keys = await client.get_keys_paged(prefix, batch_size, start_key, at)
        request_count += 1
        entries = await client.query_storage_at(keys, at)
        if keys:
            if start_key is not None and keys[-1] <= start_key:
                raise ForkOffRpcError(
                    f"Node returned keys at or before cursor {start_key} at block {at}. "
                    "The node does not support ordered key pagination."
                )
            writer.write_batch(entries)
            batch_count += 1
            start_key = keys[-1]
        progress.advance(len(entries))
        if len(keys) < batch_size:
            break
    progress.log_finished()
    return FetchSummary(
        batch_count=batch_count,
        request_count=request_count,
        entry_count=progress.entry_count,
    )
