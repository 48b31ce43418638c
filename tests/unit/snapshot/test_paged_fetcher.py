"""Unit tests for the cursor-paginated snapshot fetcher."""

from __future__ import annotations

import asyncio
import json
import math

import pytest

from core.errors import ForkOffConfigError, ForkOffRpcError
from snapshot.paged_fetcher import fetch_paged_snapshot
from snapshot.stream_writer import SnapshotStreamWriter
from tests.fake_node import FakeNodeClient


def _state(size: int) -> dict[str, str]:
    return {f"0x{index:04x}": f"0x{index:02x}" for index in range(size)}


def _fetch(tmp_path, client, batch_size: int):
    output_path = tmp_path / "storage.json"
    with SnapshotStreamWriter(output_path) as writer:
        summary = asyncio.run(fetch_paged_snapshot(client, writer, "0xhead", batch_size))
    return summary, json.loads(output_path.read_text(encoding="utf-8"))


@pytest.mark.parametrize(("size", "batch_size"), [(5, 2), (4, 2), (1, 128), (300, 128)])
def test_paged_fetch_is_complete_and_ordered(tmp_path, size: int, batch_size: int) -> None:
    """Every key should be fetched once, in ascending order."""
    state = _state(size)
    client = FakeNodeClient(state)

    summary, rows = _fetch(tmp_path, client, batch_size)

    assert [key for key, _ in rows] == sorted(state)
    assert {key: value for key, value in rows} == state
    assert summary.entry_count == size
    assert summary.batch_count == math.ceil(size / batch_size)
    assert summary.request_count == size // batch_size + 1


def test_paged_fetch_of_empty_state_writes_empty_array(tmp_path) -> None:
    """An empty key space should yield one request and an empty array."""
    client = FakeNodeClient({})

    summary, rows = _fetch(tmp_path, client, 128)

    assert rows == []
    assert summary.batch_count == 0
    assert summary.request_count == 1


def test_paged_fetch_pins_every_call_to_one_block(tmp_path) -> None:
    """All key and value queries should use the same block hash."""
    client = FakeNodeClient(_state(7))

    _fetch(tmp_path, client, 3)

    blocks = {args[-1] for name, args in client.calls}
    assert blocks == {"0xhead"}


def test_paged_fetch_advances_cursor_to_last_key(tmp_path) -> None:
    """Each page request should resume after the previous page's last key."""
    client = FakeNodeClient(_state(5))

    _fetch(tmp_path, client, 2)

    cursors = [args[2] for name, args in client.calls if name == "get_keys_paged"]
    assert cursors == [None, "0x0001", "0x0003"]


def test_paged_fetch_rejects_stalled_cursor(tmp_path) -> None:
    """A node that repeats a page should fail instead of looping forever."""

    class StalledClient(FakeNodeClient):
        async def get_keys_paged(self, prefix, count, start_key, at):
            return ["0x01", "0x02"]

    with pytest.raises(ForkOffRpcError):
        _fetch(tmp_path, StalledClient({"0x01": "0xaa", "0x02": "0xbb"}), 2)


def test_paged_fetch_rejects_non_positive_batch_size(tmp_path) -> None:
    """Batch size below one should be a configuration error."""
    with pytest.raises(ForkOffConfigError):
        _fetch(tmp_path, FakeNodeClient({}), 0)
