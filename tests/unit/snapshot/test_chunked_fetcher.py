"""Unit tests for the prefix-partitioned snapshot fetcher."""

from __future__ import annotations

import asyncio
import json

import pytest

from core.errors import ForkOffConfigError
from snapshot.chunked_fetcher import child_prefixes, fetch_chunked_snapshot
from snapshot.stream_writer import SnapshotStreamWriter
from tests.fake_node import FakeNodeClient

STATE = {
    "0x0001": "0x01",
    "0x00ff": "0x02",
    "0x01aa": "0x03",
    "0xff00": "0x04",
    "0xff01aa": "0x05",
}


def _fetch(tmp_path, chunks_level: int, quick_mode: bool = False, max_concurrency: int = 32):
    client = FakeNodeClient(STATE)
    output_path = tmp_path / "storage.json"
    with SnapshotStreamWriter(output_path) as writer:
        summary = asyncio.run(
            fetch_chunked_snapshot(
                client,
                writer,
                "0xhead",
                chunks_level=chunks_level,
                quick_mode=quick_mode,
                max_concurrency=max_concurrency,
            )
        )
    rows = json.loads(output_path.read_text(encoding="utf-8"))
    return summary, rows, client


def test_child_prefixes_cover_one_byte_in_order() -> None:
    """Children should be the 256 one-byte extensions in ascending order."""
    children = child_prefixes("0xab")

    assert len(children) == 256
    assert children[0] == "0xab00"
    assert children[-1] == "0xabff"
    assert children == sorted(children)


def test_level_zero_fetches_whole_space_in_one_request(tmp_path) -> None:
    """Depth zero should issue a single request for the root prefix."""
    summary, rows, client = _fetch(tmp_path, chunks_level=0)

    assert {key for key, _ in rows} == set(STATE)
    assert summary.request_count == 1
    assert client.calls == [("get_pairs", ("0x", "0xhead"))]


@pytest.mark.parametrize("chunks_level", [1, 2])
def test_sequential_chunks_cover_key_space_in_order(tmp_path, chunks_level: int) -> None:
    """Sequential chunks should yield each key once in ascending order."""
    summary, rows, client = _fetch(tmp_path, chunks_level=chunks_level)

    keys = [key for key, _ in rows]
    assert keys == sorted(STATE)
    assert summary.request_count == 256**chunks_level
    assert client.call_count("get_pairs") == 256**chunks_level
    assert summary.entry_count == len(STATE)


def test_level_one_counts_only_non_empty_chunks_as_batches(tmp_path) -> None:
    """Empty chunks should not be counted or written."""
    summary, _, _ = _fetch(tmp_path, chunks_level=1)

    assert summary.batch_count == 3


@pytest.mark.parametrize(("chunks_level", "max_concurrency"), [(1, 4), (2, 32)])
def test_quick_mode_yields_same_key_set(tmp_path, chunks_level: int, max_concurrency: int) -> None:
    """Concurrent chunks should produce the same union with no duplicates."""
    summary, rows, _ = _fetch(
        tmp_path,
        chunks_level=chunks_level,
        quick_mode=True,
        max_concurrency=max_concurrency,
    )

    keys = [key for key, _ in rows]
    assert len(keys) == len(set(keys))
    assert dict(rows) == STATE
    assert summary.request_count == 256**chunks_level


def test_negative_chunks_level_is_rejected(tmp_path) -> None:
    """Negative partition depth should raise a config error."""
    with pytest.raises(ForkOffConfigError):
        _fetch(tmp_path, chunks_level=-1)


def test_zero_concurrency_is_rejected(tmp_path) -> None:
    """Concurrency cap below one should raise a config error."""
    with pytest.raises(ForkOffConfigError):
        _fetch(tmp_path, chunks_level=1, quick_mode=True, max_concurrency=0)


class _InFlightCountingClient(FakeNodeClient):
    """Fake node that records the peak number of concurrent chunk requests."""

    def __init__(self, state) -> None:
        super().__init__(state)
        self.in_flight = 0
        self.peak_in_flight = 0

    async def get_pairs(self, prefix: str, at: str):
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            return await super().get_pairs(prefix, at)
        finally:
            self.in_flight -= 1


@pytest.mark.parametrize("max_concurrency", [1, 4])
def test_quick_mode_caps_in_flight_requests(tmp_path, max_concurrency: int) -> None:
    """Concurrent chunk requests should never exceed the concurrency cap."""
    client = _InFlightCountingClient(STATE)
    output_path = tmp_path / "storage.json"
    with SnapshotStreamWriter(output_path) as writer:
        asyncio.run(
            fetch_chunked_snapshot(
                client,
                writer,
                "0xhead",
                chunks_level=1,
                quick_mode=True,
                max_concurrency=max_concurrency,
            )
        )

    rows = json.loads(output_path.read_text(encoding="utf-8"))
    assert client.peak_in_flight == max_concurrency
    assert dict(rows) == STATE
