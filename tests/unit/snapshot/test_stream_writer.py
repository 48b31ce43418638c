"""Unit tests for the streaming snapshot writer."""

from __future__ import annotations

import json

import pytest

from core.errors import ForkOffCacheError
from core.types import StorageEntry
from snapshot.stream_writer import SnapshotStreamWriter


def test_writer_skips_empty_batches_between_entries(tmp_path) -> None:
    """Interleaved empty batches should not produce stray separators."""
    output_path = tmp_path / "storage.json"
    with SnapshotStreamWriter(output_path) as writer:
        writer.write_batch([])
        writer.write_batch([StorageEntry("0x01", "0xaa")])
        writer.write_batch([])
        writer.write_batch([StorageEntry("0x02", "0xbb"), StorageEntry("0x03", None)])
        writer.write_batch([])

    assert json.loads(output_path.read_text(encoding="utf-8")) == [
        ["0x01", "0xaa"],
        ["0x02", "0xbb"],
        ["0x03", None],
    ]
    assert writer.entry_count == 3


def test_writer_with_no_entries_produces_empty_array(tmp_path) -> None:
    """A writer closed without batches should leave a valid empty array."""
    output_path = tmp_path / "storage.json"
    writer = SnapshotStreamWriter(output_path)
    writer.open()
    writer.write_batch([])
    writer.close()

    assert output_path.read_text(encoding="utf-8") == "[]"


def test_writer_abort_leaves_unterminated_array(tmp_path) -> None:
    """Failure inside the context should not terminate the array."""
    output_path = tmp_path / "storage.json"
    with pytest.raises(RuntimeError):
        with SnapshotStreamWriter(output_path) as writer:
            writer.write_batch([StorageEntry("0x01", "0xaa")])
            raise RuntimeError("node went away")

    assert output_path.read_text(encoding="utf-8") == '[["0x01","0xaa"]'


def test_writer_requires_open(tmp_path) -> None:
    """Writing before open should raise a cache error."""
    writer = SnapshotStreamWriter(tmp_path / "storage.json")

    with pytest.raises(ForkOffCacheError):
        writer.write_batch([StorageEntry("0x01", "0xaa")])


def test_independent_writers_keep_separate_separator_state(tmp_path) -> None:
    """Two writers in one process should each produce a valid array."""
    first = SnapshotStreamWriter(tmp_path / "first.json")
    second = SnapshotStreamWriter(tmp_path / "second.json")
    first.open()
    first.write_batch([StorageEntry("0x01", "0xaa")])
    second.open()
    second.write_batch([StorageEntry("0x02", "0xbb")])
    first.close()
    second.close()

    assert json.loads((tmp_path / "first.json").read_text(encoding="utf-8")) == [["0x01", "0xaa"]]
    assert json.loads((tmp_path / "second.json").read_text(encoding="utf-8")) == [["0x02", "0xbb"]]
