"""Streaming JSON array writer for snapshot batches.

This module appends key/value batches to a cache file as fragments of one
JSON array, so a fetch never holds the full key space in memory.
"""

from __future__ import annotations

import json
from pathlib import Path
from types import TracebackType
from typing import Sequence, TextIO

from core.errors import ForkOffCacheError
from core.types import StorageEntry


class SnapshotStreamWriter:
    """Incremental writer of a ``[[key, value], ...]`` JSON array.

    The separator state belongs to the writer instance, so independent
    writers never interfere with each other.
    """

    def __init__(self, output_path: Path) -> None:
        self._output_path = output_path
        self._handle: TextIO | None = None
        self._has_written = False
        self._entry_count = 0

    @property
    def output_path(self) -> Path:
        return self._output_path

    @property
    def entry_count(self) -> int:
        return self._entry_count

    def open(self) -> None:
        """Open the output in append mode and write the array opener."""
        if self._handle is not None:
            raise ForkOffCacheError(f"Snapshot writer for {self._output_path} is already open.")
        self._output_path.parent.mkdir(parents=True, exist_ok=True)
        self._handle = self._output_path.open("a", encoding="utf-8")
        self._handle.write("[")

    def write_batch(self, entries: Sequence[StorageEntry]) -> int:
        """Append one batch of entries.

        Args:
            entries: Entries to append; an empty batch is a no-op.

        Returns:
            Number of entries written.
        """
        handle = self._require_handle()
        if not entries:
            return 0
        payload = json.dumps([entry.to_payload() for entry in entries], separators=(",", ":"))
        if self._has_written:
            handle.write(",")
        else:
            self._has_written = True
        handle.write(payload[1:-1])
        handle.flush()
        self._entry_count += len(entries)
        return len(entries)

    def close(self) -> None:
        """Write the array closer and release the file handle."""
        handle = self._require_handle()
        handle.write("]")
        handle.close()
        self._handle = None

    def abort(self) -> None:
        """Release the file handle without terminating the array."""
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "SnapshotStreamWriter":
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if exc_type is None:
            self.close()
        else:
            self.abort()

    def _require_handle(self) -> TextIO:
        if self._handle is None:
            raise ForkOffCacheError(
                f"Snapshot writer for {self._output_path} is not open. Call open() first."
            )
        return self._handle
