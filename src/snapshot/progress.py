"""Structured fetch progress reporting.

This module emits periodic progress events for long-running snapshot fetches.
Progress reporting never influences what is fetched or written.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from core.constants import PROGRESS_LOG_INTERVAL_BATCHES
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


@dataclass
class FetchProgressTracker:
    """Track and emit progress events for one fetch strategy."""

    strategy: str
    total_units: int | None = None
    log_interval: int = PROGRESS_LOG_INTERVAL_BATCHES
    completed_units: int = 0
    entry_count: int = 0
    started_at: float = field(default_factory=time.monotonic)

    def advance(self, entries: int) -> int:
        """Record one completed unit (page or chunk) and log periodically.

        Returns:
            The new, monotonically increasing unit counter.
        """
        self.completed_units += 1
        self.entry_count += entries
        if should_log_unit(self.completed_units, self.log_interval):
            _LOGGER.info(
                "snapshot_fetch_progress",
                strategy=self.strategy,
                completed=self.completed_units,
                total=self.total_units,
                entries=self.entry_count,
                elapsed_seconds=round(time.monotonic() - self.started_at, 3),
            )
        return self.completed_units

    def log_finished(self) -> None:
        _LOGGER.info(
            "snapshot_fetch_finished",
            strategy=self.strategy,
            completed=self.completed_units,
            entries=self.entry_count,
            elapsed_seconds=round(time.monotonic() - self.started_at, 3),
        )


def should_log_unit(unit_number: int, interval: int) -> bool:
    """Return true on the first unit and every ``interval`` units after it."""
    if interval <= 1:
        return True
    return unit_number % interval == 1
