"""Public SDK surface for fork-off.

This module provides a stable import path for scripted fork runs.
It re-exports the config, typed option models, and pipeline entry points.
"""

from __future__ import annotations

from core.config import ForkOffConfig
from core.fork_profile import load_fork_profile
from core.types import (
    FetchOptions,
    FetchSummary,
    ForkOptions,
    ForkProfile,
    ForkRunResult,
    MergeSummary,
    StorageEntry,
    WellKnownKeys,
)
from fork.pipeline import (
    ForkPipelineRunner,
    build_fork_options,
    fetch_snapshot,
    load_prefix_registry,
    run_fork,
)
from node.rpc_client import HttpNodeClient

__all__ = [
    "FetchOptions",
    "FetchSummary",
    "ForkOffConfig",
    "ForkOptions",
    "ForkPipelineRunner",
    "ForkProfile",
    "ForkRunResult",
    "HttpNodeClient",
    "MergeSummary",
    "StorageEntry",
    "WellKnownKeys",
    "build_fork_options",
    "fetch_snapshot",
    "load_fork_profile",
    "load_prefix_registry",
    "run_fork",
]
