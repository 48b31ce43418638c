"""Pytest configuration for repository test runs."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_FORK_OFF_ENV_VARS = (
    "FORK_DATA_ROOT",
    "HTTP_RPC_ENDPOINT",
    "WSS_ENDPOINT",
    "FORK_FETCH_STRATEGY",
    "FORK_BATCH_SIZE",
    "FORK_CHUNKS_LEVEL",
    "QUICK_MODE",
    "FORK_MAX_CONCURRENCY",
    "FORK_ROOT_ACCOUNT",
    "ALICE",
    "ORIG_CHAIN",
    "FORK_CHAIN",
    "FORK_RPC_TIMEOUT",
    "FORK_RPC_MAX_ATTEMPTS",
    "FORK_PROFILE",
)


def pytest_sessionstart() -> None:
    """Add src directory to sys.path for test imports."""
    project_root = Path(__file__).resolve().parent.parent
    src_path = project_root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


@pytest.fixture(autouse=True)
def isolated_fork_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear fork-off environment variables so each test starts from defaults."""
    for variable in _FORK_OFF_ENV_VARS:
        monkeypatch.delenv(variable, raising=False)
