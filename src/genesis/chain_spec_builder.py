"""Chain spec template generation with the node binary.

This module runs ``<binary> build-spec --raw`` to produce the original and
forked chain spec templates.
"""

from __future__ import annotations

import json
import stat
import subprocess
from pathlib import Path
from typing import Any

from core.errors import ForkOffArtifactError, ForkOffChainSpecError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


def ensure_executable(binary_path: Path) -> None:
    """Check the node binary exists and mark it executable.

    Raises:
        ForkOffArtifactError: If the binary is missing.
    """
    if not binary_path.is_file():
        raise ForkOffArtifactError(
            f"Node binary missing at {binary_path}. Copy the binary of your node "
            "to the data folder and name it 'binary'."
        )
    mode = binary_path.stat().st_mode
    binary_path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def build_spec_command(binary_path: Path, chain: str | None, dev_default: bool) -> list[str]:
    """Return the build-spec argument vector.

    Args:
        binary_path: Node binary.
        chain: Optional chain id passed as ``--chain``.
        dev_default: Use ``--dev`` when no chain is given.
    """
    command = [str(binary_path), "build-spec"]
    if chain:
        command.extend(["--chain", chain])
    elif dev_default:
        command.append("--dev")
    command.append("--raw")
    return command


def build_chain_spec(
    binary_path: Path,
    output_path: Path,
    chain: str | None = None,
    dev_default: bool = False,
) -> dict[str, Any]:
    """Build a raw chain spec and write it to output_path.

    Args:
        binary_path: Node binary.
        output_path: Destination JSON file.
        chain: Optional chain id.
        dev_default: Use the dev chain when no chain id is given.

    Returns:
        Parsed chain spec.

    Raises:
        ForkOffChainSpecError: If the binary fails or prints invalid JSON.
    """
    command = build_spec_command(binary_path, chain, dev_default)
    _LOGGER.info("chain_spec_build_started", command=" ".join(command))
    try:
        completed = subprocess.run(
            command,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as error:
        raise ForkOffChainSpecError(
            f"Failed to run {binary_path}: {error}. Check that it is a node binary for this platform."
        ) from error
    if completed.returncode != 0:
        raise ForkOffChainSpecError(
            f"'{' '.join(command)}' exited with code {completed.returncode}: "
            f"{completed.stderr.strip()[-2000:]}"
        )
    try:
        payload = json.loads(completed.stdout)
    except json.JSONDecodeError as error:
        raise ForkOffChainSpecError(
            f"'{' '.join(command)}' did not print a JSON chain spec: {error.msg}."
        ) from error
    if not isinstance(payload, dict):
        raise ForkOffChainSpecError(f"'{' '.join(command)}' printed a non-object chain spec.")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(completed.stdout, encoding="utf-8")
    _LOGGER.info("chain_spec_built", output_path=str(output_path), name=payload.get("name"))
    return payload
