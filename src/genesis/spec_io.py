"""Chain spec JSON persistence.

This module writes the forked chain spec document. Writes go through a
temporary sibling so a failed run never leaves a truncated output file behind.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from core.constants import GENESIS_OUTPUT_INDENT


def write_genesis_spec(spec_path: Path, spec: dict[str, Any]) -> None:
    """Write a chain spec as pretty-printed JSON.

    Args:
        spec_path: Output path.
        spec: Chain spec document.
    """
    spec_path.parent.mkdir(parents=True, exist_ok=True)
    temporary_path = spec_path.with_name(spec_path.name + ".tmp")
    temporary_path.write_text(
        json.dumps(spec, indent=GENESIS_OUTPUT_INDENT) + "\n",
        encoding="utf-8",
    )
    temporary_path.replace(spec_path)
