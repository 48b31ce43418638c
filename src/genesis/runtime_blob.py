"""Runtime code conversion.

This module turns the runtime WASM blob into the hex text installed
under the code key of the forked state.
"""

from __future__ import annotations

from pathlib import Path

from core.errors import ForkOffArtifactError


def write_runtime_hex(wasm_path: Path, hex_path: Path) -> str:
    """Hex-encode the runtime blob into hex_path.

    Args:
        wasm_path: Runtime WASM blob.
        hex_path: Output hex text file.

    Returns:
        Lowercase hex without ``0x`` prefix.

    Raises:
        ForkOffArtifactError: If the blob is missing or empty.
    """
    if not wasm_path.is_file():
        raise ForkOffArtifactError(
            f"Runtime blob missing at {wasm_path}. Copy the WASM blob of your node "
            "to the data folder and name it 'runtime.wasm'."
        )
    blob = wasm_path.read_bytes()
    if not blob:
        raise ForkOffArtifactError(f"Runtime blob at {wasm_path} is empty.")
    runtime_hex = blob.hex()
    hex_path.write_text(runtime_hex, encoding="utf-8")
    return runtime_hex


def read_runtime_hex(hex_path: Path) -> str:
    """Read runtime hex text, without surrounding whitespace or ``0x``.

    Raises:
        ForkOffArtifactError: If the file is missing or not hex.
    """
    if not hex_path.is_file():
        raise ForkOffArtifactError(f"Runtime hex missing at {hex_path}.")
    runtime_hex = hex_path.read_text(encoding="utf-8").strip().lower()
    if runtime_hex.startswith("0x"):
        runtime_hex = runtime_hex[2:]
    try:
        bytes.fromhex(runtime_hex)
    except ValueError as error:
        raise ForkOffArtifactError(f"Runtime hex at {hex_path} is not valid hex: {error}.") from error
    return runtime_hex


def load_runtime_hex(wasm_path: Path, hex_path: Path) -> str:
    """Return runtime hex from the WASM blob, or from a prepared hex file.

    The blob wins when both exist and refreshes the hex file.

    Raises:
        ForkOffArtifactError: If neither artifact is usable.
    """
    if wasm_path.is_file():
        return write_runtime_hex(wasm_path, hex_path)
    if hex_path.is_file():
        return read_runtime_hex(hex_path)
    raise ForkOffArtifactError(
        f"Runtime blob missing at {wasm_path}. Copy the WASM blob of your node "
        "to the data folder and name it 'runtime.wasm', or provide 'runtime.hex'."
    )
