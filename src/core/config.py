"""Runtime configuration model for fork-off.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    BINARY_FILE_NAME,
    DEFAULT_BATCH_SIZE,
    DEFAULT_CHUNKS_LEVEL,
    DEFAULT_DATA_ROOT,
    DEFAULT_FETCH_STRATEGY,
    DEFAULT_HTTP_RPC_ENDPOINT,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_RPC_MAX_ATTEMPTS,
    DEFAULT_RPC_TIMEOUT_SECONDS,
    FORKED_SPEC_FILE_NAME,
    FORK_TEMPLATE_FILE_NAME,
    ORIGINAL_SPEC_FILE_NAME,
    RUNTIME_HEX_FILE_NAME,
    RUNTIME_WASM_FILE_NAME,
    SCHEMA_FILE_NAME,
    STORAGE_CACHE_FILE_NAME,
    SUPPORTED_FETCH_STRATEGIES,
)
from core.errors import ForkOffConfigError

_TRUTHY_VALUES = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ForkOffConfig:
    """Validated runtime configuration.

    Attributes:
        data_root: Directory holding the binary, runtime, specs, and cache.
        rpc_endpoint: HTTP JSON-RPC endpoint used for state queries.
        identity_endpoint: Endpoint used to report chain name and genesis hash.
        fetch_strategy: ``paged`` or ``chunked`` snapshot acquisition.
        batch_size: Keys per page for the paged strategy.
        chunks_level: Partition depth for the chunked strategy.
        quick_mode: Fetch final-level chunks concurrently.
        max_concurrency: Cap on concurrent chunk requests in quick mode.
        root_account: Optional account installed as the sudo key.
        original_chain: Optional chain id for the original spec template.
        fork_chain: Optional chain id for the forked spec template.
        rpc_timeout: Per-request timeout in seconds.
        rpc_max_attempts: Attempts per RPC call before failing.
        profile_path: Optional YAML fork profile.
    """

    data_root: Path
    rpc_endpoint: str
    identity_endpoint: str
    fetch_strategy: str
    batch_size: int
    chunks_level: int
    quick_mode: bool
    max_concurrency: int
    root_account: str | None
    original_chain: str | None
    fork_chain: str | None
    rpc_timeout: float
    rpc_max_attempts: int
    profile_path: Path | None

    @classmethod
    def from_env(cls) -> "ForkOffConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            ForkOffConfigError: If environment values are invalid.
        """
        data_root_value = os.getenv("FORK_DATA_ROOT", str(DEFAULT_DATA_ROOT))
        rpc_endpoint = _parse_endpoint(
            "HTTP_RPC_ENDPOINT", os.getenv("HTTP_RPC_ENDPOINT", DEFAULT_HTTP_RPC_ENDPOINT)
        )
        identity_value = os.getenv("WSS_ENDPOINT")
        identity_endpoint = (
            _parse_endpoint("WSS_ENDPOINT", identity_value) if identity_value else rpc_endpoint
        )
        profile_value = _optional_env("FORK_PROFILE")
        return cls(
            data_root=Path(data_root_value).expanduser().resolve(),
            rpc_endpoint=rpc_endpoint,
            identity_endpoint=identity_endpoint,
            fetch_strategy=_parse_strategy(os.getenv("FORK_FETCH_STRATEGY", DEFAULT_FETCH_STRATEGY)),
            batch_size=_parse_positive_int(
                "FORK_BATCH_SIZE", os.getenv("FORK_BATCH_SIZE", str(DEFAULT_BATCH_SIZE))
            ),
            chunks_level=_parse_non_negative_int(
                "FORK_CHUNKS_LEVEL", os.getenv("FORK_CHUNKS_LEVEL", str(DEFAULT_CHUNKS_LEVEL))
            ),
            quick_mode=_parse_flag(os.getenv("QUICK_MODE", "")),
            max_concurrency=_parse_positive_int(
                "FORK_MAX_CONCURRENCY",
                os.getenv("FORK_MAX_CONCURRENCY", str(DEFAULT_MAX_CONCURRENCY)),
            ),
            root_account=_parse_root_account(),
            original_chain=_optional_env("ORIG_CHAIN"),
            fork_chain=_optional_env("FORK_CHAIN"),
            rpc_timeout=_parse_timeout(
                os.getenv("FORK_RPC_TIMEOUT", str(DEFAULT_RPC_TIMEOUT_SECONDS))
            ),
            rpc_max_attempts=_parse_positive_int(
                "FORK_RPC_MAX_ATTEMPTS",
                os.getenv("FORK_RPC_MAX_ATTEMPTS", str(DEFAULT_RPC_MAX_ATTEMPTS)),
            ),
            profile_path=Path(profile_value).expanduser().resolve() if profile_value else None,
        )

    @property
    def binary_path(self) -> Path:
        return self.data_root / BINARY_FILE_NAME

    @property
    def runtime_wasm_path(self) -> Path:
        return self.data_root / RUNTIME_WASM_FILE_NAME

    @property
    def runtime_hex_path(self) -> Path:
        return self.data_root / RUNTIME_HEX_FILE_NAME

    @property
    def schema_path(self) -> Path:
        return self.data_root / SCHEMA_FILE_NAME

    @property
    def original_spec_path(self) -> Path:
        return self.data_root / ORIGINAL_SPEC_FILE_NAME

    @property
    def forked_spec_path(self) -> Path:
        return self.data_root / FORKED_SPEC_FILE_NAME

    @property
    def fork_template_path(self) -> Path:
        return self.data_root / FORK_TEMPLATE_FILE_NAME

    @property
    def storage_path(self) -> Path:
        return self.data_root / STORAGE_CACHE_FILE_NAME


def normalize_endpoint(raw_value: str) -> str:
    """Map websocket endpoints onto the HTTP JSON-RPC endpoint of the same node.

    Substrate nodes serve HTTP and websocket RPC on one port, so a ``ws://``
    or ``wss://`` identity endpoint is queried over ``http://``/``https://``.
    """
    value = raw_value.strip()
    if value.startswith("wss://"):
        return "https://" + value[len("wss://"):]
    if value.startswith("ws://"):
        return "http://" + value[len("ws://"):]
    return value


def _parse_endpoint(variable: str, raw_value: str) -> str:
    """Validate an RPC endpoint URL.

    Args:
        variable: Environment variable name for error context.
        raw_value: Raw URL string.

    Returns:
        Normalized HTTP(S) URL.

    Raises:
        ForkOffConfigError: If the URL scheme is unsupported.
    """
    endpoint = normalize_endpoint(raw_value)
    if not endpoint.startswith(("http://", "https://")):
        raise ForkOffConfigError(
            f"Invalid {variable} value: expected an http(s):// or ws(s):// URL, "
            f"got '{raw_value}'. Point {variable} at the node RPC port."
        )
    return endpoint


def _parse_strategy(raw_value: str) -> str:
    strategy = raw_value.strip().lower()
    if strategy not in SUPPORTED_FETCH_STRATEGIES:
        supported = ", ".join(SUPPORTED_FETCH_STRATEGIES)
        raise ForkOffConfigError(
            f"Invalid FORK_FETCH_STRATEGY value '{raw_value}'. Use one of: {supported}."
        )
    return strategy


def _parse_positive_int(variable: str, raw_value: str) -> int:
    value = _parse_int(variable, raw_value)
    if value < 1:
        raise ForkOffConfigError(
            f"Invalid {variable} value: expected a positive integer, got {value}."
        )
    return value


def _parse_non_negative_int(variable: str, raw_value: str) -> int:
    value = _parse_int(variable, raw_value)
    if value < 0:
        raise ForkOffConfigError(
            f"Invalid {variable} value: expected zero or a positive integer, got {value}."
        )
    return value


def _parse_int(variable: str, raw_value: str) -> int:
    """Parse an integer environment value.

    Args:
        variable: Environment variable name for error context.
        raw_value: Raw string from environment.

    Returns:
        Parsed integer.

    Raises:
        ForkOffConfigError: If value cannot be parsed into int.
    """
    try:
        return int(raw_value)
    except ValueError as error:
        raise ForkOffConfigError(
            f"Invalid {variable} value: expected integer, got '{raw_value}'. "
            f"Set {variable} to a numeric value."
        ) from error


def _parse_timeout(raw_value: str) -> float:
    try:
        timeout = float(raw_value)
    except ValueError as error:
        raise ForkOffConfigError(
            f"Invalid FORK_RPC_TIMEOUT value: expected seconds, got '{raw_value}'."
        ) from error
    if timeout <= 0:
        raise ForkOffConfigError("Invalid FORK_RPC_TIMEOUT value: must be greater than zero.")
    return timeout


def _parse_flag(raw_value: str) -> bool:
    return raw_value.strip().lower() in _TRUTHY_VALUES


def _parse_root_account() -> str | None:
    """Resolve the sudo account from FORK_ROOT_ACCOUNT or the legacy ALICE flag."""
    explicit_account = _optional_env("FORK_ROOT_ACCOUNT")
    if explicit_account:
        return explicit_account
    if _optional_env("ALICE"):
        return "//Alice"
    return None


def _optional_env(variable: str) -> str | None:
    value = os.getenv(variable, "").strip()
    return value if value else None
