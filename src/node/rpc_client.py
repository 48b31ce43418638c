"""Async JSON-RPC client for state queries against a live node.

This module wraps one pooled ``httpx.AsyncClient`` and exposes the handful
of RPC methods the snapshot fetchers need. Transport failures are retried
with exponential backoff before surfacing as ``ForkOffRpcError``.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Any, Protocol, Sequence

import httpx

from core.constants import (
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_RPC_BACKOFF_SECONDS,
    DEFAULT_RPC_MAX_ATTEMPTS,
    DEFAULT_RPC_TIMEOUT_SECONDS,
)
from core.errors import ForkOffRpcError
from core.logging_config import get_logger
from core.types import StorageEntry

_LOGGER = get_logger(__name__)


class NodeClient(Protocol):
    """State-query operations consumed by the snapshot fetchers."""

    async def get_block_hash(self, block_number: int | None = None) -> str: ...

    async def get_metadata(self, at: str | None = None) -> str: ...

    async def get_keys_paged(
        self,
        prefix: str,
        count: int,
        start_key: str | None,
        at: str,
    ) -> list[str]: ...

    async def query_storage_at(self, keys: Sequence[str], at: str) -> list[StorageEntry]: ...

    async def get_pairs(self, prefix: str, at: str) -> list[StorageEntry]: ...

    async def get_chain_name(self) -> str: ...

    async def get_genesis_hash(self) -> str: ...


class HttpNodeClient:
    """JSON-RPC over HTTP node client.

    The HTTP endpoint is used for state queries because the websocket
    endpoint of a node caps the response size.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = DEFAULT_RPC_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_RPC_MAX_ATTEMPTS,
        backoff_seconds: float = DEFAULT_RPC_BACKOFF_SECONDS,
        max_connections: int = DEFAULT_MAX_CONCURRENCY,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._max_attempts = max(1, max_attempts)
        self._backoff_seconds = backoff_seconds
        self._request_ids = itertools.count(1)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max(1, max_connections // 2),
            ),
            transport=transport,
        )

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def __aenter__(self) -> "HttpNodeClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_block_hash(self, block_number: int | None = None) -> str:
        """Return the hash of a block, or of the best block when omitted."""
        params: list[Any] = [] if block_number is None else [block_number]
        result = await self.request("chain_getBlockHash", params)
        return _expect_string(result, "chain_getBlockHash")

    async def get_metadata(self, at: str | None = None) -> str:
        """Return SCALE-encoded runtime metadata as hex."""
        params: list[Any] = [] if at is None else [at]
        result = await self.request("state_getMetadata", params)
        return _expect_string(result, "state_getMetadata")

    async def get_keys_paged(
        self,
        prefix: str,
        count: int,
        start_key: str | None,
        at: str,
    ) -> list[str]:
        """Return up to ``count`` keys under prefix strictly after ``start_key``."""
        result = await self.request("state_getKeysPaged", [prefix, count, start_key, at])
        if not isinstance(result, list):
            raise ForkOffRpcError(
                f"Unexpected state_getKeysPaged result from {self._endpoint}: expected list."
            )
        return [str(key) for key in result]

    async def query_storage_at(self, keys: Sequence[str], at: str) -> list[StorageEntry]:
        """Resolve values of keys at a block, preserving the requested key order.

        Keys absent from the response resolve to a ``None`` value.
        """
        if not keys:
            return []
        result = await self.request("state_queryStorageAt", [list(keys), at])
        values: dict[str, str | None] = {}
        for change_set in _expect_list(result, "state_queryStorageAt"):
            if not isinstance(change_set, dict):
                continue
            for row in _expect_list(change_set.get("changes", []), "state_queryStorageAt"):
                key, value = _expect_pair(row, "state_queryStorageAt")
                values[key] = value
        return [StorageEntry(key=key, value=values.get(key)) for key in keys]

    async def get_pairs(self, prefix: str, at: str) -> list[StorageEntry]:
        """Return every key/value pair under prefix at a block."""
        result = await self.request("state_getPairs", [prefix, at])
        entries = []
        for pair in _expect_list(result, "state_getPairs"):
            key, value = _expect_pair(pair, "state_getPairs")
            entries.append(StorageEntry(key=key, value=value))
        return entries

    async def get_chain_name(self) -> str:
        result = await self.request("system_chain", [])
        return _expect_string(result, "system_chain")

    async def get_genesis_hash(self) -> str:
        return await self.get_block_hash(0)

    async def request(self, method: str, params: Sequence[Any]) -> Any:
        """Send one JSON-RPC request with bounded retry on transport failures.

        Args:
            method: JSON-RPC method name.
            params: Positional parameters.

        Returns:
            The ``result`` member of the response.

        Raises:
            ForkOffRpcError: If the node is unreachable after all attempts,
                or replies with a JSON-RPC error.
        """
        for attempt in range(1, self._max_attempts + 1):
            try:
                response = await self._post(method, params)
            except httpx.HTTPError as error:
                if attempt >= self._max_attempts:
                    raise ForkOffRpcError(
                        f"RPC call {method} to {self._endpoint} failed after "
                        f"{attempt} attempt(s): {error}. "
                        "Check that the node is running and the endpoint is reachable."
                    ) from error
                delay = self._backoff_seconds * 2 ** (attempt - 1)
                _LOGGER.warning(
                    "rpc_retry",
                    method=method,
                    attempt=attempt,
                    delay_seconds=delay,
                    error=str(error),
                )
                await asyncio.sleep(delay)
                continue
            return _parse_response(self._endpoint, method, response)
        raise ForkOffRpcError(f"RPC call {method} was not attempted.")

    async def _post(self, method: str, params: Sequence[Any]) -> httpx.Response:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
            "params": list(params),
        }
        response = await self._client.post(self._endpoint, json=payload)
        response.raise_for_status()
        return response


def _parse_response(endpoint: str, method: str, response: httpx.Response) -> Any:
    try:
        body = response.json()
    except ValueError as error:
        raise ForkOffRpcError(
            f"RPC call {method} to {endpoint} returned invalid JSON: {error}."
        ) from error
    if not isinstance(body, dict):
        raise ForkOffRpcError(f"RPC call {method} to {endpoint} returned a non-object body.")
    if body.get("error") is not None:
        rpc_error = body["error"]
        code = rpc_error.get("code") if isinstance(rpc_error, dict) else None
        message = rpc_error.get("message") if isinstance(rpc_error, dict) else rpc_error
        raise ForkOffRpcError(f"RPC call {method} to {endpoint} failed: {code} {message}.")
    return body.get("result")


def _expect_string(result: Any, method: str) -> str:
    if not isinstance(result, str):
        raise ForkOffRpcError(f"Unexpected {method} result: expected string, got {result!r}.")
    return result


def _expect_list(result: Any, method: str) -> list[Any]:
    if not isinstance(result, list):
        raise ForkOffRpcError(f"Unexpected {method} result: expected list, got {result!r}.")
    return result


def _expect_pair(row: Any, method: str) -> tuple[str, str | None]:
    if not isinstance(row, (list, tuple)) or len(row) != 2:
        raise ForkOffRpcError(f"Unexpected {method} row: expected [key, value], got {row!r}.")
    key, value = row
    if not isinstance(key, str):
        raise ForkOffRpcError(f"Unexpected {method} row: key must be a string, got {key!r}.")
    return key, None if value is None else str(value)
