"""Storage key hashing helpers.

This module derives module prefixes and plain storage value keys with the
128-bit xxHash construction used by the runtime, and normalizes account ids.
"""

from __future__ import annotations

import xxhash
from scalecodec.utils.ss58 import ss58_decode

from core.constants import DEV_ACCOUNTS
from core.errors import ForkOffConfigError


def twox128(data: str | bytes) -> str:
    """Return the 128-bit twox hash of data as 32 lowercase hex chars."""
    raw = data.encode("utf-8") if isinstance(data, str) else data
    first = xxhash.xxh64(raw, seed=0).intdigest().to_bytes(8, byteorder="little")
    second = xxhash.xxh64(raw, seed=1).intdigest().to_bytes(8, byteorder="little")
    return (first + second).hex()


def module_prefix(module_name: str) -> str:
    """Return the storage prefix of a module, e.g. ``0x26aa...`` for System."""
    return "0x" + twox128(module_name)


def storage_value_key(pallet: str, item: str) -> str:
    """Return the storage key of a plain (non-map) storage value."""
    return "0x" + twox128(pallet) + twox128(item)


def account_public_key(account: str) -> str:
    """Normalize an account identity to its ``0x`` public key hex.

    Args:
        account: Dev alias (``//Alice``, ``alice``), 32-byte hex key,
            or SS58 address.

    Returns:
        Lowercase ``0x``-prefixed 32-byte public key.

    Raises:
        ForkOffConfigError: If the account cannot be decoded.
    """
    value = account.strip()
    alias = value.lstrip("/").lower()
    if alias in DEV_ACCOUNTS:
        return DEV_ACCOUNTS[alias]
    if value.lower().startswith("0x"):
        return _validate_public_key(value.lower(), account)
    try:
        decoded = ss58_decode(value)
    except ValueError as error:
        raise ForkOffConfigError(
            f"Invalid root account '{account}': {error}. "
            "Use an SS58 address, a 0x-prefixed public key, or //Alice."
        ) from error
    return _validate_public_key("0x" + decoded.lower(), account)


def _validate_public_key(public_key: str, account: str) -> str:
    body = public_key[2:]
    if len(body) != 64 or any(character not in "0123456789abcdef" for character in body):
        raise ForkOffConfigError(
            f"Invalid root account '{account}': expected a 32-byte public key."
        )
    return public_key
