"""fork-off exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each stage of a fork run raises a specific error type for debuggability.
"""

from __future__ import annotations


class ForkOffError(Exception):
    """Base exception for all fork-off failures."""


class ForkOffConfigError(ForkOffError):
    """Raised for invalid runtime configuration."""


class ForkOffRpcError(ForkOffError):
    """Raised when a node RPC call fails, times out, or returns an error."""


class ForkOffCacheError(ForkOffError):
    """Raised for malformed or unreadable snapshot cache files."""


class ForkOffArtifactError(ForkOffError):
    """Raised when a required input artifact is missing."""


class ForkOffMergeError(ForkOffError):
    """Raised when the genesis merge cannot be completed consistently."""


class ForkOffChainSpecError(ForkOffError):
    """Raised when the node binary fails to build a chain spec."""


class ForkOffProfileError(ForkOffError):
    """Raised for invalid or unsupported fork profile files."""
