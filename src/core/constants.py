"""Core constants used across fork-off modules.

This module centralizes file names, fetch defaults, and the well-known
storage keys of the default runtime layout. Chain-specific values can be
overridden through a fork profile instead of editing these literals.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DATA_ROOT = Path("data")
BINARY_FILE_NAME = "binary"
RUNTIME_WASM_FILE_NAME = "runtime.wasm"
RUNTIME_HEX_FILE_NAME = "runtime.hex"
SCHEMA_FILE_NAME = "schema.json"
ORIGINAL_SPEC_FILE_NAME = "genesis.json"
FORKED_SPEC_FILE_NAME = "fork.json"
FORK_TEMPLATE_FILE_NAME = "fork.template.json"
STORAGE_CACHE_FILE_NAME = "storage.json"
PARTIAL_CACHE_SUFFIX = ".partial"

DEFAULT_HTTP_RPC_ENDPOINT = "http://localhost:9933"
DEFAULT_RPC_TIMEOUT_SECONDS = 120.0
DEFAULT_RPC_MAX_ATTEMPTS = 3
DEFAULT_RPC_BACKOFF_SECONDS = 1.0

FETCH_STRATEGY_PAGED = "paged"
FETCH_STRATEGY_CHUNKED = "chunked"
SUPPORTED_FETCH_STRATEGIES = (FETCH_STRATEGY_PAGED, FETCH_STRATEGY_CHUNKED)
DEFAULT_FETCH_STRATEGY = FETCH_STRATEGY_PAGED
DEFAULT_BATCH_SIZE = 128
DEFAULT_CHUNKS_LEVEL = 1
DEFAULT_MAX_CONCURRENCY = 32
PROGRESS_LOG_INTERVAL_BATCHES = 20
KEY_SPACE_ROOT = "0x"
BYTE_FANOUT = 256

DEFAULT_RELAY_CHAIN = "tokyo"
DEFAULT_PARA_ID = 1000
FORK_NAME_SUFFIX = "-fork"
GENESIS_OUTPUT_INDENT = 4

SYSTEM_ACCOUNT_PREFIX = "0x26aa394eea5630e07c48ae0c9558cef7b99d880ec681799c0cf30e8886371da9"
LAST_RUNTIME_UPGRADE_KEY = "0x26aa394eea5630e07c48ae0c9558cef7f9cce9c888469bb1a0dceaa129672ef8"
CODE_KEY = "0x3a636f6465"
FORCE_ERA_KEY = "0x5f3e4907f716ac89b6347d15ececedcaf7dad0317324aecae8744b87fc95f2f3"
FORCE_ERA_NONE_VALUE = "0x02"
SUDO_KEY = "0x5c0d1176a568c1f92944340dbfed9e9c530ebca703c85910e7164cb7d1c9e47b"

DEFAULT_EXCLUDED_MODULES = (
    "System",
    "Session",
    "Babe",
    "Grandpa",
    "GrandpaFinality",
    "FinalityTracker",
    "Authorship",
    "ParachainSystem",
)
DEFAULT_SKIPPED_STORAGE = ("ParasScheduler.SessionStartBlock",)

DEV_ACCOUNTS = {
    "alice": "0xd43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d",
    "bob": "0x8eaf04151687736326c9fea17e25fc5287613693c912909cb226aa4794f26a48",
}
