"""Runtime metadata decoding.

This module decodes ``state_getMetadata`` output with scalecodec and reduces
it to the module names and storage item names used for prefix selection.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from scalecodec.base import RuntimeConfigurationObject, ScaleBytes
from scalecodec.type_registry import load_type_registry_file, load_type_registry_preset

from core.errors import ForkOffRpcError
from core.logging_config import get_logger
from core.types import ModuleDescriptor

_LOGGER = get_logger(__name__)


def load_runtime_config(schema_path: Path) -> RuntimeConfigurationObject:
    """Build a type registry with an optional custom schema.

    A missing schema file is not an error: the default registry is used.

    Args:
        schema_path: Path to a JSON type registry file.

    Returns:
        Runtime configuration for metadata decoding.
    """
    runtime_config = RuntimeConfigurationObject()
    runtime_config.update_type_registry(load_type_registry_preset("core"))
    if schema_path.exists():
        runtime_config.update_type_registry(load_type_registry_file(str(schema_path)))
        _LOGGER.info("custom_schema_loaded", schema_path=str(schema_path))
    else:
        _LOGGER.warning("custom_schema_missing", schema_path=str(schema_path))
    return runtime_config


def decode_modules(
    metadata_hex: str,
    runtime_config: RuntimeConfigurationObject,
) -> tuple[ModuleDescriptor, ...]:
    """Decode SCALE metadata into module descriptors.

    Args:
        metadata_hex: ``0x``-prefixed SCALE metadata.
        runtime_config: Type registry used for decoding.

    Returns:
        Module descriptors in metadata order.

    Raises:
        ForkOffRpcError: If the metadata cannot be decoded.
    """
    try:
        metadata = runtime_config.create_scale_object(
            "MetadataVersioned", data=ScaleBytes(metadata_hex)
        )
        metadata.decode()
    except Exception as error:
        raise ForkOffRpcError(
            f"Failed to decode runtime metadata: {error}. "
            "Provide a schema.json with the chain's custom types."
        ) from error
    return modules_from_metadata_value(metadata.value)


def modules_from_metadata_value(value: Any) -> tuple[ModuleDescriptor, ...]:
    """Extract module descriptors from decoded metadata.

    Supports the ``pallets``/``entries`` layout of V14+ metadata and the
    ``modules``/``items`` layout of V9 to V13.
    """
    versioned = _versioned_body(value)
    modules = versioned.get("pallets", versioned.get("modules"))
    if not isinstance(modules, list):
        raise ForkOffRpcError("Runtime metadata has no pallet list.")
    descriptors = []
    for module in modules:
        descriptors.append(
            ModuleDescriptor(
                name=str(module["name"]),
                storage_items=_storage_item_names(module.get("storage")),
            )
        )
    return tuple(descriptors)


def _versioned_body(value: Any) -> Mapping[str, Any]:
    """Unwrap ``(magic, {"V14": {...}})`` down to the version body."""
    if isinstance(value, (list, tuple)):
        for element in value:
            if isinstance(element, Mapping):
                return _versioned_body(element)
        raise ForkOffRpcError("Runtime metadata is missing its versioned body.")
    if not isinstance(value, Mapping):
        raise ForkOffRpcError("Runtime metadata is not a mapping.")
    if "pallets" in value or "modules" in value:
        return value
    for key, body in value.items():
        if str(key).startswith("V") and isinstance(body, Mapping):
            return body
    raise ForkOffRpcError("Runtime metadata has an unsupported layout.")


def _storage_item_names(storage: Any) -> tuple[str, ...]:
    if not isinstance(storage, Mapping):
        return ()
    items = storage.get("entries", storage.get("items", []))
    return tuple(str(item["name"]) for item in items)
