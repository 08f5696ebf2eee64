# packpatcher/packs/metadata.py
from __future__ import annotations
import logging
from collections.abc import Mapping
from typing import Any

import json5

from packpatcher.core.errors import MetadataParseError, MissingDescriptorError
from packpatcher.core.jsonutils import escapeJsonString
from packpatcher.packs.types import PackMetadata, PackSource

logger = logging.getLogger(__name__)

__all__ = ["defaultDescription", "readDescription", "resolveMetadata"]



def defaultDescription(identifier: str) -> str:
    return f"Auto-generated datapack for {identifier}"



def _flattenTextComponent(value: Any) -> str | None:
    """
    Descriptors may carry a text component instead of a plain string:
    "text", {"text": "..."} or a list of those. Returns the concatenated
    text, or None when the shape is not recognized.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        text = value.get("text", value.get("translate"))
        if not isinstance(text, str):
            return None
        extra = value.get("extra")
        if extra is None:
            return text
        rest = _flattenTextComponent(extra)
        return None if rest is None else text + rest
    if isinstance(value, list):
        parts = [_flattenTextComponent(item) for item in value]
        if any(part is None for part in parts):
            return None
        return "".join(part for part in parts if part is not None)
    return None



def readDescription(source: PackSource) -> str:
    """
    Returns the raw `pack.description` of the descriptor.

    Raises MissingDescriptorError when the file is absent and
    MetadataParseError when it cannot be parsed or has no usable description.
    """
    path = source.descriptorPath
    if not path.is_file():
        raise MissingDescriptorError(
            f"No {path.name} found for {source.name}",
            identifier=source.identifier,
            stage="metadata",
        )

    try:
        data = json5.loads(path.read_text(encoding="utf-8-sig"))
    except Exception as err:
        raise MetadataParseError(f"Failed to parse {path.name} for {source.name}: {err}") from err

    pack = data.get("pack") if isinstance(data, Mapping) else None
    if not isinstance(pack, Mapping) or "description" not in pack:
        raise MetadataParseError(f"{path.name} for {source.name} has no pack.description")

    description = _flattenTextComponent(pack["description"])
    if description is None:
        raise MetadataParseError(
            f"{path.name} for {source.name} has an unsupported pack.description of type "
            f"'{type(pack['description']).__name__}'"
        )
    return description



def resolveMetadata(source: PackSource) -> PackMetadata:
    """
    Best-effort metadata for `source`.

    Only a missing descriptor is fatal (MissingDescriptorError, pack rejected).
    Every other problem falls back to the synthesized description with a warning.
    """
    try:
        description = readDescription(source)
    except MetadataParseError as err:
        logger.warning("%s; using default description", err)
        return PackMetadata(description=escapeJsonString(defaultDescription(source.identifier)), isDefault=True)

    return PackMetadata(description=escapeJsonString(description), isDefault=False)
