# packpatcher/core/naming.py
from __future__ import annotations
import re

__all__ = [
    "IDENTIFIER_SEPARATOR",
    "PATCHED_SUFFIX",
    "normalizeIdentifier",
    "isNormalizedIdentifier",
    "displayName",
]



IDENTIFIER_SEPARATOR = "_"
PATCHED_SUFFIX = "(Patched)"

_INVALID_ID_CHARS_RE = re.compile(r"[^a-z0-9_]")
_ID_RE = re.compile(r"^[a-z0-9_]+$")



def normalizeIdentifier(name: str) -> str:
    """
    Derive a pack identifier from a directory or bundle name.

    Lowercases, then replaces every character outside [a-z0-9_] with '_'.
    One input character maps to one output character, so "My Pack!!" becomes
    "my_pack__".
    """
    if not isinstance(name, str):
        raise TypeError(f"Pack name must be a string, got {type(name).__name__}")
    if not name:
        raise ValueError("Pack name cannot be empty")
    return _INVALID_ID_CHARS_RE.sub(IDENTIFIER_SEPARATOR, name.lower())



def isNormalizedIdentifier(value: str) -> bool:
    return isinstance(value, str) and bool(_ID_RE.match(value))



def displayName(identifier: str) -> str:
    """
    "my_pack__" -> "My Pack (Patched)"

    Empty segments (from repeated separators) are dropped. An identifier made
    only of separators keeps itself as the visible name.
    """
    segments = [seg[:1].upper() + seg[1:] for seg in identifier.split(IDENTIFIER_SEPARATOR) if seg]
    base = " ".join(segments) if segments else identifier
    return f"{base} {PATCHED_SUFFIX}"
