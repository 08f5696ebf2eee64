# packpatcher/core/jsonutils.py
from __future__ import annotations

import base64
import json
import re
from collections.abc import Mapping, Iterable
from dataclasses import is_dataclass, asdict
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

__all__ = ["escapeJsonString", "unescapeJsonString", "safeJsonDumps", "tryJSONify"]



_SURROGATE_RE = re.compile(r"[\ud800-\udfff]")



# ------------------------------------------------
#            Embedding text in JSON literals
# ------------------------------------------------

def escapeJsonString(text: str) -> str:
    """
    Escapes `text` so it can be placed between double quotes inside a JSON document.

    Quotes, backslashes, newlines and every other control character are escaped.
    Non-ASCII characters are kept as-is (manifests are written as UTF-8),
    except unpaired surrogates, which UTF-8 cannot hold: those become \\uXXXX.

    Examples:
        'Hello, "World"'  -> 'Hello, \\"World\\"'
        "line1\\nline2"   -> "line1\\\\nline2"
        "a\\ud800b"        -> "a\\\\ud800b"
    """
    escaped = json.dumps(str(text), ensure_ascii=False)[1:-1]
    return _SURROGATE_RE.sub(lambda mtch: f"\\u{ord(mtch.group()):04x}", escaped)



def unescapeJsonString(escaped: str) -> str:
    """Inverse of escapeJsonString()."""
    return json.loads(f'"{escaped}"')



# ------------------------------------------------
#                JSON serialization
# ------------------------------------------------

def safeJsonDumps(obj: object) -> str:
    """
    Serializes an object to a compact JSON string.
    Uses deterministic separators (",", ":") and disallows NaN/infinity.
    UTF-8 characters are kept as-is.
    If direct JSON encoding fails, falls back to tryJSONify (circular/depth-safe) and retries.
    """
    try:
        return json.dumps(obj, ensure_ascii=False, allow_nan=False, separators=(",", ":"))
    except Exception:
        # Hardened fallback
        safePayload = tryJSONify(obj, _maxDepth=None)
        return json.dumps(safePayload, ensure_ascii=False, allow_nan=False, separators=(",", ":"))



# ------------------------------------------------
#              Generic JSON safety
# ------------------------------------------------

def tryJSONify(obj: Any, *, _seen: set[int] | None = None, _depth: int = 0, _maxDepth: int | None = 10) -> Any:
    """
    Attempts to make any object JSON-serializable.

    Rules:
      • Basic scalars (None, bool, int, float, str) are preserved.
      • Exceptions → {"type", "message"}.
      • bytes/bytearray/memoryview → base64 {"__b64__":"..."}.
      • date/datetime → ISO8601 string.
      • Path → string path.
      • sets/tuples/iterables → list.
      • Mappings → dict with str keys.
      • fallback → repr(obj)
    """
    if _seen is None:
        _seen = set()

    oid = id(obj)
    if oid in _seen:
        return f"<circular_ref {type(obj).__name__}>"
    if isinstance(_maxDepth, int) and _depth > _maxDepth:
        return f"<max_depth_exceeded {type(obj).__name__}>"
    _seen.add(oid)

    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj

    if isinstance(obj, BaseException):
        return {"type": type(obj).__name__, "message": str(obj)}

    if isinstance(obj, (bytes, bytearray, memoryview)):
        return {"__b64__": base64.b64encode(bytes(obj)).decode("ascii")}

    if isinstance(obj, (date, datetime)):
        return obj.isoformat()

    if isinstance(obj, Enum):
        return tryJSONify(obj.value, _seen=_seen, _depth=_depth + 1, _maxDepth=_maxDepth)

    if is_dataclass(obj) and not isinstance(obj, type):
        return tryJSONify(asdict(obj), _seen=_seen, _depth=_depth + 1, _maxDepth=_maxDepth)

    if isinstance(obj, Path):
        return obj.as_posix()

    if isinstance(obj, (set, frozenset, tuple)):
        return [tryJSONify(value, _seen=_seen, _depth=_depth + 1, _maxDepth=_maxDepth) for value in obj]

    if isinstance(obj, Mapping):
        return {
            str(key): tryJSONify(value, _seen=_seen, _depth=_depth + 1, _maxDepth=_maxDepth) for key, value in obj.items()
        }

    if isinstance(obj, Iterable):
        return [tryJSONify(value, _seen=_seen, _depth=_depth + 1, _maxDepth=_maxDepth) for value in obj]

    # Last-ditch representation (avoid raising during logging)
    return repr(obj)
