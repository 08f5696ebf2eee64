# packpatcher/core/paths.py
from __future__ import annotations
from os import PathLike
from pathlib import Path

__all__ = ["isStrictlyInside", "resolveSafe"]



def isStrictlyInside(path: str | PathLike[str], root: str | PathLike[str]) -> bool:
    """True when `path` resolves to somewhere below `root` (never `root` itself)."""
    resolved = Path(path).resolve(strict=False)
    rootResolved = Path(root).resolve(strict=False)
    return resolved != rootResolved and resolved.is_relative_to(rootResolved)



def resolveSafe(root: Path, requested: str | PathLike[str]) -> Path:
    """
    Returns `root / requested`, rejecting anything that would not land strictly below `root`.
    Raises ValueError for empty names, "." and "..", and names carrying a path separator.
    """
    name = str(requested)
    if name in ("", ".", "..") or "/" in name or "\\" in name:
        raise ValueError(f"'{name}' is not a usable directory name")

    raw = root.joinpath(name)
    if not isStrictlyInside(raw, root):
        raise ValueError(f"'{name}' points outside of '{root}'")
    return raw
