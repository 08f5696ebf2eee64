# packpatcher/semver/semver.py
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering
from typing import Literal

__all__ = [
    "Version",
    "Comparator",
    "VersionRequirement",
    "parseVersion",
    "parseRequirement",
    "checkRequirement",
]



SEMVER_PATTERN_RE = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)"
    r"\.(?P<minor>0|[1-9]\d*)"
    r"\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>(?:0|[1-9]\d*|[0-9A-Za-z-]*[A-Za-z-][0-9A-Za-z-]*)"
    r"(?:\.(?:0|[1-9]\d*|[0-9A-Za-z-]*[A-Za-z-][0-9A-Za-z-]*))*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

_NUMERIC_RE = re.compile(r"0|[1-9]\d*")



@total_ordering
@dataclass(frozen=True)
class Version:
    """A semantic version as used by manifest `version` and `depends` fields."""
    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()
    build: tuple[str, ...] = ()

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        prerelease = f"-{'.'.join(self.prerelease)}" if self.prerelease else ""
        build = f"+{'.'.join(self.build)}" if self.build else ""
        return f"{base}{prerelease}{build}"

    def _prereleaseCmpKey(self) -> tuple:
        # Numeric identifiers sort before alphanumeric ones
        parts: list[tuple[int, int | str]] = []
        for ident in self.prerelease:
            if ident.isdigit():
                parts.append((0, int(ident)))
            else:
                parts.append((1, ident))
        return tuple(parts)

    def _cmpKey(self) -> tuple:
        # Build metadata is ignored. A release outranks any of its prereleases.
        releaseFlag = 1 if not self.prerelease else 0
        return (self.major, self.minor, self.patch, releaseFlag, self._prereleaseCmpKey())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._cmpKey() == other._cmpKey()

    def __hash__(self) -> int:
        return hash(self._cmpKey())

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._cmpKey() < other._cmpKey()



def parseVersion(raw: str) -> Version:
    """
    Parse a version string. Missing minor/patch components default to 0.

        "21"            -> 21.0.0
        "1.21.1"        -> 1.21.1
        "0.16.14"       -> 0.16.14
        "1.2.3-alpha.1" -> 1.2.3-alpha.1
        "v1.2"          -> 1.2.0

    Rejected: ".1", "1.", "1..3", "1.2.3.4", "01.2.3".
    """
    if raw is None:
        raise ValueError("Version string cannot be None")
    if not isinstance(raw, str):
        raise TypeError(f"Version string must be a string type, got {type(raw).__name__}")

    raw = raw.strip()
    if not raw:
        raise ValueError("Version string cannot be empty or whitespace only")

    if raw.startswith("v") and len(raw) > 1 and raw[1].isdigit():
        raw = raw[1:]

    # Split into numeric core and -prerelease/+build suffix
    sepIndex = len(raw)
    for ch in ("-", "+"):
        idx = raw.find(ch)
        if idx != -1 and idx < sepIndex:
            sepIndex = idx
    core, suffix = raw[:sepIndex], raw[sepIndex:]

    coreParts = core.split(".")
    if not 1 <= len(coreParts) <= 3:
        raise ValueError(f"Invalid version core {core!r} in {raw!r}")
    if any(part == "" for part in coreParts):
        raise ValueError(f"Empty numeric component in version {raw!r}")

    numbers: list[int] = []
    for part in coreParts:
        if not _NUMERIC_RE.fullmatch(part):
            raise ValueError(f"Invalid numeric component {part!r} in version {raw!r}")
        numbers.append(int(part))
    while len(numbers) < 3:
        numbers.append(0)
    major, minor, patch = numbers

    mtch = SEMVER_PATTERN_RE.match(f"{major}.{minor}.{patch}{suffix}")
    if not mtch:
        raise ValueError(f"Invalid semantic version {raw!r}")

    prerelease = tuple(mtch.group("prerelease").split(".")) if mtch.group("prerelease") else ()
    build = tuple(mtch.group("build").split(".")) if mtch.group("build") else ()
    return Version(major, minor, patch, prerelease, build)



@dataclass(frozen=True)
class Comparator:
    operator: Literal["<", "<=", ">", ">=", "=="]
    version: Version



@dataclass(frozen=True)
class VersionRequirement:
    # All comparators are AND-ed
    comparators: tuple[Comparator, ...] = ()



def _caret(version: Version) -> tuple[Comparator, Comparator]:
    # ^M.m.p: compatible within the left-most non-zero component
    if version.major > 0:
        upper = Version(version.major + 1, 0, 0)
    elif version.minor > 0:
        upper = Version(0, version.minor + 1, 0)
    else:
        upper = Version(0, 0, version.patch + 1)
    return Comparator(">=", version), Comparator("<", upper)



def _tilde(version: Version) -> tuple[Comparator, Comparator]:
    # ~M.m.p: patch-level changes; ~M alone allows minor changes
    if version.minor > 0 or version.patch > 0:
        upper = Version(version.major, version.minor + 1, 0)
    else:
        upper = Version(version.major + 1, 0, 0)
    return Comparator(">=", version), Comparator("<", upper)



def parseRequirement(raw: str | None) -> VersionRequirement | None:
    """
    Parse a dependency constraint as written in manifest `depends` blocks.

        None, "", "*"       -> None (any version)
        "1.2.3"             -> == 1.2.3
        ">=0.16.14"         -> >= 0.16.14
        ">=1.2.0 <2.0.0"    -> both, AND-ed
        "^1.2.3"            -> >=1.2.3 <2.0.0
        "~1.21.1"           -> >=1.21.1 <1.22.0
        "1.2.3 - 2.0.0"     -> >=1.2.3 <=2.0.0
    """
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise TypeError(f"Requirement must be a string or None, got {type(raw).__name__}")

    raw = raw.strip()
    if not raw or raw == "*":
        return None

    mtch = re.match(r"^(?P<left>\S+)\s+-\s+(?P<right>\S+)$", raw)
    if mtch:
        left = parseVersion(mtch.group("left"))
        right = parseVersion(mtch.group("right"))
        if right < left:
            raise ValueError(f"Invalid hyphen range {raw!r}: upper < lower")
        return VersionRequirement((Comparator(">=", left), Comparator("<=", right)))

    comparators: list[Comparator] = []
    for token in raw.split():
        if token[0] in ("^", "~"):
            if len(token) == 1:
                raise ValueError(f"Missing version after {token[0]!r} in requirement {raw!r}")
            version = parseVersion(token[1:])
            comparators.extend(_caret(version) if token[0] == "^" else _tilde(version))
            continue

        for op in ("<=", ">=", "==", "<", ">", "="):
            if token.startswith(op):
                versionPart = token[len(op):]
                if not versionPart:
                    raise ValueError(f"Missing version after operator {op!r} in requirement {raw!r}")
                canonOp = "==" if op == "=" else op
                comparators.append(Comparator(canonOp, parseVersion(versionPart)))  # type: ignore[arg-type]
                break
        else:
            comparators.append(Comparator("==", parseVersion(token)))

    return VersionRequirement(tuple(comparators)) if comparators else None



def checkRequirement(raw: str) -> str:
    """Validate a constraint string and return it stripped. Raises ValueError when malformed."""
    if not isinstance(raw, str):
        raise TypeError(f"Requirement must be a string, got {type(raw).__name__}")
    parseRequirement(raw)
    return raw.strip()
