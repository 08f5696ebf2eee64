# packpatcher/archive/container.py
from __future__ import annotations

import logging
import os
import shutil
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import IO, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

__all__ = [
    "FIXED_ENTRY_TIME",
    "ArchiveEntry",
    "ArchiveReader",
    "ArchiveWriter",
    "ZipArchiveReader",
    "ZipArchiveWriter",
    "normalizeEntryName",
    "extractArchive",
]



# Entries get a constant timestamp so identical inputs produce identical archives
FIXED_ENTRY_TIME = (1980, 1, 1, 0, 0, 0)
_COPY_CHUNK = 1024 * 1024



@dataclass(frozen=True, slots=True)
class ArchiveEntry:
    # Normalized "/"-separated path inside the container
    name: str
    isDir: bool
    size: int



@runtime_checkable
class ArchiveReader(Protocol):
    def listEntries(self) -> list[ArchiveEntry]: ...
    def openEntry(self, name: str) -> IO[bytes]: ...



@runtime_checkable
class ArchiveWriter(Protocol):
    def putEntry(self, name: str, data: bytes) -> None: ...
    def close(self) -> None: ...



def normalizeEntryName(name: str) -> str:
    """
    Normalizes an entry path to "a/b/c" form.

    Backslashes are treated as separators. Absolute paths, drive letters and
    ".." components are rejected with ValueError, so an entry can never point
    outside the container root.
    """
    if not isinstance(name, str) or not name:
        raise ValueError("Entry name must be a non-empty string")
    raw = name.replace("\\", "/")
    if raw.startswith("/") or (len(raw) > 1 and raw[1] == ":"):
        raise ValueError(f"Entry name {name!r} is absolute")
    parts = [part for part in PurePosixPath(raw).parts if part not in ("", ".")]
    if any(part == ".." for part in parts):
        raise ValueError(f"Entry name {name!r} escapes the archive root")
    if not parts:
        raise ValueError(f"Entry name {name!r} is empty after normalization")
    return "/".join(parts)



# ------------------------------------------------
#                   Read side
# ------------------------------------------------

class ZipArchiveReader:
    """Read-only view over a zip container. Use as a context manager."""
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._zip: zipfile.ZipFile | None = zipfile.ZipFile(self.path, "r")

    def _require(self) -> zipfile.ZipFile:
        if self._zip is None:
            raise ValueError(f"Archive '{self.path}' is closed")
        return self._zip

    def listEntries(self) -> list[ArchiveEntry]:
        entries: list[ArchiveEntry] = []
        for info in self._require().infolist():
            entries.append(ArchiveEntry(
                name=normalizeEntryName(info.filename),
                isDir=info.is_dir(),
                size=info.file_size,
            ))
        return entries

    def openEntry(self, name: str) -> IO[bytes]:
        zf = self._require()
        try:
            return zf.open(name, "r")
        except KeyError:
            # Tolerate callers passing the normalized form of a backslashed name
            for info in zf.infolist():
                if normalizeEntryName(info.filename) == name:
                    return zf.open(info, "r")
            raise

    def close(self) -> None:
        if self._zip is not None:
            self._zip.close()
            self._zip = None

    def __enter__(self) -> ZipArchiveReader:
        return self

    def __exit__(self, excType, excValue, traceBack) -> None:
        self.close()



def extractArchive(reader: ArchiveReader, targetDir: Path) -> int:
    """
    Copies every entry of `reader` under `targetDir`, recreating the directory
    structure and overwriting existing files. Returns the number of files written.
    """
    targetDir.mkdir(parents=True, exist_ok=True)
    written = 0
    for entry in reader.listEntries():
        dest = targetDir.joinpath(*entry.name.split("/"))
        if entry.isDir:
            dest.mkdir(parents=True, exist_ok=True)
            continue
        dest.parent.mkdir(parents=True, exist_ok=True)
        with reader.openEntry(entry.name) as src, open(dest, "wb") as dst:
            shutil.copyfileobj(src, dst, _COPY_CHUNK)
        written += 1
    return written



# ------------------------------------------------
#                   Write side
# ------------------------------------------------

class ZipArchiveWriter:
    """
    Writes a zip container atomically.

    Entries go to a temporary sibling of `target`; close() renames it over
    `target`, abort() deletes it. Used as a context manager, an exception
    inside the block aborts, so a partial archive is never published.
    """
    def __init__(self, target: str | Path, *, compression: int = zipfile.ZIP_DEFLATED) -> None:
        self.target = Path(target)
        self.target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmpName = tempfile.mkstemp(prefix=f".{self.target.name}.", suffix=".part", dir=self.target.parent)
        os.close(fd)
        self.tempPath = Path(tmpName)
        self._names: list[str] = []
        self._compression = compression
        self._committed = False
        try:
            self._zip: zipfile.ZipFile | None = zipfile.ZipFile(self.tempPath, "w", compression=compression)
        except Exception:
            self.tempPath.unlink(missing_ok=True)
            raise

    @property
    def names(self) -> list[str]:
        """Entry names in write order."""
        return list(self._names)

    def hasEntry(self, name: str) -> bool:
        return normalizeEntryName(name) in self._names

    def _require(self) -> zipfile.ZipFile:
        if self._zip is None:
            raise ValueError(f"Archive writer for '{self.target}' is closed")
        return self._zip

    def _newInfo(self, name: str) -> zipfile.ZipInfo:
        name = normalizeEntryName(name)
        if name in self._names:
            raise ValueError(f"Duplicate archive entry {name!r}")
        info = zipfile.ZipInfo(name, date_time=FIXED_ENTRY_TIME)
        info.compress_type = self._compression
        info.external_attr = 0o644 << 16
        return info

    def putEntry(self, name: str, data: bytes) -> None:
        info = self._newInfo(name)
        self._require().writestr(info, data)
        self._names.append(info.filename)

    def putFile(self, name: str, source: Path) -> None:
        """Streams the file at `source` into a new entry."""
        info = self._newInfo(name)
        size = source.stat().st_size
        with open(source, "rb") as src, self._require().open(info, "w", force_zip64=size >= zipfile.ZIP64_LIMIT) as dst:
            shutil.copyfileobj(src, dst, _COPY_CHUNK)
        self._names.append(info.filename)

    def close(self) -> None:
        """Finish the container and publish it at `target`."""
        if self._committed:
            return
        zf = self._require()
        try:
            zf.close()
            self._zip = None
            os.replace(self.tempPath, self.target)
        except Exception:
            self.abort()
            raise
        self._committed = True
        logger.debug("Committed archive '%s' (%d entries)", self.target, len(self._names))

    def abort(self) -> None:
        """Discard everything written so far. `target` is left untouched."""
        if self._zip is not None:
            try:
                self._zip.close()
            except Exception as err:
                logger.debug("Ignoring close failure while aborting '%s': %s", self.tempPath, err)
            self._zip = None
        self.tempPath.unlink(missing_ok=True)

    def __enter__(self) -> ZipArchiveWriter:
        return self

    def __exit__(self, excType, excValue, traceBack) -> None:
        if excType is not None:
            self.abort()
        else:
            self.close()
