# packpatcher/packs/ledger.py
from __future__ import annotations
import json
import logging
import os
from collections.abc import Iterable
from pathlib import Path
from threading import RLock

from packpatcher.core.errors import LedgerIOError

logger = logging.getLogger(__name__)

__all__ = ["PatchLedger"]



class PatchLedger:
    """
    Persisted set of already-packaged pack keys.

    Loaded once at run start, mutated in memory (thread-safe), saved once at
    run end with a full overwrite. Nothing is appended incrementally, so a run
    that never reaches save() leaves the file as it was.

    File format: a JSON array of strings, sorted.
    """
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._keys: set[str] = set()
        self._lock = RLock()

    # ----- Persistence -----

    def load(self) -> set[str]:
        """
        Replace the in-memory set with the file contents and return a copy.

        Missing file → empty set. Unreadable or malformed file → LedgerIOError
        (the in-memory set is left empty).
        """
        with self._lock:
            self._keys = set()
            if not self.path.exists():
                logger.debug("Ledger '%s' does not exist yet, starting empty", self.path)
                return set()

            try:
                raw = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as err:
                raise LedgerIOError(f"Failed to read ledger '{self.path}': {err}") from err

            if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
                raise LedgerIOError(f"Ledger '{self.path}' must contain a JSON array of strings")

            self._keys = set(raw)
            logger.debug("Loaded %d ledger entries from '%s'", len(self._keys), self.path)
            return set(self._keys)

    def save(self, keys: Iterable[str] | None = None) -> None:
        """
        Overwrite the ledger file with `keys` (or the in-memory set).

        Written to a temporary file first and swapped in with os.replace().
        """
        with self._lock:
            if keys is not None:
                self._keys = set(keys)
            payload = json.dumps(sorted(self._keys), ensure_ascii=False, indent=2)

            tmpPath = self.path.with_suffix(self.path.suffix + ".tmp")
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(tmpPath, "w", encoding="utf-8") as fl:
                    fl.write(payload)
                    fl.write("\n")
                os.replace(tmpPath, self.path)
            except OSError as err:
                try:
                    tmpPath.unlink(missing_ok=True)
                except OSError as cleanupErr:
                    logger.debug("Could not remove '%s': %s", tmpPath, cleanupErr)
                raise LedgerIOError(f"Failed to write ledger '{self.path}': {err}") from err

            logger.debug("Saved %d ledger entries to '%s'", len(self._keys), self.path)

    # ----- In-memory access -----

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._keys

    __contains__ = contains

    def add(self, key: str) -> bool:
        """Returns True when `key` was not recorded before."""
        with self._lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            return True

    def keys(self) -> set[str]:
        with self._lock:
            return set(self._keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)
