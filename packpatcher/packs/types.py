# packpatcher/packs/types.py
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

__all__ = [
    "OriginKind",
    "PackSource",
    "PackMetadata",
    "CompiledUnit",
    "OutcomeStatus",
    "PackOutcome",
    "RunReport",
]



class OriginKind(Enum):
    RAW_DIRECTORY = "raw-directory"
    EXTRACTED_BUNDLE = "extracted-bundle"



@dataclass(frozen=True, slots=True, kw_only=True)
class PackSource:
    """
    One content pack root, as found during discovery.

    Read-only after discovery. Extracted bundles point `root` at their staging copy.
    """
    # Directory holding the pack tree (descriptor, data/, assets/, icon)
    root: Path
    # Original entry name in the input directory ("My Pack!!", "pack.zip")
    name: str
    identifier: str
    originKind: OriginKind
    # Key recorded in the ledger once packaged: identifier for directories,
    # bundle filename for bundles
    ledgerKey: str
    descriptorPath: Path
    # Ordered (subtree name, path) pairs; paths may not exist
    resourceSubtrees: tuple[tuple[str, Path], ...] = ()
    iconPath: Path | None = None
    # Set for extracted bundles
    bundlePath: Path | None = None
    stagingDir: Path | None = None

    @property
    def hasIcon(self) -> bool:
        return self.iconPath is not None and self.iconPath.is_file()



@dataclass(frozen=True, slots=True)
class PackMetadata:
    # Already escaped for embedding inside a JSON string literal
    description: str
    # True when the description was synthesized rather than read from the descriptor
    isDefault: bool = False



@dataclass(frozen=True, slots=True)
class CompiledUnit:
    """In-memory artifact of the generated entrypoint for one pack."""
    # Dotted module name the artifact is keyed by ("packpatcher_generated.my_pack")
    qualifiedName: str
    # "module:Class" reference written into the manifest entrypoints
    entrypointReference: str
    # Entry path inside the output archive
    artifactPath: str
    data: bytes = field(repr=False)



class OutcomeStatus(Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"
    CANCELLED = "cancelled"



@dataclass(frozen=True, slots=True)
class PackOutcome:
    key: str
    status: OutcomeStatus
    identifier: str | None = None
    stage: str | None = None
    reason: str | None = None
    archivePath: Path | None = None



@dataclass
class RunReport:
    outcomes: list[PackOutcome] = field(default_factory=list)
    # False when the ledger could not be loaded or saved; next run may redo work
    ledgerDurable: bool = True

    def byStatus(self, status: OutcomeStatus) -> list[PackOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status is status]

    @property
    def succeeded(self) -> list[PackOutcome]:
        return self.byStatus(OutcomeStatus.SUCCESS)

    @property
    def skipped(self) -> list[PackOutcome]:
        return self.byStatus(OutcomeStatus.SKIPPED)

    @property
    def failed(self) -> list[PackOutcome]:
        return self.byStatus(OutcomeStatus.FAILED)

    @property
    def cancelled(self) -> list[PackOutcome]:
        return self.byStatus(OutcomeStatus.CANCELLED)

    def counts(self) -> dict[str, int]:
        counter = Counter(outcome.status for outcome in self.outcomes)
        return {status.value: counter.get(status, 0) for status in OutcomeStatus}

    def summary(self) -> str:
        counts = self.counts()
        return ", ".join(f"{counts[status.value]} {status.value}" for status in OutcomeStatus)
