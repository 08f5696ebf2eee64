# packpatcher/core/errors.py
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

__all__ = [
    "PatcherError",
    "RunFatalError",
    "PackError",
    "DiscoveryError",
    "CompilerUnavailableError",
    "ExtractionError",
    "MissingDescriptorError",
    "MetadataParseError",
    "CompilationDiagnostic",
    "CompilationDiagnosticError",
    "ArchiveWriteError",
    "LedgerIOError",
]



class PatcherError(Exception):
    """Base class for everything the packaging pipeline raises on purpose."""
    pass



# ------------------------------------------------
#                 Run-fatal errors
# ------------------------------------------------

class RunFatalError(PatcherError):
    """Stops the whole run. No further packs are scheduled and the ledger is not saved."""
    pass



class DiscoveryError(RunFatalError):
    """The input directory could not be enumerated, so there is no work list."""
    pass



class CompilerUnavailableError(RunFatalError):
    """Entrypoint compilation is enabled but no compiler service can be used."""
    pass



# ------------------------------------------------
#                 Per-pack errors
# ------------------------------------------------

class PackError(PatcherError):
    """
    Failure scoped to a single pack. The batch continues.

    `identifier` is the pack identifier (or bundle filename when no identifier
    exists yet) and `stage` names the pipeline step that failed.
    """
    def __init__(self, message: str, *, identifier: str | None = None, stage: str | None = None) -> None:
        super().__init__(message)
        self.identifier = identifier
        self.stage = stage



class ExtractionError(PackError):
    pass



class MissingDescriptorError(PackError):
    """The pack has no descriptor file and is rejected."""
    pass



@dataclass(frozen=True)
class CompilationDiagnostic:
    message: str
    line: int | None = None
    sourceLine: str | None = None

    def __str__(self) -> str:
        where = f"line {self.line}" if self.line is not None else "unknown line"
        text = f" -> {self.sourceLine.strip()}" if self.sourceLine else ""
        return f"{where}: {self.message}{text}"



class CompilationDiagnosticError(PackError):
    def __init__(
        self,
        message: str,
        diagnostics: Sequence[CompilationDiagnostic] = (),
        *,
        identifier: str | None = None,
        stage: str | None = "compile",
    ) -> None:
        super().__init__(message, identifier=identifier, stage=stage)
        self.diagnostics = tuple(diagnostics)



class ArchiveWriteError(PackError):
    pass



# ------------------------------------------------
#             Non-fatal / degraded errors
# ------------------------------------------------

class MetadataParseError(PatcherError):
    """Descriptor exists but could not be read into metadata. Triggers defaults."""
    pass



class LedgerIOError(PatcherError):
    """The ledger file could not be read or written. Skip-list will not be durable."""
    pass
