# packpatcher/packs/compiler.py
from __future__ import annotations
import importlib.util
import io
import logging
import marshal
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from packpatcher.config.settings import CompilerSettings
from packpatcher.core.errors import (
    CompilationDiagnostic,
    CompilationDiagnosticError,
    CompilerUnavailableError,
)
from packpatcher.core.naming import isNormalizedIdentifier
from packpatcher.packs.types import CompiledUnit

logger = logging.getLogger(__name__)

__all__ = [
    "ARTIFACT_SUFFIX",
    "SourceUnit",
    "CompileResult",
    "CompilerService",
    "PythonCompilerService",
    "DisabledCompilerService",
    "COMPILER_SERVICES",
    "getCompilerService",
    "ensureCompilerAvailable",
    "artifactPathFor",
    "generateEntrypointSource",
    "compileEntrypoint",
]



# Compiled artifacts are stored as sourceless bytecode next to their package path
ARTIFACT_SUFFIX = ".pyc"



@dataclass(frozen=True, slots=True)
class SourceUnit:
    # Dotted module name; the compiled artifact is keyed by it
    qualifiedName: str
    source: str



@dataclass
class CompileResult:
    artifacts: dict[str, bytes] = field(default_factory=dict)
    diagnostics: list[CompilationDiagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.diagnostics



@runtime_checkable
class CompilerService(Protocol):
    name: str

    def isAvailable(self) -> bool: ...
    def compile(self, units: list[SourceUnit]) -> CompileResult: ...



class _MemorySink:
    """Collects compiled output in memory, keyed by qualified name."""
    def __init__(self) -> None:
        self._buffers: dict[str, io.BytesIO] = {}

    def open(self, qualifiedName: str) -> io.BytesIO:
        buffer = io.BytesIO()
        self._buffers[qualifiedName] = buffer
        return buffer

    def collect(self) -> dict[str, bytes]:
        return {name: buffer.getvalue() for name, buffer in self._buffers.items()}

    def close(self) -> None:
        for buffer in self._buffers.values():
            buffer.close()
        self._buffers.clear()



class PythonCompilerService:
    """
    Compiles source units with the interpreter's own compiler.

    Each artifact is a hash-based, unchecked .pyc image: the import machinery
    loads it without needing the source or a timestamp, and identical source
    always yields identical bytes.
    """
    name = "python"

    def __init__(self, *, optimize: int = -1) -> None:
        self.optimize = optimize

    def isAvailable(self) -> bool:
        return True

    def compile(self, units: list[SourceUnit]) -> CompileResult:
        result = CompileResult()
        sink = _MemorySink()
        try:
            for unit in units:
                sourceBytes = unit.source.encode("utf-8")
                filename = "<generated:" + unit.qualifiedName + ">"
                try:
                    code = compile(sourceBytes, filename, "exec", dont_inherit=True, optimize=self.optimize)
                except SyntaxError as err:
                    result.diagnostics.append(CompilationDiagnostic(
                        message=err.msg or "invalid syntax",
                        line=err.lineno,
                        sourceLine=err.text,
                    ))
                    continue
                except ValueError as err:
                    # e.g. null bytes in source
                    result.diagnostics.append(CompilationDiagnostic(message=str(err)))
                    continue

                buffer = sink.open(unit.qualifiedName)
                buffer.write(importlib.util.MAGIC_NUMBER)
                # Flags: hash-based (bit 0) without source checking (bit 1 unset)
                buffer.write((0b01).to_bytes(4, "little"))
                buffer.write(importlib.util.source_hash(sourceBytes))
                buffer.write(marshal.dumps(code))

            if result.ok:
                result.artifacts = sink.collect()
        finally:
            sink.close()
        return result



class DisabledCompilerService:
    """Stand-in for environments without an in-process compiler."""
    name = "disabled"

    def isAvailable(self) -> bool:
        return False

    def compile(self, units: list[SourceUnit]) -> CompileResult:
        raise CompilerUnavailableError("No compiler service is available in this environment")



COMPILER_SERVICES: dict[str, type] = {
    PythonCompilerService.name: PythonCompilerService,
    DisabledCompilerService.name: DisabledCompilerService,
}



def getCompilerService(name: str) -> CompilerService:
    factory = COMPILER_SERVICES.get(name)
    if factory is None:
        raise CompilerUnavailableError(
            f"Unknown compiler backend {name!r} (known: {', '.join(sorted(COMPILER_SERVICES))})"
        )
    return factory()



def ensureCompilerAvailable(service: CompilerService | None) -> CompilerService:
    """Run-level check, made once before any pack is processed when compilation is enabled."""
    if service is None or not service.isAvailable():
        name = getattr(service, "name", None)
        raise CompilerUnavailableError(
            f"Entrypoint compilation is enabled but compiler {name!r} is unavailable; "
            "disable compiler.enabled or install a compiler backend"
        )
    return service



def artifactPathFor(qualifiedName: str) -> str:
    """Maps "a.b.c" to "a/b/c.pyc"."""
    return qualifiedName.replace(".", "/") + ARTIFACT_SUFFIX



def generateEntrypointSource(identifier: str, className: str) -> str:
    """Minimal initializer module whose only job is to log that the pack was loaded."""
    if not isNormalizedIdentifier(identifier):
        raise ValueError(f"Invalid pack identifier {identifier!r}")
    return (
        "import logging\n"
        "\n"
        f"PACK_ID = {identifier!r}\n"
        "\n"
        "logger = logging.getLogger('packs.' + PACK_ID)\n"
        "\n"
        "\n"
        f"class {className}:\n"
        f"    \"\"\"Initializer for the patched pack {identifier}.\"\"\"\n"
        "\n"
        "    def onInitialize(self):\n"
        "        logger.info(\"Loaded patched datapack '%s'\", PACK_ID)\n"
    )



def compileEntrypoint(
    service: CompilerService,
    identifier: str,
    settings: CompilerSettings,
) -> CompiledUnit:
    """
    Generate and compile the entrypoint module for one pack.

    Raises CompilationDiagnosticError (pack-scoped) when the compiler reports
    diagnostics or produces no artifact for the requested module.
    """
    qualifiedName = f"{settings.package}.{identifier}"
    source = generateEntrypointSource(identifier, settings.className)
    result = service.compile([SourceUnit(qualifiedName, source)])

    if not result.ok:
        for diagnostic in result.diagnostics:
            logger.error("Compilation diagnostic for '%s': %s", qualifiedName, diagnostic)
        raise CompilationDiagnosticError(
            f"Compilation of '{qualifiedName}' failed with {len(result.diagnostics)} diagnostic(s)",
            result.diagnostics,
            identifier=identifier,
        )

    data = result.artifacts.get(qualifiedName)
    if data is None:
        raise CompilationDiagnosticError(
            f"Compiler produced no artifact for '{qualifiedName}'",
            identifier=identifier,
        )

    return CompiledUnit(
        qualifiedName=qualifiedName,
        entrypointReference=f"{qualifiedName}:{settings.className}",
        artifactPath=artifactPathFor(qualifiedName),
        data=data,
    )
