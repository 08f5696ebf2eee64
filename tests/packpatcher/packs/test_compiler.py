# tests/packpatcher/packs/test_compiler.py
from __future__ import annotations

import importlib.util
import logging
import marshal

import pytest

from packpatcher.config.settings import CompilerSettings
from packpatcher.core.errors import (
    CompilationDiagnostic,
    CompilationDiagnosticError,
    CompilerUnavailableError,
)
from packpatcher.packs.compiler import (
    CompileResult,
    DisabledCompilerService,
    PythonCompilerService,
    SourceUnit,
    artifactPathFor,
    compileEntrypoint,
    ensureCompilerAvailable,
    generateEntrypointSource,
    getCompilerService,
)


class BrokenCompiler:
    """Always reports a diagnostic."""
    name = "broken"

    def isAvailable(self) -> bool:
        return True

    def compile(self, units):
        return CompileResult(diagnostics=[CompilationDiagnostic("cannot find symbol", 3, "foo();")])


class EmptyCompiler:
    name = "empty"

    def isAvailable(self) -> bool:
        return True

    def compile(self, units):
        return CompileResult()


def test_pythonCompiler_produces_loadable_bytecode():
    service = PythonCompilerService()
    source = generateEntrypointSource("my_pack__", "PackInitializer")
    result = service.compile([SourceUnit("packpatcher_generated.my_pack__", source)])

    assert result.ok
    data = result.artifacts["packpatcher_generated.my_pack__"]
    assert data[:4] == importlib.util.MAGIC_NUMBER
    assert int.from_bytes(data[4:8], "little") == 0b01
    assert data[8:16] == importlib.util.source_hash(source.encode("utf-8"))

    namespace: dict = {}
    exec(marshal.loads(data[16:]), namespace)
    assert namespace["PACK_ID"] == "my_pack__"
    assert callable(namespace["PackInitializer"]().onInitialize)


def test_pythonCompiler_is_deterministic():
    source = generateEntrypointSource("abc", "PackInitializer")
    first = PythonCompilerService().compile([SourceUnit("x.abc", source)]).artifacts
    second = PythonCompilerService().compile([SourceUnit("x.abc", source)]).artifacts
    assert first == second


def test_pythonCompiler_reports_syntax_errors():
    result = PythonCompilerService().compile([SourceUnit("bad", "def broken(:\n    pass\n")])
    assert not result.ok
    assert result.artifacts == {}
    assert result.diagnostics[0].line == 1


def test_generated_entrypoint_logs_on_initialize(caplog):
    namespace: dict = {}
    exec(generateEntrypointSource("abc", "Init"), namespace)
    with caplog.at_level(logging.INFO, logger="packs.abc"):
        namespace["Init"]().onInitialize()
    assert "Loaded patched datapack 'abc'" in caplog.text


def test_generateEntrypointSource_rejects_bad_identifier():
    with pytest.raises(ValueError):
        generateEntrypointSource("Bad Id", "Init")


def test_compileEntrypoint_builds_unit():
    settings = CompilerSettings(enabled=True)
    unit = compileEntrypoint(PythonCompilerService(), "my_pack", settings)
    assert unit.qualifiedName == "packpatcher_generated.my_pack"
    assert unit.entrypointReference == "packpatcher_generated.my_pack:PackInitializer"
    assert unit.artifactPath == "packpatcher_generated/my_pack.pyc"
    assert unit.data


def test_compileEntrypoint_diagnostics_raise_and_log(caplog):
    with pytest.raises(CompilationDiagnosticError) as excInfo:
        compileEntrypoint(BrokenCompiler(), "my_pack", CompilerSettings(enabled=True))
    assert excInfo.value.stage == "compile"
    assert excInfo.value.identifier == "my_pack"
    assert len(excInfo.value.diagnostics) == 1
    assert "line 3: cannot find symbol -> foo();" in caplog.text


def test_compileEntrypoint_missing_artifact_raises():
    with pytest.raises(CompilationDiagnosticError):
        compileEntrypoint(EmptyCompiler(), "my_pack", CompilerSettings(enabled=True))


def test_compiler_registry_and_availability():
    assert isinstance(getCompilerService("python"), PythonCompilerService)
    with pytest.raises(CompilerUnavailableError):
        getCompilerService("javac")
    with pytest.raises(CompilerUnavailableError):
        ensureCompilerAvailable(DisabledCompilerService())
    with pytest.raises(CompilerUnavailableError):
        ensureCompilerAvailable(None)
    with pytest.raises(CompilerUnavailableError):
        DisabledCompilerService().compile([])


def test_artifactPathFor():
    assert artifactPathFor("a.b.c") == "a/b/c.pyc"
