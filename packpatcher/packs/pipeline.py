# packpatcher/packs/pipeline.py
from __future__ import annotations
import logging
import os
import shutil
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from packpatcher.config.settings import PatcherSettings, loadSettings
from packpatcher.core.errors import (
    LedgerIOError,
    MissingDescriptorError,
    PackError,
    RunFatalError,
)
from packpatcher.core.ids import uuidv7
from packpatcher.core.logging import configureLogging, getPackLogger, logContext, setLogContext
from packpatcher.core.paths import isStrictlyInside
from packpatcher.packs.assembler import assembleArchive
from packpatcher.packs.compiler import (
    CompilerService,
    compileEntrypoint,
    ensureCompilerAvailable,
    getCompilerService,
)
from packpatcher.packs.extraction import discoverPackSources
from packpatcher.packs.ledger import PatchLedger
from packpatcher.packs.manifest import generateManifest
from packpatcher.packs.metadata import resolveMetadata
from packpatcher.packs.types import (
    CompiledUnit,
    OriginKind,
    OutcomeStatus,
    PackOutcome,
    PackSource,
    RunReport,
)

logger = logging.getLogger(__name__)

__all__ = ["PackagingRun", "packageAll"]



class PackagingRun:
    """
    One "package everything now" pass over the datapack directory.

    Sequence:
      1) resolve the compiler (only when compiler.enabled; unavailable → run-fatal)
      2) load the ledger
      3) discover sources (skips ledger hits, extracts bundles)
      4) package each source, sequentially or on a bounded thread pool
      5) save the ledger once, after every job has finished
      6) optionally remove staging extractions

    Per-pack failures are reported and never stop the batch. RunFatalError
    subclasses propagate to the caller; the ledger is left untouched then.

    cancel() stops scheduling new packs. Packs already running finish, and an
    abandoned archive is never published since archives are committed atomically.
    """
    def __init__(
        self,
        settings: PatcherSettings | None = None,
        *,
        compiler: CompilerService | None = None,
        ledger: PatchLedger | None = None,
        cancelEvent: threading.Event | None = None,
    ) -> None:
        self.settings = settings if settings is not None else loadSettings()
        self.ledger = ledger if ledger is not None else PatchLedger(self.settings.ledgerFile)
        self.cancelEvent = cancelEvent if cancelEvent is not None else threading.Event()
        self.runId = uuidv7(prefix="run-")
        self._compiler = compiler

    # ----- Control -----

    def cancel(self) -> None:
        self.cancelEvent.set()

    @property
    def cancelled(self) -> bool:
        return self.cancelEvent.is_set()

    # ----- Run -----

    def run(self) -> RunReport:
        with logContext(runId=self.runId):
            report = RunReport()
            try:
                compiler = self._resolveCompiler()
                self._loadLedger(report)
                discovery = discoverPackSources(self.settings, self.ledger)
            except RunFatalError as err:
                logger.error("Packaging run aborted: %s", err)
                raise

            report.outcomes.extend(discovery.outcomes)
            report.outcomes.extend(self._packageSources(discovery.sources, compiler))

            self._saveLedger(report)
            if self.settings.cleanupStaging:
                self._cleanupStaging(discovery.sources)

            self._logSummary(report)
            return report

    def _resolveCompiler(self) -> CompilerService | None:
        compilerSettings = self.settings.compiler
        if not compilerSettings.enabled:
            return None
        service = self._compiler if self._compiler is not None else getCompilerService(compilerSettings.backend)
        return ensureCompilerAvailable(service)

    def _workerCount(self, sourceCount: int) -> int:
        workers = self.settings.workers
        if workers == 0:
            workers = os.cpu_count() or 1
        return max(1, min(workers, sourceCount))

    def _packageSources(self, sources: list[PackSource], compiler: CompilerService | None) -> list[PackOutcome]:
        if not sources:
            return []

        workers = self._workerCount(len(sources))
        if workers == 1:
            return [self._guardedPackage(source, compiler) for source in sources]

        logger.debug("Packaging %d datapacks on %d workers", len(sources), workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="packpatcher") as pool:
            futures = [pool.submit(self._guardedPackage, source, compiler) for source in sources]
            # Results are gathered in input order so reports are deterministic
            return [future.result() for future in futures]

    def _guardedPackage(self, source: PackSource, compiler: CompilerService | None) -> PackOutcome:
        if self.cancelled:
            logger.info("Run cancelled, not packaging %s", source.name)
            return PackOutcome(
                key=source.ledgerKey,
                status=OutcomeStatus.CANCELLED,
                identifier=source.identifier,
                reason="run cancelled",
            )
        with logContext(runId=self.runId, packId=source.identifier):
            return self.packageSource(source, compiler)

    def packageSource(self, source: PackSource, compiler: CompilerService | None = None) -> PackOutcome:
        """Run metadata → compile → manifest → assemble for one source and record it in the ledger."""
        packLog = getPackLogger(source.identifier, traceEnabled=self.settings.logging.devMode)
        stage = "metadata"
        try:
            setLogContext(stage=stage)
            metadata = resolveMetadata(source)
            packLog.trace("metadata resolved (default description: %s)", metadata.isDefault)

            compiled: CompiledUnit | None = None
            if compiler is not None:
                stage = "compile"
                setLogContext(stage=stage)
                compiled = compileEntrypoint(compiler, source.identifier, self.settings.compiler)
                packLog.trace("compiled %s (%d bytes)", compiled.artifactPath, len(compiled.data))

            stage = "manifest"
            setLogContext(stage=stage)
            manifest = generateManifest(
                source.identifier,
                metadata,
                compiled.entrypointReference if compiled is not None else None,
            )
            packLog.trace("manifest generated for %s", manifest.name)

            stage = "assemble"
            setLogContext(stage=stage)
            archivePath = assembleArchive(source, manifest, self.settings, compiled)
        except MissingDescriptorError as err:
            logger.warning("%s. Skipping!", err)
            return self._failure(source, err.stage or stage, f"rejected: {err}")
        except PackError as err:
            logger.error(
                "Failed to package %s (id=%s, stage=%s): %s",
                source.name, source.identifier, err.stage or stage, err,
                exc_info=err.__cause__ is not None,
            )
            return self._failure(source, err.stage or stage, str(err))
        except Exception as err:
            logger.exception("Unexpected error packaging %s (id=%s, stage=%s)", source.name, source.identifier, stage)
            return self._failure(source, stage, f"{type(err).__name__}: {err}")

        self.ledger.add(source.ledgerKey)
        return PackOutcome(
            key=source.ledgerKey,
            status=OutcomeStatus.SUCCESS,
            identifier=source.identifier,
            stage="done",
            archivePath=archivePath,
        )

    @staticmethod
    def _failure(source: PackSource, stage: str, reason: str) -> PackOutcome:
        return PackOutcome(
            key=source.ledgerKey,
            status=OutcomeStatus.FAILED,
            identifier=source.identifier,
            stage=stage,
            reason=reason,
        )

    # ----- Ledger -----

    def _loadLedger(self, report: RunReport) -> None:
        try:
            self.ledger.load()
        except LedgerIOError as err:
            report.ledgerDurable = False
            logger.error(
                "!!! %s. Continuing with an empty skip-list: every datapack will be repackaged and "
                "the ledger will NOT be written this run. Fix or delete the file to restore skipping.",
                err,
            )

    def _saveLedger(self, report: RunReport) -> None:
        if not report.ledgerDurable:
            return
        try:
            self.ledger.save()
        except LedgerIOError as err:
            report.ledgerDurable = False
            logger.error(
                "!!! %s. Datapacks packaged in this run are not recorded and will be repackaged next run.",
                err,
            )

    # ----- Staging -----

    def _cleanupStaging(self, sources: list[PackSource]) -> None:
        for source in sources:
            if source.originKind is not OriginKind.EXTRACTED_BUNDLE or source.stagingDir is None:
                continue
            if not isStrictlyInside(source.stagingDir, self.settings.stagingPath):
                logger.warning(
                    "Not removing '%s': it is not inside staging directory '%s'",
                    source.stagingDir, self.settings.stagingPath,
                )
                continue
            shutil.rmtree(source.stagingDir, ignore_errors=True)
            logger.debug("Removed staging directory '%s'", source.stagingDir)

    # ----- Reporting -----

    def _logSummary(self, report: RunReport) -> None:
        for outcome in report.failed:
            logger.warning("  failed: %s (stage=%s): %s", outcome.key, outcome.stage, outcome.reason)
        logger.info("Finished packaging datapacks: %s", report.summary())
        if report.succeeded:
            logger.info("Restart the game to load %d newly packaged datapack(s)!", len(report.succeeded))



def packageAll(
    settings: PatcherSettings | None = None,
    *,
    settingsPath: str | Path | None = None,
    compiler: CompilerService | None = None,
    cancelEvent: threading.Event | None = None,
    setupLogging: bool = False,
) -> RunReport:
    """
    Entry point for host lifecycle hooks: package every new datapack now.

    `settings` wins over `settingsPath`; with neither, defaults (plus the
    PACKPATCHER_SETTINGS file, if set) are used.
    """
    if settings is None:
        settings = loadSettings(settingsPath)
    if setupLogging:
        configureLogging(settings)
    return PackagingRun(settings, compiler=compiler, cancelEvent=cancelEvent).run()
