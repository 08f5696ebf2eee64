# packpatcher/packs/extraction.py
from __future__ import annotations
import logging
import shutil
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

from packpatcher.archive.container import ZipArchiveReader, extractArchive
from packpatcher.config.settings import PatcherSettings
from packpatcher.core.errors import DiscoveryError, ExtractionError
from packpatcher.core.naming import normalizeIdentifier
from packpatcher.core.paths import isStrictlyInside, resolveSafe
from packpatcher.packs.ledger import PatchLedger
from packpatcher.packs.types import OriginKind, OutcomeStatus, PackOutcome, PackSource

logger = logging.getLogger(__name__)

__all__ = [
    "DiscoveryResult",
    "buildPackSource",
    "bundleExtensionOf",
    "extractBundle",
    "discoverPackSources",
]



@dataclass
class DiscoveryResult:
    # Work list, in input directory name order
    sources: list[PackSource] = field(default_factory=list)
    # Candidates that never became sources (skipped by ledger, failed extraction)
    outcomes: list[PackOutcome] = field(default_factory=list)



def buildPackSource(
    root: Path,
    *,
    name: str,
    identifier: str,
    originKind: OriginKind,
    ledgerKey: str,
    settings: PatcherSettings,
    bundlePath: Path | None = None,
    stagingDir: Path | None = None,
) -> PackSource:
    iconPath = root / settings.iconName
    return PackSource(
        root=root,
        name=name,
        identifier=identifier,
        originKind=originKind,
        ledgerKey=ledgerKey,
        descriptorPath=root / settings.descriptorName,
        resourceSubtrees=tuple((subtree, root / subtree) for subtree in settings.resourceSubtrees),
        iconPath=iconPath if iconPath.is_file() else None,
        bundlePath=bundlePath,
        stagingDir=stagingDir,
    )



def bundleExtensionOf(path: Path, settings: PatcherSettings) -> str | None:
    """Returns the matching bundle extension (as configured) or None."""
    lowered = path.name.lower()
    for ext in settings.bundleExtensions:
        if lowered.endswith(ext) and len(lowered) > len(ext):
            return ext
    return None



def _packRootOf(stagingDir: Path, descriptorName: str) -> Path:
    """
    Bundles are expected to hold the pack at their root. Archives zipped from
    the parent folder instead wrap everything in one directory; descend into it.
    """
    if (stagingDir / descriptorName).is_file():
        return stagingDir
    children = [child for child in stagingDir.iterdir() if not child.name.startswith("__MACOSX")]
    if len(children) == 1 and children[0].is_dir() and (children[0] / descriptorName).is_file():
        logger.debug("Bundle content is nested in '%s', using it as pack root", children[0].name)
        return children[0]
    return stagingDir



def _stagingDirFor(bundlePath: Path, bundleExt: str, settings: PatcherSettings) -> Path:
    try:
        return resolveSafe(settings.stagingPath, bundlePath.name[:-len(bundleExt)])
    except ValueError as err:
        raise ExtractionError(
            f"Refusing to stage bundle '{bundlePath.name}': {err}",
            identifier=bundlePath.name,
            stage="extract",
        ) from err



def extractBundle(bundlePath: Path, stagingDir: Path, *, stagingRoot: Path | None = None) -> int:
    """
    Extract `bundlePath` into `stagingDir`, replacing any stale staged copy.

    With `stagingRoot` given, `stagingDir` must lie strictly below it or nothing
    is touched. Raises ExtractionError on any failure; the partial staging
    directory is removed.
    """
    if stagingRoot is not None and not isStrictlyInside(stagingDir, stagingRoot):
        raise ExtractionError(
            f"Refusing to stage bundle '{bundlePath.name}': '{stagingDir}' is not inside '{stagingRoot}'",
            identifier=bundlePath.name,
            stage="extract",
        )
    try:
        if stagingDir.exists():
            shutil.rmtree(stagingDir)
        with ZipArchiveReader(bundlePath) as reader:
            count = extractArchive(reader, stagingDir)
    except (OSError, zipfile.BadZipFile, ValueError) as err:
        shutil.rmtree(stagingDir, ignore_errors=True)
        raise ExtractionError(
            f"Failed to extract bundle '{bundlePath.name}': {err}",
            identifier=bundlePath.name,
            stage="extract",
        ) from err
    logger.debug("Extracted %d files from '%s' into '%s'", count, bundlePath.name, stagingDir)
    return count



def discoverPackSources(settings: PatcherSettings, ledger: PatchLedger) -> DiscoveryResult:
    """
    Build the work list from the input directory.

    - Directories become raw-directory sources keyed by their identifier.
    - Files with a bundle extension are extracted into the staging directory
      and keyed by their filename.
    - Anything else is ignored.

    Keys already in the ledger are skipped before any extraction happens.
    Raises DiscoveryError when the input directory cannot be listed.
    """
    inputDir = settings.datapacksPath
    try:
        inputDir.mkdir(parents=True, exist_ok=True)
        entries = sorted(inputDir.iterdir(), key=lambda path: path.name)
    except OSError as err:
        raise DiscoveryError(f"Failed to read datapack directory '{inputDir}': {err}") from err

    logger.info("Scanning for datapacks in '%s' (%d entries)", inputDir, len(entries))

    result = DiscoveryResult()
    seenIds: dict[str, str] = {}

    for entry in entries:
        if entry.is_dir():
            identifier = normalizeIdentifier(entry.name)
            ledgerKey = identifier
            originKind = OriginKind.RAW_DIRECTORY
            bundleExt = None
        else:
            bundleExt = bundleExtensionOf(entry, settings) if entry.is_file() else None
            if bundleExt is None:
                logger.debug("Ignoring '%s': not a directory or bundle", entry.name)
                continue
            identifier = normalizeIdentifier(entry.name[:-len(bundleExt)])
            ledgerKey = entry.name
            originKind = OriginKind.EXTRACTED_BUNDLE

        if ledger.contains(ledgerKey):
            # Ledger hits keep their identifier reserved
            seenIds.setdefault(identifier, entry.name)
            logger.info("Skipping already patched datapack: %s", entry.name)
            result.outcomes.append(PackOutcome(
                key=ledgerKey,
                status=OutcomeStatus.SKIPPED,
                identifier=identifier,
                stage="discover",
                reason="already patched",
            ))
            continue

        if identifier in seenIds:
            reason = f"identifier '{identifier}' already used by '{seenIds[identifier]}'"
            logger.error("Rejecting '%s': %s", entry.name, reason)
            result.outcomes.append(PackOutcome(
                key=ledgerKey,
                status=OutcomeStatus.FAILED,
                identifier=identifier,
                stage="discover",
                reason=reason,
            ))
            continue

        root = entry
        bundlePath = None
        stagingDir = None
        if bundleExt is not None:
            bundlePath = entry
            try:
                stagingDir = _stagingDirFor(entry, bundleExt, settings)
                extractBundle(entry, stagingDir, stagingRoot=settings.stagingPath)
            except ExtractionError as err:
                logger.error("%s", err, exc_info=err.__cause__ is not None)
                result.outcomes.append(PackOutcome(
                    key=ledgerKey,
                    status=OutcomeStatus.FAILED,
                    identifier=identifier,
                    stage="extract",
                    reason=str(err),
                ))
                continue
            root = _packRootOf(stagingDir, settings.descriptorName)

        seenIds[identifier] = entry.name
        result.sources.append(buildPackSource(
            root,
            name=entry.name,
            identifier=identifier,
            originKind=originKind,
            ledgerKey=ledgerKey,
            settings=settings,
            bundlePath=bundlePath,
            stagingDir=stagingDir,
        ))

    logger.info("Found %d datapack(s) to package", len(result.sources))
    return result
