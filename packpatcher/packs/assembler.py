# packpatcher/packs/assembler.py
from __future__ import annotations
import logging
import os
import zipfile
from collections.abc import Iterator
from pathlib import Path

from packpatcher.archive.container import ZipArchiveWriter
from packpatcher.config.settings import PatcherSettings
from packpatcher.core.errors import ArchiveWriteError
from packpatcher.packs.manifest import GeneratedManifest
from packpatcher.packs.types import CompiledUnit, PackSource

logger = logging.getLogger(__name__)

__all__ = ["iterSubtreeFiles", "assembleArchive"]



def iterSubtreeFiles(subtreeRoot: Path) -> Iterator[tuple[str, Path]]:
    """
    Yields (relative "/"-separated name, path) for every file under `subtreeRoot`,
    in a stable sorted order. Nothing is yielded when the subtree does not exist.
    """
    if not subtreeRoot.is_dir():
        return
    for dirPath, dirNames, fileNames in os.walk(subtreeRoot):
        dirNames.sort()
        base = Path(dirPath)
        for fileName in sorted(fileNames):
            path = base / fileName
            yield path.relative_to(subtreeRoot).as_posix(), path



def assembleArchive(
    source: PackSource,
    manifest: GeneratedManifest,
    settings: PatcherSettings,
    compiledUnit: CompiledUnit | None = None,
) -> Path:
    """
    Write the output archive for one pack and return its path.

    Entry order: manifest, compiled entrypoint (if any), resource subtrees
    under their own prefix, icon at the manifest icon path (if present).
    The archive is staged in a temporary file and only replaces
    `<outputDir>/<identifier>.<ext>` once complete. Any failure raises
    ArchiveWriteError and leaves no partial archive behind.
    """
    identifier = manifest.id
    target = settings.archivePathFor(identifier)

    try:
        with ZipArchiveWriter(target) as writer:
            writer.putEntry(settings.manifestName, manifest.toBytes())

            if compiledUnit is not None:
                writer.putEntry(compiledUnit.artifactPath, compiledUnit.data)

            for subtreeName, subtreeRoot in source.resourceSubtrees:
                if not subtreeRoot.is_dir():
                    logger.debug("No %s/ subtree in '%s'", subtreeName, source.name)
                    continue
                for relName, path in iterSubtreeFiles(subtreeRoot):
                    writer.putFile(f"{subtreeName}/{relName}", path)

            if source.hasIcon and source.iconPath is not None:
                if writer.hasEntry(manifest.icon):
                    logger.debug("Icon entry '%s' already provided by a resource subtree", manifest.icon)
                else:
                    writer.putFile(manifest.icon, source.iconPath)

            entryCount = len(writer.names)
    except (OSError, ValueError, zipfile.BadZipFile, zipfile.LargeZipFile) as err:
        raise ArchiveWriteError(
            f"Failed to write archive '{target.name}' for {source.name}: {err}",
            identifier=identifier,
            stage="assemble",
        ) from err

    logger.info("Packaged datapack: %s -> %s (%d entries)", source.name, target.name, entryCount)
    return target
