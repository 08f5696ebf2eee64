# tests/packpatcher/packs/test_assembler.py
from __future__ import annotations

import json

import pytest

from conftest import read_archive, write_descriptor, write_file
from packpatcher.core.errors import ArchiveWriteError
from packpatcher.core.jsonutils import escapeJsonString
from packpatcher.packs.assembler import assembleArchive, iterSubtreeFiles
from packpatcher.packs.extraction import buildPackSource
from packpatcher.packs.manifest import generateManifest
from packpatcher.packs.types import CompiledUnit, OriginKind, PackMetadata


def _source(settings, root, identifier="pack"):
    return buildPackSource(
        root,
        name=root.name,
        identifier=identifier,
        originKind=OriginKind.RAW_DIRECTORY,
        ledgerKey=identifier,
        settings=settings,
    )


def _manifest(identifier="pack"):
    return generateManifest(identifier, PackMetadata(description=escapeJsonString("desc")))


def test_assembleArchive_layout(settings, tmp_path):
    root = tmp_path / "src" / "pack"
    write_descriptor(root)
    write_file(root / "data" / "ns" / "recipes" / "b.json", '{"b": 1}')
    write_file(root / "data" / "ns" / "recipes" / "a.json", '{"a": 1}')
    write_file(root / "assets" / "ns" / "lang" / "en_us.json", "{}")
    write_file(root / "pack.png", b"\x89PNG")
    write_file(root / "README.md", "not packaged")

    target = assembleArchive(_source(settings, root), _manifest(), settings)

    assert target == settings.outputPath / "pack.jar"
    entries = read_archive(target)
    assert list(entries) == [
        "fabric.mod.json",
        "data/ns/recipes/a.json",
        "data/ns/recipes/b.json",
        "assets/ns/lang/en_us.json",
        "assets/pack/icon.png",
    ]
    assert json.loads(entries["fabric.mod.json"])["id"] == "pack"
    assert entries["assets/pack/icon.png"] == b"\x89PNG"


def test_assembleArchive_missing_subtrees_are_fine(settings, tmp_path):
    root = tmp_path / "src" / "bare"
    write_descriptor(root)
    target = assembleArchive(_source(settings, root), _manifest(), settings)
    assert list(read_archive(target)) == ["fabric.mod.json"]


def test_assembleArchive_icon_already_in_assets_is_not_duplicated(settings, tmp_path):
    root = tmp_path / "src" / "pack"
    write_descriptor(root)
    write_file(root / "assets" / "pack" / "icon.png", b"from-assets")
    write_file(root / "pack.png", b"from-root")

    entries = read_archive(assembleArchive(_source(settings, root), _manifest(), settings))

    assert entries["assets/pack/icon.png"] == b"from-assets"


def test_assembleArchive_includes_compiled_unit(settings, tmp_path):
    root = tmp_path / "src" / "pack"
    write_descriptor(root)
    unit = CompiledUnit(
        qualifiedName="packpatcher_generated.pack",
        entrypointReference="packpatcher_generated.pack:PackInitializer",
        artifactPath="packpatcher_generated/pack.pyc",
        data=b"bytecode",
    )
    manifest = generateManifest("pack", PackMetadata(description="d"), unit.entrypointReference)

    entries = read_archive(assembleArchive(_source(settings, root), manifest, settings, unit))

    assert list(entries)[:2] == ["fabric.mod.json", "packpatcher_generated/pack.pyc"]
    assert entries["packpatcher_generated/pack.pyc"] == b"bytecode"


def test_assembleArchive_overwrites_and_is_byte_identical(settings, tmp_path):
    root = tmp_path / "src" / "pack"
    write_descriptor(root)
    write_file(root / "data" / "x.json")

    target = assembleArchive(_source(settings, root), _manifest(), settings)
    first = target.read_bytes()
    target = assembleArchive(_source(settings, root), _manifest(), settings)
    assert target.read_bytes() == first


def test_assembleArchive_failure_leaves_no_partial_output(settings, tmp_path, monkeypatch):
    root = tmp_path / "src" / "pack"
    write_descriptor(root)
    write_file(root / "data" / "x.json")

    def explode(self, name, source):
        raise OSError("disk full")

    monkeypatch.setattr("packpatcher.archive.container.ZipArchiveWriter.putFile", explode)

    with pytest.raises(ArchiveWriteError) as excInfo:
        assembleArchive(_source(settings, root), _manifest(), settings)

    assert excInfo.value.stage == "assemble"
    assert list(settings.outputPath.iterdir()) == []


def test_iterSubtreeFiles_sorted(tmp_path):
    write_file(tmp_path / "b" / "z.json")
    write_file(tmp_path / "a.json")
    write_file(tmp_path / "b" / "a.json")
    assert [name for name, _ in iterSubtreeFiles(tmp_path)] == ["a.json", "b/a.json", "b/z.json"]
    assert list(iterSubtreeFiles(tmp_path / "missing")) == []
