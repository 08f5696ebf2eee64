import json
import sys
import zipfile
from pathlib import Path

import pytest

from packpatcher.config.settings import loadSettings



def pytest_configure(config: pytest.Config) -> None:
    if sys.flags.optimize:
        raise RuntimeError("Assertions are disabled (optimize > 0)")



@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch):
    # A developer's own settings file must never leak into tests
    monkeypatch.delenv("PACKPATCHER_SETTINGS", raising=False)



@pytest.fixture()
def settings(tmp_path):
    return loadSettings(baseDir=tmp_path)



def write_descriptor(packDir: Path, description: object = "A test pack", *, raw: str | None = None) -> Path:
    packDir.mkdir(parents=True, exist_ok=True)
    path = packDir / "pack.mcmeta"
    if raw is not None:
        path.write_text(raw, encoding="utf-8")
    else:
        payload = {"pack": {"pack_format": 48, "description": description}}
        path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    return path



def write_file(path: Path, content: str | bytes = "{}") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    return path



def write_bundle(path: Path, files: dict[str, str | bytes]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return path



def read_archive(path: Path) -> dict[str, bytes]:
    with zipfile.ZipFile(path) as zf:
        return {info.filename: zf.read(info) for info in zf.infolist()}
