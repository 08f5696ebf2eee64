# packpatcher/config/settings.py
from __future__ import annotations
import logging
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, cast

import json5
from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator

logger = logging.getLogger(__name__)

__all__ = [
    "SETTINGS_DEFAULTS", "SETTINGS_FILE_ENV",
    "CompilerSettings", "LoggingSettings", "PatcherSettings",
    "loadSettingsFile", "loadSettings", "deepMerge",
]



# Environment variable pointing at a user settings file (JSON/JSON5)
SETTINGS_FILE_ENV = "PACKPATCHER_SETTINGS"

SETTINGS_DEFAULTS: dict[str, Any] = {
    "__source": "PACKPATCHER_DEFAULTS",
    "datapacksDir": "config/packpatcher/datapacks",
    "outputDir": "mods",
    "stagingDir": "config/packpatcher/temp",
    "ledgerPath": "config/packpatcher/patches.json",
    "descriptorName": "pack.mcmeta",
    "iconName": "pack.png",
    "manifestName": "fabric.mod.json",
    "archiveExtension": "jar",
    "bundleExtensions": [".zip"],
    "resourceSubtrees": ["data", "assets"],
    "workers": 1,
    "cleanupStaging": False,
    "compiler": {
        "enabled": False,
        "backend": "python",
        "package": "packpatcher_generated",
        "className": "PackInitializer",
    },
    "logging": {
        "devMode": True,
        "file": None,
        "maxBytes": 10 * 1024 * 1024,
        "backupCount": 5,
    },
}

_DOTTED_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")
_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")



class CompilerSettings(BaseModel):
    """Entrypoint generation. Disabled by default."""
    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    backend: str = "python"
    # Package the generated entrypoint modules live under inside the archive
    package: str = "packpatcher_generated"
    className: str = "PackInitializer"

    @field_validator("package")
    @classmethod
    def _checkPackage(cls, value: str) -> str:
        if not _DOTTED_NAME_RE.match(value):
            raise ValueError(f"compiler.package must be a dotted module path, got {value!r}")
        return value

    @field_validator("className")
    @classmethod
    def _checkClassName(cls, value: str) -> str:
        if not _NAME_RE.match(value):
            raise ValueError(f"compiler.className must be a valid class name, got {value!r}")
        return value



class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    devMode: bool = True
    # JSON log file, relative to baseDir. None disables file logging.
    file: str | None = None
    maxBytes: int = Field(default=10 * 1024 * 1024, gt=0)
    backupCount: int = Field(default=5, ge=0)



class PatcherSettings(BaseModel):
    """
    Validated settings for one packaging run.

    Relative paths are resolved against `baseDir` (the host's working
    directory unless configured otherwise).
    """
    model_config = ConfigDict(extra="forbid")

    baseDir: Path = Field(default_factory=Path.cwd)
    datapacksDir: Path = Path("config/packpatcher/datapacks")
    outputDir: Path = Path("mods")
    stagingDir: Path = Path("config/packpatcher/temp")
    ledgerPath: Path = Path("config/packpatcher/patches.json")

    descriptorName: str = "pack.mcmeta"
    iconName: str = "pack.png"
    manifestName: str = "fabric.mod.json"
    archiveExtension: str = "jar"
    bundleExtensions: list[str] = Field(default_factory=lambda: [".zip"])
    resourceSubtrees: list[str] = Field(default_factory=lambda: ["data", "assets"])

    # 1 = sequential, 0 = one worker per core (capped by pack count)
    workers: int = Field(default=1, ge=0)
    cleanupStaging: bool = False

    compiler: CompilerSettings = Field(default_factory=CompilerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("archiveExtension")
    @classmethod
    def _stripDot(cls, value: str) -> str:
        value = value.strip().lstrip(".")
        if not value:
            raise ValueError("archiveExtension cannot be empty")
        return value

    @field_validator("bundleExtensions")
    @classmethod
    def _normalizeExtensions(cls, value: list[str]) -> list[str]:
        out: list[str] = []
        for ext in value:
            ext = ext.strip().lower()
            if not ext:
                continue
            if not ext.startswith("."):
                ext = "." + ext
            if ext not in out:
                out.append(ext)
        return out

    @field_validator("resourceSubtrees")
    @classmethod
    def _checkSubtrees(cls, value: list[str]) -> list[str]:
        for name in value:
            if not name or "/" in name or "\\" in name or name in (".", ".."):
                raise ValueError(f"resourceSubtrees entries must be plain directory names, got {name!r}")
        return value

    def resolvePath(self, path: Path | str) -> Path:
        path = Path(path)
        return path if path.is_absolute() else self.baseDir / path

    @property
    def datapacksPath(self) -> Path:
        return self.resolvePath(self.datapacksDir)

    @property
    def outputPath(self) -> Path:
        return self.resolvePath(self.outputDir)

    @property
    def stagingPath(self) -> Path:
        return self.resolvePath(self.stagingDir)

    @property
    def ledgerFile(self) -> Path:
        return self.resolvePath(self.ledgerPath)

    @property
    def logFile(self) -> Path | None:
        if not self.logging.file:
            return None
        return self.resolvePath(self.logging.file)

    def archivePathFor(self, identifier: str) -> Path:
        return self.outputPath / f"{identifier}.{self.archiveExtension}"



def deepMerge(first: JsonValue, second: JsonValue) -> JsonValue:
    """
    Returns a new JsonValue where keys from `second` override/extend `first`.
    Only merges recursively when BOTH sides are JSON objects (dicts).
    For all other JSON types (lists, strings, numbers, booleans, null),
    the right-hand value `second` replaces `first`.
    """
    if isinstance(first, dict) and isinstance(second, dict):
        out: dict[str, JsonValue] = {}
        # Start with left
        for key, value in first.items():
            out[key] = cast(JsonValue, value)
        # Overlay right
        for key, value in second.items():
            if key in out:
                out[key] = deepMerge(out[key], cast(JsonValue, value))
            else:
                out[key] = cast(JsonValue, value)
        return cast(JsonValue, out)

    # If not both dicts, replace with right-hand side
    return cast(JsonValue, second)



def loadSettingsFile(path: str | Path) -> dict[str, Any]:
    """
    Reads a JSON/JSON5 settings file.

    Behavior:
        • Missing file → empty dict
        • Parse error → logs warning, empty dict
        • Non-object JSON → raises TypeError
    """
    path = Path(path)
    if not path.exists():
        logger.debug("Settings file '%s' is missing, using defaults", path)
        return {}

    if not path.is_file():
        raise IsADirectoryError(f"Settings path '{path}' exists but is not a file")

    try:
        parsed = json5.loads(path.read_text(encoding="utf-8"))
    except Exception as err:
        logger.warning("Failed to parse settings file '%s': %s", path, err)
        return {}

    if parsed is None:
        return {}

    if not isinstance(parsed, Mapping):
        raise TypeError(f"Settings file '{path}' must contain a JSON object, not '{type(parsed).__name__}'")

    return dict(parsed)



def loadSettings(
    path: str | Path | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
    baseDir: str | Path | None = None,
) -> PatcherSettings:
    """
    Build PatcherSettings from defaults, an optional settings file and in-memory overrides.

    Precedence (later wins): SETTINGS_DEFAULTS < file < overrides < baseDir argument.
    When `path` is None, the PACKPATCHER_SETTINGS environment variable is consulted.
    """
    if path is None:
        envPath = os.environ.get(SETTINGS_FILE_ENV)
        path = Path(envPath) if envPath else None

    merged: JsonValue = {key: value for key, value in SETTINGS_DEFAULTS.items() if not key.startswith("__")}
    if path is not None:
        merged = deepMerge(merged, loadSettingsFile(path))
    if overrides:
        merged = deepMerge(merged, dict(overrides))

    data = dict(cast(dict[str, Any], merged))
    data.pop("__source", None)
    if baseDir is not None:
        data["baseDir"] = Path(baseDir)

    return PatcherSettings.model_validate(data)
