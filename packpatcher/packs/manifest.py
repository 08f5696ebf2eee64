# packpatcher/packs/manifest.py
from __future__ import annotations
import json
from string import Template
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from packpatcher.core.jsonutils import escapeJsonString
from packpatcher.core.naming import displayName, isNormalizedIdentifier
from packpatcher.packs.types import PackMetadata
from packpatcher.semver.semver import checkRequirement, parseVersion

__all__ = [
    "MANIFEST_SCHEMA_VERSION",
    "MANIFEST_VERSION",
    "MANIFEST_AUTHORS",
    "MANIFEST_LICENSE",
    "MANIFEST_ENVIRONMENT",
    "ENTRYPOINT_KEY",
    "HOST_DEPENDS",
    "GeneratedManifest",
    "iconPathFor",
    "generateManifest",
]



MANIFEST_SCHEMA_VERSION = 1
MANIFEST_VERSION = "1.0.0"
MANIFEST_LICENSE = "MIT"
MANIFEST_ENVIRONMENT = "*"
MANIFEST_AUTHORS: tuple[str, ...] = (
    "Auto-Generated by PackPatcher!",
    "If they put it there, the original author should be in the description!",
)
ENTRYPOINT_KEY = "main"

# Minimum host loader/runtime versions every generated archive declares
HOST_DEPENDS: dict[str, str] = {
    "fabricloader": ">=0.16.14",
    "minecraft": "~1.21.1",
    "java": ">=21",
    "fabric-api": "*",
}

_MANIFEST_TEMPLATE = Template("""\
{
	"schemaVersion": $schemaVersion,
	"id": "$id",
	"version": "$version",
	"name": "$name",
	"description": "$description",
	"authors": $authors,
	"license": "$license",
	"icon": "$icon",
	"environment": "$environment",
	"entrypoints": $entrypoints,
	"depends": $depends
}
""")



def iconPathFor(identifier: str) -> str:
    return f"assets/{identifier}/icon.png"



class GeneratedManifest(BaseModel):
    """
    Host-loadable manifest for one output archive.

    `description` holds the escaped form produced by the metadata resolver and
    is placed verbatim into the rendered document.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    schemaVersion: int = MANIFEST_SCHEMA_VERSION
    id: str
    version: str = MANIFEST_VERSION
    name: str
    description: str
    authors: tuple[str, ...] = MANIFEST_AUTHORS
    license: str = MANIFEST_LICENSE
    icon: str
    environment: str = MANIFEST_ENVIRONMENT
    entrypoints: dict[str, list[str]] = Field(default_factory=dict)
    depends: dict[str, str] = Field(default_factory=lambda: dict(HOST_DEPENDS))

    @field_validator("id")
    @classmethod
    def _checkId(cls, value: str) -> str:
        if not isNormalizedIdentifier(value):
            raise ValueError(f"Manifest id must match [a-z0-9_]+, got {value!r}")
        return value

    @field_validator("version")
    @classmethod
    def _checkVersion(cls, value: str) -> str:
        parseVersion(value)
        return value

    @field_validator("depends")
    @classmethod
    def _checkDepends(cls, value: dict[str, str]) -> dict[str, str]:
        return {key: checkRequirement(requirement) for key, requirement in value.items()}

    @property
    def entrypoint(self) -> str | None:
        refs = self.entrypoints.get(ENTRYPOINT_KEY) or []
        return refs[0] if refs else None

    def render(self) -> str:
        return _MANIFEST_TEMPLATE.substitute(
            schemaVersion=self.schemaVersion,
            id=escapeJsonString(self.id),
            version=escapeJsonString(self.version),
            name=escapeJsonString(self.name),
            description=self.description,
            authors=_indentJson(list(self.authors)),
            license=escapeJsonString(self.license),
            icon=escapeJsonString(self.icon),
            environment=escapeJsonString(self.environment),
            entrypoints=_indentJson(self.entrypoints),
            depends=_indentJson(self.depends),
        )

    def toBytes(self) -> bytes:
        return self.render().encode("utf-8")

    def toDict(self) -> dict[str, Any]:
        """Parsed view of the rendered document (descriptions unescaped)."""
        return json.loads(self.render())



def _indentJson(value: Any) -> str:
    # Nested blocks line up with the one-tab indentation of the template
    return json.dumps(value, ensure_ascii=False, indent="\t").replace("\n", "\n\t")



def generateManifest(
    identifier: str,
    metadata: PackMetadata,
    entrypoint: str | None = None,
) -> GeneratedManifest:
    """
    Pure function from pack identity + metadata (+ optional entrypoint reference)
    to the manifest. Entrypoints are declared only when a reference is given.
    """
    return GeneratedManifest(
        id=identifier,
        name=displayName(identifier),
        description=metadata.description,
        icon=iconPathFor(identifier),
        entrypoints={ENTRYPOINT_KEY: [entrypoint]} if entrypoint else {},
    )
