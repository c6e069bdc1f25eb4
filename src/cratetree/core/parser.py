"""Parse package entries and dependency kinds from a cargo metadata document."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import total_ordering
from pathlib import Path

import semver

from cratetree.core.errors import MalformedInput

# Registry sources that are not worth printing next to a package name.
CRATES_IO_SOURCES = (
    "registry+https://github.com/rust-lang/crates.io-index",
    "sparse+https://index.crates.io/",
)


class DependencyKind(Enum):
    """Why an edge exists. Declaration order is the rendering order."""

    NORMAL = "normal"
    BUILD = "build"
    DEVELOPMENT = "dev"

    @classmethod
    def parse(cls, raw: str | None) -> DependencyKind:
        """Map a metadata `kind` value (null, "build", "dev") to a member."""
        if raw is None or raw == "normal":
            return cls.NORMAL
        try:
            return cls(raw)
        except ValueError:
            raise MalformedInput(f"unknown dependency kind `{raw}`") from None


@total_ordering
@dataclass(frozen=True, eq=False)
class PackageId:
    """
    Identity of one resolved package: (name, version, source).

    Path packages have no source; their origin is the directory holding the
    manifest, kept in `path`. Build metadata is part of the identity even
    though semver precedence ignores it.
    """

    name: str
    version: semver.Version
    source: str | None = None
    path: str | None = None

    def _key(self) -> tuple:
        # Path packages (no source) sort before registry and git packages.
        return (
            self.name,
            self.version,
            self.version.build or "",
            self.source is not None,
            self.source or "",
            self.path or "",
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageId):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash((self.name, str(self.version), self.source, self.path))

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, PackageId):
            return NotImplemented
        return self._key() < other._key()

    @property
    def spec(self) -> str:
        """`name:version`, the form accepted by package queries."""
        return f"{self.name}:{self.version}"

    @property
    def is_crates_io(self) -> bool:
        return self.source in CRATES_IO_SOURCES

    def __str__(self) -> str:
        origin = self.source if self.source is not None else self.path
        if origin is None:
            return f"{self.name} v{self.version}"
        return f"{self.name} v{self.version} ({origin})"


@dataclass(frozen=True)
class PackageInfo:
    """Metadata for one package of the document's `packages` list."""

    id: PackageId
    raw_id: str
    manifest_path: Path | None = None
    license: str | None = None
    repository: str | None = None
    description: str | None = None
    authors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def name(self) -> str:
        return self.id.name

    @property
    def version(self) -> semver.Version:
        return self.id.version

    @property
    def source(self) -> str | None:
        return self.id.source

    @property
    def package_dir(self) -> Path | None:
        """Directory holding the package manifest, if known."""
        if self.manifest_path is None:
            return None
        return self.manifest_path.parent


def parse_version(text: str) -> semver.Version:
    """Parse a semantic version, raising ValueError on bad input."""
    return semver.Version.parse(text.strip())


def parse_package(raw: dict) -> PackageInfo:
    """
    Build a PackageInfo from one entry of the metadata `packages` list.

    Raises MalformedInput when name, version or id is missing, or when the
    version is not a semantic version.
    """
    if not isinstance(raw, dict):
        raise MalformedInput("package entry is not an object")
    name = raw.get("name")
    version = raw.get("version")
    raw_id = raw.get("id")
    if not name or not version or not raw_id:
        raise MalformedInput(f"package entry is missing name, version or id: {raw_id or name!r}")
    try:
        parsed_version = parse_version(version)
    except ValueError as e:
        raise MalformedInput(f"invalid version `{version}` for package `{name}`: {e}") from e

    manifest = Path(raw["manifest_path"]) if raw.get("manifest_path") else None
    source = raw.get("source")
    path = None
    if source is None:
        # The raw id is unique in the document when the manifest is unknown.
        path = str(manifest.parent) if manifest is not None else raw_id
    description = raw.get("description")
    return PackageInfo(
        id=PackageId(name=name, version=parsed_version, source=source, path=path),
        raw_id=raw_id,
        manifest_path=manifest,
        license=raw.get("license"),
        repository=raw.get("repository"),
        description=description.strip() if description else None,
        authors=tuple(raw.get("authors") or ()),
    )
