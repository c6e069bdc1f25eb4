"""Errors raised while loading, building, and rendering a dependency graph."""

from __future__ import annotations


class TreeError(Exception):
    """Base class for every failure cratetree reports to its caller."""

    kind = "error"


class MalformedInput(TreeError):
    """The metadata document is missing data the graph builder requires."""

    kind = "malformed-input"


class MetadataError(TreeError):
    """cargo/rustc could not be run, failed, or produced unreadable output."""

    kind = "metadata"


class PackageNotFound(TreeError):
    kind = "package-not-found"


class AmbiguousPackage(TreeError):
    """A package query matched more than one node."""

    kind = "ambiguous-package"

    def __init__(self, query: str, candidates: list[str]) -> None:
        self.query = query
        self.candidates = candidates
        super().__init__(
            f"multiple packages found for `{query}`: {', '.join(candidates)}"
        )


class InvalidPackageSpec(TreeError):
    kind = "invalid-package-spec"


class RootNotFound(TreeError):
    kind = "root-not-found"


class FormatPatternError(TreeError):
    kind = "format-pattern"
