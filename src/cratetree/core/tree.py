"""Render a dependency graph as a text tree, one package per line."""

from __future__ import annotations

import dataclasses
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, TextIO

from cratetree.core.duplicates import find_duplicates
from cratetree.core.errors import (
    AmbiguousPackage,
    InvalidPackageSpec,
    PackageNotFound,
    RootNotFound,
)
from cratetree.core.format import DEFAULT_PATTERN, Pattern
from cratetree.core.graph import DependencyGraph, Direction
from cratetree.core.parser import DependencyKind, PackageId, parse_version

# Appended to a package whose subtree was already printed (or is an ancestor).
TRUNCATION_MARKER = " (*)"

KIND_HEADERS = {
    DependencyKind.BUILD: "[build-dependencies]",
    DependencyKind.DEVELOPMENT: "[dev-dependencies]",
}


class Prefix(Enum):
    NONE = "none"
    INDENT = "indent"
    DEPTH = "depth"


class Charset(Enum):
    UTF8 = "utf8"
    ASCII = "ascii"


@dataclass(frozen=True)
class Symbols:
    down: str
    tee: str
    ell: str
    right: str


UTF8_SYMBOLS = Symbols(down="│", tee="├", ell="└", right="─")
ASCII_SYMBOLS = Symbols(down="|", tee="|", ell="`", right="-")


@dataclass(frozen=True)
class TreeOptions:
    """Display settings for one render call."""

    direction: Direction = Direction.OUTGOING
    depth_limit: int | None = None
    show_all: bool = False
    prefix: Prefix = Prefix.INDENT
    charset: Charset = Charset.UTF8
    pattern: Pattern = field(default_factory=lambda: Pattern.parse(DEFAULT_PATTERN))

    def __post_init__(self) -> None:
        if self.depth_limit is not None and self.depth_limit < 0:
            raise ValueError(f"depth_limit must be non-negative, got {self.depth_limit}")

    @property
    def symbols(self) -> Symbols:
        return ASCII_SYMBOLS if self.charset is Charset.ASCII else UTF8_SYMBOLS


def find_package(graph: DependencyGraph, query: str) -> PackageId:
    """
    Resolve `name` or `name:version` to exactly one package in the graph.

    Raises PackageNotFound for no match, AmbiguousPackage for several, and
    InvalidPackageSpec when the version part is not a semantic version.
    """
    name, _, version_text = query.partition(":")
    version = None
    if version_text:
        try:
            version = parse_version(version_text)
        except ValueError as e:
            raise InvalidPackageSpec(f"error parsing package version in `{query}`: {e}") from e

    candidates = [
        node.id
        for node in graph.nodes()
        if node.id.name == name and (version is None or node.id.version == version)
    ]
    if not candidates:
        raise PackageNotFound(f"no packages found for `{query}`")
    if len(candidates) > 1:
        raise AmbiguousPackage(query, [c.spec for c in candidates])
    return candidates[0]


def select_root(graph: DependencyGraph, query: str | None = None) -> PackageId:
    """The queried package, or the graph's own root when no query is given."""
    if query:
        return find_package(graph, query)
    if graph.root is None:
        raise RootNotFound(
            "this command requires running against an actual package in this workspace"
        )
    return graph.root


@dataclass
class _Traversal:
    """State of one walk from one root; never shared between roots."""

    visited: set[int] = field(default_factory=set)
    # Nodes currently being expanded, root first.
    path: list[int] = field(default_factory=list)
    # One flag per ancestor level: does a later sibling follow at that level?
    levels_continue: list[bool] = field(default_factory=list)


@dataclass
class _Frame:
    entries: Iterator[DependencyKind | tuple[int, bool]]
    pushed_level: bool


def _prefix(levels_continue: list[bool], options: TreeOptions) -> str:
    if options.prefix is Prefix.DEPTH:
        return f"{len(levels_continue)} "
    if options.prefix is Prefix.NONE or not levels_continue:
        return ""
    symbols = options.symbols
    parts = [f"{symbols.down if c else ' '}   " for c in levels_continue[:-1]]
    branch = symbols.tee if levels_continue[-1] else symbols.ell
    parts.append(f"{branch}{symbols.right}{symbols.right} ")
    return "".join(parts)


def _header(kind: DependencyKind, levels_continue: list[bool], options: TreeOptions) -> str:
    down = options.symbols.down
    indent = "".join(f"{down if c else ' '}   " for c in levels_continue)
    return f"{indent}{KIND_HEADERS[kind]}"


def _entries(
    graph: DependencyGraph, index: int, options: TreeOptions
) -> Iterator[DependencyKind | tuple[int, bool]]:
    """Group headers and (child, has_following_sibling) pairs of one node."""
    for kind, members in graph.children(index, options.direction).items():
        if not members:
            continue
        if options.prefix is Prefix.INDENT and kind in KIND_HEADERS:
            yield kind
        last = len(members) - 1
        for i, member in enumerate(members):
            yield member, i < last


def _visit(
    graph: DependencyGraph, index: int, options: TreeOptions, ctx: _Traversal
) -> tuple[str, bool]:
    """Return the line for a node and whether its children should be walked."""
    line = _prefix(ctx.levels_continue, options) + options.pattern.display(
        graph.node_at(index).package
    )
    if options.depth_limit is not None and len(ctx.levels_continue) >= options.depth_limit:
        return line, False
    if (not options.show_all and index in ctx.visited) or index in ctx.path:
        return line + TRUNCATION_MARKER, False
    ctx.visited.add(index)
    return line, True


def _walk(graph: DependencyGraph, root: int, options: TreeOptions) -> Iterator[str]:
    ctx = _Traversal()
    stack: list[_Frame] = []

    line, expand = _visit(graph, root, options, ctx)
    yield line
    if expand:
        ctx.path.append(root)
        stack.append(_Frame(_entries(graph, root, options), pushed_level=False))

    while stack:
        frame = stack[-1]
        entry = next(frame.entries, None)
        if entry is None:
            stack.pop()
            ctx.path.pop()
            if frame.pushed_level:
                ctx.levels_continue.pop()
            continue
        if isinstance(entry, DependencyKind):
            yield _header(entry, ctx.levels_continue, options)
            continue

        index, continues = entry
        ctx.levels_continue.append(continues)
        line, expand = _visit(graph, index, options, ctx)
        yield line
        if expand:
            ctx.path.append(index)
            stack.append(_Frame(_entries(graph, index, options), pushed_level=True))
        else:
            ctx.levels_continue.pop()


def render_tree(
    graph: DependencyGraph,
    root: PackageId,
    options: TreeOptions | None = None,
) -> Iterator[str]:
    """
    Lines of the tree rooted at `root`, produced lazily.

    The root is checked before the iterator is returned, so a bad root fails
    before any line is produced. Children are grouped normal, build,
    development and sorted by identity within a group. A package already
    printed in this walk is shown once more as a leaf with " (*)" unless
    show_all is set; an ancestor of itself is always cut that way. A package
    at depth_limit is printed without its children.
    """
    if root not in graph:
        raise RootNotFound(f"package `{root}` is not in the dependency graph")
    return _walk(graph, graph.index_of[root], options or TreeOptions())


def _duplicate_lines(
    graph: DependencyGraph, roots: list[PackageId], options: TreeOptions
) -> Iterator[str]:
    for i, root in enumerate(roots):
        if i != 0:
            yield ""
        yield from _walk(graph, graph.index_of[root], options)


def render_duplicates(
    graph: DependencyGraph, options: TreeOptions | None = None
) -> Iterator[str]:
    """Inverted trees for every duplicated package, separated by blank lines."""
    options = dataclasses.replace(options or TreeOptions(), direction=Direction.INCOMING)
    return _duplicate_lines(graph, find_duplicates(graph), options)


def _write(lines: Iterator[str], file: TextIO | None) -> int:
    out = file if file is not None else sys.stdout
    count = 0
    for line in lines:
        out.write(line + "\n")
        count += 1
    return count


def print_tree(
    graph: DependencyGraph,
    root: PackageId,
    options: TreeOptions | None = None,
    file: TextIO | None = None,
) -> int:
    """Stream the tree to `file` (stdout by default). Returns the line count."""
    return _write(render_tree(graph, root, options), file)


def print_duplicates(
    graph: DependencyGraph,
    options: TreeOptions | None = None,
    file: TextIO | None = None,
) -> int:
    """Stream every duplicate-group tree to `file`. Returns the line count."""
    return _write(render_duplicates(graph, options), file)
