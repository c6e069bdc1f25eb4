"""Public API: use cratetree from Python or from other tools."""

from __future__ import annotations

from pathlib import Path

from cratetree.core.duplicates import find_duplicates
from cratetree.core.format import DEFAULT_PATTERN, Pattern
from cratetree.core.graph import DependencyGraph, Direction, build_graph
from cratetree.core.metadata import MetadataOptions, load_metadata, run_metadata
from cratetree.core.parser import PackageId
from cratetree.core.tree import (
    Charset,
    Prefix,
    TreeOptions,
    render_duplicates,
    render_tree,
    select_root,
)


def get_metadata(
    options: MetadataOptions | None = None,
    *,
    metadata_file: Path | None = None,
) -> dict:
    """
    Get the resolved dependency document.

    Reads metadata_file when given, otherwise runs `cargo metadata` with
    the given options.
    """
    if metadata_file is not None:
        return load_metadata(metadata_file)
    return run_metadata(options)


def build_tree_graph(
    document: dict | None = None,
    *,
    options: MetadataOptions | None = None,
    metadata_file: Path | None = None,
    no_dev_dependencies: bool = False,
) -> DependencyGraph:
    """
    Build the dependency graph for a workspace.

    Args:
        document: An already loaded metadata document; fetched when None.
        options: Flags for `cargo metadata` when the document is fetched.
        metadata_file: Saved metadata JSON to read instead of running cargo.
        no_dev_dependencies: Leave development-only edges out of the graph.

    Returns:
        DependencyGraph pruned to what the workspace root can reach.
    """
    if document is None:
        document = get_metadata(options, metadata_file=metadata_file)
    return build_graph(document, no_dev_dependencies=no_dev_dependencies)


def list_duplicates(graph: DependencyGraph) -> list[PackageId]:
    """Packages present in more than one version or source, sorted."""
    return find_duplicates(graph)


def tree_options(
    *,
    invert: bool = False,
    duplicates: bool = False,
    depth: int | None = None,
    show_all: bool = False,
    no_indent: bool = False,
    prefix_depth: bool = False,
    charset: Charset | str = Charset.UTF8,
    format: str = DEFAULT_PATTERN,
) -> TreeOptions:
    """
    Turn display flags into TreeOptions.

    Duplicates mode implies an inverted tree. prefix_depth wins over
    no_indent. Raises FormatPatternError for a bad format pattern.
    """
    if prefix_depth:
        prefix = Prefix.DEPTH
    elif no_indent:
        prefix = Prefix.NONE
    else:
        prefix = Prefix.INDENT
    return TreeOptions(
        direction=Direction.INCOMING if invert or duplicates else Direction.OUTGOING,
        depth_limit=depth,
        show_all=show_all,
        prefix=prefix,
        charset=Charset(charset),
        pattern=Pattern.parse(format),
    )


def render(
    graph: DependencyGraph,
    package: str | None = None,
    *,
    invert: bool = False,
    duplicates: bool = False,
    depth: int | None = None,
    show_all: bool = False,
    no_indent: bool = False,
    prefix_depth: bool = False,
    charset: Charset | str = Charset.UTF8,
    format: str = DEFAULT_PATTERN,
) -> list[str]:
    """
    Render the dependency tree as a list of lines.

    Args:
        graph: Graph from build_tree_graph.
        package: Root query (`name` or `name:version`); None = graph root.
        invert: Show dependents instead of dependencies.
        duplicates: Render one inverted tree per duplicated package.
        depth: Maximum depth to expand; 0 = root only.
        show_all: Expand packages that were already printed.
        no_indent: Flat list instead of a tree.
        prefix_depth: Prefix each line with its depth.
        charset: "utf8" or "ascii" connectors.
        format: Pattern for each package line, e.g. "{p} {l}".

    Returns:
        The rendered lines. The pattern and the root are validated first, so
        errors never come with partial output.
    """
    options = tree_options(
        invert=invert,
        duplicates=duplicates,
        depth=depth,
        show_all=show_all,
        no_indent=no_indent,
        prefix_depth=prefix_depth,
        charset=charset,
        format=format,
    )
    if duplicates:
        return list(render_duplicates(graph, options))
    return list(render_tree(graph, select_root(graph, package), options))
