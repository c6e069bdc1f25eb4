"""Core library: metadata loading, graph building, duplicate search, tree rendering."""

from cratetree.core.duplicates import find_duplicates
from cratetree.core.errors import (
    AmbiguousPackage,
    FormatPatternError,
    InvalidPackageSpec,
    MalformedInput,
    MetadataError,
    PackageNotFound,
    RootNotFound,
    TreeError,
)
from cratetree.core.format import Pattern
from cratetree.core.graph import DependencyGraph, Direction, GraphNode, build_graph
from cratetree.core.metadata import MetadataOptions, load_metadata, run_metadata
from cratetree.core.parser import DependencyKind, PackageId, PackageInfo, parse_package
from cratetree.core.tree import (
    Charset,
    Prefix,
    TreeOptions,
    find_package,
    print_duplicates,
    print_tree,
    render_duplicates,
    render_tree,
    select_root,
)

__all__ = [
    "AmbiguousPackage",
    "Charset",
    "DependencyGraph",
    "DependencyKind",
    "Direction",
    "FormatPatternError",
    "GraphNode",
    "InvalidPackageSpec",
    "MalformedInput",
    "MetadataError",
    "MetadataOptions",
    "PackageId",
    "PackageInfo",
    "PackageNotFound",
    "Pattern",
    "Prefix",
    "RootNotFound",
    "TreeError",
    "TreeOptions",
    "build_graph",
    "find_duplicates",
    "find_package",
    "load_metadata",
    "parse_package",
    "print_duplicates",
    "print_tree",
    "render_duplicates",
    "render_tree",
    "run_metadata",
    "select_root",
]
