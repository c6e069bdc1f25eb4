"""cratetree: visualize a Cargo package's resolved dependency graph as a tree (library, TUI, CLI)."""

from importlib.metadata import version, PackageNotFoundError

from cratetree.api import (
    build_tree_graph,
    get_metadata,
    list_duplicates,
    render,
)
from cratetree.core.errors import TreeError

__all__ = [
    "build_tree_graph",
    "get_metadata",
    "list_duplicates",
    "render",
    "TreeError",
    "__version__",
]

try:
    __version__ = version("cratetree")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"  # Not installed as package
