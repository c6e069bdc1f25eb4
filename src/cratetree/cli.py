"""Command-line interface for cratetree: print dependency trees, export graphs, browse in a TUI."""

from __future__ import annotations

import argparse
import logging
import shutil
import subprocess
import sys
from pathlib import Path

import networkx as nx

from cratetree.api import build_tree_graph, tree_options
from cratetree.core.errors import TreeError
from cratetree.core.format import DEFAULT_PATTERN, PLACEHOLDERS
from cratetree.core.graph import DependencyGraph, Direction
from cratetree.core.metadata import MetadataOptions
from cratetree.core.parser import DependencyKind
from cratetree.core.tree import print_duplicates, print_tree, select_root

logger = logging.getLogger(__name__)

_DOT_EDGE_STYLES = {
    DependencyKind.NORMAL: "solid",
    DependencyKind.BUILD: "dotted",
    DependencyKind.DEVELOPMENT: "dashed",
}

_MERMAID_ARROWS = {
    DependencyKind.NORMAL: "-->",
    DependencyKind.BUILD: "-.->|build|",
    DependencyKind.DEVELOPMENT: "-.->|dev|",
}


def _configure_logging(verbose: int) -> None:
    """WARNING by default, INFO with -v, DEBUG with -vv. Always on stderr."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _metadata_options(args: argparse.Namespace) -> MetadataOptions:
    return MetadataOptions(
        manifest_path=Path(args.manifest_path) if args.manifest_path else None,
        features=args.features,
        all_features=args.all_features,
        no_default_features=args.no_default_features,
        target=args.target,
        all_targets=args.all_targets,
        frozen=args.frozen,
        locked=args.locked,
        offline=args.offline,
        quiet=args.quiet,
        verbose=args.verbose,
        color=args.color,
        unstable_flags=list(args.unstable_flags or []),
    )


def _load_graph(args: argparse.Namespace) -> DependencyGraph:
    return build_tree_graph(
        options=_metadata_options(args),
        metadata_file=Path(args.metadata_file) if args.metadata_file else None,
        no_dev_dependencies=args.no_dev_dependencies,
    )


def cmd_tree(args: argparse.Namespace) -> int:
    """Print the dependency tree (or the duplicate-version trees)."""
    try:
        # Pattern errors must surface before anything is printed.
        options = tree_options(
            invert=args.invert,
            duplicates=args.duplicates,
            depth=args.depth,
            show_all=args.all,
            no_indent=args.no_indent,
            prefix_depth=args.prefix_depth,
            charset=args.charset,
            format=args.format,
        )
        graph = _load_graph(args)
        if args.duplicates:
            print_duplicates(graph, options)
        else:
            root = select_root(graph, args.package)
            print_tree(graph, root, options)
    except TreeError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


def _selected_nodes(
    graph: DependencyGraph,
    package: str | None,
    direction: Direction,
) -> set[int]:
    """Indices reachable from the queried package in the given direction (all if no query)."""
    if not package:
        return set(graph.graph.nodes)
    start = graph.index_of[select_root(graph, package)]
    if direction is Direction.INCOMING:
        return nx.ancestors(graph.graph, start) | {start}
    return nx.descendants(graph.graph, start) | {start}


def _collect_edges(
    graph: DependencyGraph,
    nodes: set[int],
    kinds: set[DependencyKind] | None = None,
) -> list[tuple[int, int, DependencyKind]]:
    """Edges between selected nodes, optionally restricted to some kinds, in stable order."""
    edges = []
    for source, target, kind in graph.edges():
        u, v = graph.index_of[source], graph.index_of[target]
        if u in nodes and v in nodes and (kinds is None or kind in kinds):
            edges.append((u, v, kind))
    return edges


def _node_label(graph: DependencyGraph, index: int) -> str:
    node = graph.node_at(index)
    return f"{node.id.name} {node.id.version}"


def _generate_dot(
    graph: DependencyGraph,
    nodes: set[int] | None = None,
    kinds: set[DependencyKind] | None = None,
    title: str | None = None,
    highlight_roots: bool = True,
) -> str:
    """Generate DOT (Graphviz) format; edge style encodes the dependency kind."""
    if nodes is None:
        nodes = set(graph.graph.nodes)
    ordered = [graph.index_of[n.id] for n in graph.nodes() if graph.index_of[n.id] in nodes]

    lines = [
        "digraph dependencies {",
        "    rankdir=LR;",
        '    node [shape=box, style=rounded, fontname="sans-serif"];',
    ]
    if title:
        lines.insert(1, f'    label="{title}";')
        lines.insert(2, "    labelloc=t;")

    for index in ordered:
        attrs = f'label="{_node_label(graph, index)}"'
        if highlight_roots and graph.root is not None and graph.node_at(index).id == graph.root:
            attrs += ', style="rounded,filled", fillcolor=lightblue'
        lines.append(f"    N{index} [{attrs}];")

    for parent, child, kind in _collect_edges(graph, nodes, kinds):
        lines.append(f"    N{parent} -> N{child} [style={_DOT_EDGE_STYLES[kind]}];")

    lines.append("}")
    return "\n".join(lines)


def _generate_mermaid(
    graph: DependencyGraph,
    nodes: set[int] | None = None,
    kinds: set[DependencyKind] | None = None,
    title: str | None = None,
    highlight_roots: bool = True,
) -> str:
    """Generate Mermaid format; dotted arrows mark build and dev edges."""
    if nodes is None:
        nodes = set(graph.graph.nodes)
    ordered = [graph.index_of[n.id] for n in graph.nodes() if graph.index_of[n.id] in nodes]

    lines = ["graph LR"]
    if title:
        lines[0] = f"---\ntitle: {title}\n---\ngraph LR"

    for index in ordered:
        lines.append(f'    N{index}["{_node_label(graph, index)}"]')
        if highlight_roots and graph.root is not None and graph.node_at(index).id == graph.root:
            lines.append(f"    style N{index} fill:lightblue")

    for parent, child, kind in _collect_edges(graph, nodes, kinds):
        lines.append(f"    N{parent} {_MERMAID_ARROWS[kind]} N{child}")

    return "\n".join(lines)


def _check_graphviz() -> bool:
    """Check if Graphviz (dot) is available."""
    return shutil.which("dot") is not None


def _render_dot(dot_content: str, output_path: Path, format: str) -> bool:
    """Render DOT content to an image file using Graphviz."""
    if not _check_graphviz():
        print(
            "Error: Graphviz not found. Install it with:\n"
            "  Ubuntu/Debian: sudo apt install graphviz\n"
            "  macOS: brew install graphviz\n"
            "  Or download from: https://graphviz.org/download/",
            file=sys.stderr,
        )
        return False

    try:
        result = subprocess.run(
            ["dot", f"-T{format}", "-o", str(output_path)],
            input=dot_content,
            capture_output=True,
            text=True,
            timeout=60,
        )
        if result.returncode != 0:
            print(f"Graphviz error: {result.stderr}", file=sys.stderr)
            return False
        return True
    except subprocess.TimeoutExpired:
        print("Error: Graphviz timed out (graph may be too large)", file=sys.stderr)
        return False
    except OSError as e:
        print(f"Error running Graphviz: {e}", file=sys.stderr)
        return False


def _open_file(path: Path) -> bool:
    """Open a file with the system default application."""
    import platform

    system = platform.system()
    try:
        if system == "Darwin":  # macOS
            subprocess.run(["open", str(path)], check=True)
        elif system == "Windows":
            subprocess.run(["start", "", str(path)], shell=True, check=True)
        else:  # Linux and others
            subprocess.run(["xdg-open", str(path)], check=True)
        return True
    except (OSError, subprocess.CalledProcessError) as e:
        print(f"Could not open file: {e}", file=sys.stderr)
        return False


def cmd_graph(args: argparse.Namespace) -> int:
    """Export the dependency graph in DOT or Mermaid format."""
    try:
        graph = _load_graph(args)
        direction = Direction.INCOMING if args.invert else Direction.OUTGOING
        nodes = _selected_nodes(graph, args.package, direction)
        root_id = select_root(graph, args.package) if args.package else graph.root
    except TreeError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    kinds = {DependencyKind.parse(k) for k in args.kind} if args.kind else None
    logger.info("exporting %d of %d package(s)", len(nodes), len(graph))

    if args.no_title:
        title = None
    elif root_id is not None:
        title = f"{root_id.name} {'dependents' if args.invert else 'dependencies'}"
    else:
        title = "Workspace dependencies"

    if args.format == "mermaid":
        output = _generate_mermaid(graph, nodes, kinds, title=title)
    else:  # dot
        output = _generate_dot(graph, nodes, kinds, title=title)

    render_format = getattr(args, "render", None)
    if render_format:
        if args.format == "mermaid":
            print(
                "Error: --render only works with DOT format (not mermaid). "
                "Remove -f mermaid or use mermaid.live for rendering.",
                file=sys.stderr,
            )
            return 1

        if args.output:
            out_path = Path(args.output)
            if out_path.suffix.lower() not in (f".{render_format}", ".dot"):
                out_path = out_path.with_suffix(f".{render_format}")
        else:
            base_name = root_id.name if root_id is not None else "workspace_deps"
            out_path = Path(f"{base_name}.{render_format}")

        print(f"Rendering graph to {out_path}...", file=sys.stderr)
        if not _render_dot(output, out_path, render_format):
            return 1

        print(f"Graph image saved to: {out_path}", file=sys.stderr)

        if getattr(args, "open", False):
            _open_file(out_path)

        return 0

    if args.output:
        try:
            Path(args.output).write_text(output)
        except OSError as e:
            print(f"error: cannot write {args.output}: {e}", file=sys.stderr)
            return 1
        print(f"Graph written to: {args.output}", file=sys.stderr)
    else:
        print(output)

    return 0


def cmd_tui(args: argparse.Namespace) -> int:
    """Launch the interactive TUI."""
    from cratetree.tui.app import DepTreeApp

    app = DepTreeApp(
        root_package=getattr(args, "package", None),
        metadata_file=Path(args.metadata_file) if getattr(args, "metadata_file", None) else None,
        metadata_options=_metadata_options(args) if hasattr(args, "manifest_path") else None,
        no_dev_dependencies=getattr(args, "no_dev_dependencies", False),
    )
    app.run()
    return 0


def _add_metadata_arguments(parser: argparse.ArgumentParser) -> None:
    """Flags that select and shape the `cargo metadata` call."""
    group = parser.add_argument_group("metadata")
    group.add_argument(
        "--manifest-path",
        metavar="PATH",
        help="Path to Cargo.toml",
    )
    group.add_argument(
        "--metadata-file",
        metavar="PATH",
        help="Read saved `cargo metadata --format-version 1` output instead of running cargo",
    )
    group.add_argument(
        "--features",
        metavar="FEATURES",
        help="Space-separated list of features to activate",
    )
    group.add_argument(
        "--all-features",
        action="store_true",
        help="Activate all available features",
    )
    group.add_argument(
        "--no-default-features",
        action="store_true",
        help="Do not activate the `default` feature",
    )
    group.add_argument(
        "--target",
        metavar="TARGET",
        help="Set the target triple (default: host)",
    )
    group.add_argument(
        "--all-targets",
        action="store_true",
        help="Return dependencies for all targets, not just the host",
    )
    group.add_argument(
        "--no-dev-dependencies",
        action="store_true",
        help="Skip dev dependencies",
    )
    group.add_argument("--frozen", action="store_true", help="Require Cargo.lock and cache are up to date")
    group.add_argument("--locked", action="store_true", help="Require Cargo.lock is up to date")
    group.add_argument("--offline", action="store_true", help="Do not access the network")
    group.add_argument(
        "-Z",
        dest="unstable_flags",
        action="append",
        metavar="FLAG",
        help="Unstable (nightly-only) flags to cargo (can be repeated)",
    )
    group.add_argument(
        "--color",
        choices=["auto", "always", "never"],
        help="Coloring of cargo's own output",
    )
    group.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="No output printed to stdout other than the tree",
    )
    group.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Use verbose output (-vv for debug logging)",
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the cratetree CLI."""
    from cratetree import __version__

    parser = argparse.ArgumentParser(
        prog="cratetree",
        description="Display a tree visualization of a Cargo dependency graph.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # cratetree tree
    tree_parser = subparsers.add_parser(
        "tree",
        help="Show the dependency tree",
        description="Display the resolved dependency graph as a tree.",
    )
    tree_parser.add_argument(
        "-p",
        "--package",
        metavar="SPEC",
        help="Package to be used as the root of the tree (name or name:version)",
    )
    tree_parser.add_argument(
        "-i",
        "--invert",
        action="store_true",
        help="Invert the tree direction (show dependents)",
    )
    tree_parser.add_argument(
        "--no-indent",
        action="store_true",
        help="Display the dependencies as a list (rather than a tree)",
    )
    tree_parser.add_argument(
        "--prefix-depth",
        action="store_true",
        help="Display the dependencies as a list prefixed with their depth",
    )
    tree_parser.add_argument(
        "-a",
        "--all",
        action="store_true",
        help="Don't truncate dependencies that have already been displayed",
    )
    tree_parser.add_argument(
        "-d",
        "--duplicates",
        action="store_true",
        help="Show only dependencies which come in multiple versions (implies -i)",
    )
    tree_parser.add_argument(
        "--depth",
        type=_non_negative_int,
        default=None,
        metavar="N",
        help="Maximum tree depth; 0 prints only the root (default: unlimited)",
    )
    tree_parser.add_argument(
        "--charset",
        choices=["utf8", "ascii"],
        default="utf8",
        help="Character set to use in output (default: utf8)",
    )
    tree_parser.add_argument(
        "-f",
        "--format",
        default=DEFAULT_PATTERN,
        metavar="FORMAT",
        help=(
            "Format string used for printing dependencies (default: {p}). Placeholders: "
            + ", ".join(f"{{{k}}} {v}" for k, v in PLACEHOLDERS.items())
        ),
    )
    _add_metadata_arguments(tree_parser)
    tree_parser.set_defaults(func=cmd_tree)

    # cratetree graph
    graph_parser = subparsers.add_parser(
        "graph",
        help="Export the dependency graph (DOT/Mermaid format)",
        description=(
            "Export the dependency graph. Solid edges are normal dependencies, "
            "dotted edges build dependencies, dashed edges dev dependencies."
        ),
    )
    graph_parser.add_argument(
        "-p",
        "--package",
        metavar="SPEC",
        help="Only export what this package reaches (default: whole graph)",
    )
    graph_parser.add_argument(
        "-i",
        "--invert",
        action="store_true",
        help="With -p, export the package's dependents instead",
    )
    graph_parser.add_argument(
        "-k",
        "--kind",
        action="append",
        choices=["normal", "build", "dev"],
        help="Only export edges of this kind (can be repeated)",
    )
    graph_parser.add_argument(
        "-f",
        "--format",
        choices=["dot", "mermaid"],
        default="dot",
        help="Output format: dot (Graphviz) or mermaid (default: dot)",
    )
    graph_parser.add_argument(
        "-o",
        "--output",
        metavar="FILE",
        help="Output file (default: stdout)",
    )
    graph_parser.add_argument(
        "--no-title",
        action="store_true",
        help="Don't include a title in the graph",
    )
    graph_parser.add_argument(
        "--render",
        choices=["png", "svg", "pdf"],
        metavar="FORMAT",
        help="Render to image (png, svg, pdf). Requires Graphviz installed.",
    )
    graph_parser.add_argument(
        "--open",
        action="store_true",
        help="Open the rendered image after creation (use with --render)",
    )
    _add_metadata_arguments(graph_parser)
    graph_parser.set_defaults(func=cmd_graph)

    # cratetree tui (default if no command)
    tui_parser = subparsers.add_parser(
        "tui",
        help="Launch the interactive terminal UI",
        description="Browse the dependency tree interactively.",
    )
    tui_parser.add_argument(
        "package",
        nargs="?",
        help="Optional: start with this package as the root",
    )
    _add_metadata_arguments(tui_parser)
    tui_parser.set_defaults(func=cmd_tui)

    args = parser.parse_args(argv)

    # Default to TUI if no command specified
    if args.command is None:
        return cmd_tui(argparse.Namespace(package=None))

    _configure_logging(args.verbose)
    return args.func(args)


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be a non-negative integer, got {value}")
    return number


if __name__ == "__main__":
    sys.exit(main())
