"""Textual TUI for navigating Cargo dependency trees."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import networkx as nx
from rich.markup import escape
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Vertical
from textual.screen import ModalScreen
from textual.widgets import Footer, Header, Input, LoadingIndicator, Static, Tree
from textual.widgets.tree import TreeNode
from textual.worker import Worker, WorkerState

from cratetree.api import build_tree_graph
from cratetree.core.duplicates import find_duplicates
from cratetree.core.errors import TreeError
from cratetree.core.format import display_package
from cratetree.core.graph import DependencyGraph, Direction, GraphNode
from cratetree.core.metadata import MetadataOptions
from cratetree.core.parser import DependencyKind, PackageId
from cratetree.core.tree import KIND_HEADERS, TRUNCATION_MARKER, select_root

# Welcome banner: CRATETREE (all lines must be same length for proper centering)
WELCOME_BANNER = """\
[bold cyan]
 ██████╗██████╗  █████╗ ████████╗███████╗████████╗██████╗ ███████╗███████╗
██╔════╝██╔══██╗██╔══██╗╚══██╔══╝██╔════╝╚══██╔══╝██╔══██╗██╔════╝██╔════╝
██║     ██████╔╝███████║   ██║   █████╗     ██║   ██████╔╝█████╗  █████╗  
██║     ██╔══██╗██╔══██║   ██║   ██╔══╝     ██║   ██╔══██╗██╔══╝  ██╔══╝  
╚██████╗██║  ██║██║  ██║   ██║   ███████╗   ██║   ██║  ██║███████╗███████╗
 ╚═════╝╚═╝  ╚═╝╚═╝  ╚═╝   ╚═╝   ╚══════╝   ╚═╝   ╚═╝  ╚═╝╚══════╝╚══════╝
[/bold cyan]"""

WELCOME_DESC = """[dim]Navigate and visualize a Cargo workspace's resolved dependency graph.
Follow dependencies or dependents, spot packages that come in several versions.
Search, expand, and explore the full dependency tree interactively.[/]"""

# Limits to avoid huge trees and crashes
MAX_PACKAGES_PER_SECTION = 200
MAX_TREE_DEPTH = 12
MAX_TREE_NODES = 2000
EXPAND_DEPTH_DEFAULT = 2

COLOR_HEADER = "bold magenta"
COLOR_PKG = "white"
COLOR_KIND = "yellow"
COLOR_DUPLICATE = "bold red"
COLOR_STATS = "cyan"
COLOR_PATH = "dim"


def _node_label(node: GraphNode, duplicate_names: set[str] | None = None) -> str:
    """Markup label for one package; duplicated names are highlighted."""
    color = COLOR_DUPLICATE if duplicate_names and node.id.name in duplicate_names else COLOR_PKG
    return f"[{color}]{node.id.name}[/] [dim]v{node.id.version}[/]"


def _node_stats(
    graph: DependencyGraph,
    index: int,
    direction: Direction = Direction.OUTGOING,
) -> tuple[int, int, int]:
    """Return (direct_neighbours, total_reachable, max_depth) for a node."""
    g = graph.graph if direction is Direction.OUTGOING else graph.graph.reverse(copy=False)
    direct = len({n for n in g.successors(index) if n != index})
    lengths = nx.single_source_shortest_path_length(g, index)
    total = len(lengths) - 1
    max_d = max(lengths.values()) if lengths else 0
    return direct, total, max_d


def _kind_counts(graph: DependencyGraph, index: int, direction: Direction) -> dict[DependencyKind, int]:
    """Number of neighbours per dependency kind."""
    return {kind: len(members) for kind, members in graph.children(index, direction).items()}


def _populate_textual_tree(
    tn: TreeNode,
    graph: DependencyGraph,
    index: int,
    *,
    direction: Direction = Direction.OUTGOING,
    duplicate_names: set[str] | None = None,
    depth: int = 0,
    max_depth: int = MAX_TREE_DEPTH,
    max_nodes: int = MAX_TREE_NODES,
    visited: set[int] | None = None,
    node_count: list[int] | None = None,
) -> None:
    """Add children grouped by kind; already shown packages become (*) leaves."""
    if visited is None:
        visited = {index}
    if node_count is None:
        node_count = [0]
    for kind, members in graph.children(index, direction).items():
        if not members:
            continue
        parent = tn
        if kind in KIND_HEADERS:
            parent = tn.add(f"[{COLOR_KIND}]{escape(KIND_HEADERS[kind])}[/]", expand=True)
        for member in members:
            if node_count[0] >= max_nodes:
                parent.add_leaf(f"[dim]… truncated ({max_nodes} nodes max)[/]")
                return
            node_count[0] += 1
            child = graph.node_at(member)
            label = _node_label(child, duplicate_names)
            if member in visited:
                leaf = parent.add_leaf(f"{label}[dim]{TRUNCATION_MARKER}[/]")
                leaf.data = child
                continue
            if depth + 1 >= max_depth:
                leaf = parent.add_leaf(f"{label} [dim]…[/]")
                leaf.data = child
                continue
            visited.add(member)
            child_tn = parent.add(label, expand=False)
            child_tn.data = child
            _populate_textual_tree(
                child_tn,
                graph,
                member,
                direction=direction,
                duplicate_names=duplicate_names,
                depth=depth + 1,
                max_depth=max_depth,
                max_nodes=max_nodes,
                visited=visited,
                node_count=node_count,
            )


def _expand_to_depth(tn: TreeNode, depth: int, current: int = 0) -> None:
    """Expand tree nodes up to given depth (0 = root only)."""
    if current >= depth:
        return
    tn.expand()
    for child in tn.children:
        _expand_to_depth(child, depth, current + 1)


class SearchScreen(ModalScreen[str | None]):
    """Modal to search for packages in the tree. Keyboard-only."""

    BINDINGS = [
        Binding("escape", "cancel", "Cancel", show=True),
    ]

    DEFAULT_CSS = """
    SearchScreen {
        align: center middle;
        padding: 2 4;
    }
    SearchScreen #search_title {
        text-align: center;
        padding-bottom: 1;
    }
    SearchScreen #search_input {
        width: 60;
        margin: 1 0;
    }
    SearchScreen #search_hint {
        text-align: center;
        padding-top: 1;
    }
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._input: Input | None = None

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static(
                "[bold cyan]Search[/]\n\n"
                "Type a package name or partial match to find in the tree.",
                id="search_title",
                markup=True,
            )
            yield Input(
                placeholder="package name...",
                id="search_input",
            )
            yield Static(
                "[dim]Enter[/] = Search  ·  [dim]Escape[/] = Cancel\n"
                "[dim]After search: [bold]n[/bold] = next match, [bold]N[/bold] = previous[/]",
                id="search_hint",
                markup=True,
            )

    def on_mount(self) -> None:
        self._input = self.query_one("#search_input", Input)
        self._input.focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "search_input":
            return
        value = self._input.value.strip() if self._input else ""
        self.dismiss(value if value else None)

    def action_cancel(self) -> None:
        self.dismiss(None)


class DepTreeApp(App[None]):
    """Terminal UI to explore a Cargo dependency graph."""

    TITLE = "cratetree"
    BINDINGS = [
        Binding("enter", "start_main", "Start", show=False),
        Binding("escape", "back", "Back", show=True),
        Binding("b", "back", "Back", show=False),
        Binding("i", "invert", "Invert"),
        Binding("/", "search", "Search"),
        Binding("f", "search", "Search", show=False),
        Binding("n", "next_match", "Next match", show=False),
        Binding("N", "prev_match", "Prev match", show=False),
        Binding("d", "toggle_details", "Details"),
        Binding("q", "quit", "Quit"),
        Binding("r", "refresh", "Refresh"),
        Binding("e", "expand_all", "Expand all"),
        Binding("c", "collapse_all", "Collapse"),
    ]

    def __init__(
        self,
        root_package: str | None = None,
        *,
        metadata_file: Path | None = None,
        metadata_options: MetadataOptions | None = None,
        no_dev_dependencies: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._root_query = root_package
        self._root_id: PackageId | None = None
        self._metadata_file = metadata_file
        self._metadata_options = metadata_options
        self._no_dev_dependencies = no_dev_dependencies
        self._direction = Direction.OUTGOING
        self._main_started = False
        self._search_query: str = ""
        self._search_matches: list[TreeNode] = []
        self._search_index: int = 0
        self._details_visible: bool = True
        # Background loading state
        self._graph: DependencyGraph | None = None
        self._graph_loading: bool = False
        self._graph_error: str | None = None

    DEFAULT_CSS = """
    /* Welcome screen styles */
    #welcome_container {
        align: center middle;
        width: 100%;
        height: 100%;
    }
    #welcome_banner {
        text-align: center;
        content-align: center middle;
        width: 100%;
    }
    #welcome_desc {
        text-align: center;
        padding: 2 4;
    }
    #welcome_hint {
        text-align: center;
        padding-top: 1;
    }
    #welcome_loading {
        text-align: center;
        padding-top: 1;
        display: none;
    }
    #welcome_loading.loading {
        display: block;
    }
    #welcome_loading LoadingIndicator {
        background: transparent;
    }
    /* Main view styles */
    #main_container {
        display: none;
    }
    #nav_hint {
        display: none;
        height: auto;
        padding: 0 1;
        margin-bottom: 1;
        color: $text-muted;
    }
    #details {
        padding: 1 2;
        border: solid $primary;
        height: auto;
        min-height: 8;
    }
    """

    def compose(self) -> ComposeResult:
        yield Header(show_clock=False)
        # Welcome view (initial)
        with Container(id="welcome_container"):
            yield Static(WELCOME_BANNER, id="welcome_banner", markup=True)
            yield Static(WELCOME_DESC, id="welcome_desc", markup=True)
            yield Static(
                "[cyan]Enter[/] to explore  ·  [dim]q[/] to quit",
                id="welcome_hint",
                markup=True,
            )
            # Loading indicator (shown while cargo metadata runs)
            with Container(id="welcome_loading"):
                yield LoadingIndicator()
                yield Static("[dim]Running cargo metadata...[/]", id="loading_text", markup=True)
        # Main view (hidden initially)
        with Container(id="main_container"):
            yield Static(
                "[dim]← Press [bold]Esc[/bold] or [bold]b[/bold] to return to package list[/]",
                id="nav_hint",
            )
            yield Tree("Dependencies", id="dep_tree")
            yield Static(
                "[dim]↑/↓[/] move  ·  [dim]Enter[/]/[dim]Space[/] select  ·  [dim]Esc[/]/[dim]b[/] = Back",
                id="details",
            )
        yield Footer()

    def on_mount(self) -> None:
        self.sub_title = "Dependency Tree Explorer"
        self._start_graph_load()

    def on_key(self, event: Any) -> None:
        """Handle Enter on the welcome screen."""
        if not self._main_started and event.key == "enter":
            event.prevent_default()
            event.stop()
            self.action_start_main()

    def _start_graph_load(self) -> None:
        """Load metadata and build the graph in a background thread."""
        if self._graph is not None or self._graph_loading:
            return
        self._graph_loading = True
        self.query_one("#welcome_loading").add_class("loading")
        self.run_worker(self._load_graph_worker, thread=True)

    def _load_graph_worker(self) -> DependencyGraph:
        return build_tree_graph(
            options=self._metadata_options,
            metadata_file=self._metadata_file,
            no_dev_dependencies=self._no_dev_dependencies,
        )

    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        if event.state == WorkerState.SUCCESS:
            self._graph = event.worker.result
            self._graph_loading = False
            self._graph_error = None
            self._update_loading_status()
        elif event.state == WorkerState.ERROR:
            self._graph_loading = False
            self._graph_error = str(event.worker.error)
            self._update_loading_status()

    def _update_loading_status(self) -> None:
        loading_container = self.query_one("#welcome_loading")
        loading_text = self.query_one("#loading_text", Static)
        if self._graph is not None:
            loading_container.remove_class("loading")
            hint = self.query_one("#welcome_hint", Static)
            hint.update(
                f"[green]✓[/] {len(self._graph)} packages resolved  ·  "
                "[cyan]Enter[/] to explore  ·  [dim]q[/] to quit"
            )
        elif self._graph_error:
            loading_text.update(f"[red]Error: {self._graph_error}[/]")
        if self._main_started:
            self._reload_main_view()

    def action_start_main(self) -> None:
        """Transition from welcome screen to main view."""
        if self._main_started:
            return
        self._main_started = True
        self.query_one("#welcome_container").styles.display = "none"
        self.query_one("#main_container").styles.display = "block"
        self._load_main_view()

    def _reload_main_view(self) -> None:
        tree = self.query_one("#dep_tree", Tree)
        self._clear_tree(tree)
        self._load_main_view()

    def _load_main_view(self) -> None:
        self.query_one("#nav_hint").styles.display = "none"
        tree = self.query_one("#dep_tree", Tree)
        tree.focus()
        if self._graph_loading:
            tree.root.label = f"[{COLOR_HEADER}]Loading...[/]"
            tree.root.add_leaf("[dim]Resolving dependency graph, please wait...[/]")
            self._set_details("[dim]Running cargo metadata in background...[/]")
            return
        if self._graph is None:
            tree.root.label = f"[{COLOR_HEADER}]No graph[/]"
            tree.root.add_leaf("[dim]Error loading metadata[/]")
            self._set_details(f"[red]Error: {self._graph_error or 'metadata not loaded'}[/]")
            return

        root = None
        try:
            if self._root_id is not None and self._root_id in self._graph:
                root = self._root_id
            elif self._root_query or self._graph.root is not None:
                root = select_root(self._graph, self._root_query)
        except TreeError as e:
            self.notify(str(e), severity="error", timeout=5)
        if root is not None:
            self._load_tree(root)
            return
        self._root_id = None
        self._load_package_list()

    def _load_package_list(self) -> None:
        """List duplicated and all packages; selecting one shows its tree."""
        graph = self._graph
        tree = self.query_one("#dep_tree", Tree)
        tree.root.label = f"[{COLOR_HEADER}]Packages[/]"
        duplicates = find_duplicates(graph)
        sections = [
            (f"[{COLOR_DUPLICATE}]Duplicated ({len(duplicates)})[/]", duplicates),
            (f"[{COLOR_PKG}]All packages ({len(graph)})[/]", [node.id for node in graph.nodes()]),
        ]
        for title, ids in sections:
            if not ids:
                continue
            section_node = tree.root.add(title, expand=True)
            for package_id in ids[:MAX_PACKAGES_PER_SECTION]:
                child_tn = section_node.add_leaf(_node_label(self._graph.node(package_id)))
                child_tn.data = package_id
            if len(ids) > MAX_PACKAGES_PER_SECTION:
                section_node.add_leaf(f"[dim]… and {len(ids) - MAX_PACKAGES_PER_SECTION} more[/]")
        tree.root.expand()
        self._set_details(
            f"[{COLOR_HEADER}]Package list[/]\n\n"
            f"Total: [{COLOR_STATS}]{len(graph)}[/] packages  ·  "
            f"Duplicated: [{COLOR_STATS}]{len(duplicates)}[/]\n\n"
            "[dim]↑/↓[/] move  ·  [dim]Enter[/] or [dim]Space[/] on a package = load tree  ·  "
            "[dim]Esc[/]/[dim]b[/] = Back (when viewing a tree)"
        )

    def _clear_tree(self, tree: Tree) -> None:
        while tree.root.children:
            tree.root.children[0].remove()

    def _load_tree(self, root: PackageId) -> None:
        graph = self._graph
        self._root_id = root
        tree = self.query_one("#dep_tree", Tree)
        self._clear_tree(tree)
        node = graph.node(root)
        duplicate_names = {p.name for p in find_duplicates(graph)}
        arrow = "dependents" if self._direction is Direction.INCOMING else "dependencies"
        tree.root.label = f"{_node_label(node, duplicate_names)} [dim]({arrow})[/]"
        tree.root.data = node
        _populate_textual_tree(
            tree.root,
            graph,
            graph.index_of[root],
            direction=self._direction,
            duplicate_names=duplicate_names,
        )
        _expand_to_depth(tree.root, EXPAND_DEPTH_DEFAULT)
        self._set_details(self._format_node(node))
        self.query_one("#nav_hint").styles.display = "block"
        tree.focus()

    def _format_node(self, node: GraphNode) -> str:
        graph = self._graph
        package = node.package
        index = graph.index_of[node.id]
        direct, total, max_depth = _node_stats(graph, index, self._direction)
        deps = _kind_counts(graph, index, Direction.OUTGOING)
        dependents = _kind_counts(graph, index, Direction.INCOMING)
        reached = "n/a" if node.depth is None else str(node.depth)

        lines = [
            f"[{COLOR_HEADER}]Package[/]",
            f"  [{COLOR_PKG}]{escape(display_package(package))}[/]",
            f"  License: {escape(package.license or '(none)')}  ·  "
            f"Repository: {escape(package.repository or '(none)')}",
            "",
            f"[{COLOR_HEADER}]Description[/]",
            f"  {escape(package.description or '(no description)')}",
            "",
            f"[{COLOR_HEADER}]Stats[/]",
            f"  Dependencies:  normal [{COLOR_STATS}]{deps[DependencyKind.NORMAL]}[/]  ·  "
            f"build [{COLOR_STATS}]{deps[DependencyKind.BUILD]}[/]  ·  "
            f"dev [{COLOR_STATS}]{deps[DependencyKind.DEVELOPMENT]}[/]",
            f"  Dependents:    [{COLOR_STATS}]{sum(dependents.values())}[/]"
            + ("  [bold red](reached through several parents)[/]" if node.has_duplicate_path else ""),
            f"  Depth from workspace root:  [{COLOR_STATS}]{reached}[/]",
            f"  Reachable from here:  [{COLOR_STATS}]{total}[/] [dim]({direct} direct, "
            f"{max_depth} levels)[/]",
            "",
            f"[{COLOR_HEADER}]Manifest[/]",
            f"  [{COLOR_PATH}]{escape(str(package.manifest_path or '(n/a)'))}[/]",
        ]
        return "\n".join(lines)

    def _set_details(self, text: str) -> None:
        details = self.query_one("#details", Static)
        details.update(text)

    def on_tree_node_selected(self, event: Tree.NodeSelected) -> None:
        data = event.node.data
        if isinstance(data, GraphNode):
            self._set_details(self._format_node(data))
        elif isinstance(data, PackageId):
            self._load_tree(data)

    def action_back(self) -> None:
        """Return to the package list (only when viewing a tree)."""
        if not self._main_started or self._root_id is None:
            return
        self._root_id = None
        self._root_query = None
        self.query_one("#nav_hint").styles.display = "none"
        tree = self.query_one("#dep_tree", Tree)
        self._clear_tree(tree)
        self._load_package_list()

    def action_invert(self) -> None:
        """Switch between dependencies and dependents of the current root."""
        if self._direction is Direction.OUTGOING:
            self._direction = Direction.INCOMING
        else:
            self._direction = Direction.OUTGOING
        if self._main_started and self._root_id is not None:
            self._load_tree(self._root_id)

    def action_refresh(self) -> None:
        """Re-run cargo metadata and rebuild the view."""
        if not self._main_started or self._graph_loading:
            return
        self._graph = None
        self._graph_error = None
        tree = self.query_one("#dep_tree", Tree)
        self._clear_tree(tree)
        self._start_graph_load()
        self._load_main_view()

    def action_expand_all(self) -> None:
        self.query_one("#dep_tree", Tree).root.expand_all()

    def action_collapse_all(self) -> None:
        tree = self.query_one("#dep_tree", Tree)
        tree.root.collapse_all()
        tree.root.expand()

    def action_search(self) -> None:
        """Open search modal."""
        if not self._main_started:
            return
        self.push_screen(SearchScreen(), self._on_search_done)

    def _on_search_done(self, query: str | None) -> None:
        if not query:
            return
        self._search_query = query.lower()
        self._search_matches = []
        self._search_index = 0

        tree = self.query_one("#dep_tree", Tree)
        self._collect_matches(tree.root, query.lower())

        if not self._search_matches:
            self.notify(f"No matches for '{query}'", severity="warning", timeout=2)
            return

        self.notify(
            f"Found {len(self._search_matches)} match(es) for '{query}'",
            severity="information",
            timeout=2,
        )
        self._goto_match(0)

    def _collect_matches(self, node: TreeNode, query: str) -> None:
        """Recursively collect nodes whose label or package name matches."""
        label = str(node.label).lower()
        data = node.data
        name = ""
        if isinstance(data, GraphNode):
            name = data.id.name.lower()
        elif isinstance(data, PackageId):
            name = data.name.lower()
        if query in label or query in name:
            self._search_matches.append(node)
        for child in node.children:
            self._collect_matches(child, query)

    def _goto_match(self, index: int) -> None:
        """Navigate to and select a specific match."""
        if not self._search_matches:
            return
        self._search_index = index % len(self._search_matches)
        match_node = self._search_matches[self._search_index]

        self._expand_ancestors(match_node)

        tree = self.query_one("#dep_tree", Tree)
        tree.select_node(match_node)
        tree.scroll_to_node(match_node)

        total = len(self._search_matches)
        current = self._search_index + 1
        self.notify(
            f"Match {current}/{total}: {match_node.label}",
            severity="information",
            timeout=2,
        )

    def _expand_ancestors(self, node: TreeNode) -> None:
        """Expand all ancestor nodes to make the target visible."""
        ancestors = []
        parent = node.parent
        while parent is not None:
            ancestors.append(parent)
            parent = parent.parent
        for ancestor in reversed(ancestors):
            ancestor.expand()

    def action_next_match(self) -> None:
        if not self._search_matches:
            self.notify("No active search. Press / to search.", severity="information", timeout=2)
            return
        self._goto_match(self._search_index + 1)

    def action_prev_match(self) -> None:
        if not self._search_matches:
            self.notify("No active search. Press / to search.", severity="information", timeout=2)
            return
        self._goto_match(self._search_index - 1)

    def action_toggle_details(self) -> None:
        """Toggle visibility of the details panel."""
        self._details_visible = not self._details_visible
        details = self.query_one("#details", Static)
        details.styles.display = "block" if self._details_visible else "none"

    def action_quit(self) -> None:
        self.exit()
