"""Tests for cratetree.core.graph module."""

from __future__ import annotations

from pathlib import Path

import pytest

from cratetree.core.errors import MalformedInput
from cratetree.core.graph import Direction, build_graph
from cratetree.core.parser import DependencyKind
from cratetree.core.tree import render_tree


def _names(graph, indices: list[int]) -> list[str]:
    return [graph.node_at(i).id.name for i in indices]


class TestBuildGraph:
    """Tests for build_graph."""

    def test_diamond(self, diamond: dict) -> None:
        graph = build_graph(diamond)
        assert len(graph) == 4
        assert graph.root is not None and graph.root.name == "a"
        edges = [(s.name, t.name, k) for s, t, k in graph.edges()]
        assert edges == [
            ("a", "b", DependencyKind.NORMAL),
            ("a", "c", DependencyKind.NORMAL),
            ("b", "d", DependencyKind.NORMAL),
            ("c", "d", DependencyKind.NORMAL),
        ]

    def test_repeated_kinds_collapse(self, make_package, make_document) -> None:
        a, b = make_package("a"), make_package("b")
        document = make_document([a, b], {a["id"]: [(b, [None, None, "build", "build"])]}, root=a)
        graph = build_graph(document)
        kinds = [k for _, _, k in graph.edges()]
        assert kinds == [DependencyKind.NORMAL, DependencyKind.BUILD]

    def test_no_dev_dependencies(self, make_package, make_document) -> None:
        a, b, c = make_package("a"), make_package("b"), make_package("c")
        document = make_document(
            [a, b, c],
            {a["id"]: [(b, [None]), (c, ["dev"])]},
            root=a,
        )
        full = build_graph(document)
        assert "c" in [n.id.name for n in full.nodes()]

        graph = build_graph(document, no_dev_dependencies=True)
        assert [n.id.name for n in graph.nodes()] == ["a", "b"]
        assert all(k is not DependencyKind.DEVELOPMENT for _, _, k in graph.edges())

    def test_dev_and_normal_keeps_normal_edge(self, make_package, make_document) -> None:
        a, b = make_package("a"), make_package("b")
        document = make_document([a, b], {a["id"]: [(b, [None, "dev"])]}, root=a)
        graph = build_graph(document, no_dev_dependencies=True)
        assert [k for _, _, k in graph.edges()] == [DependencyKind.NORMAL]

    def test_prunes_unreachable(self, make_package, make_document) -> None:
        a, b, orphan = make_package("a"), make_package("b"), make_package("orphan")
        document = make_document([a, b, orphan], {a["id"]: [(b, [None])]}, root=a)
        graph = build_graph(document)
        assert [n.id.name for n in graph.nodes()] == ["a", "b"]
        assert all(p.name != "orphan" for p in graph.index_of)

    def test_no_root_keeps_everything(self, make_package, make_document) -> None:
        a, b, orphan = make_package("a"), make_package("b"), make_package("orphan")
        document = make_document([a, b, orphan], {a["id"]: [(b, [None])]})
        graph = build_graph(document)
        assert graph.root is None
        assert len(graph) == 3

    def test_self_loop(self, make_package, make_document) -> None:
        a = make_package("a")
        document = make_document([a], {a["id"]: [(a, [None])]}, root=a)
        graph = build_graph(document)
        assert len(graph) == 1
        assert [(s.name, t.name) for s, t, _ in graph.edges()] == [("a", "a")]
        assert graph.node(graph.root).has_duplicate_path is False

    def test_missing_resolve(self, diamond: dict) -> None:
        diamond["resolve"] = None
        with pytest.raises(MalformedInput, match="no resolve section"):
            build_graph(diamond)

    def test_unknown_package_in_resolve(self, diamond: dict) -> None:
        diamond["resolve"]["nodes"][0]["deps"][0]["pkg"] = "ghost 1.0.0 (registry+x)"
        with pytest.raises(MalformedInput, match="unknown package"):
            build_graph(diamond)

    def test_deps_length_mismatch(self, diamond: dict) -> None:
        diamond["resolve"]["nodes"][0]["deps"].pop()
        with pytest.raises(MalformedInput, match="cargo 1.41"):
            build_graph(diamond)

    def test_missing_deps_field(self, diamond: dict) -> None:
        del diamond["resolve"]["nodes"][0]["deps"]
        with pytest.raises(MalformedInput, match="cargo 1.41"):
            build_graph(diamond)

    def test_empty_dep_kinds(self, diamond: dict) -> None:
        diamond["resolve"]["nodes"][0]["deps"][0]["dep_kinds"] = []
        with pytest.raises(MalformedInput, match="cargo 1.41"):
            build_graph(diamond)

    def test_unknown_kind(self, diamond: dict) -> None:
        diamond["resolve"]["nodes"][0]["deps"][0]["dep_kinds"] = [{"kind": "weird"}]
        with pytest.raises(MalformedInput, match="unknown dependency kind"):
            build_graph(diamond)

    def test_empty_workspace(self) -> None:
        graph = build_graph({"packages": [], "resolve": {"nodes": [], "root": None}})
        assert len(graph) == 0
        assert graph.edges() == []


class TestAnnotations:
    """Tests for depth and duplicate-path bookkeeping."""

    def test_depths(self, diamond: dict) -> None:
        graph = build_graph(diamond)
        depths = {n.id.name: n.depth for n in graph.nodes()}
        assert depths == {"a": 0, "b": 1, "c": 1, "d": 2}

    def test_duplicate_path(self, diamond: dict) -> None:
        graph = build_graph(diamond)
        flagged = [n.id.name for n in graph.nodes() if n.has_duplicate_path]
        assert flagged == ["d"]

    def test_two_kinds_same_parent_is_not_duplicate_path(self, make_package, make_document) -> None:
        a, b = make_package("a"), make_package("b")
        document = make_document([a, b], {a["id"]: [(b, [None, "build"])]}, root=a)
        graph = build_graph(document)
        assert not any(n.has_duplicate_path for n in graph.nodes())

    def test_no_root_has_no_depth(self, make_package, make_document) -> None:
        a = make_package("a")
        graph = build_graph(make_document([a]))
        assert graph.node(next(iter(graph.index_of))).depth is None


class TestChildren:
    """Tests for DependencyGraph.children."""

    def test_groups_in_kind_order(self, make_package, make_document) -> None:
        a = make_package("a")
        z, y, x = make_package("z"), make_package("y"), make_package("x")
        document = make_document(
            [a, z, y, x],
            {a["id"]: [(z, [None]), (x, ["dev"]), (y, ["build"])]},
            root=a,
        )
        graph = build_graph(document)
        groups = graph.children(graph.index_of[graph.root], Direction.OUTGOING)
        assert list(groups) == [
            DependencyKind.NORMAL,
            DependencyKind.BUILD,
            DependencyKind.DEVELOPMENT,
        ]
        assert _names(graph, groups[DependencyKind.NORMAL]) == ["z"]
        assert _names(graph, groups[DependencyKind.BUILD]) == ["y"]
        assert _names(graph, groups[DependencyKind.DEVELOPMENT]) == ["x"]

    def test_sorted_by_identity(self, make_package, make_document) -> None:
        a = make_package("a")
        new, old, other = make_package("foo", "1.10.0"), make_package("foo", "1.9.0"), make_package("bar")
        document = make_document(
            [a, new, old, other],
            {a["id"]: [(new, [None]), (old, [None]), (other, [None])]},
            root=a,
        )
        graph = build_graph(document)
        normal = graph.children(graph.index_of[graph.root], Direction.OUTGOING)[DependencyKind.NORMAL]
        assert [str(graph.node_at(i).id.version) for i in normal] == ["1.0.0", "1.9.0", "1.10.0"]

    def test_incoming(self, diamond: dict) -> None:
        graph = build_graph(diamond)
        d = next(p for p in graph.index_of if p.name == "d")
        parents = graph.children(graph.index_of[d], Direction.INCOMING)[DependencyKind.NORMAL]
        assert _names(graph, parents) == ["b", "c"]

    def test_leaf_has_empty_groups(self, diamond: dict) -> None:
        graph = build_graph(diamond)
        d = next(p for p in graph.index_of if p.name == "d")
        groups = graph.children(graph.index_of[d], Direction.OUTGOING)
        assert all(members == [] for members in groups.values())


class TestDependencyGraph:
    """Tests for direct DependencyGraph manipulation."""

    def test_add_package_is_idempotent(self, diamond: dict) -> None:
        graph = build_graph(diamond)
        node = graph.node(graph.root)
        assert graph.add_package(node.package) == graph.index_of[graph.root]
        assert len(graph) == 4

    def test_add_dependency_twice(self, diamond: dict) -> None:
        graph = build_graph(diamond)
        a = graph.index_of[graph.root]
        b = next(i for p, i in graph.index_of.items() if p.name == "b")
        graph.add_dependency(a, b, DependencyKind.NORMAL)
        assert graph.graph.number_of_edges(a, b) == 1

    def test_contains(self, diamond: dict) -> None:
        graph = build_graph(diamond)
        assert graph.root in graph
        assert "a" not in graph


class TestPackageIdentity:
    """Tests for packages that share a name and version."""

    def _same_named_path_packages(self, make_package, make_document) -> dict:
        app = make_package("app", "0.1.0", source=None)
        a = make_package("a", source=None)
        one = make_package(
            "util",
            "0.1.0",
            source=None,
            id="util 0.1.0 (path+file:///ws/one/util)",
            manifest_path="/ws/one/util/Cargo.toml",
        )
        two = make_package(
            "util",
            "0.1.0",
            source=None,
            id="util 0.1.0 (path+file:///ws/two/util)",
            manifest_path="/ws/two/util/Cargo.toml",
        )
        return make_document(
            [app, a, one, two],
            {app["id"]: [(one, [None]), (a, [None])], a["id"]: [(two, [None])]},
            root=app,
        )

    def test_path_packages_in_different_dirs_stay_distinct(self, make_package, make_document) -> None:
        graph = build_graph(self._same_named_path_packages(make_package, make_document))
        assert len(graph) == 4
        utils = [n for n in graph.nodes() if n.id.name == "util"]
        assert [str(n.package.package_dir) for n in utils] == [
            str(Path("/ws/one/util")),
            str(Path("/ws/two/util")),
        ]
        edges = [(s.name, str(t)) for s, t, _ in graph.edges() if t.name == "util"]
        assert edges == [
            ("a", f"util v0.1.0 ({Path('/ws/two/util')})"),
            ("app", f"util v0.1.0 ({Path('/ws/one/util')})"),
        ]

    def test_path_packages_render_with_own_dirs(self, make_package, make_document) -> None:
        graph = build_graph(self._same_named_path_packages(make_package, make_document))
        lines = list(render_tree(graph, graph.root))
        assert lines == [
            f"app v0.1.0 ({Path('/ws/app')})",
            f"├── a v1.0.0 ({Path('/ws/a')})",
            f"│   └── util v0.1.0 ({Path('/ws/two/util')})",
            f"└── util v0.1.0 ({Path('/ws/one/util')})",
        ]

    def test_build_metadata_keeps_packages_apart(self, make_package, make_document) -> None:
        app = make_package("app")
        plus_a, plus_b = make_package("foo", "1.0.0+a"), make_package("foo", "1.0.0+b")
        document = make_document(
            [app, plus_a, plus_b],
            {app["id"]: [(plus_a, [None]), (plus_b, ["build"])]},
            root=app,
        )
        graph = build_graph(document)
        assert len(graph) == 3
        assert [str(n.id.version) for n in graph.nodes() if n.id.name == "foo"] == ["1.0.0+a", "1.0.0+b"]

    def test_identity_collision_is_rejected(self, make_package, make_document) -> None:
        app = make_package("app")
        first = make_package("foo")
        second = make_package("foo", id="foo 1.0.0 (registry+https://github.com/rust-lang/crates.io-index)#2")
        document = make_document([app, first, second], {app["id"]: [(first, [None]), (second, [None])]}, root=app)
        with pytest.raises(MalformedInput, match="share the identity"):
            build_graph(document)
