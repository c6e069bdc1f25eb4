"""Find packages that appear in the graph in more than one version or source."""

from __future__ import annotations

from collections import defaultdict

from cratetree.core.graph import DependencyGraph
from cratetree.core.parser import PackageId


def find_duplicates(graph: DependencyGraph) -> list[PackageId]:
    """
    Return every identity whose name is shared with another identity.

    Grouping is by name only; version and source are what differ. The
    result is sorted by full identity so output is stable across runs.
    """
    by_name: dict[str, list[PackageId]] = defaultdict(list)
    for package_id in graph.index_of:
        by_name[package_id.name].append(package_id)

    duplicates: list[PackageId] = []
    for ids in by_name.values():
        if len(ids) > 1:
            duplicates.extend(ids)
    return sorted(duplicates)
