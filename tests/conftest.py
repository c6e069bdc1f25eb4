"""Shared builders for cargo metadata documents."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable

import pytest

CRATES_IO = "registry+https://github.com/rust-lang/crates.io-index"


def _package(
    name: str,
    version: str = "1.0.0",
    *,
    source: str | None = CRATES_IO,
    **fields: object,
) -> dict:
    raw_id = f"{name} {version} ({source or 'path+file:///ws/' + name})"
    package = {
        "name": name,
        "version": version,
        "id": raw_id,
        "source": source,
        "manifest_path": f"/ws/{name}/Cargo.toml" if source is None else f"/registry/{name}-{version}/Cargo.toml",
        "license": None,
        "repository": None,
        "description": None,
        "authors": [],
        "dependencies": [],
    }
    package.update(fields)
    return package


def _document(
    packages: list[dict],
    deps: dict[str, list[tuple[dict, list[str | None]]]] | None = None,
    root: dict | None = None,
) -> dict:
    """
    Build a metadata document.

    deps maps a package id to (target package, kinds) pairs; each kind is
    None (normal), "build" or "dev".
    """
    deps = deps or {}
    nodes = []
    for package in packages:
        entries = deps.get(package["id"], [])
        nodes.append(
            {
                "id": package["id"],
                "dependencies": [target["id"] for target, _ in entries],
                "deps": [
                    {
                        "name": target["name"],
                        "pkg": target["id"],
                        "dep_kinds": [{"kind": kind, "target": None} for kind in kinds],
                    }
                    for target, kinds in entries
                ],
                "features": [],
            }
        )
    return {
        "packages": packages,
        "workspace_members": [root["id"]] if root else [],
        "resolve": {"nodes": nodes, "root": root["id"] if root else None},
        "target_directory": "/ws/target",
        "version": 1,
        "workspace_root": "/ws",
    }


@pytest.fixture
def make_package() -> Callable[..., dict]:
    return _package


@pytest.fixture
def make_document() -> Callable[..., dict]:
    return _document


@pytest.fixture
def diamond() -> dict:
    """a -> b, a -> c, b -> d, c -> d, rooted at a."""
    a, b, c, d = (_package(n) for n in "abcd")
    return _document(
        [a, b, c, d],
        {
            a["id"]: [(b, [None]), (c, [None])],
            b["id"]: [(d, [None])],
            c["id"]: [(d, [None])],
        },
        root=a,
    )


@pytest.fixture
def duplicated() -> dict:
    """app -> mid, app -> bar; mid -> foo 1.0.0, mid -> foo 2.0.0; bar has no deps."""
    app = _package("app", "0.1.0")
    mid = _package("mid")
    bar = _package("bar")
    foo1 = _package("foo", "1.0.0")
    foo2 = _package("foo", "2.0.0")
    return _document(
        [app, mid, bar, foo1, foo2],
        {
            app["id"]: [(mid, [None]), (bar, [None])],
            mid["id"]: [(foo1, [None]), (foo2, [None])],
        },
        root=app,
    )


@pytest.fixture
def write_metadata(tmp_path: Path) -> Callable[[dict], Path]:
    """Save a document to a JSON file and return its path."""

    def _write(document: dict) -> Path:
        path = tmp_path / "metadata.json"
        path.write_text(json.dumps(document))
        return path

    return _write
