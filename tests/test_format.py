"""Tests for cratetree.core.format module."""

from __future__ import annotations

from pathlib import Path

import pytest
import semver

from cratetree.core.errors import FormatPatternError
from cratetree.core.format import Chunk, Pattern, display_package
from cratetree.core.parser import PackageId, PackageInfo

CRATES_IO = "registry+https://github.com/rust-lang/crates.io-index"


def _info(
    name: str = "serde",
    version: str = "1.0.0",
    source: str | None = CRATES_IO,
    **fields,
) -> PackageInfo:
    package_id = PackageId(name=name, version=semver.Version.parse(version), source=source)
    return PackageInfo(id=package_id, raw_id=f"{name} {version}", **fields)


class TestDisplayPackage:
    """Tests for display_package."""

    def test_crates_io_hides_source(self) -> None:
        assert display_package(_info()) == "serde v1.0.0"

    def test_sparse_crates_io_hides_source(self) -> None:
        assert display_package(_info(source="sparse+https://index.crates.io/")) == "serde v1.0.0"

    def test_git_source_shown(self) -> None:
        info = _info(source="git+https://github.com/serde-rs/serde#abc123")
        assert display_package(info) == "serde v1.0.0 (git+https://github.com/serde-rs/serde#abc123)"

    def test_path_package_shows_directory(self) -> None:
        info = _info(name="app", version="0.1.0", source=None, manifest_path=Path("/ws/app/Cargo.toml"))
        assert display_package(info) == "app v0.1.0 (/ws/app)"

    def test_path_package_without_manifest(self) -> None:
        assert display_package(_info(source=None)) == "serde v1.0.0"

    def test_prerelease_version(self) -> None:
        assert display_package(_info(version="1.0.0-rc.1+build.5")) == "serde v1.0.0-rc.1+build.5"


class TestPatternParse:
    """Tests for Pattern.parse."""

    def test_default(self) -> None:
        assert Pattern.parse("{p}").chunks == [Chunk(argument="p")]

    def test_literal_and_placeholders(self) -> None:
        assert Pattern.parse("{p} [{l}]").chunks == [
            Chunk(argument="p"),
            Chunk(text=" ["),
            Chunk(argument="l"),
            Chunk(text="]"),
        ]

    def test_escaped_braces(self) -> None:
        assert Pattern.parse("{{{p}}}").chunks == [
            Chunk(text="{"),
            Chunk(argument="p"),
            Chunk(text="}"),
        ]

    def test_placeholder_whitespace_is_ignored(self) -> None:
        assert Pattern.parse("{ r }").chunks == [Chunk(argument="r")]

    def test_plain_text(self) -> None:
        assert Pattern.parse("crate").chunks == [Chunk(text="crate")]

    def test_empty(self) -> None:
        assert Pattern.parse("").chunks == []

    def test_unsupported_placeholder(self) -> None:
        with pytest.raises(FormatPatternError, match="unsupported pattern `x`"):
            Pattern.parse("{p} {x}")

    def test_unclosed_brace(self) -> None:
        with pytest.raises(FormatPatternError, match="expected `}`"):
            Pattern.parse("{p} {l")

    def test_stray_closing_brace(self) -> None:
        with pytest.raises(FormatPatternError, match="unexpected `}` at offset 3"):
            Pattern.parse("{p}}")

    def test_empty_placeholder(self) -> None:
        with pytest.raises(FormatPatternError, match="unsupported pattern"):
            Pattern.parse("{}")


class TestPatternDisplay:
    """Tests for Pattern.display."""

    def test_all_placeholders(self) -> None:
        info = _info(
            license="MIT OR Apache-2.0",
            repository="https://github.com/serde-rs/serde",
            description="A serialization framework",
        )
        pattern = Pattern.parse("{p} | {l} | {r} | {d}")
        assert pattern.display(info) == (
            "serde v1.0.0 | MIT OR Apache-2.0 | https://github.com/serde-rs/serde"
            " | A serialization framework"
        )

    def test_missing_fields_render_empty(self) -> None:
        assert Pattern.parse("{p} {l}{r}").display(_info()) == "serde v1.0.0 "

    def test_license_only(self) -> None:
        assert Pattern.parse("{l}").display(_info(license="MIT")) == "MIT"
