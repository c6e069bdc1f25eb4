"""Obtain the resolved dependency document from `cargo metadata`."""

from __future__ import annotations

import json
import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from cratetree.core.errors import MetadataError

logger = logging.getLogger(__name__)


@dataclass
class MetadataOptions:
    """Flags forwarded to `cargo metadata`."""

    manifest_path: Path | None = None
    features: str | None = None
    all_features: bool = False
    no_default_features: bool = False
    target: str | None = None
    all_targets: bool = False
    frozen: bool = False
    locked: bool = False
    offline: bool = False
    quiet: bool = False
    verbose: int = 0
    color: str | None = None
    unstable_flags: list[str] = field(default_factory=list)


def _tool(env_var: str, default: str) -> str:
    """Binary named by an environment variable, or the default."""
    return os.environ.get(env_var) or default


def _output(command: list[str], job: str) -> str:
    """Run a command to completion and return its stdout as text."""
    logger.debug("running %s", " ".join(command))
    try:
        result = subprocess.run(command, stdout=subprocess.PIPE, stderr=None)
    except OSError as e:
        raise MetadataError(f"error running {job}: {e}") from e
    if result.returncode != 0:
        raise MetadataError(f"{job} returned exit status {result.returncode}")
    try:
        return result.stdout.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MetadataError(f"error parsing {job} output: {e}") from e


def default_target() -> str:
    """Return the host target triple reported by `rustc -Vv`."""
    output = _output([_tool("RUSTC", "rustc"), "-Vv"], "rustc")
    prefix = "host: "
    for line in output.splitlines():
        if line.startswith(prefix):
            return line[len(prefix):].strip()
    raise MetadataError("host missing from rustc output")


def cargo_metadata_command(options: MetadataOptions) -> list[str]:
    """Build the argv for `cargo metadata --format-version 1`."""
    command = [_tool("CARGO", "cargo"), "metadata", "--format-version", "1"]

    if options.quiet:
        command.append("-q")
    if options.features:
        command += ["--features", options.features]
    if options.all_features:
        command.append("--all-features")
    if options.no_default_features:
        command.append("--no-default-features")

    if not options.all_targets:
        command += ["--filter-platform", options.target or default_target()]

    if options.manifest_path is not None:
        command += ["--manifest-path", str(options.manifest_path)]
    command += ["-v"] * options.verbose
    if options.color:
        command += ["--color", options.color]
    if options.frozen:
        command.append("--frozen")
    if options.locked:
        command.append("--locked")
    if options.offline:
        command.append("--offline")
    for flag in options.unstable_flags:
        command += ["-Z", flag]
    return command


def _decode(text: str, origin: str) -> dict:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise MetadataError(f"error parsing {origin}: {e}") from e
    if not isinstance(document, dict):
        raise MetadataError(f"error parsing {origin}: expected a JSON object")
    return document


def run_metadata(options: MetadataOptions | None = None) -> dict:
    """
    Run `cargo metadata` and return the decoded document.

    The call is synchronous with no timeout. cargo's own stderr is passed
    through to the terminal.
    """
    options = options or MetadataOptions()
    output = _output(cargo_metadata_command(options), "cargo metadata")
    document = _decode(output, "cargo metadata output")
    logger.info("loaded metadata for %d package(s)", len(document.get("packages") or []))
    return document


def load_metadata(path: Path) -> dict:
    """Read a metadata document previously saved from `cargo metadata`."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise MetadataError(f"error reading metadata file {path}: {e}") from e
    document = _decode(text, f"metadata file {path}")
    logger.info(
        "loaded metadata for %d package(s) from %s",
        len(document.get("packages") or []),
        path,
    )
    return document
