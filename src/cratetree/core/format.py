"""Format patterns used to render one package per tree line, e.g. "{p} {l}"."""

from __future__ import annotations

from dataclasses import dataclass

from cratetree.core.errors import FormatPatternError
from cratetree.core.parser import PackageInfo

DEFAULT_PATTERN = "{p}"

# Placeholder -> meaning; p/l/r/d are the only names a pattern may use.
PLACEHOLDERS = {
    "p": "package name, version, and source",
    "l": "license",
    "r": "repository URL",
    "d": "description",
}


@dataclass(frozen=True)
class Chunk:
    """Literal text (argument is None) or one placeholder."""

    text: str = ""
    argument: str | None = None


def _tokenize(pattern: str) -> list[Chunk]:
    chunks: list[Chunk] = []
    text: list[str] = []
    i = 0
    while i < len(pattern):
        c = pattern[i]
        if c == "{":
            if pattern.startswith("{{", i):
                text.append("{")
                i += 2
                continue
            end = pattern.find("}", i + 1)
            if end == -1:
                raise FormatPatternError(f"expected `}}` to close `{{` at offset {i}")
            if text:
                chunks.append(Chunk(text="".join(text)))
                text = []
            chunks.append(Chunk(argument=pattern[i + 1:end].strip()))
            i = end + 1
        elif c == "}":
            if not pattern.startswith("}}", i):
                raise FormatPatternError(f"unexpected `}}` at offset {i}")
            text.append("}")
            i += 2
        else:
            text.append(c)
            i += 1
    if text:
        chunks.append(Chunk(text="".join(text)))
    return chunks


def display_package(package: PackageInfo) -> str:
    """`name vX.Y.Z`, followed by the source unless it is crates.io."""
    out = f"{package.name} v{package.version}"
    if package.source is None:
        if package.package_dir is not None:
            out += f" ({package.package_dir})"
    elif not package.id.is_crates_io:
        out += f" ({package.source})"
    return out


class Pattern:
    """A parsed format pattern. Parse errors surface before any output."""

    def __init__(self, chunks: list[Chunk]) -> None:
        self.chunks = chunks

    @classmethod
    def parse(cls, pattern: str) -> Pattern:
        chunks = _tokenize(pattern)
        for chunk in chunks:
            if chunk.argument is not None and chunk.argument not in PLACEHOLDERS:
                raise FormatPatternError(f"unsupported pattern `{chunk.argument}`")
        return cls(chunks)

    def display(self, package: PackageInfo) -> str:
        parts = []
        for chunk in self.chunks:
            if chunk.argument is None:
                parts.append(chunk.text)
            elif chunk.argument == "p":
                parts.append(display_package(package))
            elif chunk.argument == "l":
                parts.append(package.license or "")
            elif chunk.argument == "r":
                parts.append(package.repository or "")
            elif chunk.argument == "d":
                parts.append(package.description or "")
        return "".join(parts)
