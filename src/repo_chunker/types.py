"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class LanguageTag(str, Enum):
    """Selects the lexical rules a file is filtered with."""

    RUST = "rust"
    PYTHON = "python"
    JAVASCRIPT_LIKE = "javascript"
    GO = "go"
    JAVA_KOTLIN = "java"
    C_LIKE = "c"
    PLAIN_TEXT = "text"


@dataclass(frozen=True, slots=True)
class ScannedFile:
    """A file discovered by the scanner.

    `raw_bytes` is None for files above the streaming threshold; those are read
    line by line from `location` by the pipeline worker.
    """

    path: str
    location: str
    raw_bytes: bytes | None
    is_binary: bool
    size_bytes: int


@dataclass(frozen=True, slots=True)
class SourceUnit:
    """A classified text file about to be filtered."""

    path: str
    raw_bytes: bytes | None
    language: LanguageTag
    is_binary: bool = False
    location: str | None = None


@dataclass(slots=True)
class FilteredUnit:
    """A file after noise filtering, with the estimate of its content."""

    path: str
    language: LanguageTag
    content: str
    token_estimate: int


@dataclass(slots=True)
class ChunkEntry:
    """A whole file or one line-aligned part of a file inside a chunk."""

    source_path: str
    part_index: int | None
    content: str
    tokens: int
    is_overlap: bool = False


@dataclass(slots=True)
class Chunk:
    """One bounded unit of output text."""

    index: int
    entries: list[ChunkEntry] = field(default_factory=list)
    total_tokens: int = 0
    degraded: bool = False

    @property
    def paths(self) -> list[str]:
        seen: list[str] = []
        for entry in self.entries:
            if entry.source_path not in seen:
                seen.append(entry.source_path)
        return seen
