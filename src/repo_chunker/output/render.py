"""Chunk renderers for the supported output formats."""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from pathlib import PurePosixPath
from xml.sax.saxutils import quoteattr

from repo_chunker.config import OutputFormat
from repo_chunker.types import Chunk, ChunkEntry

_FENCE_RUN = re.compile(r"`{3,}")

FENCE_LANGUAGES = {
    ".rs": "rust",
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".jsx": "jsx",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".go": "go",
    ".java": "java",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".c": "c",
    ".h": "c",
    ".cc": "cpp",
    ".cpp": "cpp",
    ".cxx": "cpp",
    ".hpp": "cpp",
    ".md": "markdown",
    ".toml": "toml",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".sh": "bash",
}


def fence_language(path: str) -> str:
    return FENCE_LANGUAGES.get(PurePosixPath(path).suffix.lower(), "")


def fence_for(content: str) -> str:
    """Backtick fence one longer than any backtick run inside `content`."""
    longest = max((len(run) for run in _FENCE_RUN.findall(content)), default=2)
    return "`" * max(3, longest + 1)


def cdata(content: str) -> str:
    """CDATA body; `]]>` is split across two sections."""
    return content.replace("]]>", "]]]]><![CDATA[>")


def entry_label(entry: ChunkEntry) -> str:
    label = entry.source_path
    if entry.part_index is not None:
        label += f" (part {entry.part_index + 1})"
    if entry.is_overlap:
        label += " [overlap]"
    return label


class Renderer(ABC):
    """Base renderer interface used by the writer."""

    format: OutputFormat

    @abstractmethod
    def render(self, chunk: Chunk, total_chunks: int) -> str:
        """Serialize one chunk; `total_chunks` is used in headings."""


class MarkdownRenderer(Renderer):
    format = OutputFormat.MARKDOWN

    def render(self, chunk: Chunk, total_chunks: int) -> str:
        lines = [
            f"# Chunk {chunk.index + 1} of {total_chunks}",
            "",
            f"Estimated tokens: {chunk.total_tokens}"
            + (" (over budget: contains an unsplittable line)" if chunk.degraded else ""),
            "",
        ]
        for entry in chunk.entries:
            fence = fence_for(entry.content)
            language = fence_language(entry.source_path)
            lines.extend(
                [
                    f"## {entry_label(entry)}",
                    "",
                    f"{fence}{language}",
                    entry.content.rstrip("\n"),
                    fence,
                    "",
                ]
            )
        return "\n".join(lines)


class XmlRenderer(Renderer):
    format = OutputFormat.XML

    def render(self, chunk: Chunk, total_chunks: int) -> str:
        parts = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            f"<chunk index={quoteattr(str(chunk.index + 1))} total={quoteattr(str(total_chunks))}"
            f" tokens={quoteattr(str(chunk.total_tokens))}"
            f" degraded={quoteattr(str(chunk.degraded).lower())}>",
        ]
        for entry in chunk.entries:
            attrs = f"path={quoteattr(entry.source_path)} tokens={quoteattr(str(entry.tokens))}"
            if entry.part_index is not None:
                attrs += f" part={quoteattr(str(entry.part_index + 1))}"
            if entry.is_overlap:
                attrs += ' overlap="true"'
            parts.append(f"  <file {attrs}><![CDATA[{cdata(entry.content)}]]></file>")
        parts.append("</chunk>")
        return "\n".join(parts) + "\n"


class JsonRenderer(Renderer):
    format = OutputFormat.JSON

    def render(self, chunk: Chunk, total_chunks: int) -> str:
        payload = {
            "index": chunk.index + 1,
            "total": total_chunks,
            "tokens": chunk.total_tokens,
            "degraded": chunk.degraded,
            "files": [
                {
                    "path": entry.source_path,
                    "part": None if entry.part_index is None else entry.part_index + 1,
                    "tokens": entry.tokens,
                    "overlap": entry.is_overlap,
                    "content": entry.content,
                }
                for entry in chunk.entries
            ],
        }
        return json.dumps(payload, ensure_ascii=False, indent=2) + "\n"


class RendererRegistry:
    """Maps output format to renderer implementation."""

    def __init__(self, renderers: list[Renderer] | None = None) -> None:
        self._renderers: dict[OutputFormat, Renderer] = {}
        for renderer in renderers or [MarkdownRenderer(), XmlRenderer(), JsonRenderer()]:
            self.register(renderer)

    def register(self, renderer: Renderer) -> None:
        self._renderers[renderer.format] = renderer

    def get(self, output_format: OutputFormat | str) -> Renderer:
        renderer = self._renderers.get(OutputFormat(output_format))
        if renderer is None:
            raise ValueError(f"No renderer registered for format: {output_format}")
        return renderer
