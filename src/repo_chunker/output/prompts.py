"""Task-framed chunk renderers.

With a task preset selected, each chunk file becomes a ready-to-send prompt:
generation hints, a file listing, the preset's system prompt and its user
prompt with the chunk's code filled in.
"""

from __future__ import annotations

import json
from pathlib import PurePosixPath
from typing import Any
from xml.sax.saxutils import escape, quoteattr

from repo_chunker.config import CodeBlockStyle, OutputFormat
from repo_chunker.output.presets import TaskPreset
from repo_chunker.output.render import Renderer, cdata, entry_label, fence_for, fence_language
from repo_chunker.output.templates import create_environment
from repo_chunker.types import Chunk, ChunkEntry

MANIFEST_NAMES = frozenset(
    {
        "Cargo.toml",
        "package.json",
        "pyproject.toml",
        "setup.py",
        "setup.cfg",
        "requirements.txt",
        "Pipfile",
        "go.mod",
        "pom.xml",
        "build.gradle",
        "build.gradle.kts",
        "Gemfile",
        "composer.json",
        "CMakeLists.txt",
    }
)


def directory_tree(paths: list[str]) -> str:
    """Indented tree of `paths`, directories suffixed with `/`."""
    lines: list[str] = []
    seen: set[tuple[str, ...]] = set()
    for path in sorted(set(paths)):
        parts = PurePosixPath(path).parts
        for depth in range(len(parts) - 1):
            prefix = parts[: depth + 1]
            if prefix not in seen:
                seen.add(prefix)
                lines.append("  " * depth + parts[depth] + "/")
        lines.append("  " * (len(parts) - 1) + parts[-1])
    return "\n".join(lines)


def code_blocks(entries: list[ChunkEntry], style: CodeBlockStyle) -> str:
    blocks: list[str] = []
    for entry in entries:
        content = entry.content.rstrip("\n")
        if style is CodeBlockStyle.XML:
            blocks.append(
                f"<file path={quoteattr(entry_label(entry))}><![CDATA[{cdata(content)}]]></file>"
            )
        elif style is CodeBlockStyle.INLINE:
            blocks.append(f"{entry_label(entry)}:\n{content}")
        else:
            fence = fence_for(content)
            language = fence_language(entry.source_path)
            blocks.append(f"### {entry_label(entry)}\n\n{fence}{language}\n{content}\n{fence}")
    return "\n\n".join(blocks)


class TaskRenderer(Renderer):
    """Frames every chunk with one task preset, in any output format."""

    def __init__(self, preset: TaskPreset, output_format: OutputFormat) -> None:
        self.format = output_format
        self.preset = preset
        self._user_prompt = create_environment().from_string(preset.user_prompt_template)

    def prompt_variables(self, chunk: Chunk) -> dict[str, Any]:
        paths = chunk.paths
        languages = sorted({fence_language(path) or "text" for path in paths})
        manifests = sorted(path for path in paths if PurePosixPath(path).name in MANIFEST_NAMES)
        return {
            "file_count": len(paths),
            "total_lines": sum(len(entry.content.splitlines()) for entry in chunk.entries),
            "languages": ", ".join(languages) or "none",
            "total_tokens": chunk.total_tokens,
            "directory_structure": directory_tree(paths),
            "dependencies": ", ".join(manifests) or "no manifest in this chunk",
            "code_content": code_blocks(chunk.entries, self.preset.code_block_style),
        }

    def user_prompt(self, chunk: Chunk) -> str:
        return self._user_prompt.render(self.prompt_variables(chunk))

    def render(self, chunk: Chunk, total_chunks: int) -> str:
        if self.format is OutputFormat.XML:
            return self._xml(chunk, total_chunks)
        if self.format is OutputFormat.JSON:
            return self._json(chunk, total_chunks)
        return self._markdown(chunk, total_chunks)

    def _markdown(self, chunk: Chunk, total_chunks: int) -> str:
        preset = self.preset
        lines = [
            f"# {preset.name}: chunk {chunk.index + 1} of {total_chunks}",
            "",
            preset.description,
            "",
        ]
        if preset.include_metadata:
            lines.extend(
                [
                    f"- Suggested model: {preset.suggested_model}",
                    f"- Max tokens: {preset.max_tokens_hint}",
                    f"- Temperature: {preset.temperature_hint}",
                    f"- Estimated tokens: {chunk.total_tokens}"
                    + (" (over budget)" if chunk.degraded else ""),
                    "",
                ]
            )
        if preset.include_structure:
            tree = directory_tree(chunk.paths)
            fence = fence_for(tree)
            lines.extend(["## Files", "", f"{fence}text", tree, fence, ""])
        lines.extend(["## System prompt", "", preset.system_prompt, ""])
        lines.extend(["## Request", "", self.user_prompt(chunk), ""])
        return "\n".join(lines)

    def _xml(self, chunk: Chunk, total_chunks: int) -> str:
        preset = self.preset
        parts = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            f"<prompt task={quoteattr(preset.id)} index={quoteattr(str(chunk.index + 1))}"
            f" total={quoteattr(str(total_chunks))} tokens={quoteattr(str(chunk.total_tokens))}"
            f" degraded={quoteattr(str(chunk.degraded).lower())}>",
        ]
        if preset.include_metadata:
            parts.append(
                f"  <metadata model={quoteattr(preset.suggested_model)}"
                f" max_tokens={quoteattr(str(preset.max_tokens_hint))}"
                f" temperature={quoteattr(str(preset.temperature_hint))}/>"
            )
        if preset.include_structure:
            parts.append("  <structure>")
            parts.extend(f"    <path>{escape(path)}</path>" for path in chunk.paths)
            parts.append("  </structure>")
        parts.append(f"  <system><![CDATA[{cdata(preset.system_prompt)}]]></system>")
        parts.append(f"  <user><![CDATA[{cdata(self.user_prompt(chunk))}]]></user>")
        parts.append("</prompt>")
        return "\n".join(parts) + "\n"

    def _json(self, chunk: Chunk, total_chunks: int) -> str:
        preset = self.preset
        task: dict[str, Any] = {"id": preset.id, "name": preset.name}
        if preset.include_metadata:
            task.update(
                suggested_model=preset.suggested_model,
                max_tokens_hint=preset.max_tokens_hint,
                temperature_hint=preset.temperature_hint,
            )
        payload: dict[str, Any] = {
            "task": task,
            "index": chunk.index + 1,
            "total": total_chunks,
            "tokens": chunk.total_tokens,
            "degraded": chunk.degraded,
        }
        if preset.include_structure:
            payload["structure"] = chunk.paths
        payload["system_prompt"] = preset.system_prompt
        payload["user_prompt"] = self.user_prompt(chunk)
        return json.dumps(payload, ensure_ascii=False, indent=2) + "\n"
