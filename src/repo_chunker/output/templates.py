"""Custom Jinja2 output templates.

A template file replaces the built-in renderer of the selected format. It is
validated once, before any chunk is rendered: the file must exist, stay under
`MAX_TEMPLATE_BYTES`, parse, and reference every name in `REQUIRED_VARIABLES`.

Variables available to a template:

- `chunk_index`, `total_chunks` (1-based index), `chunk_files`, `total_tokens`, `degraded`
- `files`: one mapping per entry with `path`, `label`, `part`, `tokens`,
  `overlap`, `lines`, `language` and `content`
- `metadata`: `generated_at` and `format`
- `task`: the selected task preset, or none
- `custom`: user-supplied values from `OutputConfig.template_data`
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any
from xml.sax.saxutils import escape

import jinja2
from jinja2 import meta

from repo_chunker.config import OutputFormat
from repo_chunker.errors import TemplateError
from repo_chunker.output.presets import TaskPreset
from repo_chunker.output.render import Renderer, entry_label, fence_language
from repo_chunker.types import Chunk

logger = logging.getLogger(__name__)

MAX_TEMPLATE_BYTES = 1024 * 1024
REQUIRED_VARIABLES = ("chunk_index", "total_chunks", "files")
OPTIONAL_VARIABLES = ("chunk_files", "total_tokens", "degraded", "metadata", "task", "custom")


def _xml_escape(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    return escape(value, {'"': "&quot;", "'": "&apos;"})


def _json_encode(value: Any, pretty: bool = False) -> str:
    return json.dumps(value, ensure_ascii=False, indent=2 if pretty else None)


def _truncate_lines(value: Any, max: int = 1000) -> Any:
    if not isinstance(value, str):
        return value
    lines = value.splitlines()
    if len(lines) <= max:
        return value
    return "\n".join(lines[:max]) + f"\n... ({len(lines) - max} more lines omitted)"


def create_environment() -> jinja2.Environment:
    """Environment shared by custom templates and task prompts.

    Undefined names fail at render time instead of rendering as empty text.
    """
    env = jinja2.Environment(
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.filters["xml_escape"] = _xml_escape
    env.filters["json_encode"] = _json_encode
    env.filters["truncate_lines"] = _truncate_lines
    env.filters["detect_language"] = fence_language
    return env


def validate_template(path: str | Path, env: jinja2.Environment | None = None) -> str:
    """Check a template file and return its source."""
    path = Path(path)
    name = str(path)
    if not path.exists():
        raise TemplateError(name, "file not found")
    if not path.is_file():
        raise TemplateError(name, "path is not a file")
    size = path.stat().st_size
    if size > MAX_TEMPLATE_BYTES:
        raise TemplateError(
            name, f"file too large: {size} bytes (max: {MAX_TEMPLATE_BYTES} bytes)"
        )
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise TemplateError(name, f"cannot read: {exc}") from exc
    if not source.strip():
        raise TemplateError(name, "template is empty")

    env = env or create_environment()
    try:
        ast = env.parse(source)
    except jinja2.TemplateSyntaxError as exc:
        raise TemplateError(name, f"syntax error on line {exc.lineno}: {exc.message}") from exc

    used = meta.find_undeclared_variables(ast)
    missing = [variable for variable in REQUIRED_VARIABLES if variable not in used]
    if missing:
        raise TemplateError(
            name,
            f"missing required variables: {', '.join(missing)} "
            f"(templates must use {', '.join(REQUIRED_VARIABLES)})",
        )
    for variable in OPTIONAL_VARIABLES:
        if variable not in used:
            logger.debug(f"Template {name} does not use optional variable {variable}")
    return source


def chunk_context(
    chunk: Chunk,
    total_chunks: int,
    output_format: OutputFormat,
    task: TaskPreset | None = None,
    custom: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "chunk_index": chunk.index + 1,
        "total_chunks": total_chunks,
        "chunk_files": len(chunk.paths),
        "total_tokens": chunk.total_tokens,
        "degraded": chunk.degraded,
        "files": [
            {
                "path": entry.source_path,
                "label": entry_label(entry),
                "part": None if entry.part_index is None else entry.part_index + 1,
                "tokens": entry.tokens,
                "overlap": entry.is_overlap,
                "lines": len(entry.content.splitlines()),
                "language": fence_language(entry.source_path),
                "content": entry.content,
            }
            for entry in chunk.entries
        ],
        "metadata": {
            "generated_at": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            "format": output_format.value,
        },
        "task": None if task is None else {"id": task.id, **task.model_dump(mode="json")},
        "custom": dict(custom or {}),
    }


class TemplateRenderer(Renderer):
    """Renders chunks through a user-supplied Jinja2 template."""

    def __init__(
        self,
        source: str,
        output_format: OutputFormat,
        *,
        name: str = "<template>",
        task: TaskPreset | None = None,
        custom: dict[str, Any] | None = None,
    ) -> None:
        self.format = output_format
        self.name = name
        self._task = task
        self._custom = dict(custom or {})
        try:
            self._template = create_environment().from_string(source)
        except jinja2.TemplateSyntaxError as exc:
            raise TemplateError(name, f"syntax error on line {exc.lineno}: {exc.message}") from exc

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        output_format: OutputFormat,
        *,
        task: TaskPreset | None = None,
        custom: dict[str, Any] | None = None,
    ) -> "TemplateRenderer":
        source = validate_template(path)
        logger.info(f"Rendering {output_format.value} chunks with template {path}")
        return cls(source, output_format, name=str(path), task=task, custom=custom)

    def render(self, chunk: Chunk, total_chunks: int) -> str:
        context = chunk_context(chunk, total_chunks, self.format, self._task, self._custom)
        try:
            return self._template.render(context)
        except jinja2.TemplateError as exc:
            raise TemplateError(self.name, f"render failed: {exc}") from exc
