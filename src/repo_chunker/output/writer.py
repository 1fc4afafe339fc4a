"""Atomic chunk writer."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from repo_chunker.config import OutputConfig
from repo_chunker.errors import OutputError
from repo_chunker.obs.stats import RunSummary
from repo_chunker.output.presets import get_task_preset
from repo_chunker.output.prompts import TaskRenderer
from repo_chunker.output.render import Renderer, RendererRegistry, entry_label
from repo_chunker.output.templates import TemplateRenderer
from repo_chunker.types import Chunk

logger = logging.getLogger(__name__)

SUMMARY_FILENAME = "summary.json"


def build_renderer(config: OutputConfig, registry: RendererRegistry | None = None) -> Renderer:
    """Pick the renderer for `config`: custom template, task preset, then built-in format.

    A custom template is validated here, so a bad one fails before any file
    is read.
    """
    task = get_task_preset(config.task) if config.task is not None else None
    if config.template_path:
        return TemplateRenderer.from_file(
            config.template_path, config.format, task=task, custom=config.template_data
        )
    if task is not None:
        return TaskRenderer(task, config.format)
    return (registry or RendererRegistry()).get(config.format)


class ChunkWriter:
    """Writes rendered chunks to `output_dir`.

    Each file is written to a temporary file in the same directory, synced and
    then moved into place with `os.replace`, so a reader never sees a partial
    chunk. File indices in names are 1-based.
    """

    def __init__(
        self,
        config: OutputConfig | None = None,
        registry: RendererRegistry | None = None,
        renderer: Renderer | None = None,
    ) -> None:
        self.config = config or OutputConfig()
        self.output_dir = Path(self.config.output_dir)
        self._renderer = renderer or build_renderer(self.config, registry)

    def filename(self, chunk: Chunk) -> str:
        try:
            return self.config.pattern.format(
                index=chunk.index + 1, ext=self.config.format.extension
            )
        except (KeyError, IndexError, ValueError) as exc:
            raise OutputError(f"Invalid output pattern {self.config.pattern!r}: {exc}") from exc

    def render(self, chunk: Chunk, total_chunks: int) -> str:
        return self._renderer.render(chunk, total_chunks)

    def write(self, chunks: list[Chunk], summary: RunSummary | None = None) -> list[Path]:
        """Write every chunk (and the summary) and return the written paths.

        In dry-run mode nothing touches the disk and an empty list is returned.
        """

        names = [self.filename(chunk) for chunk in chunks]
        if self.config.dry_run:
            for chunk, name in zip(chunks, names):
                logger.info(f"[dry-run] {name}: {chunk.total_tokens} tokens")
            return []

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputError(f"Cannot create output directory {self.output_dir}: {exc}") from exc

        written: list[Path] = []
        for chunk, name in zip(chunks, names):
            written.append(self._atomic_write(name, self.render(chunk, len(chunks))))
        if self.config.write_summary and summary is not None:
            written.append(
                self._atomic_write(
                    SUMMARY_FILENAME,
                    json.dumps(self.summary_payload(chunks, names, summary), indent=2) + "\n",
                )
            )
        logger.info(f"Wrote {len(written)} files to {self.output_dir}")
        return written

    @staticmethod
    def summary_payload(
        chunks: list[Chunk], names: list[str], summary: RunSummary
    ) -> dict[str, Any]:
        return {
            "summary": summary.to_dict(),
            "chunks": [
                {
                    "index": chunk.index + 1,
                    "file": name,
                    "tokens": chunk.total_tokens,
                    "degraded": chunk.degraded,
                    "entries": [entry_label(entry) for entry in chunk.entries],
                }
                for chunk, name in zip(chunks, names)
            ],
        }

    def _atomic_write(self, name: str, content: str) -> Path:
        target = self.output_dir / name
        target.parent.mkdir(parents=True, exist_ok=True)
        handle = tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=target.parent,
            prefix=f".{target.name}.",
            suffix=".tmp",
            delete=False,
        )
        try:
            with handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(handle.name, target)
        except OSError as exc:
            Path(handle.name).unlink(missing_ok=True)
            raise OutputError(f"Cannot write {target}: {exc}") from exc
        return target
