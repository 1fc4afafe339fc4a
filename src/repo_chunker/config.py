"""Configuration models for the chunking pipeline."""

from __future__ import annotations

import os
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from repo_chunker.types import LanguageTag

DEFAULT_STREAMING_THRESHOLD = 10 * 1024 * 1024


def _default_workers() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


class EstimatorStrategy(str, Enum):
    SIMPLE = "simple"
    ENHANCED = "enhanced"


class OutputFormat(str, Enum):
    MARKDOWN = "markdown"
    XML = "xml"
    JSON = "json"

    @property
    def extension(self) -> str:
        return {"markdown": "md", "xml": "xml", "json": "json"}[self.value]


class TaskKind(str, Enum):
    """LLM task a chunk is framed for; see `repo_chunker.output.presets`."""

    CODE_REVIEW = "code-review"
    DOCUMENTATION = "documentation"
    REFACTORING = "refactoring"
    BUG_ANALYSIS = "bug-analysis"
    SECURITY_AUDIT = "security-audit"
    TEST_GENERATION = "test-generation"
    ARCHITECTURE_REVIEW = "architecture-review"
    PERFORMANCE_ANALYSIS = "performance-analysis"
    MIGRATION_PLAN = "migration-plan"
    API_DESIGN = "api-design"


class CodeBlockStyle(str, Enum):
    MARKDOWN = "markdown"
    XML = "xml"
    INLINE = "inline"


class FilterPolicy(BaseModel):
    """Selects which kinds of noise are removed from source files."""

    model_config = ConfigDict(frozen=True)

    remove_tests: bool = True
    remove_comments: bool = False
    remove_doc_comments: bool = False
    remove_blank_lines: bool = True
    preserve_headers: bool = True
    remove_debug_prints: bool = False

    @classmethod
    def minimal(cls) -> "FilterPolicy":
        """Strip everything that is not code, headers included."""
        return cls(
            remove_tests=True,
            remove_comments=True,
            remove_doc_comments=True,
            remove_blank_lines=True,
            preserve_headers=False,
            remove_debug_prints=True,
        )

    @classmethod
    def preserve_docs(cls) -> "FilterPolicy":
        """Drop ordinary comments and tests but keep API documentation."""
        return cls(remove_comments=True, remove_doc_comments=False)

    @classmethod
    def production(cls) -> "FilterPolicy":
        """Drop tests and debug output, keep every comment."""
        return cls(remove_tests=True, remove_debug_prints=True)

    @classmethod
    def from_preset(cls, name: str) -> "FilterPolicy":
        presets = {
            "default": cls,
            "minimal": cls.minimal,
            "preserve-docs": cls.preserve_docs,
            "production": cls.production,
        }
        try:
            return presets[name]()
        except KeyError as exc:
            raise ValueError(f"Unknown filter preset: {name}") from exc


class ChunkBudget(BaseModel):
    """Token budget per chunk and overlap carried between chunks.

    `overlap_tokens < max_tokens` is enforced by the planner so that a bad
    budget fails with a dedicated error before any file is read.
    """

    model_config = ConfigDict(frozen=True)

    max_tokens: int = Field(default=100_000, ge=1)
    overlap_tokens: int = Field(default=1_000, ge=0)


class ScanConfig(BaseModel):
    """Controls which files the directory walk yields."""

    root_dir: str = "."
    include_globs: list[str] = Field(default_factory=list)
    exclude_globs: list[str] = Field(default_factory=list)
    exclude_dirs: list[str] = Field(default_factory=list)
    respect_gitignore: bool = True
    include_hidden: bool = False


class OutputConfig(BaseModel):
    """Controls how and where chunks are written."""

    output_dir: str = "out"
    pattern: str = "prompt_{index:03}.{ext}"
    format: OutputFormat = OutputFormat.MARKDOWN
    dry_run: bool = False
    write_summary: bool = True
    task: TaskKind | None = None
    template_path: str | None = None
    template_data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("pattern")
    @classmethod
    def _pattern_has_placeholders(cls, value: str) -> str:
        if "{index" not in value or "{ext}" not in value:
            raise ValueError("pattern must contain {index} and {ext} placeholders")
        return value


class PipelineConfig(BaseModel):
    """Run-wide configuration threaded through every pipeline stage."""

    model_config = ConfigDict(frozen=True)

    policy: FilterPolicy = Field(default_factory=FilterPolicy)
    budget: ChunkBudget = Field(default_factory=ChunkBudget)
    estimator: EstimatorStrategy = EstimatorStrategy.SIMPLE
    language_overrides: dict[str, LanguageTag] = Field(default_factory=dict)
    max_workers: int = Field(default_factory=_default_workers, ge=1)
    streaming_threshold_bytes: int = Field(default=DEFAULT_STREAMING_THRESHOLD, ge=1)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @field_validator("language_overrides")
    @classmethod
    def _normalize_extensions(cls, value: dict[str, LanguageTag]) -> dict[str, LanguageTag]:
        return {
            (ext if ext.startswith(".") else f".{ext}").lower(): tag
            for ext, tag in value.items()
        }
