"""FastAPI entrypoint for filter/estimate/chunk endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from repo_chunker.config import (
    ChunkBudget,
    EstimatorStrategy,
    FilterPolicy,
    OutputConfig,
    OutputFormat,
    PipelineConfig,
    ScanConfig,
    TaskKind,
)
from repo_chunker.errors import ChunkerError
from repo_chunker.filters.engine import NoiseFilter
from repo_chunker.ingest.classifier import LanguageClassifier
from repo_chunker.ingest.pipeline import ChunkPipeline
from repo_chunker.ingest.tokens import get_estimator
from repo_chunker.obs.stats import RunLog
from repo_chunker.output.presets import TASK_PRESETS
from repo_chunker.output.render import entry_label
from repo_chunker.types import LanguageTag


class FilterRequest(BaseModel):
    content: str
    language: LanguageTag | None = None
    path: str | None = None
    policy: FilterPolicy = Field(default_factory=FilterPolicy)
    estimator: EstimatorStrategy = EstimatorStrategy.SIMPLE


class EstimateRequest(BaseModel):
    text: str
    estimator: EstimatorStrategy = EstimatorStrategy.SIMPLE


class ChunkRequest(BaseModel):
    path: str = Field(min_length=1)
    max_tokens: int = Field(default=100_000, ge=1)
    overlap_tokens: int = Field(default=1_000, ge=0)
    policy: FilterPolicy = Field(default_factory=FilterPolicy)
    estimator: EstimatorStrategy = EstimatorStrategy.SIMPLE
    include_globs: list[str] = Field(default_factory=list)
    exclude_globs: list[str] = Field(default_factory=list)
    language_overrides: dict[str, LanguageTag] = Field(default_factory=dict)
    include_content: bool = True
    format: OutputFormat = OutputFormat.MARKDOWN
    task: TaskKind | None = None
    include_rendered: bool = False


app = FastAPI(title="Repo Chunker", version="0.1.0")

_classifier = LanguageClassifier()
_run_log = RunLog()


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "languages": [tag.value for tag in LanguageTag],
        "estimators": [strategy.value for strategy in EstimatorStrategy],
        "run_count": len(_run_log.list_recent(limit=1000)),
    }


@app.post("/filter")
def filter_source(request: FilterRequest) -> dict[str, Any]:
    language = request.language
    if language is None:
        first_line = request.content.split("\n", 1)[0]
        language = _classifier.classify(request.path or "", first_line)

    estimator = get_estimator(request.estimator)
    filtered = NoiseFilter(language, request.policy).filter(request.content)
    return {
        "language": language.value,
        "content": filtered,
        "tokens": estimator.estimate(filtered),
        "original_tokens": estimator.estimate(request.content),
    }


@app.post("/estimate")
def estimate(request: EstimateRequest) -> dict[str, Any]:
    estimator = get_estimator(request.estimator)
    return {"estimator": estimator.name, "tokens": estimator.estimate(request.text)}


@app.post("/chunk")
def chunk(request: ChunkRequest) -> dict[str, Any]:
    try:
        config = PipelineConfig(
            policy=request.policy,
            budget=ChunkBudget(
                max_tokens=request.max_tokens, overlap_tokens=request.overlap_tokens
            ),
            estimator=request.estimator,
            language_overrides=request.language_overrides,
            scan=ScanConfig(
                root_dir=request.path,
                include_globs=request.include_globs,
                exclude_globs=request.exclude_globs,
            ),
            output=OutputConfig(dry_run=True, format=request.format, task=request.task),
        )
        pipeline = ChunkPipeline(config)
        result = pipeline.run()
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (ChunkerError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    _run_log.record(result.summary)
    return {
        "summary": result.summary.to_dict(),
        "chunks": [
            {
                "index": item.index,
                "tokens": item.total_tokens,
                "degraded": item.degraded,
                "entries": [
                    {
                        "path": entry.source_path,
                        "part_index": entry.part_index,
                        "tokens": entry.tokens,
                        "overlap": entry.is_overlap,
                        "label": entry_label(entry),
                        **({"content": entry.content} if request.include_content else {}),
                    }
                    for entry in item.entries
                ],
                **(
                    {"rendered": pipeline.renderer.render(item, len(result.chunks))}
                    if request.include_rendered
                    else {}
                ),
            }
            for item in result.chunks
        ],
    }


@app.get("/tasks")
def tasks() -> list[dict[str, Any]]:
    return [
        {
            "id": preset.id,
            "name": preset.name,
            "description": preset.description,
            "suggested_model": preset.suggested_model,
            "max_tokens_hint": preset.max_tokens_hint,
            "temperature_hint": preset.temperature_hint,
        }
        for preset in TASK_PRESETS.values()
    ]


@app.get("/metrics")
def metrics() -> dict[str, Any]:
    return _run_log.summary()
