"""Run statistics and stage timing."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from typing import Any, Iterator

from repo_chunker.types import Chunk

logger = logging.getLogger(__name__)

# Chunks filled above this share of the budget are reported.
NEAR_BUDGET_RATIO = 0.9


@dataclass(slots=True)
class FileCounts:
    """Per-file outcomes accumulated while scanning and filtering."""

    total_files: int = 0
    text_files: int = 0
    binary_files: int = 0
    skipped_files: int = 0
    unreadable_files: int = 0
    emptied_files: int = 0
    processed_files: int = 0
    source_tokens: int = 0
    unreadable_paths: list[str] = field(default_factory=list)


@dataclass(slots=True)
class RunSummary:
    total_files: int = 0
    text_files: int = 0
    binary_files: int = 0
    skipped_files: int = 0
    unreadable_files: int = 0
    emptied_files: int = 0
    processed_files: int = 0
    total_chunks: int = 0
    total_tokens: int = 0
    source_tokens: int = 0
    max_chunk_tokens: int = 0
    min_chunk_tokens: int = 0
    avg_tokens_per_chunk: float = 0.0
    degraded_chunks: int = 0
    overlap_entries: int = 0
    near_budget_chunks: int = 0
    empty_input: bool = False
    files_written: int = 0
    filter_ms: float = 0.0
    plan_ms: float = 0.0
    scan_ms: float = 0.0
    write_ms: float = 0.0
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def build_summary(chunks: list[Chunk], counts: FileCounts, max_tokens: int) -> RunSummary:
    """Aggregate chunk statistics with the per-file counters of a run."""
    summary = RunSummary(
        total_files=counts.total_files,
        text_files=counts.text_files,
        binary_files=counts.binary_files,
        skipped_files=counts.skipped_files,
        unreadable_files=counts.unreadable_files,
        emptied_files=counts.emptied_files,
        processed_files=counts.processed_files,
        source_tokens=counts.source_tokens,
        empty_input=counts.processed_files == 0,
    )
    if not chunks:
        return summary

    totals = [chunk.total_tokens for chunk in chunks]
    summary.total_chunks = len(chunks)
    summary.total_tokens = sum(totals)
    summary.max_chunk_tokens = max(totals)
    summary.min_chunk_tokens = min(totals)
    summary.avg_tokens_per_chunk = summary.total_tokens / len(chunks)
    summary.degraded_chunks = sum(1 for chunk in chunks if chunk.degraded)
    summary.overlap_entries = sum(
        1 for chunk in chunks for entry in chunk.entries if entry.is_overlap
    )
    summary.near_budget_chunks = sum(
        1
        for chunk in chunks
        if not chunk.degraded and chunk.total_tokens > max_tokens * NEAR_BUDGET_RATIO
    )
    return summary


class RunLog:
    """In-memory record of pipeline runs for API-level observability."""

    def __init__(self, limit: int = 1000) -> None:
        self._limit = limit
        self._runs: list[RunSummary] = []

    def record(self, summary: RunSummary) -> None:
        self._runs.append(summary)
        del self._runs[: -self._limit]

    def list_recent(self, limit: int = 20) -> list[RunSummary]:
        return self._runs[-limit:]

    def summary(self) -> dict[str, float | int]:
        """Aggregate run metrics for dashboard display."""
        runs = list(self._runs)
        total = len(runs)
        if total == 0:
            return {
                "total_runs": 0,
                "total_chunks": 0,
                "total_tokens": 0,
                "degraded_chunks": 0,
                "empty_runs": 0,
                "avg_duration_ms": 0.0,
                "p95_duration_ms": 0.0,
            }

        durations = sorted(run.duration_ms for run in runs)
        p95_index = max(0, int((len(durations) * 0.95) - 1))
        return {
            "total_runs": total,
            "total_chunks": sum(run.total_chunks for run in runs),
            "total_tokens": sum(run.total_tokens for run in runs),
            "degraded_chunks": sum(run.degraded_chunks for run in runs),
            "empty_runs": sum(1 for run in runs if run.empty_input),
            "avg_duration_ms": sum(durations) / total,
            "p95_duration_ms": durations[p95_index],
        }


class StageClock:
    """Wall-clock milliseconds per pipeline stage, copied onto a summary."""

    def __init__(self) -> None:
        self.stages: dict[str, float] = {}

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = (time.perf_counter() - start) * 1000.0
            self.stages[name] = self.stages.get(name, 0.0) + elapsed
            logger.debug(f"Stage {name} took {elapsed:.1f} ms")

    def apply(self, summary: RunSummary) -> None:
        """Set `<stage>_ms` for every timed stage and the run total."""
        for name, elapsed in self.stages.items():
            setattr(summary, f"{name}_ms", elapsed)
        summary.duration_ms = sum(self.stages.values())
