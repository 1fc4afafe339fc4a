"""End-to-end pipeline: scan -> classify -> filter -> estimate -> plan -> write."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from repo_chunker.config import PipelineConfig
from repo_chunker.errors import EmptyInputError, UnreadableFileError
from repo_chunker.filters.engine import NoiseFilter, split_lines
from repo_chunker.ingest.classifier import LanguageClassifier, first_line_of
from repo_chunker.ingest.planner import ChunkPlanner
from repo_chunker.ingest.scanner import FileScanner
from repo_chunker.ingest.tokens import get_estimator
from repo_chunker.obs.stats import FileCounts, RunSummary, StageClock, build_summary
from repo_chunker.output.writer import ChunkWriter, build_renderer
from repo_chunker.types import Chunk, FilteredUnit, LanguageTag, ScannedFile, SourceUnit

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Outcome:
    path: str
    status: str
    unit: FilteredUnit | None = None


@dataclass(slots=True)
class PipelineResult:
    chunks: list[Chunk]
    summary: RunSummary
    units: list[FilteredUnit] = field(default_factory=list)
    written: list[Path] = field(default_factory=list)

    def raise_for_empty(self) -> None:
        if self.summary.empty_input:
            raise EmptyInputError("No processable files were found")


class ChunkPipeline:
    """Coordinates the scanner, per-file filtering, the planner and the writer.

    Per-file work runs on a bounded thread pool with no shared state; results
    are sorted by path before planning, so completion order never affects the
    chunks. The planner and the renderer are built in `__init__`, so an
    invalid budget or output template is rejected before any file is touched.
    """

    def __init__(self, config: PipelineConfig | None = None) -> None:
        self.config = config or PipelineConfig()
        self.estimator = get_estimator(self.config.estimator)
        self.planner = ChunkPlanner(self.config.budget, self.estimator)
        self.classifier = LanguageClassifier(self.config.language_overrides)
        self.renderer = build_renderer(self.config.output)
        self._filters = {
            language: NoiseFilter(language, self.config.policy) for language in LanguageTag
        }

    def run(self, root: str | Path | None = None) -> PipelineResult:
        """Scan a directory, plan its chunks and write them unless dry-run."""

        clock = StageClock()
        scan_config = self.config.scan
        if root is not None:
            scan_config = scan_config.model_copy(update={"root_dir": str(root)})
        scanner = FileScanner(
            scan_config,
            streaming_threshold_bytes=self.config.streaming_threshold_bytes,
        )
        with clock.stage("scan"):
            report = scanner.scan()
        result = self.run_files(report.files, unreadable=report.unreadable, clock=clock)

        if not result.summary.empty_input:
            result.written = self.write(result, clock)
        return result

    def run_files(
        self,
        files: list[ScannedFile],
        *,
        unreadable: list[str] | None = None,
        clock: StageClock | None = None,
    ) -> PipelineResult:
        """Filter and plan already-scanned files; nothing is written."""

        counts = FileCounts(total_files=len(files) + len(unreadable or []))
        counts.unreadable_files = len(unreadable or [])
        counts.unreadable_paths = list(unreadable or [])

        clock = clock or StageClock()
        with clock.stage("filter"):
            units = self.prepare(files, counts)
        with clock.stage("plan"):
            chunks = self.planner.plan(units)

        summary = build_summary(chunks, counts, self.config.budget.max_tokens)
        clock.apply(summary)
        if summary.empty_input:
            logger.warning("No processable files after scanning and filtering")
        if summary.near_budget_chunks:
            logger.warning(
                f"{summary.near_budget_chunks} chunk(s) above "
                f"90% of the {self.config.budget.max_tokens}-token budget"
            )
        logger.info(
            f"Planned {summary.total_chunks} chunks from {summary.processed_files} files "
            f"({summary.total_tokens} tokens, {summary.degraded_chunks} degraded)"
        )
        return PipelineResult(chunks=chunks, summary=summary, units=units)

    def prepare(self, files: list[ScannedFile], counts: FileCounts) -> list[FilteredUnit]:
        """Run classify -> filter -> estimate per file and return units sorted by path."""

        text_files = [scanned for scanned in files if not scanned.is_binary]
        counts.binary_files += len(files) - len(text_files)
        counts.text_files += len(text_files)

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
            outcomes = list(pool.map(self._process, text_files))

        units: list[FilteredUnit] = []
        for outcome in outcomes:
            if outcome.status == "ok":
                units.append(outcome.unit)
            elif outcome.status == "skipped":
                counts.skipped_files += 1
            elif outcome.status == "emptied":
                counts.emptied_files += 1
            elif outcome.status == "unreadable":
                counts.unreadable_files += 1
                counts.unreadable_paths.append(outcome.path)

        units.sort(key=lambda unit: unit.path)
        counts.processed_files = len(units)
        counts.source_tokens = sum(unit.token_estimate for unit in units)
        return units

    def _process(self, scanned: ScannedFile) -> _Outcome:
        try:
            first_line = (
                first_line_of(scanned.raw_bytes)
                if scanned.raw_bytes is not None
                else self._read_first_line(scanned)
            )
            language = self.classifier.classify(scanned.path, first_line)
            if self.config.policy.remove_tests and self.classifier.is_test_path(
                scanned.path, language
            ):
                logger.debug(f"Skipping test file {scanned.path}")
                return _Outcome(scanned.path, "skipped")

            unit = self.filter_unit(
                SourceUnit(
                    path=scanned.path,
                    raw_bytes=scanned.raw_bytes,
                    language=language,
                    location=scanned.location,
                )
            )
        except UnreadableFileError as exc:
            logger.warning(str(exc))
            return _Outcome(scanned.path, "unreadable")

        if not unit.content.strip():
            logger.debug(f"{scanned.path} is empty after filtering")
            return _Outcome(scanned.path, "emptied")
        return _Outcome(scanned.path, "ok", unit)

    def filter_unit(self, source: SourceUnit) -> FilteredUnit:
        noise_filter = self._filters[source.language]
        if source.raw_bytes is not None:
            lines = split_lines(source.raw_bytes.decode("utf-8", errors="replace"))
            content = "".join(noise_filter.filter_lines(lines))
        else:
            logger.debug(f"Streaming {source.path}")
            content = "".join(noise_filter.filter_lines(self._stream(source)))
        return FilteredUnit(
            path=source.path,
            language=source.language,
            content=content,
            token_estimate=self.estimator.estimate(content),
        )

    @staticmethod
    def _stream(source: SourceUnit) -> Iterator[str]:
        try:
            with open(source.location, encoding="utf-8", errors="replace", newline="\n") as handle:
                yield from handle
        except OSError as exc:
            raise UnreadableFileError(source.path, exc.strerror or str(exc)) from exc

    @staticmethod
    def _read_first_line(scanned: ScannedFile) -> str:
        try:
            with open(scanned.location, "rb") as handle:
                return first_line_of(handle.read(256))
        except OSError as exc:
            raise UnreadableFileError(scanned.path, exc.strerror or str(exc)) from exc

    def write(self, result: PipelineResult, clock: StageClock) -> list[Path]:
        writer = ChunkWriter(self.config.output, renderer=self.renderer)
        with clock.stage("write"):
            written = writer.write(result.chunks, result.summary)
        clock.apply(result.summary)
        result.summary.files_written = len(written)
        return written
