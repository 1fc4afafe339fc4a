"""CLI entry point for repo-chunker."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

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
from repo_chunker.obs.stats import RunSummary
from repo_chunker.output.presets import TASK_PRESETS

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_EMPTY = 2


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", force=True)


def _policy_from_args(args: argparse.Namespace) -> FilterPolicy:
    policy = FilterPolicy.from_preset(args.preset)
    overrides: dict[str, bool] = {}
    if args.keep_tests:
        overrides["remove_tests"] = False
    if args.remove_comments:
        overrides["remove_comments"] = True
    if args.keep_comments:
        overrides["remove_comments"] = False
    if args.remove_doc_comments:
        overrides["remove_doc_comments"] = True
    if args.keep_blank_lines:
        overrides["remove_blank_lines"] = False
    if args.no_headers:
        overrides["preserve_headers"] = False
    if args.remove_debug_prints:
        overrides["remove_debug_prints"] = True
    return policy.model_copy(update=overrides) if overrides else policy


def _template_data(pairs: list[str]) -> dict[str, object]:
    """Parse `KEY=VALUE` pairs; values that are valid JSON are decoded."""
    data: dict[str, object] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Template data must be KEY=VALUE, got {pair!r}")
        try:
            data[key] = json.loads(raw)
        except json.JSONDecodeError:
            data[key] = raw
    return data


def build_config(args: argparse.Namespace) -> PipelineConfig:
    options: dict[str, object] = {
        "policy": _policy_from_args(args),
        "budget": ChunkBudget(max_tokens=args.max_tokens, overlap_tokens=args.overlap),
        "estimator": EstimatorStrategy(args.tokenizer),
        "scan": ScanConfig(
            root_dir=args.dir,
            include_globs=args.include,
            exclude_globs=args.exclude,
            respect_gitignore=not args.no_gitignore,
        ),
        "output": OutputConfig(
            output_dir=args.out,
            pattern=args.pattern,
            format=OutputFormat(args.format),
            dry_run=args.dry_run,
            task=TaskKind(args.task) if args.task else None,
            template_path=args.template,
            template_data=_template_data(args.template_data),
        ),
    }
    if args.workers:
        options["max_workers"] = args.workers
    return PipelineConfig(**options)


def print_summary(summary: RunSummary, *, dry_run: bool) -> None:
    print("Run summary")
    print(f"  Files: {summary.total_files} ({summary.text_files} text, {summary.binary_files} binary)")
    print(
        f"  Processed: {summary.processed_files}"
        f"  skipped tests: {summary.skipped_files}"
        f"  emptied: {summary.emptied_files}"
        f"  unreadable: {summary.unreadable_files}"
    )
    print(f"  Chunks: {summary.total_chunks} ({summary.degraded_chunks} over budget)")
    print(
        f"  Tokens: {summary.total_tokens} total,"
        f" {summary.avg_tokens_per_chunk:.0f} avg,"
        f" {summary.min_chunk_tokens}-{summary.max_chunk_tokens} per chunk"
    )
    if dry_run:
        print("  Dry run: nothing written")
    else:
        print(f"  Files written: {summary.files_written}")
    print(f"  Time: {summary.duration_ms:.1f} ms")


def chunk_command(args: argparse.Namespace) -> int:
    try:
        config = build_config(args)
        pipeline = ChunkPipeline(config)
        result = pipeline.run()
    except (ValidationError, ChunkerError, ValueError, FileNotFoundError) as exc:
        logger.error(str(exc))
        return EXIT_ERROR

    print_summary(result.summary, dry_run=config.output.dry_run)
    if result.summary.empty_input:
        logger.error(f"No processable files found in {config.scan.root_dir}")
        return EXIT_EMPTY
    return EXIT_OK


def filter_command(args: argparse.Namespace) -> int:
    path = Path(args.file)
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.error(f"Cannot read {path}: {exc}")
        return EXIT_ERROR

    try:
        policy = _policy_from_args(args)
    except ValueError as exc:
        logger.error(str(exc))
        return EXIT_ERROR
    first_line = content.split("\n", 1)[0]
    language = LanguageClassifier().classify(path.name, first_line)
    filtered = NoiseFilter(language, policy).filter(content)
    sys.stdout.write(filtered)
    tokens = get_estimator(args.tokenizer).estimate(filtered)
    logger.info(f"{path}: {language.value}, {tokens} tokens after filtering")
    return EXIT_OK


def tasks_command(args: argparse.Namespace) -> int:
    for preset in TASK_PRESETS.values():
        print(f"{preset.id:<22} {preset.name}: {preset.description}")
    return EXIT_OK


def _add_policy_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--preset",
        choices=["default", "minimal", "preserve-docs", "production"],
        default="default",
        help="Filter preset to start from (default: default)",
    )
    parser.add_argument("--keep-tests", action="store_true", help="Do not remove tests")
    parser.add_argument("--remove-comments", action="store_true", help="Strip ordinary comments")
    parser.add_argument("--keep-comments", action="store_true", help="Keep ordinary comments")
    parser.add_argument("--remove-doc-comments", action="store_true", help="Strip doc comments")
    parser.add_argument("--keep-blank-lines", action="store_true", help="Do not collapse blank lines")
    parser.add_argument("--no-headers", action="store_true", help="Do not preserve file headers")
    parser.add_argument(
        "--remove-debug-prints", action="store_true", help="Strip whole debug-print statements"
    )
    parser.add_argument(
        "--tokenizer",
        choices=[strategy.value for strategy in EstimatorStrategy],
        default=EstimatorStrategy.SIMPLE.value,
        help="Token estimator (default: simple)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repo-chunker",
        description="Filter a source tree and split it into token-bounded prompt chunks",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v info, -vv debug")
    subparsers = parser.add_subparsers(dest="command", required=True)

    chunk_parser = subparsers.add_parser("chunk", help="Chunk a directory into prompt files")
    chunk_parser.add_argument("-d", "--dir", default=".", help="Root directory (default: .)")
    chunk_parser.add_argument("-o", "--out", default="out", help="Output directory (default: out)")
    chunk_parser.add_argument(
        "--pattern", default="prompt_{index:03}.{ext}", help="Output filename pattern"
    )
    chunk_parser.add_argument(
        "-f",
        "--format",
        choices=[fmt.value for fmt in OutputFormat],
        default=OutputFormat.MARKDOWN.value,
        help="Output format (default: markdown)",
    )
    chunk_parser.add_argument("--max-tokens", type=int, default=100_000, help="Tokens per chunk")
    chunk_parser.add_argument("--overlap", type=int, default=1_000, help="Overlap tokens")
    chunk_parser.add_argument("--include", action="append", default=[], help="Include glob")
    chunk_parser.add_argument("--exclude", action="append", default=[], help="Exclude glob")
    chunk_parser.add_argument("--no-gitignore", action="store_true", help="Ignore .gitignore")
    chunk_parser.add_argument("--workers", type=int, default=0, help="Worker threads")
    chunk_parser.add_argument("--dry-run", action="store_true", help="Plan without writing")
    chunk_parser.add_argument(
        "--task",
        choices=[kind.value for kind in TaskKind],
        help="Frame every chunk as a prompt for this LLM task",
    )
    chunk_parser.add_argument("--template", help="Jinja2 template replacing the built-in format")
    chunk_parser.add_argument(
        "--template-data",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Value exposed to templates as custom.KEY",
    )
    _add_policy_arguments(chunk_parser)
    chunk_parser.set_defaults(handler=chunk_command)

    filter_parser = subparsers.add_parser("filter", help="Filter one file to stdout")
    filter_parser.add_argument("file", help="Source file path")
    _add_policy_arguments(filter_parser)
    filter_parser.set_defaults(handler=filter_command)

    tasks_parser = subparsers.add_parser("tasks", help="List LLM task presets")
    tasks_parser.set_defaults(handler=tasks_command)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
