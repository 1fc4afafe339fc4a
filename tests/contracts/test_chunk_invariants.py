import random

import pytest

from repo_chunker.config import ChunkBudget
from repo_chunker.ingest.planner import ChunkPlanner
from repo_chunker.ingest.tokens import EnhancedEstimator, SimpleEstimator
from repo_chunker.types import Chunk, FilteredUnit, LanguageTag

BUDGETS = [(50, 10), (120, 30), (200, 0), (64, 63)]


def _corpus(seed: int, estimator) -> list[FilteredUnit]:
    rng = random.Random(seed)
    units = []
    for index in range(25):
        lines = [
            " ".join("tok" * rng.randint(1, 3) for _ in range(rng.randint(0, 8))) + "\n"
            for _ in range(rng.randint(1, 60))
        ]
        content = "".join(lines)
        units.append(
            FilteredUnit(
                path=f"src/file_{index:02}.txt",
                language=LanguageTag.PLAIN_TEXT,
                content=content,
                token_estimate=estimator.estimate(content),
            )
        )
    return units


def _plan(
    max_tokens: int, overlap: int, estimator, seed: int = 7
) -> tuple[list[FilteredUnit], list[Chunk]]:
    units = _corpus(seed, estimator)
    planner = ChunkPlanner(ChunkBudget(max_tokens=max_tokens, overlap_tokens=overlap), estimator)
    return units, planner.plan(units)


@pytest.mark.parametrize("estimator", [SimpleEstimator(), EnhancedEstimator()])
@pytest.mark.parametrize("max_tokens,overlap", BUDGETS)
def test_chunks_respect_budget(max_tokens: int, overlap: int, estimator) -> None:
    _, chunks = _plan(max_tokens, overlap, estimator)

    assert chunks
    for chunk in chunks:
        assert chunk.total_tokens == sum(entry.tokens for entry in chunk.entries)
        assert chunk.degraded or chunk.total_tokens <= max_tokens
        assert any(not entry.is_overlap for entry in chunk.entries)


@pytest.mark.parametrize("estimator", [SimpleEstimator(), EnhancedEstimator()])
@pytest.mark.parametrize("max_tokens,overlap", BUDGETS)
def test_every_unit_is_covered_once_in_order(max_tokens: int, overlap: int, estimator) -> None:
    units, chunks = _plan(max_tokens, overlap, estimator)

    primary = [entry for chunk in chunks for entry in chunk.entries if not entry.is_overlap]
    assert [entry.source_path for entry in primary] == sorted(
        entry.source_path for entry in primary
    )
    for unit in units:
        parts = [entry for entry in primary if entry.source_path == unit.path]
        assert "".join(entry.content for entry in parts) == unit.content
        indices = [entry.part_index for entry in parts]
        assert indices == [None] or indices == list(range(len(parts)))


@pytest.mark.parametrize("max_tokens,overlap", [(50, 10), (120, 30), (64, 63)])
def test_overlap_is_minimal_suffix_or_capped(max_tokens: int, overlap: int) -> None:
    _, chunks = _plan(max_tokens, overlap, SimpleEstimator())

    for previous, current in zip(chunks, chunks[1:]):
        carried = [entry for entry in current.entries if entry.is_overlap]
        if previous.degraded or current.degraded:
            assert not carried
            continue
        suffix = previous.entries[len(previous.entries) - len(carried) :] if carried else []
        assert [(e.source_path, e.part_index, e.content) for e in carried] == [
            (e.source_path, e.part_index, e.content) for e in suffix
        ]
        carried_tokens = sum(entry.tokens for entry in carried)
        head = next(entry for entry in current.entries if not entry.is_overlap)
        if carried:
            assert carried_tokens - carried[0].tokens < overlap
        if carried_tokens < overlap:
            older = previous.entries[: len(previous.entries) - len(carried)]
            assert not older or carried_tokens + older[-1].tokens + head.tokens > max_tokens


def test_planning_is_deterministic() -> None:
    first = _plan(80, 20, EnhancedEstimator(), seed=3)[1]
    second = _plan(80, 20, EnhancedEstimator(), seed=3)[1]

    assert first == second
    assert [chunk.index for chunk in first] == list(range(len(first)))
