"""Greedy chunk planning with suffix overlap."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Iterator

from repo_chunker.config import ChunkBudget
from repo_chunker.errors import InvalidBudgetError
from repo_chunker.filters.engine import split_lines
from repo_chunker.ingest.tokens import SimpleEstimator, TokenEstimator
from repo_chunker.types import Chunk, ChunkEntry, FilteredUnit

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Piece:
    path: str
    part_index: int | None
    content: str
    tokens: int
    degraded: bool = False


@dataclass(slots=True)
class _OpenChunk:
    entries: list[ChunkEntry] = field(default_factory=list)
    total: int = 0


class ChunkPlanner:
    """Packs filtered files into budget-bounded chunks.

    Design notes:
    1. Whole files first.
       Units arrive sorted by path. A unit that fits the open chunk is appended
       as one entry; otherwise the open chunk is closed and a new one is started.

    2. Overlap carry-over.
       A new chunk is seeded with the smallest trailing run of entries of the
       chunk just closed whose tokens reach `overlap_tokens`. If the seed plus
       the unit being placed would not fit, the oldest seeded entries are
       dropped until it does, possibly leaving no overlap at all. Seeded
       entries are marked `is_overlap`.

    3. Oversized files.
       A unit above `max_tokens` is cut on line boundaries. Per-line estimates
       give the minimum number of parts, and cuts are balanced around
       `total / parts` so the parts come out roughly even. Every part is
       re-estimated from its own text before placement.

    4. Unsplittable lines.
       A single line above `max_tokens` becomes a chunk of its own flagged
       `degraded`. Nothing is carried into or out of it.

    Planning is a single sequential pass, so the same units and budget always
    produce the same chunks.
    """

    def __init__(
        self,
        budget: ChunkBudget | None = None,
        estimator: TokenEstimator | None = None,
    ) -> None:
        self.budget = budget or ChunkBudget()
        if self.budget.overlap_tokens >= self.budget.max_tokens:
            raise InvalidBudgetError(self.budget.max_tokens, self.budget.overlap_tokens)
        self.estimator = estimator or SimpleEstimator()

    def plan(self, units: Iterable[FilteredUnit]) -> list[Chunk]:
        chunks: list[Chunk] = []
        current = _OpenChunk()
        for unit in units:
            if not unit.content:
                continue
            for piece in self._pieces(unit):
                current = self._place(chunks, current, piece)
        self._close(chunks, current)
        return chunks

    def _place(self, chunks: list[Chunk], current: _OpenChunk, piece: _Piece) -> _OpenChunk:
        max_tokens = self.budget.max_tokens
        entry = ChunkEntry(
            source_path=piece.path,
            part_index=piece.part_index,
            content=piece.content,
            tokens=piece.tokens,
        )

        if piece.degraded:
            self._close(chunks, current)
            chunks.append(
                Chunk(index=len(chunks), entries=[entry], total_tokens=piece.tokens, degraded=True)
            )
            logger.warning(
                f"Chunk {len(chunks) - 1} exceeds the budget: a single line of "
                f"{piece.path} is {piece.tokens} tokens (max {max_tokens})"
            )
            return _OpenChunk()

        if current.entries and current.total + piece.tokens > max_tokens:
            closed = self._close(chunks, current)
            current = self._overlap_seed(closed.entries, headroom=max_tokens - piece.tokens)

        current.entries.append(entry)
        current.total += piece.tokens
        return current

    def _overlap_seed(self, entries: list[ChunkEntry], *, headroom: int) -> _OpenChunk:
        wanted = self.budget.overlap_tokens
        if wanted == 0:
            return _OpenChunk()

        seed: list[ChunkEntry] = []
        carried = 0
        for entry in reversed(entries):
            seed.insert(0, entry)
            carried += entry.tokens
            if carried >= wanted:
                break

        while seed and carried > headroom:
            carried -= seed.pop(0).tokens
        if carried < wanted:
            logger.debug(f"Overlap capped at {carried} tokens (wanted {wanted})")

        return _OpenChunk(
            entries=[replace(entry, is_overlap=True) for entry in seed],
            total=carried,
        )

    @staticmethod
    def _close(chunks: list[Chunk], current: _OpenChunk) -> Chunk | None:
        if not current.entries:
            return None
        chunk = Chunk(
            index=len(chunks),
            entries=list(current.entries),
            total_tokens=current.total,
        )
        chunks.append(chunk)
        return chunk

    def _pieces(self, unit: FilteredUnit) -> Iterator[_Piece]:
        if unit.token_estimate <= self.budget.max_tokens:
            yield _Piece(unit.path, None, unit.content, unit.token_estimate)
            return

        lines = list(split_lines(unit.content))
        logger.debug(
            f"Splitting {unit.path}: {unit.token_estimate} tokens over {len(lines)} lines"
        )
        for index, (text, degraded) in enumerate(self._split_lines(lines)):
            yield _Piece(unit.path, index, text, self.estimator.estimate(text), degraded)

    def _split_lines(self, lines: list[str]) -> list[tuple[str, bool]]:
        max_tokens = self.budget.max_tokens
        weights = [self.estimator.estimate(line) for line in lines]
        parts: list[tuple[str, bool]] = []
        stretch: list[int] = []
        for index, weight in enumerate(weights):
            if weight > max_tokens:
                parts.extend(self._balanced(lines, weights, stretch))
                parts.append((lines[index], True))
                stretch = []
            else:
                stretch.append(index)
        parts.extend(self._balanced(lines, weights, stretch))
        return parts

    def _balanced(
        self, lines: list[str], weights: list[int], stretch: list[int]
    ) -> list[tuple[str, bool]]:
        if not stretch:
            return []
        max_tokens = self.budget.max_tokens

        count = 1
        acc = 0
        for index in stretch:
            if acc and acc + weights[index] > max_tokens:
                count += 1
                acc = 0
            acc += weights[index]
        target = -(-sum(weights[index] for index in stretch) // count)

        groups: list[list[int]] = []
        current: list[int] = []
        acc = 0
        for index in stretch:
            weight = weights[index]
            if current and (acc + weight > max_tokens or acc >= target):
                groups.append(current)
                current = []
                acc = 0
            current.append(index)
            acc += weight
        if current:
            groups.append(current)

        parts: list[tuple[str, bool]] = []
        for group in groups:
            parts.extend(self._fit("".join(lines[index] for index in group), group, lines))
        return parts

    def _fit(self, text: str, group: list[int], lines: list[str]) -> list[tuple[str, bool]]:
        # Per-line sums bound the built-in estimators; a custom estimator may
        # still overshoot on the joined text, so halve until every part fits.
        if len(group) == 1 or self.estimator.estimate(text) <= self.budget.max_tokens:
            return [(text, False)]
        middle = len(group) // 2
        head, tail = group[:middle], group[middle:]
        return self._fit(
            "".join(lines[index] for index in head), head, lines
        ) + self._fit("".join(lines[index] for index in tail), tail, lines)
