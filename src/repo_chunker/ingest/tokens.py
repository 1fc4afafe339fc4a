"""Token estimation strategies.

Both estimators are deterministic and never decrease when text is appended,
which the planner relies on when it sums per-line estimates to place cuts.
"""

from __future__ import annotations

import re
from typing import Protocol, runtime_checkable

from repo_chunker.config import EstimatorStrategy

_PUNCT_RUN = re.compile(r"[^\w\s]+", flags=re.UNICODE)


@runtime_checkable
class TokenEstimator(Protocol):
    name: str

    def estimate(self, text: str) -> int:
        """Return the estimated token count of `text`."""
        ...


class SimpleEstimator:
    """Four characters per token, rounded up."""

    name = "simple"

    def estimate(self, text: str) -> int:
        return (len(text) + 3) // 4

    def estimate_batch(self, texts: list[str]) -> list[int]:
        return [self.estimate(text) for text in texts]


class EnhancedEstimator:
    """Weighted word and punctuation-run count.

    `ceil(words * 1.3 + punctuation_runs * 0.5)`, computed in integer tenths so
    the result does not drift with float rounding.
    """

    name = "enhanced"

    def estimate(self, text: str) -> int:
        if not text:
            return 0
        words = len(text.split())
        punct_runs = len(_PUNCT_RUN.findall(text))
        return (words * 13 + punct_runs * 5 + 9) // 10

    def estimate_batch(self, texts: list[str]) -> list[int]:
        return [self.estimate(text) for text in texts]


def get_estimator(strategy: EstimatorStrategy | str) -> TokenEstimator:
    strategy = EstimatorStrategy(strategy)
    if strategy is EstimatorStrategy.ENHANCED:
        return EnhancedEstimator()
    return SimpleEstimator()


def estimate(text: str, strategy: EstimatorStrategy | str = EstimatorStrategy.SIMPLE) -> int:
    return get_estimator(strategy).estimate(text)
