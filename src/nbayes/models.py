"""Data models shared by the stores and the classifier."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import NamedTuple


@dataclass
class CategoryRecord:
    """Frequency counters for a single category.

    ``tokens`` only holds tokens with a count of at least 1; use
    :meth:`frequency` to read a count with absent tokens reported as 0.
    """

    tokens: dict[str, int] = field(default_factory=dict)
    total_tokens: int = 0
    examples: int = 0

    def frequency(self, token: str) -> int:
        return self.tokens.get(token, 0)

    def copy(self) -> "CategoryRecord":
        return CategoryRecord(
            tokens=dict(self.tokens),
            total_tokens=self.total_tokens,
            examples=self.examples,
        )

    def to_dict(self) -> dict:
        return {
            "tokens": dict(self.tokens),
            "total_tokens": self.total_tokens,
            "examples": self.examples,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CategoryRecord":
        return cls(
            tokens={str(k): int(v) for k, v in data.get("tokens", {}).items()},
            total_tokens=int(data.get("total_tokens", 0)),
            examples=int(data.get("examples", 0)),
        )


class Snapshot(NamedTuple):
    """Aggregate figures read once per inference call."""

    category_count: int
    vocab_size: float
    total_examples: int


class ProbabilityResult(Mapping):
    """Immutable mapping of category -> normalized score.

    Example::

        result = classifier.classify(["buy", "now"])
        result["spam"]           # 0.58...
        result.best_category()   # "spam"
    """

    __slots__ = ("_scores",)

    def __init__(self, scores: Mapping[str, float]) -> None:
        self._scores: dict[str, float] = dict(scores)

    def __getitem__(self, category: str) -> float:
        return self._scores[category]

    def __iter__(self) -> Iterator[str]:
        return iter(self._scores)

    def __len__(self) -> int:
        return len(self._scores)

    def __repr__(self) -> str:
        return f"ProbabilityResult({self._scores!r})"

    def best_category(self) -> str:
        """Return the category with the highest score.

        Ties are broken by picking the lexicographically smallest category,
        so the answer never depends on store enumeration order.

        Raises:
            ValueError: If the result is empty.
        """
        if not self._scores:
            raise ValueError("Cannot pick a best category from an empty result")
        return min(self._scores, key=lambda cat: (-self._scores[cat], cat))

    def ranked(self) -> list[tuple[str, float]]:
        """Categories sorted by descending score (ties by name)."""
        return sorted(self._scores.items(), key=lambda item: (-item[1], item[0]))

    def to_dict(self) -> dict:
        return {
            "best_category": self.best_category() if self._scores else None,
            "probabilities": {cat: round(score, 6) for cat, score in self.ranked()},
        }
