"""Turning raw per-category log scores into a probability-like mapping.

The default :class:`RatioNormalizer` reproduces the historical ratio
scheme exactly; :class:`SoftmaxNormalizer` is the textbook log-sum-exp
transform, available for callers that opt in. Both live behind
:class:`Normalizer` so the classifier does not care which one is used.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Mapping

from .errors import DegenerateNormalizationError

logger = logging.getLogger(__name__)


class Normalizer(ABC):
    """Strategy mapping raw scores to values that sum to 1."""

    @abstractmethod
    def normalize(self, scores: Mapping[str, float]) -> dict[str, float]:
        """Normalize raw scores.

        Args:
            scores: Category -> raw score (log-prior plus log-likelihoods).

        Returns:
            Category -> normalized score, same keys as ``scores``.

        Raises:
            DegenerateNormalizationError: If the scores cannot be normalized.
        """
        ...

    def __call__(self, scores: Mapping[str, float]) -> dict[str, float]:
        return self.normalize(scores)


class RatioNormalizer(Normalizer):
    """Ratio normalization over raw log scores.

    ::

        normalizer      = sum(scores)
        intermediate[c] = normalizer / scores[c]
        final[c]        = intermediate[c] / sum(intermediate)

    With all scores negative, a score closer to zero gets the larger share.
    This is not a softmax: scores of mixed sign can reorder categories.
    """

    def normalize(self, scores: Mapping[str, float]) -> dict[str, float]:
        for category, score in scores.items():
            if score == 0 or not math.isfinite(score):
                logger.warning("Cannot normalize score %r for category %r", score, category)
                raise DegenerateNormalizationError(
                    f"Raw score for category {category!r} is {score!r}"
                )

        normalizer = sum(scores.values())
        intermediate = {category: normalizer / score for category, score in scores.items()}
        renormalizer = sum(intermediate.values())
        if renormalizer == 0 or not math.isfinite(renormalizer):
            logger.warning("Renormalizer is %r for scores %r", renormalizer, dict(scores))
            raise DegenerateNormalizationError(f"Renormalizer is {renormalizer!r}")

        return {category: value / renormalizer for category, value in intermediate.items()}


class SoftmaxNormalizer(Normalizer):
    """Log-sum-exp normalization (posterior probabilities)."""

    def normalize(self, scores: Mapping[str, float]) -> dict[str, float]:
        if not scores:
            return {}
        if any(math.isnan(s) for s in scores.values()):
            raise DegenerateNormalizationError("Raw scores contain NaN")
        max_score = max(scores.values())
        if not math.isfinite(max_score):
            raise DegenerateNormalizationError(f"Maximum raw score is {max_score!r}")
        exp_scores = {cat: math.exp(s - max_score) for cat, s in scores.items()}
        total = sum(exp_scores.values())
        return {cat: score / total for cat, score in exp_scores.items()}
