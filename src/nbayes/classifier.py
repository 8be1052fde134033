"""Naive Bayes classifier over pre-tokenized input.

Training accumulates per-category token counts in a key-value store;
classification turns those counts into smoothed log-likelihoods, adds a
log-prior per category and normalizes the result.

Example::

    clf = Classifier()
    clf.train(["buy", "now"], "spam")
    clf.train(["meeting", "today"], "ham")

    result = clf.classify(["buy"])
    result.best_category()   # "spam"
    print(clf.category_stats())

Tokenization is the caller's job: every method takes a sequence of
already-split tokens.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from typing import Optional

from .config import ClassifierConfig
from .data import CategoryStore
from .errors import InsufficientTrainingDataError, InvalidThresholdError
from .models import ProbabilityResult
from .normalization import Normalizer, RatioNormalizer
from .stores import KeyValueStore, MemoryStore
from .vocab import Vocabulary

logger = logging.getLogger(__name__)


class Classifier:
    """Multinomial (or binarized) Naive Bayes with additive smoothing.

    The classifier does no locking. When several threads or processes
    share one store, serialize writers outside the classifier.

    Args:
        store: Backing key-value store. Defaults to a fresh
            :class:`~nbayes.stores.MemoryStore`.
        config: Classifier settings. Defaults to ``ClassifierConfig()``.
        normalizer: Score normalization strategy. Defaults to
            :class:`~nbayes.normalization.RatioNormalizer`.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        config: Optional[ClassifierConfig] = None,
        normalizer: Optional[Normalizer] = None,
    ) -> None:
        self.store = store if store is not None else MemoryStore()
        self.config = config or ClassifierConfig()
        self.normalizer = normalizer or RatioNormalizer()
        self.vocab = Vocabulary(self.store, log_size=self.config.log_vocab)
        self.data = CategoryStore(self.store)

    @property
    def categories(self) -> list[str]:
        """Known categories, in store enumeration order."""
        return self.data.categories()

    def _prepare(self, tokens: Iterable[str]) -> list[str]:
        if isinstance(tokens, str):
            raise TypeError("tokens must be a sequence of tokens, not a single string")
        tokens = list(tokens)
        if self.config.binarize:
            tokens = list(dict.fromkeys(tokens))
        return tokens

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train(self, tokens: Iterable[str], category: str) -> None:
        """Add every token (each unique token when binarized) to ``category``."""
        tokens = self._prepare(tokens)
        with self.store.batch():
            for token in tokens:
                self.data.add_token_to_category(category, token)
        logger.debug("Trained %d tokens into %r", len(tokens), category)

    def untrain(self, tokens: Iterable[str], category: str) -> None:
        """Reverse :meth:`train` for tokens actually trained in ``category``.

        Each untrained token is also dropped from the global vocabulary,
        even when other categories still hold it. Tokens not trained in
        ``category`` are skipped silently.
        """
        tokens = self._prepare(tokens)
        removed = 0
        with self.store.batch():
            for token in tokens:
                if self.data.token_trained(token, category):
                    self.vocab.remove(token)
                    self.data.remove_token_from_category(category, token)
                    removed += 1
        logger.debug("Untrained %d of %d tokens from %r", removed, len(tokens), category)

    def prune_below(self, threshold: float) -> list[str]:
        """Remove low-frequency tokens.

        Every vocabulary token whose count in a category is at or under
        ``threshold`` is removed from that category; tokens left in no
        category are then removed from the vocabulary.

        Returns:
            The tokens removed from the vocabulary.

        Raises:
            InvalidThresholdError: If ``threshold`` is negative.
        """
        if threshold < 0:
            raise InvalidThresholdError(f"Threshold must be non-negative, got {threshold}")
        # counts are integers >= 1, so nothing can be at or under a threshold below 1
        if threshold < 1:
            return []

        with self.store.batch():
            doomed = [token for token in self.vocab if self.data.purge_below(token, threshold)]
            for token in doomed:
                self.vocab.remove(token)
        logger.debug("Pruned %d tokens at threshold %s", len(doomed), threshold)
        return doomed

    def delete_category(self, category: str) -> None:
        self.data.delete_category(category)

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------

    def classify(self, tokens: Iterable[str]) -> ProbabilityResult:
        """Score ``tokens`` against every trained category.

        Raises:
            InsufficientTrainingDataError: If nothing has been trained.
            DegenerateNormalizationError: If the raw scores cannot be
                normalized (e.g. a raw score of exactly zero).
        """
        tokens = self._prepare(tokens)
        return ProbabilityResult(self.normalizer(self.raw_scores(tokens)))

    def raw_scores(self, tokens: Iterable[str]) -> dict[str, float]:
        """Unnormalized log-prior plus log-likelihood per category."""
        tokens = self._prepare(tokens)
        category_count, vocab_size, total_example_count = self.data.snapshot()
        if category_count == 0 or total_example_count == 0:
            raise InsufficientTrainingDataError(
                f"Cannot classify with {category_count} categories "
                f"and {total_example_count} training examples"
            )

        # zero-count records left behind by get-or-create reads carry no data
        trained = []
        for category in self.data.categories():
            total_tokens, examples = self.store.totals(category)
            if examples > 0:
                trained.append((category, total_tokens, examples))
            else:
                logger.warning("Skipping category %r with no examples", category)
        if not trained:
            raise InsufficientTrainingDataError("No category has any training examples")

        k = self.config.k
        uniform_prior = math.log(1 / len(trained))
        scores: dict[str, float] = {}
        for category, total_tokens, examples in trained:
            if self.config.assume_uniform:
                log_prior = uniform_prior
            else:
                log_prior = math.log(examples / total_example_count)

            denominator = total_tokens + k * vocab_size
            log_likelihood = 0.0
            for token in tokens:
                count = self.data.token_frequency(token, category)
                log_likelihood += math.log((count + k) / denominator)
            scores[category] = log_likelihood + log_prior

        logger.debug("Raw scores for %d tokens: %s", len(tokens), scores)
        return scores

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def category_stats(self) -> str:
        """Per-category example share and token totals, one line each."""
        return self.data.category_stats()
