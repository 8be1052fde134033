"""Per-category frequency statistics.

:class:`CategoryStore` owns the category records: token -> count,
``total_tokens`` and ``examples``. It keeps two invariants on every write:

- ``total_tokens`` equals the sum of the category's token counts;
- tokens with a count below 1 and categories with ``total_tokens`` below 1
  are deleted rather than kept at zero.

Reads come in two flavours. :meth:`CategoryStore.get` never creates
anything. :meth:`CategoryStore.get_or_create` materializes an empty record
for an unknown category, and :meth:`example_count` / :meth:`token_count`
(and therefore :meth:`category_stats`) go through it, so asking about an
unknown category leaves a zero-count record behind.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from .errors import InvalidThresholdError
from .models import CategoryRecord, Snapshot
from .stores import KeyValueStore

logger = logging.getLogger(__name__)


class CategoryStore:
    """Category records on top of a :class:`KeyValueStore`."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def categories(self) -> list[str]:
        return self.store.categories()

    def __iter__(self) -> Iterator[str]:
        return iter(self.store.categories())

    def __contains__(self, category: object) -> bool:
        return isinstance(category, str) and self.store.get_record(category) is not None

    def get(self, category: str) -> CategoryRecord | None:
        """Return the category's record without creating it."""
        return self.store.get_record(category)

    def get_or_create(self, category: str) -> CategoryRecord:
        """Return the category's record, creating an empty one if needed."""
        return self.store.get_or_create(category)

    def token_trained(self, token: str, category: str) -> bool:
        return self.store.token_frequency(token, category) > 0

    def token_frequency(self, token: str, category: str) -> int:
        return self.store.token_frequency(token, category)

    def example_count(self, category: str) -> int:
        return self.get_or_create(category).examples

    def token_count(self, category: str) -> int:
        return self.get_or_create(category).total_tokens

    def total_examples(self) -> int:
        return sum(self.store.totals(category)[1] for category in self.store.categories())

    def snapshot(self) -> Snapshot:
        return self.store.snapshot()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_token_to_category(self, category: str, token: str) -> None:
        """Count one trained occurrence of ``token`` in ``category``.

        Bumps the token count, ``total_tokens`` and ``examples`` together,
        so ``examples`` counts trained tokens rather than documents.
        """
        self.store.upsert(category, token)

    def remove_token_from_category(self, category: str, token: str) -> None:
        """Undo one trained occurrence, cascading deletes when exhausted.

        Decrements the token count, ``total_tokens`` and ``examples``, so a
        train followed by the matching untrain leaves the record unchanged.
        """
        with self.store.batch():
            self.store.decrement(category, token)
            if self.store.token_frequency(token, category) < 1:
                self.store.delete_token(category, token)
            if self.store.totals(category)[0] < 1:
                self.delete_category(category)

    def delete_category(self, category: str) -> None:
        self.store.delete_category(category)
        logger.debug("Deleted category %r", category)

    def purge_below(self, token: str, threshold: float) -> bool:
        """Drop ``token`` from categories where its count is <= ``threshold``.

        Returns:
            True when the token is left in no category at all, which tells
            the caller to drop it from the vocabulary too.

        Raises:
            InvalidThresholdError: If ``threshold`` is negative.
        """
        if threshold < 0:
            raise InvalidThresholdError(f"Threshold must be non-negative, got {threshold}")
        return self.store.purge_below(token, threshold)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def category_stats(self) -> str:
        """One line per category with its example share and token total."""
        lines = []
        total_example_count = self.total_examples()
        for category in self.categories():
            e = self.example_count(category)
            t = self.token_count(category)
            share = 100.0 * e / total_example_count if total_example_count else 0.0
            lines.append(
                f"For category {category}, {e} examples "
                f"({share:.2f}% of the total) and {t} total_tokens"
            )
        return "\n".join(lines)
