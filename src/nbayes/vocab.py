"""Vocabulary: the set of distinct tokens known to the model."""

from __future__ import annotations

import math
from collections.abc import Iterator

from .stores import KeyValueStore


class Vocabulary:
    """Token set backed by a :class:`KeyValueStore`.

    Tokens are added by the store as a side effect of training and only
    leave the vocabulary through :meth:`remove` (untraining, pruning).

    Args:
        store: Backing key-value store.
        log_size: Report :meth:`size` as the natural log of the token
            count, a steadier growth figure for very large vocabularies.
    """

    def __init__(self, store: KeyValueStore, log_size: bool = False) -> None:
        self.store = store
        self.log_size = log_size

    def contains(self, token: str) -> bool:
        return self.store.has_token(token)

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and self.contains(token)

    def __len__(self) -> int:
        return self.store.token_count()

    def size(self) -> int | float:
        """Number of tokens, or its natural log when ``log_size`` is set.

        An empty vocabulary reports ``0.0`` in log mode instead of
        raising on ``log(0)``.
        """
        count = self.store.token_count()
        if not self.log_size:
            return count
        return math.log(count) if count > 0 else 0.0

    def record_seen(self, token: str, category: str) -> None:
        """Count one observation of ``token`` under ``category``.

        These counters are analytics only; inference never reads them.
        Training already bumps the same counter inside the store's upsert,
        so this is for callers recording observations outside training.
        """
        self.store.increment_seen(token, category)

    def seen_count(self, token: str, category: str) -> int:
        return self.store.seen_count(token, category)

    def remove(self, token: str) -> None:
        """Delete ``token`` from the vocabulary.

        The token is removed even if other categories are still trained
        on it; category counts are left untouched.
        """
        self.store.remove_token(token)

    def tokens(self) -> list[str]:
        return self.store.tokens()

    def __iter__(self) -> Iterator[str]:
        # iterate over a copy so callers may remove tokens while looping
        return iter(self.store.tokens())
