"""Shared test fixtures for nbayes tests."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from nbayes import Classifier, ClassifierConfig, KeyValueStore, MemoryStore, SQLiteStore


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path) -> Iterator[KeyValueStore]:
    """Each backend in turn, so store-level behavior is checked on both."""
    if request.param == "memory":
        backend: KeyValueStore = MemoryStore()
    else:
        backend = SQLiteStore(tmp_path / "nbayes.db")
    yield backend
    backend.close()


@pytest.fixture
def make_classifier(store: KeyValueStore):
    """Factory building a classifier on the parametrized store."""

    def _make(**options) -> Classifier:
        return Classifier(store=store, config=ClassifierConfig(**options))

    return _make


@pytest.fixture
def classifier(make_classifier) -> Classifier:
    return make_classifier()


@pytest.fixture
def spam_ham(classifier: Classifier) -> Classifier:
    """Two-category model: spam <- buy now, ham <- meeting today."""
    classifier.train(["buy", "now"], "spam")
    classifier.train(["meeting", "today"], "ham")
    return classifier
