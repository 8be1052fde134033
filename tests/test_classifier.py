"""Tests for the Naive Bayes classifier.

Covers training and untraining, pruning, inference (priors, smoothing,
binarized mode, normalization) and the stats report. Every test runs on
both store backends through the ``store`` fixture in conftest.
"""

from __future__ import annotations

import math
import random

import pytest

from nbayes import (
    Classifier,
    ClassifierConfig,
    DegenerateNormalizationError,
    InsufficientTrainingDataError,
    InvalidThresholdError,
    MemoryStore,
    ProbabilityResult,
    SoftmaxNormalizer,
)


def _assert_invariants(clf: Classifier) -> None:
    for category in clf.categories:
        record = clf.data.get(category)
        assert record.total_tokens == sum(record.tokens.values())
        assert record.total_tokens >= 1
        assert all(count >= 1 for count in record.tokens.values())
        assert record.examples >= 0


# ---------------------------------------------------------------------------
# Training
# ---------------------------------------------------------------------------

class TestTraining:
    def test_train_counts_every_occurrence(self, classifier: Classifier):
        classifier.train(["buy", "buy", "now"], "spam")
        record = classifier.data.get("spam")
        assert record.tokens == {"buy": 2, "now": 1}
        assert record.total_tokens == 3
        assert record.examples == 3
        assert classifier.vocab.tokens() == ["buy", "now"]

    def test_binarized_training_deduplicates(self, make_classifier):
        clf = make_classifier(binarize=True)
        clf.train(["buy", "buy", "now"], "spam")
        assert clf.data.get("spam").tokens == {"buy": 1, "now": 1}

    def test_train_records_seen_counters(self, classifier: Classifier):
        classifier.train(["buy"], "spam")
        classifier.train(["buy"], "ham")
        assert classifier.vocab.seen_count("buy", "spam") == 1
        assert classifier.vocab.seen_count("buy", "ham") == 1

    def test_train_accepts_any_iterable(self, classifier: Classifier):
        classifier.train((t for t in ["a", "b"]), "spam")
        assert classifier.data.token_count("spam") == 2

    def test_train_rejects_bare_string(self, classifier: Classifier):
        with pytest.raises(TypeError):
            classifier.train("buy now", "spam")

    def test_train_empty_tokens_creates_nothing(self, classifier: Classifier):
        classifier.train([], "spam")
        assert classifier.categories == []


class TestUntraining:
    def test_round_trip_restores_previous_state(self, classifier: Classifier):
        classifier.train(["meeting", "today"], "ham")
        before = classifier.store.to_dict()

        classifier.train(["buy", "now", "buy"], "spam")
        classifier.untrain(["buy", "now", "buy"], "spam")

        assert classifier.store.to_dict() == before
        assert "spam" not in classifier.categories

    def test_round_trip_on_category_with_other_data(self, classifier: Classifier):
        classifier.train(["a"], "spam")
        classifier.train(["z"], "ham")
        before = classifier.store.to_dict()
        prior_before = classifier.classify([])["spam"]

        classifier.train(["buy", "now"], "spam")
        classifier.untrain(["buy", "now"], "spam")

        assert classifier.store.to_dict() == before
        assert classifier.data.get("spam").examples == 1
        assert classifier.classify([])["spam"] == prior_before == 0.5

    def test_partial_untrain(self, classifier: Classifier):
        classifier.train(["buy", "buy", "now"], "spam")
        classifier.untrain(["buy"], "spam")
        record = classifier.data.get("spam")
        assert record.tokens == {"buy": 1, "now": 1}
        assert record.total_tokens == 2

    def test_untrain_unknown_token_is_noop(self, spam_ham: Classifier):
        before = spam_ham.store.to_dict()
        spam_ham.untrain(["meeting"], "spam")
        spam_ham.untrain(["buy"], "unknown")
        assert spam_ham.store.to_dict() == before

    def test_untrain_removes_token_from_global_vocabulary(self, classifier: Classifier):
        # known sharp edge: the token is still trained in "ham"
        classifier.train(["buy"], "spam")
        classifier.train(["buy", "meeting"], "ham")
        classifier.untrain(["buy"], "spam")

        assert "buy" not in classifier.vocab
        assert classifier.data.token_frequency("buy", "ham") == 1

    def test_binarized_untrain_deduplicates(self, make_classifier):
        clf = make_classifier(binarize=True)
        clf.train(["buy", "now"], "spam")
        clf.untrain(["buy", "buy"], "spam")
        assert clf.data.get("spam").tokens == {"now": 1}

    def test_invariants_hold_over_random_sequences(self, classifier: Classifier):
        rng = random.Random(7)
        tokens = ["a", "b", "c", "d", "e"]
        categories = ["x", "y", "z"]
        for _ in range(200):
            batch = [rng.choice(tokens) for _ in range(rng.randint(0, 4))]
            category = rng.choice(categories)
            if rng.random() < 0.6:
                classifier.train(batch, category)
            else:
                classifier.untrain(batch, category)
            _assert_invariants(classifier)


# ---------------------------------------------------------------------------
# Pruning and deletion
# ---------------------------------------------------------------------------

class TestPruning:
    def test_threshold_zero_is_noop(self, spam_ham: Classifier):
        before = spam_ham.store.to_dict()
        assert spam_ham.prune_below(0) == []
        assert spam_ham.store.to_dict() == before

    def test_threshold_zero_keeps_tokens_of_deleted_category(self, classifier: Classifier):
        classifier.train(["buy"], "spam")
        classifier.train(["meeting"], "ham")
        classifier.delete_category("spam")

        assert classifier.prune_below(0) == []
        assert classifier.vocab.tokens() == ["buy", "meeting"]

    def test_fractional_threshold_below_one_is_noop(self, spam_ham: Classifier):
        before = spam_ham.store.to_dict()
        assert spam_ham.prune_below(0.5) == []
        assert spam_ham.store.to_dict() == before

    def test_large_threshold_drops_tokens_of_deleted_category(self, classifier: Classifier):
        classifier.train(["buy"], "spam")
        classifier.train(["meeting", "meeting"], "ham")
        classifier.delete_category("spam")

        assert classifier.prune_below(100) == ["buy", "meeting"]
        assert len(classifier.vocab) == 0

    def test_large_threshold_removes_everything(self, spam_ham: Classifier):
        spam_ham.train(["buy"] * 5, "spam")
        removed = spam_ham.prune_below(1_000_000)
        assert sorted(removed) == ["buy", "meeting", "now", "today"]
        assert len(spam_ham.vocab) == 0
        assert spam_ham.categories == []

    def test_prunes_rare_tokens_only(self, classifier: Classifier):
        classifier.train(["buy", "buy", "now"], "spam")
        classifier.train(["meeting"], "ham")

        assert classifier.prune_below(1) == ["now", "meeting"]
        assert classifier.vocab.tokens() == ["buy"]
        assert classifier.categories == ["spam"]
        assert classifier.data.get("spam").tokens == {"buy": 2}
        _assert_invariants(classifier)

    def test_token_kept_while_frequent_elsewhere(self, classifier: Classifier):
        classifier.train(["buy"], "spam")
        classifier.train(["buy", "buy", "meeting", "meeting"], "ham")
        classifier.prune_below(1)
        assert "buy" in classifier.vocab
        assert classifier.data.token_frequency("buy", "spam") == 0
        assert classifier.data.token_frequency("buy", "ham") == 2

    def test_negative_threshold(self, spam_ham: Classifier):
        with pytest.raises(InvalidThresholdError):
            spam_ham.prune_below(-1)

    def test_delete_category(self, spam_ham: Classifier):
        spam_ham.delete_category("spam")
        assert spam_ham.categories == ["ham"]
        # vocabulary entries survive category deletion
        assert "buy" in spam_ham.vocab


# ---------------------------------------------------------------------------
# Inference
# ---------------------------------------------------------------------------

class TestClassify:
    def test_spam_scores_higher_for_spam_token(self, spam_ham: Classifier):
        result = spam_ham.classify(["buy"])
        assert isinstance(result, ProbabilityResult)
        assert result["spam"] > result["ham"]
        assert result.best_category() == "spam"
        assert math.isclose(sum(result.values()), 1.0)

    def test_raw_scores(self, spam_ham: Classifier):
        scores = spam_ham.raw_scores(["buy"])
        # D = total_tokens + k * |V| = 2 + 1 * 4
        assert math.isclose(scores["spam"], math.log(0.5) + math.log(2 / 6))
        assert math.isclose(scores["ham"], math.log(0.5) + math.log(1 / 6))

    def test_ratio_normalized_values(self, spam_ham: Classifier):
        scores = spam_ham.raw_scores(["buy"])
        total = scores["spam"] + scores["ham"]
        intermediate = {c: total / s for c, s in scores.items()}
        renorm = sum(intermediate.values())
        result = spam_ham.classify(["buy"])
        for category in ("spam", "ham"):
            assert math.isclose(result[category], intermediate[category] / renorm)

    def test_unseen_tokens_only_add_smoothing(self, spam_ham: Classifier):
        result = spam_ham.classify(["never", "seen"])
        assert math.isclose(result["spam"], result["ham"])
        assert result.best_category() == "ham"

    def test_empty_input_uses_priors(self, classifier: Classifier):
        classifier.train(["a", "b", "c"], "spam")
        classifier.train(["d"], "ham")
        result = classifier.classify([])
        assert result["spam"] > result["ham"]
        assert math.isclose(sum(result.values()), 1.0)

    def test_uniform_priors_ignore_skew(self, make_classifier):
        clf = make_classifier(assume_uniform=True)
        clf.train(["a", "b", "c", "d", "e", "f"], "spam")
        clf.train(["g"], "ham")
        result = clf.classify([])
        assert result["spam"] == result["ham"] == 0.5

    def test_smoothing_constant(self, make_classifier):
        clf = make_classifier(k=0.5)
        clf.train(["buy", "now"], "spam")
        clf.train(["meeting", "today"], "ham")
        scores = clf.raw_scores(["buy"])
        assert math.isclose(scores["spam"], math.log(0.5) + math.log(1.5 / 4))

    def test_binarized_classify_counts_once(self, make_classifier):
        clf = make_classifier(binarize=True)
        clf.train(["buy", "now"], "spam")
        clf.train(["meeting", "today"], "ham")
        assert clf.raw_scores(["buy", "buy", "buy"]) == clf.raw_scores(["buy"])

    def test_multinomial_classify_counts_repeats(self, spam_ham: Classifier):
        once = spam_ham.raw_scores(["buy"])
        thrice = spam_ham.raw_scores(["buy", "buy", "buy"])
        assert thrice["spam"] < once["spam"]

    def test_log_vocab_does_not_change_inference(self, make_classifier):
        clf = make_classifier(log_vocab=True)
        clf.train(["buy", "now"], "spam")
        clf.train(["meeting", "today"], "ham")
        assert math.isclose(clf.vocab.size(), math.log(4))
        scores = clf.raw_scores(["buy"])
        assert math.isclose(scores["spam"], math.log(0.5) + math.log(2 / 6))

    def test_no_training_data(self, classifier: Classifier):
        with pytest.raises(InsufficientTrainingDataError):
            classifier.classify(["buy"])

    def test_only_phantom_categories(self, classifier: Classifier):
        classifier.data.example_count("ghost")
        with pytest.raises(InsufficientTrainingDataError):
            classifier.classify(["buy"])

    def test_phantom_category_is_skipped(self, spam_ham: Classifier):
        spam_ham.data.token_count("ghost")
        result = spam_ham.classify(["buy"])
        assert set(result) == {"spam", "ham"}

    def test_single_category_empty_input_is_degenerate(self, classifier: Classifier):
        classifier.train(["buy"], "spam")
        # log prior of the only category is log(1) == 0
        with pytest.raises(DegenerateNormalizationError):
            classifier.classify([])

    def test_single_category_with_tokens(self, classifier: Classifier):
        classifier.train(["buy", "now"], "spam")
        assert dict(classifier.classify(["buy"])) == {"spam": 1.0}

    def test_classify_does_not_mutate(self, spam_ham: Classifier):
        before = spam_ham.store.to_dict()
        spam_ham.classify(["buy", "unknown"])
        assert spam_ham.store.to_dict() == before

    def test_softmax_normalizer(self, store):
        clf = Classifier(store=store, normalizer=SoftmaxNormalizer())
        clf.train(["buy"], "spam")
        result = clf.classify([])
        assert result == {"spam": 1.0}


# ---------------------------------------------------------------------------
# Reporting and construction
# ---------------------------------------------------------------------------

class TestCategoryStats:
    def test_percentages_total_100(self, classifier: Classifier):
        classifier.train(["a", "b", "c"], "spam")
        classifier.train(["d"], "ham")
        lines = classifier.category_stats().splitlines()
        assert lines == [
            "For category spam, 3 examples (75.00% of the total) and 3 total_tokens",
            "For category ham, 1 examples (25.00% of the total) and 1 total_tokens",
        ]
        shares = [float(line.split("(")[1].split("%")[0]) for line in lines]
        assert math.isclose(sum(shares), 100.0)


class TestConstruction:
    def test_defaults(self):
        clf = Classifier()
        assert isinstance(clf.store, MemoryStore)
        assert clf.config == ClassifierConfig()
        assert clf.config.k == 1.0

    def test_vocab_log_size_follows_config(self):
        clf = Classifier(config=ClassifierConfig(log_vocab=True))
        assert clf.vocab.log_size is True

    def test_shared_store_between_instances(self, store):
        Classifier(store=store).train(["buy"], "spam")
        assert Classifier(store=store).categories == ["spam"]
