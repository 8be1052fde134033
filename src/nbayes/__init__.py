"""nbayes -- Naive Bayes token classifier over a pluggable key-value store."""

__version__ = "0.1.0"

from .classifier import Classifier
from .config import ClassifierConfig
from .data import CategoryStore
from .errors import (
    ConfigurationError,
    DegenerateNormalizationError,
    InsufficientTrainingDataError,
    InvalidThresholdError,
    NBayesError,
    StoreError,
)
from .models import CategoryRecord, ProbabilityResult, Snapshot
from .normalization import Normalizer, RatioNormalizer, SoftmaxNormalizer
from .stores import KeyValueStore, MemoryStore, SQLiteStore
from .vocab import Vocabulary

__all__ = [
    # Core
    "Classifier",
    "ClassifierConfig",
    "ProbabilityResult",
    # Statistics
    "Vocabulary",
    "CategoryStore",
    "CategoryRecord",
    "Snapshot",
    # Stores
    "KeyValueStore",
    "MemoryStore",
    "SQLiteStore",
    # Normalization
    "Normalizer",
    "RatioNormalizer",
    "SoftmaxNormalizer",
    # Errors
    "NBayesError",
    "InsufficientTrainingDataError",
    "InvalidThresholdError",
    "DegenerateNormalizationError",
    "ConfigurationError",
    "StoreError",
]
