"""Exception hierarchy for the nbayes classifier.

Every error raised by the library derives from :class:`NBayesError`, and
also from the closest built-in exception so callers that already catch
``ValueError`` or ``RuntimeError`` keep working.
"""

from __future__ import annotations


class NBayesError(Exception):
    """Base class for all nbayes errors."""


class InsufficientTrainingDataError(NBayesError, RuntimeError):
    """Raised by ``classify`` when there are no categories or no examples."""


class InvalidThresholdError(NBayesError, ValueError):
    """Raised when pruning is requested with a negative threshold."""


class DegenerateNormalizationError(NBayesError, ArithmeticError):
    """Raised when raw scores cannot be normalized without dividing by zero."""


class ConfigurationError(NBayesError, ValueError):
    """Raised for invalid classifier configuration values."""


class StoreError(NBayesError):
    """Raised by store backends for I/O, schema or snapshot format problems."""
