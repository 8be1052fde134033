"""Classifier configuration.

Settings are fixed when a :class:`~nbayes.classifier.Classifier` is built.
They can be given directly, loaded from a dict (e.g. a saved model's
metadata) or read from ``NBAYES_*`` environment variables, optionally
seeded from a ``.env`` file::

    NBAYES_BINARIZE=true
    NBAYES_ASSUME_UNIFORM=false
    NBAYES_K=0.5
    NBAYES_LOG_VOCAB=no
"""

from __future__ import annotations

import math
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values

from .errors import ConfigurationError

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off", ""})


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class ClassifierConfig:
    """Classifier settings.

    Args:
        binarize: Deduplicate tokens on every call (feature presence
            instead of occurrence counts).
        assume_uniform: Ignore how many examples each category has and
            treat all categories as equally likely.
        k: Additive (Laplace) smoothing constant. Must be positive.
        log_vocab: Report the vocabulary size as a natural log.
    """

    binarize: bool = False
    assume_uniform: bool = False
    k: float = 1.0
    log_vocab: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.k, bool) or not isinstance(self.k, (int, float)):
            raise ConfigurationError(f"k must be a number, got {self.k!r}")
        if not math.isfinite(self.k) or self.k <= 0:
            raise ConfigurationError(f"k must be a positive finite number, got {self.k!r}")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ClassifierConfig":
        """Build a config from a dict, ignoring unknown keys."""
        known = {name: data[name] for name in ("binarize", "assume_uniform", "k", "log_vocab")
                 if name in data}
        return cls(**known)

    @classmethod
    def from_env(
        cls,
        prefix: str = "NBAYES_",
        env_file: Optional[str | Path] = None,
    ) -> "ClassifierConfig":
        """Read settings from the environment.

        Values in ``env_file`` (parsed with python-dotenv) are used as
        defaults; real environment variables take precedence.

        Raises:
            ConfigurationError: If a value cannot be parsed.
        """
        values: dict[str, Optional[str]] = {}
        if env_file is not None:
            values.update(dotenv_values(env_file))
        values.update(os.environ)

        kwargs: dict = {}
        for name in ("binarize", "assume_uniform", "log_vocab"):
            raw = values.get(prefix + name.upper())
            if raw is not None:
                kwargs[name] = _parse_bool(prefix + name.upper(), raw)

        raw_k = values.get(prefix + "K")
        if raw_k is not None:
            try:
                kwargs["k"] = float(raw_k)
            except ValueError as e:
                raise ConfigurationError(f"{prefix}K must be a number, got {raw_k!r}") from e

        return cls(**kwargs)
