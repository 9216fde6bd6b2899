"""
Learning Configuration

Thresholds and limits for the categorization learning engine:
- Similarity cutoffs (when an observation joins a pattern, when two
  patterns merge, when a pattern is worth suggesting)
- Result limits for suggestions and category rankings
- History window and rebuild cadence

Every field can be overridden with a SPENDSENSE_<FIELD> environment variable.
"""

import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from spendsense.services.errors import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "SPENDSENSE_"


@dataclass
class LearningConfig:
    """
    Tunables for pattern learning and prediction.

    - match_threshold: similarity above this folds an observation into an
      existing pattern instead of creating a new one
    - merge_threshold: similarity above this consolidates two patterns
    - suggestion_threshold: minimum similarity for a pattern to be suggested
    """
    match_threshold: float = 0.7
    merge_threshold: float = 0.8
    suggestion_threshold: float = 0.1

    suggestion_limit: int = 5
    fallback_limit: int = 3  # substring fallback cap
    top_categories_limit: int = 3

    window_days: int = 90
    rebuild_every: int = 10  # observations between full rebuilds

    def __post_init__(self):
        for name in ("match_threshold", "merge_threshold", "suggestion_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(name, f"Must be within [0, 1], got {value}")

        for name in ("suggestion_limit", "fallback_limit", "top_categories_limit",
                     "window_days", "rebuild_every"):
            value = getattr(self, name)
            if value < 1:
                raise ConfigError(name, f"Must be a positive integer, got {value}")

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "LearningConfig":
        """Build a config from defaults overlaid with SPENDSENSE_* variables."""
        overrides: Dict[str, Any] = {}
        for f in fields(cls):
            env_name = f"{ENV_PREFIX}{f.name.upper()}"
            raw = environ.get(env_name) if environ is not None else os.getenv(env_name)
            if raw is None or raw.strip() == "":
                continue

            caster = float if f.type in (float, "float") else int
            try:
                overrides[f.name] = caster(raw)
            except ValueError:
                raise ConfigError(f.name, f"{env_name}={raw!r} is not a valid {caster.__name__}")

        if overrides:
            logger.info(f"Learning config overrides from environment: {sorted(overrides)}")
        return cls(**overrides)
