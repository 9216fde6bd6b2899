"""
Category Prediction Engine

Answers "which category does this title belong to?" from the patterns
learned in a PatternStore:
- suggest: patterns ranked by title similarity, with a substring fallback
  when nothing clears the suggestion threshold
- predict_category: best category plus a confidence score
- top_category_suggestions: ranked category candidates

Each candidate pattern votes for its categories with
similarity * category_confidence * count.
"""
from __future__ import annotations

import logging
import math
from typing import Dict, Hashable, List, NamedTuple, Optional, Tuple

from spendsense.core.config import LearningConfig
from spendsense.models.patterns import Pattern
from spendsense.services.pattern_store import PatternStore, Scorer
from spendsense.services.similarity import normalize_title

logger = logging.getLogger(__name__)


class CategoryPrediction(NamedTuple):
    category_id: Hashable
    confidence: float


class CategoryPredictionEngine:
    """
    Read-only queries over a PatternStore.

    Usage:
        store = PatternStore()
        engine = CategoryPredictionEngine(store)

        store.add_observation("Netflix", Decimal("15.99"), "subscriptions", now)
        prediction = engine.predict_category("netflix")
        if prediction:
            print(f"{prediction.category_id} ({prediction.confidence:.0%})")
    """

    def __init__(
        self,
        store: PatternStore,
        config: Optional[LearningConfig] = None,
        scorer: Optional[Scorer] = None,
    ):
        self.store = store
        self.config = config or store.config
        self.scorer = scorer or store.scorer

    def suggest(self, title: str, limit: Optional[int] = None) -> List[Pattern]:
        """Patterns most likely to describe ``title``, best first."""
        return [pattern for pattern, _ in self._candidates(title, limit)]

    def predict_category(self, title: str) -> Optional[CategoryPrediction]:
        """
        Best category for ``title``, or None when nothing resembles it.

        Exact score ties go to the category met first in suggestion order.
        """
        scores = self._category_scores(title)
        if not scores:
            return None

        best_category = None
        best_score = -1.0
        for category_id, score in scores.items():
            if score > best_score:
                best_category, best_score = category_id, score

        total = sum(scores.values())
        confidence = best_score / total if total > 0 else 0.0
        prediction = CategoryPrediction(best_category, _clamp(confidence))
        logger.debug(f"Predicted {prediction.category_id!r} for '{title}' ({prediction.confidence:.2f})")
        return prediction

    def top_category_suggestions(self, title: str, limit: Optional[int] = None) -> List[CategoryPrediction]:
        """
        Top categories for ``title`` by confidence.

        Confidences are shares of the total score across all categories, so
        a truncated list need not sum to 1.0.
        """
        limit = limit if limit is not None else self.config.top_categories_limit
        scores = self._category_scores(title)
        if not scores:
            return []

        total = sum(scores.values())
        ranked = [
            CategoryPrediction(category_id, _clamp(score / total) if total > 0 else 0.0)
            for category_id, score in scores.items()
        ]
        # stable: equal confidences keep suggestion order
        ranked.sort(key=lambda p: p.confidence, reverse=True)
        return ranked[:limit]

    def category_focused_suggestions(self, title: str) -> List[Pattern]:
        """
        Suggestions ordered by how decisively they point at one category.

        Patterns whose similarity * category_confidence fall in the same 0.1
        band are ordered by most recent use.
        """
        candidates = self._candidates(title)

        def sort_key(item: Tuple[Pattern, float]):
            pattern, score = item
            band = math.floor(score * pattern.category_confidence * 10)
            return (-band, -pattern.last_used_at.timestamp(), pattern.pattern_id)

        return [pattern for pattern, _ in sorted(candidates, key=sort_key)]

    def _candidates(self, title: str, limit: Optional[int] = None) -> List[Tuple[Pattern, float]]:
        limit = limit if limit is not None else self.config.suggestion_limit
        query = normalize_title(title)
        if not query:
            logger.debug("Empty title, no suggestions")
            return []

        patterns = self.store.patterns
        if not patterns:
            return []

        scored = []
        for pattern in patterns:
            score = self.scorer(title, pattern.canonical_title)
            if score > self.config.suggestion_threshold:
                scored.append((pattern, score))

        if scored:
            scored.sort(key=lambda item: (-item[1], -item[0].total_frequency, item[0].pattern_id))
            return scored[:limit]

        # Short or unusual titles may still be contained in a learned one
        contained = [
            pattern for pattern in patterns
            if query in normalize_title(pattern.canonical_title)
            or normalize_title(pattern.canonical_title) in query
        ]
        contained.sort(key=lambda p: (-p.total_frequency, p.pattern_id))
        return [
            (pattern, self.scorer(title, pattern.canonical_title))
            for pattern in contained[:min(limit, self.config.fallback_limit)]
        ]

    def _category_scores(self, title: str) -> Dict[Hashable, float]:
        scores: Dict[Hashable, float] = {}
        for pattern, score in self._candidates(title):
            weight = score * pattern.category_confidence
            for cf in pattern.category_frequencies.values():
                scores[cf.category_id] = scores.get(cf.category_id, 0.0) + weight * cf.count
        return scores


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))
