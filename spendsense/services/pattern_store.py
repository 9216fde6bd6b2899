"""
Pattern Store for learned title -> category associations.

Two ways to keep the store current:
- add_observation: cheap incremental update for one new transaction
- rebuild_from_window: recompute every pattern from recent history, then
  consolidate near-duplicates with merge_similar_patterns

When to call which is left to the caller (see CategoryLearningService).
"""
from __future__ import annotations

import itertools
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Dict, Hashable, Iterable, Iterator, List, Optional, Tuple

from spendsense.core.config import LearningConfig
from spendsense.models.patterns import Pattern
from spendsense.models.transactions import Transaction
from spendsense.services.errors import InvalidInputError
from spendsense.services.similarity import normalize_title, similarity

logger = logging.getLogger(__name__)

Scorer = Callable[[str, str], float]


class PatternStore:
    """
    In-memory collection of Patterns, kept in creation order.

    Not thread-safe: mutations must be serialized by the owner.
    """

    def __init__(self, config: Optional[LearningConfig] = None, scorer: Scorer = similarity):
        self.config = config or LearningConfig()
        self.scorer = scorer
        self._patterns: List[Pattern] = []
        self._by_title: Dict[str, Pattern] = {}
        # Shared across rebuilds so ids are never reused
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._patterns)

    def __iter__(self) -> Iterator[Pattern]:
        return iter(tuple(self._patterns))

    @property
    def patterns(self) -> Tuple[Pattern, ...]:
        return tuple(self._patterns)

    def get(self, pattern_id: int) -> Optional[Pattern]:
        for pattern in self._patterns:
            if pattern.pattern_id == pattern_id:
                return pattern
        return None

    def snapshot(self) -> Tuple[Pattern, ...]:
        """Independent copies of every live pattern."""
        return tuple(pattern.copy() for pattern in self._patterns)

    def clear(self) -> None:
        self._patterns.clear()
        self._by_title.clear()

    def add_observation(
        self,
        title: str,
        price: Decimal,
        category_id: Hashable,
        occurred_at: datetime,
    ) -> Optional[Pattern]:
        """
        Learn from one transaction.

        Updates the pattern with the same title, else the most similar
        pattern above the match threshold, else creates a new pattern.
        Blank titles are refused and ``None`` is returned.
        """
        try:
            normalized = self._require_title(title)
        except InvalidInputError as e:
            logger.warning(f"Observation refused: {e}")
            return None

        pattern = self._by_title.get(normalized)
        if pattern:
            pattern.add_observation(price, category_id, occurred_at)
            logger.debug(f"Observation '{title}' added to pattern {pattern.pattern_id} (exact title)")
            return pattern

        best, best_score = self._most_similar(title)
        if best and best_score > self.config.match_threshold:
            best.add_observation(price, category_id, occurred_at)
            logger.debug(
                f"Observation '{title}' added to pattern {best.pattern_id} "
                f"'{best.canonical_title}' (similarity {best_score:.2f})"
            )
            return best

        pattern = self._create(title.strip(), price, category_id, occurred_at)
        logger.debug(f"Observation '{title}' created pattern {pattern.pattern_id}")
        return pattern

    def rebuild_from_window(
        self,
        transactions: Iterable[Transaction],
        window_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Discard every pattern and relearn from transactions inside the window.

        Args:
            transactions: Ledger history (any order)
            window_days: Days of history to keep (default from config, 90)
            now: Reference time for the window (default: current time)

        Returns:
            Number of live patterns after the rebuild and merge
        """
        transactions = list(transactions)
        window_days = window_days if window_days is not None else self.config.window_days
        if now is None:
            now = now_like(transactions[0].occurred_at if transactions else None)
        cutoff = now - timedelta(days=window_days)

        groups: Dict[str, List[Transaction]] = {}
        # category ids are opaque and may not be orderable, so they stay out of the key
        for txn in sorted(transactions, key=lambda t: (t.occurred_at, t.title, t.amount)):
            if txn.occurred_at < cutoff:
                continue
            key = normalize_title(txn.title)
            if not key:
                continue
            groups.setdefault(key, []).append(txn)

        self.clear()
        # earliest occurrence first, title breaks ties
        ordered = sorted(groups.items(), key=lambda item: (item[1][0].occurred_at, item[0]))
        for key, group in ordered:
            seed_index = max(range(len(group)), key=lambda i: group[i].occurred_at)
            seed = group[seed_index]
            pattern = self._create(seed.title, seed.amount, seed.category_id, seed.occurred_at)
            for index, txn in enumerate(group):
                if index != seed_index:
                    pattern.add_observation(txn.amount, txn.category_id, txn.occurred_at)

        learned = len(self._patterns)
        merged = self.merge_similar_patterns()
        logger.info(
            f"Rebuilt patterns from {sum(len(g) for g in groups.values())} transactions "
            f"within {window_days} days: {learned} learned, {merged} merged, {len(self)} live"
        )
        return len(self)

    def merge_similar_patterns(self, merge_threshold: Optional[float] = None) -> int:
        """
        Consolidate near-duplicate patterns.

        Patterns are compared pairwise in creation order; the earlier created
        pattern absorbs every later one scoring above the threshold. An
        absorbed pattern is never compared again.

        Returns:
            Number of patterns absorbed
        """
        threshold = merge_threshold if merge_threshold is not None else self.config.merge_threshold
        absorbed = set()

        for i, keeper in enumerate(self._patterns):
            if i in absorbed:
                continue
            for j in range(i + 1, len(self._patterns)):
                if j in absorbed:
                    continue
                other = self._patterns[j]
                score = self.scorer(keeper.canonical_title, other.canonical_title)
                if score > threshold:
                    keeper.absorb(other)
                    absorbed.add(j)
                    logger.debug(
                        f"Merged pattern {other.pattern_id} '{other.canonical_title}' into "
                        f"{keeper.pattern_id} '{keeper.canonical_title}' (similarity {score:.2f})"
                    )

        if absorbed:
            self._patterns = [p for i, p in enumerate(self._patterns) if i not in absorbed]
            self._by_title = {normalize_title(p.canonical_title): p for p in self._patterns}
        return len(absorbed)

    def _most_similar(self, title: str) -> Tuple[Optional[Pattern], float]:
        best: Optional[Pattern] = None
        best_score = 0.0
        for pattern in self._patterns:
            score = self.scorer(title, pattern.canonical_title)
            # strict: the earliest created pattern wins ties
            if score > best_score:
                best, best_score = pattern, score
        return best, best_score

    def _create(
        self,
        title: str,
        price: Decimal,
        category_id: Hashable,
        occurred_at: datetime,
    ) -> Pattern:
        pattern = Pattern.seed(next(self._ids), title, price, category_id, occurred_at)
        self._patterns.append(pattern)
        self._by_title[normalize_title(title)] = pattern
        return pattern

    @staticmethod
    def _require_title(title: str) -> str:
        normalized = normalize_title(title) if isinstance(title, str) else ""
        if not normalized:
            raise InvalidInputError("title", "Title is empty or whitespace only")
        return normalized


def now_like(reference: Optional[datetime]) -> datetime:
    """Current time, timezone-aware only if the ledger's timestamps are."""
    if reference is not None and reference.tzinfo is not None:
        return datetime.now(timezone.utc)
    return datetime.now()
