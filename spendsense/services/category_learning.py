"""
Category Learning Service

Wires one PatternStore and one CategoryPredictionEngine together for an
expense ledger:
- Every new transaction is learned, cheaply (quick update) or by a full
  rebuild from the ledger's recent history every Nth transaction
- Category pickers query suggestions and predictions
- One lock guards the store, so a rebuild never interleaves with a read
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from spendsense.core.config import LearningConfig
from spendsense.models.patterns import Pattern
from spendsense.models.transactions import Transaction
from spendsense.services.pattern_store import PatternStore, now_like
from spendsense.services.prediction import CategoryPrediction, CategoryPredictionEngine

logger = logging.getLogger(__name__)


class CategoryLearningService:
    """
    Learns categories from a ledger and answers category queries.

    Usage:
        service = CategoryLearningService()

        # Each time the ledger records an expense
        service.record_transaction(txn, history=ledger.transactions)

        # In the category picker
        prediction = service.predict_category("Starbucks")
    """

    def __init__(self, config: Optional[LearningConfig] = None):
        self.config = config or LearningConfig()
        self.store = PatternStore(self.config)
        self.engine = CategoryPredictionEngine(self.store, self.config)
        self._lock = threading.RLock()
        self._since_rebuild = 0

    def record_transaction(
        self,
        transaction: Transaction,
        history: Optional[Sequence[Transaction]] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Learn from a newly recorded transaction.

        Rebuilds from ``history`` when the store is empty or ``rebuild_every``
        transactions have been recorded since the last rebuild; otherwise
        updates the store incrementally. ``history`` should already contain
        ``transaction``.

        Returns:
            True if a full rebuild ran
        """
        with self._lock:
            self._since_rebuild += 1
            due = len(self.store) == 0 or self._since_rebuild >= self.config.rebuild_every
            if due and history is not None:
                self._rebuild(history, now)
                return True

            if now is None:
                now = now_like(transaction.occurred_at)
            if transaction.occurred_at < now - timedelta(days=self.config.window_days):
                logger.debug(f"Skipping '{transaction.title}': older than {self.config.window_days} days")
                return False

            self.store.add_observation(
                transaction.title,
                transaction.amount,
                transaction.category_id,
                transaction.occurred_at,
            )
            return False

    def refresh(self, history: Sequence[Transaction], now: Optional[datetime] = None) -> int:
        """Rebuild every pattern from ``history``. Returns the live pattern count."""
        with self._lock:
            return self._rebuild(history, now)

    def suggest(self, title: str, limit: Optional[int] = None) -> List[Pattern]:
        with self._lock:
            return [pattern.copy() for pattern in self.engine.suggest(title, limit)]

    def predict_category(self, title: str) -> Optional[CategoryPrediction]:
        with self._lock:
            return self.engine.predict_category(title)

    def top_category_suggestions(self, title: str, limit: Optional[int] = None) -> List[CategoryPrediction]:
        with self._lock:
            return self.engine.top_category_suggestions(title, limit)

    def category_focused_suggestions(self, title: str) -> List[Pattern]:
        with self._lock:
            return [pattern.copy() for pattern in self.engine.category_focused_suggestions(title)]

    def snapshot(self) -> Tuple[Pattern, ...]:
        with self._lock:
            return self.store.snapshot()

    def _rebuild(self, history: Sequence[Transaction], now: Optional[datetime]) -> int:
        count = self.store.rebuild_from_window(history, self.config.window_days, now)
        self._since_rebuild = 0
        return count

