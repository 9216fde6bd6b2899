"""
Learned title -> category patterns.

A Pattern groups the transactions that share (or closely resemble) one title
and records how often each category was assigned to them.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Hashable, List, Optional

from spendsense.services.similarity import extract_keywords


@dataclass
class CategoryFrequency:
    """How many times a pattern has been assigned to one category."""
    category_id: Hashable
    count: int = 1
    last_used_at: Optional[datetime] = None


@dataclass
class PriceCategoryCombination:
    """A (price, category) pair seen for a pattern and its frequency."""
    price: Decimal
    category_id: Hashable
    frequency: int = 1


@dataclass
class Pattern:
    """
    Learned association between a canonical title and its categories.

    Totals and confidence are derived on every access, so they can never go
    stale when the frequency table changes.
    """
    pattern_id: int
    canonical_title: str
    last_used_at: datetime
    category_frequencies: Dict[Hashable, CategoryFrequency] = field(default_factory=dict)
    price_combinations: List[PriceCategoryCombination] = field(default_factory=list)

    @classmethod
    def seed(
        cls,
        pattern_id: int,
        title: str,
        price: Decimal,
        category_id: Hashable,
        occurred_at: datetime,
    ) -> "Pattern":
        """Create a pattern from its first observation."""
        pattern = cls(pattern_id=pattern_id, canonical_title=title, last_used_at=occurred_at)
        pattern.add_observation(price, category_id, occurred_at)
        return pattern

    @property
    def total_frequency(self) -> int:
        return sum(cf.count for cf in self.category_frequencies.values())

    @property
    def category_confidence(self) -> float:
        """Fraction of observations assigned to the most common category."""
        total = self.total_frequency
        if total == 0:
            return 0.0
        return max(cf.count for cf in self.category_frequencies.values()) / total

    @property
    def most_used_category(self) -> Optional[Hashable]:
        # max() keeps the first maximum, i.e. the earliest learned category
        if not self.category_frequencies:
            return None
        return max(self.category_frequencies.values(), key=lambda cf: cf.count).category_id

    @property
    def most_used_price(self) -> Optional[Decimal]:
        if not self.price_combinations:
            return None
        return max(self.price_combinations, key=lambda combo: combo.frequency).price

    @property
    def keywords(self) -> List[str]:
        return extract_keywords(self.canonical_title)

    def top_categories(self, limit: int = 3) -> List[Hashable]:
        ranked = sorted(self.category_frequencies.values(), key=lambda cf: cf.count, reverse=True)
        return [cf.category_id for cf in ranked[:limit]]

    def add_observation(self, price: Decimal, category_id: Hashable, occurred_at: datetime) -> None:
        """Count one more transaction for ``category_id`` at ``price``."""
        self._add_price(price, category_id, 1)

        existing = self.category_frequencies.get(category_id)
        if existing:
            existing.count += 1
            existing.last_used_at = _latest(existing.last_used_at, occurred_at)
        else:
            self.category_frequencies[category_id] = CategoryFrequency(
                category_id=category_id,
                count=1,
                last_used_at=occurred_at,
            )

        self.last_used_at = _latest(self.last_used_at, occurred_at)

    def absorb(self, other: "Pattern") -> None:
        """
        Fold every count of ``other`` into this pattern.

        Counts are summed per category and per price combination. The
        canonical title of this pattern is kept.
        """
        for cf in other.category_frequencies.values():
            existing = self.category_frequencies.get(cf.category_id)
            if existing:
                existing.count += cf.count
                existing.last_used_at = _latest(existing.last_used_at, cf.last_used_at)
            else:
                self.category_frequencies[cf.category_id] = CategoryFrequency(
                    category_id=cf.category_id,
                    count=cf.count,
                    last_used_at=cf.last_used_at,
                )

        for combo in other.price_combinations:
            self._add_price(combo.price, combo.category_id, combo.frequency)

        self.last_used_at = _latest(self.last_used_at, other.last_used_at)

    def copy(self) -> "Pattern":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern_id": self.pattern_id,
            "canonical_title": self.canonical_title,
            "total_frequency": self.total_frequency,
            "category_confidence": self.category_confidence,
            "last_used_at": self.last_used_at.isoformat() if self.last_used_at else None,
            "category_frequencies": [
                {
                    "category_id": cf.category_id,
                    "count": cf.count,
                    "last_used_at": cf.last_used_at.isoformat() if cf.last_used_at else None,
                }
                for cf in self.category_frequencies.values()
            ],
            "price_combinations": [
                {"price": str(combo.price), "category_id": combo.category_id, "frequency": combo.frequency}
                for combo in self.price_combinations
            ],
        }

    def _add_price(self, price: Decimal, category_id: Hashable, frequency: int) -> None:
        for combo in self.price_combinations:
            if combo.price == price and combo.category_id == category_id:
                combo.frequency += frequency
                return
        self.price_combinations.append(
            PriceCategoryCombination(price=price, category_id=category_id, frequency=frequency)
        )


def _latest(current: Optional[datetime], candidate: Optional[datetime]) -> Optional[datetime]:
    if current is None:
        return candidate
    if candidate is None:
        return current
    return candidate if candidate > current else current
