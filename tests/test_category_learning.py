"""
Tests for the Category Learning Service, configuration and error types.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from spendsense.core.config import LearningConfig
from spendsense.models.transactions import Transaction
from spendsense.services.category_learning import CategoryLearningService
from spendsense.services.errors import ConfigError, ErrorCode, InvalidInputError


NOW = datetime(2026, 1, 15, 12, 0)


def txn(title, category_id, days_ago=0, amount="10.00"):
    return Transaction(
        title=title,
        amount=Decimal(amount),
        category_id=category_id,
        occurred_at=NOW - timedelta(days=days_ago),
    )


class TestLearningConfig:

    def test_defaults(self):
        config = LearningConfig()

        assert config.match_threshold == 0.7
        assert config.merge_threshold == 0.8
        assert config.suggestion_threshold == 0.1
        assert config.window_days == 90
        assert config.rebuild_every == 10

    @pytest.mark.parametrize("field,value", [
        ("match_threshold", 1.5),
        ("merge_threshold", -0.1),
        ("suggestion_limit", 0),
        ("window_days", -3),
    ])
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ConfigError) as exc_info:
            LearningConfig(**{field: value})

        assert exc_info.value.code == ErrorCode.INVALID_CONFIG
        assert exc_info.value.context == {"field": field}

    def test_from_env(self):
        config = LearningConfig.from_env({
            "SPENDSENSE_MATCH_THRESHOLD": "0.75",
            "SPENDSENSE_WINDOW_DAYS": "30",
            "SPENDSENSE_REBUILD_EVERY": "",
        })

        assert config.match_threshold == 0.75
        assert config.window_days == 30
        assert config.rebuild_every == 10

    def test_from_process_environment(self, monkeypatch):
        monkeypatch.setenv("SPENDSENSE_SUGGESTION_LIMIT", "8")

        assert LearningConfig.from_env().suggestion_limit == 8

    def test_from_env_invalid_number(self):
        with pytest.raises(ConfigError):
            LearningConfig.from_env({"SPENDSENSE_WINDOW_DAYS": "ninety"})

    def test_to_dict(self):
        assert LearningConfig().to_dict()["fallback_limit"] == 3


class TestErrors:

    def test_invalid_input_to_dict(self):
        error = InvalidInputError("title", "Title is empty")

        assert error.to_dict() == {
            "code": "INVALID_INPUT",
            "message": "Invalid value for 'title'",
            "detail": "Title is empty",
            "context": {"field": "title"},
        }

    def test_str_includes_detail(self):
        error = ConfigError("window_days", "Must be a positive integer, got 0")

        assert str(error) == "Invalid configuration for 'window_days': Must be a positive integer, got 0"
        assert error.code == ErrorCode.INVALID_CONFIG


class TestTransaction:

    def test_blank_title_rejected(self):
        with pytest.raises(ValidationError):
            txn("   ", "C1")

    def test_title_stripped(self):
        assert txn("  Netflix ", "C1").title == "Netflix"

    def test_immutable(self):
        transaction = txn("Netflix", "C1")

        with pytest.raises(ValidationError):
            transaction.title = "Spotify"

    def test_amount_coerced_to_decimal(self):
        transaction = Transaction(title="Lunch", amount=12.5, category_id=3, occurred_at=NOW)

        assert transaction.amount == Decimal("12.5")
        assert transaction.category_id == 3


class TestCategoryLearningService:

    def setup_method(self):
        self.service = CategoryLearningService(LearningConfig(rebuild_every=3))
        self.history = []

    def record(self, transaction):
        self.history.append(transaction)
        return self.service.record_transaction(transaction, history=list(self.history), now=NOW)

    def test_rebuild_policy(self):
        """Rebuild on an empty store, then every Nth transaction."""
        rebuilds = [self.record(txn(f"Shop {i}", "C", days_ago=1)) for i in range(7)]

        assert rebuilds == [True, False, False, True, False, False, True]

    def test_quick_update_between_rebuilds(self):
        self.record(txn("Netflix", "streaming"))
        self.record(txn("Netflix", "streaming"))

        (pattern,) = self.service.snapshot()
        assert pattern.total_frequency == 2

    def test_quick_update_skips_transactions_outside_window(self):
        self.record(txn("Netflix", "streaming"))
        self.record(txn("Old Gym", "health", days_ago=200))

        assert [p.canonical_title for p in self.service.snapshot()] == ["Netflix"]

    def test_without_history_always_quick_updates(self):
        assert self.service.record_transaction(txn("Netflix", "streaming"), now=NOW) is False
        assert len(self.service.snapshot()) == 1

    def test_refresh(self):
        history = [txn("Netflix", "streaming"), txn("Spotify", "music"), txn("Gym", "health", days_ago=365)]

        assert self.service.refresh(history, now=NOW) == 2

    def test_queries(self):
        for _ in range(4):
            self.record(txn("Netflix", "C1"))
        self.record(txn("Netflix", "C2"))

        assert self.service.predict_category("netflix").category_id == "C1"
        assert [s.category_id for s in self.service.top_category_suggestions("netflix")] == ["C1", "C2"]
        assert [p.canonical_title for p in self.service.category_focused_suggestions("netflix")] == ["Netflix"]

    def test_suggest_returns_copies(self):
        self.record(txn("Netflix", "C1"))

        (suggestion,) = self.service.suggest("netflix")
        suggestion.add_observation(Decimal("1"), "C9", NOW)

        assert "C9" not in self.service.snapshot()[0].category_frequencies

    def test_timezone_aware_history(self):
        service = CategoryLearningService()
        recent = Transaction(
            title="Netflix",
            amount=Decimal("15.99"),
            category_id="C1",
            occurred_at=datetime.now(timezone.utc) - timedelta(days=1),
        )

        assert service.record_transaction(recent, history=[recent]) is True
        assert service.predict_category("Netflix").category_id == "C1"

    def test_concurrent_reads_during_refresh(self):
        """Readers and rebuilds can share the service."""
        history = [txn(f"Merchant {i}", f"C{i % 4}", days_ago=i % 30) for i in range(60)]
        self.service.refresh(history, now=NOW)

        def read(i):
            return self.service.top_category_suggestions(f"merchant {i}")

        def rebuild(_):
            return self.service.refresh(history, now=NOW)

        with ThreadPoolExecutor(max_workers=4) as pool:
            reads = list(pool.map(read, range(40)))
            rebuilds = list(pool.map(rebuild, range(4)))

        assert all(isinstance(result, list) for result in reads)
        assert len(set(rebuilds)) == 1
