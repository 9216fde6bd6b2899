"""Transaction records supplied by the expense ledger."""
from datetime import datetime
from decimal import Decimal
from typing import Hashable

from pydantic import ConfigDict, Field

from spendsense.models.base import SSBaseModel


class Transaction(SSBaseModel):
    """An observed expense. Category ids are opaque and never validated."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(..., min_length=1)
    amount: Decimal
    category_id: Hashable
    occurred_at: datetime
