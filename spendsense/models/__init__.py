from spendsense.models.base import SSBaseModel
from spendsense.models.patterns import CategoryFrequency, Pattern, PriceCategoryCombination
from spendsense.models.transactions import Transaction

__all__ = [
    "CategoryFrequency",
    "Pattern",
    "PriceCategoryCombination",
    "SSBaseModel",
    "Transaction",
]
