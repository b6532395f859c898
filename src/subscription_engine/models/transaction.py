"""
Normalized transaction model used by subscription detection.

Raw transactions arrive with heterogeneous field names and sign conventions.
The normalizer converts each of them into a NormalizedTransaction, which only
lives for the duration of a single detection run.
"""

import logging
import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict

logger = logging.getLogger(__name__)

UNKNOWN_MERCHANT = "Unknown"
UNKNOWN_MERCHANT_KEY = "unknown"


class TransactionDirection(str, Enum):
    """Money flow direction of a transaction."""
    EXPENSE = "expense"
    INCOME = "income"


class NormalizedTransaction(BaseModel):
    """
    Canonical shape of a transaction inside the detection engine.

    Amounts are always stored as non-negative magnitudes; the direction field
    carries the sign information.
    """
    id: str
    date: Optional[datetime.date] = None
    amount: float = Field(default=0.0, ge=0.0)
    direction: TransactionDirection = TransactionDirection.EXPENSE
    merchant: str = Field(default=UNKNOWN_MERCHANT, min_length=1)
    description: str = ""
    merchant_key: str = Field(default=UNKNOWN_MERCHANT_KEY, alias="merchantKey")
    category: Optional[str] = None

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=False
    )

    @property
    def is_expense(self) -> bool:
        return self.direction == TransactionDirection.EXPENSE

    @property
    def has_resolved_merchant_key(self) -> bool:
        return self.merchant_key != UNKNOWN_MERCHANT_KEY


class SampleTransaction(BaseModel):
    """Compact view of a contributing transaction shown alongside a candidate."""
    id: str
    date: datetime.date
    amount: float

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_normalized(cls, transaction: NormalizedTransaction) -> "SampleTransaction":
        return cls(id=transaction.id, date=transaction.date, amount=transaction.amount)
