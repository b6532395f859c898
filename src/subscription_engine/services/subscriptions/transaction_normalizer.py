"""
Transaction normalization for subscription detection.

Converts raw transaction records with heterogeneous field names, sign
conventions and date formats into NormalizedTransaction objects. Raw records
may be mappings (JSON payloads, database items) or plain objects exposing the
same names as attributes.

Normalization never raises: missing or malformed fields fall back to defaults
and the affected rows are filtered out later in the pipeline.
"""

import re
import math
import uuid
import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Optional, Sequence

from subscription_engine.models.transaction import (
    NormalizedTransaction,
    TransactionDirection,
    UNKNOWN_MERCHANT,
)
from subscription_engine.services.subscriptions.merchant_key import MerchantKeyExtractor
from subscription_engine.utils.temporal_utils import parse_transaction_date

logger = logging.getLogger(__name__)

ID_FIELDS = ('id', 'transaction_id', 'transactionId')
DATE_FIELDS = ('date', 'transaction_date', 'transactionDate', 'timestamp')
MERCHANT_FIELDS = ('merchant', 'merchant_name')
DESCRIPTION_FIELDS = ('description', 'memo', 'note')
CATEGORY_FIELDS = ('category', 'category_id', 'categoryId', 'category_name')
DIRECTION_FIELDS = ('type', 'direction')

INCOME_TYPES = frozenset({'income', 'credit', 'deposit'})
EXPENSE_TYPES = frozenset({'expense', 'debit', 'withdrawal', 'payment'})
DIRECTION_LABELS = INCOME_TYPES | EXPENSE_TYPES

_NON_NUMERIC = re.compile(r'[^0-9.\-]')


def _field(raw: Any, name: str) -> Any:
    if isinstance(raw, Mapping):
        return raw.get(name)
    return getattr(raw, name, None)


def _first_present(raw: Any, names: Sequence[str]) -> Any:
    for name in names:
        value = _field(raw, name)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _text(value: Any) -> str:
    if value is None:
        return ''
    return str(value).strip()


class TransactionNormalizer:
    """
    Maps one raw transaction record to a NormalizedTransaction.

    Example:
        >>> normalizer = TransactionNormalizer()
        >>> tx = normalizer.normalize({'date': '2024-01-15', 'amount': '-$9.99', 'merchant': 'NETFLIX.COM'})
        >>> tx.amount, tx.direction, tx.merchant_key
        (9.99, <TransactionDirection.EXPENSE: 'expense'>, 'netflix')
    """

    def __init__(self, merchant_key_extractor: Optional[MerchantKeyExtractor] = None):
        self.merchant_key_extractor = merchant_key_extractor or MerchantKeyExtractor()

    def normalize(self, raw: Any) -> NormalizedTransaction:
        """
        Normalize a raw transaction record.

        Args:
            raw: Mapping or object with transaction fields

        Returns:
            NormalizedTransaction with non-negative amount and explicit direction
        """
        signed_amount = self.parse_amount(_field(raw, 'amount'))
        merchant = _text(_first_present(raw, MERCHANT_FIELDS))
        description = _text(_first_present(raw, DESCRIPTION_FIELDS))

        return NormalizedTransaction(
            id=self._transaction_id(raw),
            date=parse_transaction_date(_first_present(raw, DATE_FIELDS)),
            amount=abs(signed_amount),
            direction=self.resolve_direction(self._direction_label(raw), signed_amount),
            merchant=merchant or description or UNKNOWN_MERCHANT,
            description=description or merchant,
            merchantKey=self.merchant_key_extractor.extract(merchant or description),
            category=self._category(raw)
        )

    @staticmethod
    def parse_amount(value: Any) -> float:
        """
        Parse a signed amount.

        Strings are stripped of everything except digits, dot and minus
        ("-$1,299.00" -> -1299.0). Anything non-numeric becomes 0.
        """
        if value is None or isinstance(value, bool):
            return 0.0

        if isinstance(value, (int, float, Decimal)):
            amount = float(value)
        else:
            cleaned = _NON_NUMERIC.sub('', str(value))
            try:
                amount = float(cleaned)
            except ValueError:
                if cleaned or str(value).strip():
                    logger.warning(f"Non-numeric transaction amount '{value}', using 0")
                return 0.0

        if math.isnan(amount) or math.isinf(amount):
            logger.warning(f"Non-finite transaction amount '{value}', using 0")
            return 0.0
        return amount

    @staticmethod
    def resolve_direction(type_value: Any, signed_amount: float) -> TransactionDirection:
        """
        Resolve money flow direction from an explicit type, else from the sign.

        Args:
            type_value: Raw `type`/`direction` value (may be None)
            signed_amount: Parsed amount before taking its magnitude

        Returns:
            TransactionDirection
        """
        label = _text(type_value).lower()
        if label in INCOME_TYPES:
            return TransactionDirection.INCOME
        if label in EXPENSE_TYPES:
            return TransactionDirection.EXPENSE
        return TransactionDirection.EXPENSE if signed_amount < 0 else TransactionDirection.INCOME

    @staticmethod
    def _direction_label(raw: Any) -> Any:
        """First recognised direction label among the type fields, else the first present value."""
        for name in DIRECTION_FIELDS:
            value = _field(raw, name)
            if _text(value).lower() in DIRECTION_LABELS:
                return value
        return _first_present(raw, DIRECTION_FIELDS)

    @staticmethod
    def _transaction_id(raw: Any) -> str:
        value = _first_present(raw, ID_FIELDS)
        if value is None:
            return f"tx-{uuid.uuid4().hex}"
        return str(value)

    @staticmethod
    def _category(raw: Any) -> Optional[str]:
        category = _text(_first_present(raw, CATEGORY_FIELDS)).lower()
        return category or None
