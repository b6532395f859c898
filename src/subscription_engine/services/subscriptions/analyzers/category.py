"""
Category analyzer for subscription detection.
"""

import logging
from typing import Iterable, Optional

from subscription_engine.services.subscriptions.reference_data import (
    DEFAULT_REFERENCE_DATA,
    SubscriptionReferenceData,
)

logger = logging.getLogger(__name__)


class CategorySignalEvaluator:
    """Decides whether a transaction category implies a subscription."""

    def __init__(self, reference_data: SubscriptionReferenceData = DEFAULT_REFERENCE_DATA):
        self.exact_categories = frozenset(reference_data.exact_categories)
        self.category_keywords = reference_data.category_keywords

    def is_subscription_category(self, category: Optional[str]) -> bool:
        """
        Check a single category name.

        Exact allowlist entries match first; otherwise any keyword contained
        in the category matches ("Streaming Services" contains "streaming").
        """
        if not category:
            return False

        normalized = category.lower().strip()
        if not normalized:
            return False

        if normalized in self.exact_categories:
            return True

        return any(keyword in normalized for keyword in self.category_keywords)

    def any_subscription_category(self, categories: Iterable[Optional[str]]) -> bool:
        """True if any of the categories implies a subscription."""
        return any(self.is_subscription_category(category) for category in categories)
