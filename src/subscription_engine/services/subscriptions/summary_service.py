"""
Subscription Summary Service.

Aggregates the monthly cost of a user's confirmed subscriptions.
"""

import logging
from typing import Dict, Iterable

from subscription_engine.models.subscription import (
    CategorySpend,
    MerchantSpend,
    Subscription,
    SubscriptionOverview,
    SubscriptionStatus,
    SubscriptionSummary,
)

logger = logging.getLogger(__name__)

UNCATEGORIZED = "uncategorized"


class SubscriptionSummaryService:
    """Builds spending summaries over confirmed subscriptions."""

    def summarize(self, subscriptions: Iterable[Subscription]) -> SubscriptionSummary:
        """
        Summarize confirmed subscriptions.

        Pending and rejected subscriptions are ignored. Rows are ordered by
        monthly amount, highest first; categories appear in the order their
        first subscription does, with missing categories under "uncategorized".

        Args:
            subscriptions: Subscriptions of one user

        Returns:
            SubscriptionSummary
        """
        confirmed = sorted(
            (s for s in subscriptions if s.status == SubscriptionStatus.CONFIRMED),
            key=lambda s: -s.estimated_monthly_amount
        )

        by_category: Dict[str, CategorySpend] = {}
        for subscription in confirmed:
            category_id = subscription.category_id or UNCATEGORIZED
            spend = by_category.setdefault(category_id, CategorySpend(categoryId=category_id))
            spend.amount += subscription.estimated_monthly_amount
            spend.count += 1

        summary = SubscriptionSummary(
            totalMonthly=sum(s.estimated_monthly_amount for s in confirmed),
            byMerchant=[
                MerchantSpend(
                    merchant=s.merchant,
                    amount=s.estimated_monthly_amount,
                    frequency=s.frequency,
                    subscriptionId=s.subscription_id
                )
                for s in confirmed
            ],
            byCategory=list(by_category.values()),
            subscriptions=[
                SubscriptionOverview(
                    subscriptionId=s.subscription_id,
                    merchant=s.merchant,
                    categoryId=s.category_id,
                    estimatedMonthlyAmount=s.estimated_monthly_amount,
                    frequency=s.frequency,
                    lastTransactionDate=s.last_charge_date
                )
                for s in confirmed
            ]
        )

        logger.info(
            f"Summarized {len(confirmed)} confirmed subscriptions: "
            f"{summary.total_monthly:.2f} per month across {len(by_category)} categories"
        )
        return summary
