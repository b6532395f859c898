"""
Candidate assembly for subscription detection.

Turns a decided merchant group into a SubscriptionCandidate: derived
amounts and dates, signal strengths, the human-readable reason and the
sample transactions. Also provides the final ranking of candidates.
"""

import logging
from collections import Counter
from typing import List, Optional, Sequence

from subscription_engine.models.subscription import (
    AmountConsistency,
    DecisionOutcome,
    DetectionMethod,
    DetectionSignals,
    SubscriptionCandidate,
)
from subscription_engine.models.transaction import NormalizedTransaction, SampleTransaction
from subscription_engine.services.subscriptions.analyzers.decision import Decision, GroupSignals
from subscription_engine.services.subscriptions.config import (
    DEFAULT_GAP_DAYS,
    TYPICAL_GAP_DAYS,
    DetectionConfig,
    normalize_to_monthly,
)
from subscription_engine.utils.temporal_utils import add_days

logger = logging.getLogger(__name__)

DEFAULT_REASON = "Recurring pattern detected"

METHOD_REASONS = {
    DetectionMethod.CATEGORY: "Detected from subscription category",
    DetectionMethod.KNOWN_SUBSCRIPTION: "Detected as known subscription service",
    DetectionMethod.RECURRENCE: "Detected from recurring charge pattern",
}

FALLBACK_REASON = "Detected from repeated charges (assumed monthly)"

STRONG_RECURRENCE = 0.7
MODERATE_RECURRENCE = 0.5
VERY_CONSISTENT_AMOUNTS = 0.8
MOSTLY_CONSISTENT_AMOUNTS = 0.6


def most_common_category(transactions: Sequence[NormalizedTransaction]) -> Optional[str]:
    """Most frequent non-empty category; the first one seen wins ties."""
    counts = Counter(tx.category for tx in transactions if tx.category)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


class CandidateAssembler:
    """Builds and ranks subscription candidates."""

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()

    def build(self, signals: GroupSignals, decision: Decision) -> SubscriptionCandidate:
        """
        Build the candidate for a detected group.

        Args:
            signals: Summary of the date-sorted merchant group
            decision: Accepting decision for the group

        Returns:
            SubscriptionCandidate
        """
        transactions = signals.transactions
        first, last = transactions[0], transactions[-1]
        amount = signals.amount or AmountConsistency(medianAmount=first.amount)
        median_amount = amount.median_amount

        return SubscriptionCandidate(
            merchantKey=signals.merchant_key,
            merchant=signals.known_service.name if signals.known_service else first.merchant,
            categoryId=most_common_category(transactions),
            estimatedMonthlyAmount=normalize_to_monthly(median_amount, decision.frequency),
            frequency=decision.frequency,
            firstDetectedDate=first.date,
            lastChargeDate=last.date,
            nextExpectedDate=add_days(last.date, self.next_gap_days(signals, decision)),
            confidenceScore=min(1.0, max(0.0, decision.confidence)),
            contributingTransactionIds=[tx.id for tx in transactions],
            occurrenceCount=len(transactions),
            averageAmount=median_amount,
            variancePercentage=amount.variance_percentage,
            signals=self.build_signals(signals),
            detectionMethod=decision.method,
            patternType=decision.pattern_type,
            reason=self.build_reason(signals, decision),
            sampleTransactions=[
                SampleTransaction.from_normalized(tx)
                for tx in transactions[:self.config.sample_size]
            ]
        )

    @staticmethod
    def next_gap_days(signals: GroupSignals, decision: Decision) -> int:
        """Days from the last charge to the next expected one."""
        if signals.recurrence is not None:
            return signals.recurrence.median_gap_days
        if signals.known_service is not None:
            return TYPICAL_GAP_DAYS.get(decision.frequency, DEFAULT_GAP_DAYS)
        return DEFAULT_GAP_DAYS

    def build_signals(self, signals: GroupSignals) -> DetectionSignals:
        confidence = self.config.confidence
        return DetectionSignals(
            recurrenceScore=signals.recurrence.consistency if signals.recurrence else 0.0,
            amountConsistencyScore=(
                signals.amount.score if signals.amount is not None else confidence.default_amount_signal
            ),
            keywordScore=confidence.keyword_signal if signals.known_service else 0.0,
            categoryScore=confidence.category_signal if signals.category_match else 0.0
        )

    @staticmethod
    def build_reason(signals: GroupSignals, decision: Decision) -> str:
        """
        Human-readable explanation, parts joined with "; ".

        Example:
            "Detected as known subscription service; Known subscription service (netflix);
            Strong recurring pattern (monthly, 1.00 consistency); Very consistent amounts"
        """
        parts: List[str] = []

        if decision.outcome == DecisionOutcome.FALLBACK:
            parts.append(FALLBACK_REASON)
        elif decision.method in METHOD_REASONS:
            parts.append(METHOD_REASONS[decision.method])

        if signals.known_service is not None:
            parts.append(f"Known subscription service ({signals.known_service.name})")
        if signals.category_match:
            parts.append("Category suggests subscription")

        recurrence = signals.recurrence
        if recurrence is not None:
            if recurrence.consistency > STRONG_RECURRENCE:
                parts.append(
                    f"Strong recurring pattern ({recurrence.pattern_label}, "
                    f"{recurrence.consistency:.2f} consistency)"
                )
            elif recurrence.consistency > MODERATE_RECURRENCE:
                parts.append(f"Moderate recurring pattern ({recurrence.pattern_label})")
            else:
                parts.append(f"Weak recurring pattern ({recurrence.pattern_label})")

        amount_score = signals.amount.score if signals.amount is not None else 0.0
        if amount_score > VERY_CONSISTENT_AMOUNTS:
            parts.append("Very consistent amounts")
        elif amount_score > MOSTLY_CONSISTENT_AMOUNTS:
            parts.append("Mostly consistent amounts")

        return "; ".join(parts) or DEFAULT_REASON

    @staticmethod
    def rank(candidates: List[SubscriptionCandidate]) -> List[SubscriptionCandidate]:
        """Sort by confidence descending; equal scores keep their order."""
        return sorted(candidates, key=lambda candidate: -candidate.confidence_score)
