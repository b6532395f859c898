"""
Decision rules for subscription detection.

Each merchant group is summarised into a GroupSignals object and then run
through an ordered list of DecisionRule objects. The first rule that accepts
the group decides its detection method, frequency and base confidence; when
no rule accepts it, the outcome is NO_MATCH and no candidate is emitted.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from subscription_engine.models.subscription import (
    AmountConsistency,
    DecisionOutcome,
    DetectionMethod,
    KnownServiceMatch,
    RecurrencePattern,
    SubscriptionFrequency,
)
from subscription_engine.models.transaction import NormalizedTransaction
from subscription_engine.services.subscriptions.config import (
    ConfidenceConfig,
    DetectionOptions,
    ExclusionConfig,
)

logger = logging.getLogger(__name__)

CATEGORY_PATTERN_TYPE = "category-based"
KNOWN_SERVICE_PATTERN_TYPE = "known-service"
FALLBACK_PATTERN_TYPE = "assumed-monthly"


def is_housing_payment(
    merchant_key: str,
    categories: Iterable[Optional[str]],
    exclusions: ExclusionConfig
) -> bool:
    """
    True for rent, housing or mortgage payments.

    These recur like subscriptions but must not be reported from the
    recurrence or fallback rules.
    """
    if any(keyword in merchant_key for keyword in exclusions.merchant_key_keywords):
        return True
    for category in categories:
        if category and any(keyword in category for keyword in exclusions.category_keywords):
            return True
    return False


@dataclass
class GroupSignals:
    """Everything the decision rules know about one merchant group."""
    merchant_key: str
    transactions: List[NormalizedTransaction]
    amount: Optional[AmountConsistency] = None
    recurrence: Optional[RecurrencePattern] = None
    known_service: Optional[KnownServiceMatch] = None
    category_signal: bool = False
    housing_payment: bool = False
    exceeds_max_variance: bool = False
    date_span_days: int = 0

    @property
    def occurrence_count(self) -> int:
        return len(self.transactions)

    @property
    def category_match(self) -> bool:
        return self.category_signal and not self.housing_payment


@dataclass
class Decision:
    """Tagged result of the decision rules for one group."""
    outcome: DecisionOutcome
    method: Optional[DetectionMethod] = None
    frequency: Optional[SubscriptionFrequency] = None
    confidence: float = 0.0
    pattern_type: str = ""

    @property
    def is_detected(self) -> bool:
        return self.outcome != DecisionOutcome.NO_MATCH


class DecisionRule(ABC):
    """One step of the ordered decision chain."""

    def __init__(self, confidence: ConfidenceConfig):
        self.confidence = confidence

    @property
    @abstractmethod
    def outcome(self) -> DecisionOutcome:
        pass

    @abstractmethod
    def evaluate(self, signals: GroupSignals, options: DetectionOptions) -> Optional[Decision]:
        """
        Decide the group, or return None to pass it to the next rule.

        Args:
            signals: Summary of the merchant group
            options: Per-call detection options

        Returns:
            Decision if this rule accepts the group, None otherwise
        """
        pass

    def _boosted(self) -> float:
        return min(self.confidence.boosted_cap, self.confidence.signal_base + self.confidence.recurrence_boost)


class CategoryMatchRule(DecisionRule):
    """Group carries a subscription-like category."""

    @property
    def outcome(self) -> DecisionOutcome:
        return DecisionOutcome.CATEGORY_MATCH

    def evaluate(self, signals: GroupSignals, options: DetectionOptions) -> Optional[Decision]:
        if not signals.category_match:
            return None

        if signals.recurrence is not None:
            frequency = signals.recurrence.frequency
            confidence = self._boosted()
        elif signals.known_service is not None:
            frequency = signals.known_service.typical_frequency
            confidence = self.confidence.category_with_known_service
        else:
            frequency = SubscriptionFrequency.MONTHLY
            confidence = self.confidence.signal_base

        return Decision(
            outcome=self.outcome,
            method=DetectionMethod.CATEGORY,
            frequency=frequency,
            confidence=confidence,
            pattern_type=CATEGORY_PATTERN_TYPE
        )


class KnownServiceRule(DecisionRule):
    """Merchant is a well-known subscription service."""

    @property
    def outcome(self) -> DecisionOutcome:
        return DecisionOutcome.KNOWN_SERVICE

    def evaluate(self, signals: GroupSignals, options: DetectionOptions) -> Optional[Decision]:
        if signals.known_service is None:
            return None

        if signals.recurrence is not None:
            frequency = signals.recurrence.frequency
            confidence = self._boosted()
        else:
            frequency = signals.known_service.typical_frequency
            confidence = self.confidence.signal_base

        return Decision(
            outcome=self.outcome,
            method=DetectionMethod.KNOWN_SUBSCRIPTION,
            frequency=frequency,
            confidence=confidence,
            pattern_type=KNOWN_SERVICE_PATTERN_TYPE
        )


class RecurrenceRule(DecisionRule):
    """Regular gaps over enough occurrences."""

    @property
    def outcome(self) -> DecisionOutcome:
        return DecisionOutcome.RECURRENCE

    def evaluate(self, signals: GroupSignals, options: DetectionOptions) -> Optional[Decision]:
        recurrence = signals.recurrence
        if recurrence is None:
            return None
        if signals.occurrence_count < options.min_occurrences:
            return None
        if signals.housing_payment or signals.exceeds_max_variance:
            return None

        confidence = self.confidence.recurrence_base + recurrence.consistency * self.confidence.recurrence_consistency_weight
        if signals.amount is not None and signals.amount.is_consistent:
            confidence += signals.amount.score * self.confidence.amount_score_weight
        else:
            confidence = max(
                self.confidence.recurrence_base,
                confidence - self.confidence.inconsistent_amount_penalty
            )

        return Decision(
            outcome=self.outcome,
            method=DetectionMethod.RECURRENCE,
            frequency=recurrence.frequency,
            confidence=confidence,
            pattern_type=recurrence.pattern_label
        )


class FallbackRule(DecisionRule):
    """Repeated charges spanning at least a month, assumed monthly."""

    @property
    def outcome(self) -> DecisionOutcome:
        return DecisionOutcome.FALLBACK

    def evaluate(self, signals: GroupSignals, options: DetectionOptions) -> Optional[Decision]:
        if signals.occurrence_count < max(options.min_occurrences, 2):
            return None
        if signals.housing_payment or signals.exceeds_max_variance:
            return None
        if signals.date_span_days < self.confidence.fallback_min_span_days:
            return None

        return Decision(
            outcome=self.outcome,
            method=DetectionMethod.RECURRENCE,
            frequency=SubscriptionFrequency.MONTHLY,
            confidence=self.confidence.fallback,
            pattern_type=FALLBACK_PATTERN_TYPE
        )


class DecisionEngine:
    """
    Runs the ordered decision rules over a merchant group.

    Default order: category match, known service, recurrence, fallback.
    """

    def __init__(
        self,
        confidence: Optional[ConfidenceConfig] = None,
        rules: Optional[Sequence[DecisionRule]] = None
    ):
        """
        Initialize the decision engine.

        Args:
            confidence: Confidence values for the default rules
            rules: Custom ordered rules (default rules are built if None)
        """
        self.confidence = confidence or ConfidenceConfig()
        if rules is None:
            rules = [
                CategoryMatchRule(self.confidence),
                KnownServiceRule(self.confidence),
                RecurrenceRule(self.confidence),
                FallbackRule(self.confidence),
            ]
        self.rules = list(rules)

    def decide(self, signals: GroupSignals, options: DetectionOptions) -> Decision:
        """
        Apply the rules in order; the first accepting rule wins.

        Returns:
            Decision, with outcome NO_MATCH if every rule passed
        """
        for rule in self.rules:
            decision = rule.evaluate(signals, options)
            if decision is not None:
                logger.debug(
                    f"Group '{signals.merchant_key}' decided as {decision.outcome.value} "
                    f"({decision.frequency.value if decision.frequency else 'n/a'}, {decision.confidence:.2f})"
                )
                return decision

        logger.debug(f"Group '{signals.merchant_key}' matched no decision rule")
        return Decision(outcome=DecisionOutcome.NO_MATCH)
