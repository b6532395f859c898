"""
Configuration classes for subscription detection.

Centralizes the thresholds, multipliers and weights used in the detection
pipeline, plus the per-call options accepted by the detection service.

The leniency multipliers and frequency ranges are tuned values. The ranges
overlap (monthly starts inside bi-weekly); the earlier range always wins.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, ConfigDict

from subscription_engine.models.subscription import SubscriptionFrequency


@dataclass
class FrequencyThresholds:
    """
    Inclusive day ranges for classifying the median gap between charges.

    Ranges are checked in declaration order and the first match wins.
    """

    weekly: Tuple[int, int] = (4, 12)
    """Weekly recurrence: 4 to 12 days between charges."""

    bi_weekly: Tuple[int, int] = (10, 20)
    """Bi-weekly recurrence: 10 to 20 days between charges."""

    monthly: Tuple[int, int] = (20, 45)
    """Monthly recurrence: 20 to 45 days between charges."""

    quarterly: Tuple[int, int] = (80, 100)
    """Quarterly recurrence: 80 to 100 days between charges."""

    annual: Tuple[int, int] = (340, 390)
    """Annual recurrence: 340 to 390 days between charges."""

    approximate_monthly: Tuple[int, int] = (15, 50)
    """Checked after every other range; matches are reported as approximate monthly."""

    def __post_init__(self):
        for name, (min_days, max_days) in self.to_list() + [
            (SubscriptionFrequency.MONTHLY, self.approximate_monthly)
        ]:
            if min_days < 0 or min_days > max_days:
                raise ValueError(f"Invalid day range for {name}: ({min_days}, {max_days})")

    def to_list(self) -> List[Tuple[SubscriptionFrequency, Tuple[int, int]]]:
        """
        Ordered (frequency, (min_days, max_days)) pairs, excluding the
        approximate-monthly range.
        """
        return [
            (SubscriptionFrequency.WEEKLY, self.weekly),
            (SubscriptionFrequency.BI_WEEKLY, self.bi_weekly),
            (SubscriptionFrequency.MONTHLY, self.monthly),
            (SubscriptionFrequency.QUARTERLY, self.quarterly),
            (SubscriptionFrequency.ANNUAL, self.annual),
        ]


@dataclass
class RecurrenceConfig:
    """Configuration for recurrence detection."""

    min_consistency: float = 0.4
    """Gap consistency below this value means no usable pattern."""


@dataclass
class AmountScoringConfig:
    """Multipliers and scores used by the amount consistency check."""

    tolerance_multiplier: float = 1.5
    """Widens both the percentage and the fixed tolerance."""

    second_chance_multiplier: float = 2.0
    """Deviations within this multiple of the tolerance still count as consistent."""

    variance_spread: float = 3.0
    """Variance at which the score reaches its floor, as a multiple of the tolerance percent."""

    min_consistent_score: float = 0.4
    near_miss_score: float = 0.3
    single_occurrence_score: float = 0.7


@dataclass
class ConfidenceConfig:
    """Confidence values assigned by the decision rules."""

    signal_base: float = 0.85
    """Starting confidence for category and known-service detections."""

    recurrence_boost: float = 0.10
    boosted_cap: float = 0.95
    category_with_known_service: float = 0.90

    recurrence_base: float = 0.4
    recurrence_consistency_weight: float = 0.3
    amount_score_weight: float = 0.2
    inconsistent_amount_penalty: float = 0.1

    fallback: float = 0.4
    fallback_min_span_days: int = 30

    keyword_signal: float = 0.9
    category_signal: float = 0.9
    default_amount_signal: float = 0.5


@dataclass
class ExclusionConfig:
    """Keywords that block pattern-based detection for housing payments."""

    merchant_key_keywords: Tuple[str, ...] = ('rent', 'housing')
    category_keywords: Tuple[str, ...] = ('rent', 'housing', 'mortgage')


MONTHLY_MULTIPLIERS: Dict[SubscriptionFrequency, float] = {
    SubscriptionFrequency.WEEKLY: 4.33,
    SubscriptionFrequency.BI_WEEKLY: 2.17,
    SubscriptionFrequency.MONTHLY: 1.0,
}

MONTHLY_DIVISORS: Dict[SubscriptionFrequency, int] = {
    SubscriptionFrequency.QUARTERLY: 3,
    SubscriptionFrequency.ANNUAL: 12,
}

TYPICAL_GAP_DAYS: Dict[SubscriptionFrequency, int] = {
    SubscriptionFrequency.WEEKLY: 7,
    SubscriptionFrequency.BI_WEEKLY: 14,
    SubscriptionFrequency.MONTHLY: 30,
    SubscriptionFrequency.QUARTERLY: 90,
    SubscriptionFrequency.ANNUAL: 365,
}

DEFAULT_GAP_DAYS = 30


def normalize_to_monthly(amount: float, frequency: SubscriptionFrequency) -> float:
    """Convert a per-charge amount to its monthly equivalent."""
    if frequency in MONTHLY_DIVISORS:
        return amount / MONTHLY_DIVISORS[frequency]
    return amount * MONTHLY_MULTIPLIERS.get(frequency, 1.0)


class DetectionOptions(BaseModel):
    """
    Per-call options for a detection run.

    Accepts camelCase keys from the request layer as well as snake_case.
    """
    min_occurrences: int = Field(default=2, alias="minOccurrences", ge=2)
    amount_variance_tolerance: float = Field(default=0.05, alias="amountVarianceTolerance", ge=0.0, le=0.5)
    amount_variance_fixed: float = Field(default=2.0, alias="amountVarianceFixed", ge=0.0)
    max_variance_threshold: Optional[float] = Field(default=None, alias="maxVarianceThreshold", ge=0.0)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class DetectionConfig:
    """
    Master configuration for subscription detection.

    Aggregates all configuration classes into a single configuration object.
    """

    def __init__(
        self,
        frequency_thresholds: Optional[FrequencyThresholds] = None,
        recurrence: Optional[RecurrenceConfig] = None,
        amount_scoring: Optional[AmountScoringConfig] = None,
        confidence: Optional[ConfidenceConfig] = None,
        exclusions: Optional[ExclusionConfig] = None,
        sample_size: int = 3
    ):
        """
        Initialize detection configuration.

        Args:
            frequency_thresholds: Gap ranges per frequency (creates default if None)
            recurrence: Recurrence detection config (creates default if None)
            amount_scoring: Amount consistency multipliers (creates default if None)
            confidence: Decision rule confidences (creates default if None)
            exclusions: Housing exclusion keywords (creates default if None)
            sample_size: Number of sample transactions kept per candidate
        """
        self.frequency_thresholds = frequency_thresholds or FrequencyThresholds()
        self.recurrence = recurrence or RecurrenceConfig()
        self.amount_scoring = amount_scoring or AmountScoringConfig()
        self.confidence = confidence or ConfidenceConfig()
        self.exclusions = exclusions or ExclusionConfig()
        self.sample_size = sample_size


# Default configuration instance
DEFAULT_CONFIG = DetectionConfig()
