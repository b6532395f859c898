"""
Recurrence analyzer for subscription detection.

Infers a billing frequency from the day gaps between consecutive charges.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from subscription_engine.models.subscription import RecurrencePattern, SubscriptionFrequency
from subscription_engine.models.transaction import NormalizedTransaction
from subscription_engine.services.subscriptions.config import (
    FrequencyThresholds,
    RecurrenceConfig,
)
from subscription_engine.utils.temporal_utils import days_between

logger = logging.getLogger(__name__)


class RecurrenceDetector:
    """
    Detects a periodic pattern in a merchant group.

    Uses the median gap rather than the mean so that a single late or
    skipped charge does not shift the classification.
    """

    def __init__(
        self,
        frequency_thresholds: Optional[FrequencyThresholds] = None,
        config: Optional[RecurrenceConfig] = None
    ):
        """
        Initialize the recurrence detector.

        Args:
            frequency_thresholds: Inclusive gap ranges per frequency
            config: Minimum consistency settings
        """
        self.frequency_thresholds = frequency_thresholds or FrequencyThresholds()
        self.config = config or RecurrenceConfig()

    def detect(self, transactions: Sequence[NormalizedTransaction]) -> Optional[RecurrencePattern]:
        """
        Detect the recurrence pattern of a date-sorted group.

        Args:
            transactions: Group members sorted by date ascending

        Returns:
            RecurrencePattern, or None if the gaps show no usable pattern
        """
        if len(transactions) < 2:
            return None

        gaps = self.calculate_gaps(transactions)
        if not gaps:
            return None

        median_gap = self.median_gap(gaps)
        consistency = self.gap_consistency(gaps, median_gap)
        if consistency < self.config.min_consistency:
            logger.debug(f"Gap consistency {consistency:.2f} below minimum for gaps {gaps}")
            return None

        classified = self.classify(median_gap)
        if classified is None:
            logger.debug(f"Median gap of {median_gap} days matches no frequency")
            return None

        frequency, is_approximate = classified
        return RecurrencePattern(
            frequency=frequency,
            medianGapDays=median_gap,
            consistency=consistency,
            gaps=gaps,
            isApproximate=is_approximate
        )

    @staticmethod
    def calculate_gaps(transactions: Sequence[NormalizedTransaction]) -> List[int]:
        """
        Day gaps between consecutive transactions, discarding non-positive ones
        (same-day duplicates).
        """
        gaps = []
        for previous, current in zip(transactions, transactions[1:]):
            days = days_between(previous.date, current.date)
            if days > 0:
                gaps.append(days)
        return gaps

    @staticmethod
    def median_gap(gaps: Sequence[int]) -> int:
        """Lower-middle element of the sorted gaps."""
        ordered = sorted(gaps)
        return ordered[(len(ordered) - 1) // 2]

    @staticmethod
    def gap_consistency(gaps: Sequence[int], median_gap: int) -> float:
        """
        1 minus the mean absolute deviation relative to the median, floored at 0.
        """
        mean_deviation = float(np.mean(np.abs(np.asarray(gaps, dtype=float) - median_gap)))
        return max(0.0, 1.0 - mean_deviation / median_gap)

    def classify(self, median_gap: int) -> Optional[Tuple[SubscriptionFrequency, bool]]:
        """
        Match the median gap to a frequency.

        Returns:
            (frequency, is_approximate), or None if no range matches
        """
        for frequency, (min_days, max_days) in self.frequency_thresholds.to_list():
            if min_days <= median_gap <= max_days:
                return frequency, False

        min_days, max_days = self.frequency_thresholds.approximate_monthly
        if min_days <= median_gap <= max_days:
            return SubscriptionFrequency.MONTHLY, True

        return None
