"""
Amount analyzer for subscription detection.

Measures how stable the charged amount is across a merchant group.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from subscription_engine.models.subscription import AmountConsistency
from subscription_engine.services.subscriptions.config import AmountScoringConfig

logger = logging.getLogger(__name__)


class AmountConsistencyChecker:
    """
    Scores amount stability against a percentage or fixed tolerance.

    The effective tolerance is the larger of median x percent and the fixed
    amount, both widened by the tolerance multiplier. Deviations up to twice
    the tolerance still count as consistent, with a reduced score.
    """

    def __init__(self, config: Optional[AmountScoringConfig] = None):
        self.config = config or AmountScoringConfig()

    def check(
        self,
        amounts: Sequence[float],
        tolerance_percent: float = 0.05,
        tolerance_fixed: float = 2.0
    ) -> AmountConsistency:
        """
        Check the consistency of a group's amounts.

        Args:
            amounts: Charge magnitudes
            tolerance_percent: Relative tolerance (0.05 = 5%)
            tolerance_fixed: Absolute tolerance in currency units

        Returns:
            AmountConsistency with median, deviation, variance and score
        """
        if len(amounts) == 0:
            return AmountConsistency(isConsistent=False, score=0.0)

        if len(amounts) == 1:
            return AmountConsistency(
                medianAmount=float(amounts[0]),
                maxDeviation=0.0,
                variancePercentage=0.0,
                isConsistent=True,
                score=self.config.single_occurrence_score
            )

        values = np.asarray(amounts, dtype=float)
        median_amount = self.median_amount(values)
        max_deviation = float(np.max(np.abs(values - median_amount)))
        variance = max_deviation / median_amount if median_amount != 0 else 0.0

        tolerance = max(
            median_amount * tolerance_percent * self.config.tolerance_multiplier,
            tolerance_fixed * self.config.tolerance_multiplier
        )
        within_tolerance = max_deviation <= tolerance
        near_miss = max_deviation <= tolerance * self.config.second_chance_multiplier

        if within_tolerance:
            score = self._consistent_score(variance, tolerance_percent)
        elif near_miss:
            score = self.config.near_miss_score
        else:
            score = 0.0

        return AmountConsistency(
            medianAmount=median_amount,
            maxDeviation=max_deviation,
            variancePercentage=variance,
            isConsistent=within_tolerance or near_miss,
            score=min(1.0, score)
        )

    @staticmethod
    def median_amount(values: np.ndarray) -> float:
        """Middle element of the sorted amounts (upper-middle for even counts)."""
        ordered = np.sort(values)
        return float(ordered[len(ordered) // 2])

    def _consistent_score(self, variance: float, tolerance_percent: float) -> float:
        spread = tolerance_percent * self.config.variance_spread
        if spread <= 0:
            # Zero percentage tolerance: only identical amounts score fully
            return 1.0 if variance == 0 else self.config.min_consistent_score
        return max(self.config.min_consistent_score, 1.0 - variance / spread)
