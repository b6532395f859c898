"""
Subscription Detection Service.

This module orchestrates rule-based subscription detection over a user's raw
transaction history.

## Detection Pipeline

```mermaid
graph TD
    A[Raw Transactions] --> B[TransactionNormalizer]
    B --> C[Merchant Key Recovery]
    C --> D[Filter: dated expenses with a merchant key]
    D --> E[Group by Merchant Key]
    E --> F[Per-group Analysis]
    F --> G[KnownServiceMatcher]
    F --> H[CategorySignalEvaluator]
    F --> I[RecurrenceDetector]
    F --> J[AmountConsistencyChecker]
    G --> K[DecisionEngine]
    H --> K
    I --> K
    J --> K
    K -->|Detected| L[CandidateAssembler]
    K -->|No match| M[Skipped]
    L --> N[Rank by Confidence]
```

The service holds no per-call state: reference data and configuration are
fixed at construction, and every call to detect() is independent.
"""

import logging
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Union

from subscription_engine.models.subscription import SubscriptionCandidate
from subscription_engine.models.transaction import NormalizedTransaction
from subscription_engine.services.subscriptions.analyzers import (
    AmountConsistencyChecker,
    CategorySignalEvaluator,
    DecisionEngine,
    GroupSignals,
    KnownServiceMatcher,
    RecurrenceDetector,
    is_housing_payment,
)
from subscription_engine.services.subscriptions.candidate_assembler import CandidateAssembler
from subscription_engine.services.subscriptions.config import (
    DEFAULT_CONFIG,
    DetectionConfig,
    DetectionOptions,
)
from subscription_engine.services.subscriptions.merchant_key import MerchantKeyExtractor
from subscription_engine.services.subscriptions.reference_data import (
    DEFAULT_REFERENCE_DATA,
    SubscriptionReferenceData,
)
from subscription_engine.services.subscriptions.transaction_normalizer import TransactionNormalizer
from subscription_engine.utils.detection_tracing import (
    DetectionRunMetrics,
    DetectionTracer,
    LoggingTracer,
)
from subscription_engine.utils.temporal_utils import date_span_days

logger = logging.getLogger(__name__)

OptionsInput = Union[DetectionOptions, Mapping, None]


class SubscriptionDetectionService:
    """
    Detects subscription candidates in raw transaction history.

    Normalizes and groups transactions by merchant key, then lets the
    decision rules judge each group using the specialized analyzers.
    """

    def __init__(
        self,
        reference_data: SubscriptionReferenceData = DEFAULT_REFERENCE_DATA,
        config: Optional[DetectionConfig] = None,
        tracer: Optional[DetectionTracer] = None
    ):
        """
        Initialize the detection service.

        Args:
            reference_data: Known services and subscription categories
            config: Optional detection configuration. If None, uses DEFAULT_CONFIG.
            tracer: Receiver of structured detection events (default: LoggingTracer)
        """
        self.reference_data = reference_data
        self.config = config or DEFAULT_CONFIG
        self.tracer = tracer or LoggingTracer()

        self.merchant_key_extractor = MerchantKeyExtractor()
        self.normalizer = TransactionNormalizer(self.merchant_key_extractor)

        self.known_service_matcher = KnownServiceMatcher(reference_data)
        self.category_evaluator = CategorySignalEvaluator(reference_data)
        self.recurrence_detector = RecurrenceDetector(
            frequency_thresholds=self.config.frequency_thresholds,
            config=self.config.recurrence
        )
        self.amount_checker = AmountConsistencyChecker(self.config.amount_scoring)
        self.decision_engine = DecisionEngine(self.config.confidence)
        self.assembler = CandidateAssembler(self.config)

    def detect(
        self,
        transactions: Optional[Iterable[Any]],
        options: OptionsInput = None
    ) -> List[SubscriptionCandidate]:
        """
        Detect subscription candidates.

        Args:
            transactions: Raw transaction records (mappings or objects); may be None
            options: DetectionOptions, or a mapping with camelCase or snake_case keys

        Returns:
            Candidates sorted by confidence descending

        Raises:
            pydantic.ValidationError: If the options are out of bounds
        """
        detection_options = self.resolve_options(options)
        raw_transactions = list(transactions) if transactions else []

        metrics = DetectionRunMetrics(transaction_count=len(raw_transactions))
        self.tracer.emit(
            'detection_started',
            transaction_count=len(raw_transactions),
            min_occurrences=detection_options.min_occurrences
        )

        if not raw_transactions:
            return self._complete(metrics, [])

        with metrics.stage('normalization'):
            normalized = self.prepare_transactions(raw_transactions)
            metrics.normalized_count = len(normalized)
        self.tracer.emit(
            'transactions_normalized',
            input_count=len(raw_transactions),
            kept_count=len(normalized),
            dropped_count=len(raw_transactions) - len(normalized)
        )

        with metrics.stage('grouping'):
            groups = self.group_by_merchant_key(normalized)
            metrics.group_count = len(groups)

        candidates: List[SubscriptionCandidate] = []
        with metrics.stage('analysis'):
            for merchant_key, group in groups.items():
                candidate = self.analyze_group(merchant_key, group, detection_options)
                if candidate is not None:
                    candidates.append(candidate)

        return self._complete(metrics, self.assembler.rank(candidates))

    @staticmethod
    def resolve_options(options: OptionsInput) -> DetectionOptions:
        """Validate per-call options before any detection work starts."""
        if options is None:
            return DetectionOptions()
        if isinstance(options, DetectionOptions):
            return options
        return DetectionOptions.model_validate(dict(options))

    def prepare_transactions(self, raw_transactions: List[Any]) -> List[NormalizedTransaction]:
        """
        Normalize, recover merchant keys and keep dated expenses with a key.

        Args:
            raw_transactions: Raw transaction records

        Returns:
            Normalized transactions in input order
        """
        prepared = []
        for raw in raw_transactions:
            transaction = self.merchant_key_extractor.recover(self.normalizer.normalize(raw))
            if transaction.date is None:
                logger.debug(f"Skipping undated transaction {transaction.id}")
                continue
            if not transaction.is_expense:
                continue
            if not transaction.has_resolved_merchant_key:
                logger.debug(f"Skipping transaction {transaction.id} without merchant key")
                continue
            prepared.append(transaction)
        return prepared

    @staticmethod
    def group_by_merchant_key(
        transactions: List[NormalizedTransaction]
    ) -> Dict[str, List[NormalizedTransaction]]:
        """
        Group by merchant key, in order of first appearance.

        Members of each group are sorted by date; same-day members keep their
        input order.
        """
        groups: Dict[str, List[NormalizedTransaction]] = {}
        for transaction in transactions:
            groups.setdefault(transaction.merchant_key, []).append(transaction)
        for members in groups.values():
            members.sort(key=lambda tx: tx.date)
        return groups

    def build_signals(
        self,
        merchant_key: str,
        group: List[NormalizedTransaction],
        options: DetectionOptions
    ) -> GroupSignals:
        """
        Run the analyzers over one date-sorted merchant group.

        Args:
            merchant_key: Shared key of the group
            group: Members sorted by date
            options: Per-call detection options

        Returns:
            GroupSignals for the decision rules
        """
        first = group[0]
        categories = [tx.category for tx in group]

        amount = self.amount_checker.check(
            [tx.amount for tx in group],
            tolerance_percent=options.amount_variance_tolerance,
            tolerance_fixed=options.amount_variance_fixed
        )
        threshold = options.max_variance_threshold

        return GroupSignals(
            merchant_key=merchant_key,
            transactions=group,
            amount=amount,
            recurrence=self.recurrence_detector.detect(group) if len(group) >= 2 else None,
            known_service=self.known_service_matcher.match_first(
                merchant_key, first.merchant, first.description
            ),
            category_signal=self.category_evaluator.any_subscription_category(categories),
            housing_payment=is_housing_payment(merchant_key, categories, self.config.exclusions),
            exceeds_max_variance=threshold is not None and amount.variance_percentage > threshold,
            date_span_days=date_span_days([tx.date for tx in group])
        )

    def analyze_group(
        self,
        merchant_key: str,
        group: List[NormalizedTransaction],
        options: DetectionOptions
    ) -> Optional[SubscriptionCandidate]:
        """
        Decide one merchant group and build its candidate.

        Returns:
            SubscriptionCandidate, or None if no decision rule accepted the group
        """
        signals = self.build_signals(merchant_key, group, options)
        decision = self.decision_engine.decide(signals, options)

        self.tracer.emit(
            'group_evaluated',
            merchant_key=merchant_key,
            occurrence_count=signals.occurrence_count,
            outcome=decision.outcome.value,
            recurrence=signals.recurrence.pattern_label if signals.recurrence else None,
            known_service=signals.known_service.name if signals.known_service else None,
            category_match=signals.category_match,
            housing_payment=signals.housing_payment,
            exceeds_max_variance=signals.exceeds_max_variance
        )

        if not decision.is_detected:
            return None

        candidate = self.assembler.build(signals, decision)
        self.tracer.emit(
            'candidate_detected',
            merchant_key=merchant_key,
            detection_method=candidate.detection_method.value,
            frequency=candidate.frequency.value,
            confidence_score=round(candidate.confidence_score, 4)
        )
        return candidate

    def _complete(
        self,
        metrics: DetectionRunMetrics,
        candidates: List[SubscriptionCandidate]
    ) -> List[SubscriptionCandidate]:
        metrics.candidate_count = len(candidates)
        metrics.finish()
        metrics.log_metrics()
        self.tracer.emit(
            'detection_completed',
            candidate_count=len(candidates),
            elapsed_ms=round(metrics.elapsed_ms or 0.0, 2)
        )
        return candidates


def detect_subscriptions(
    transactions: Optional[Iterable[Any]],
    options: OptionsInput = None
) -> List[SubscriptionCandidate]:
    """Run detection with the default reference data and configuration."""
    return SubscriptionDetectionService().detect(transactions, options)
