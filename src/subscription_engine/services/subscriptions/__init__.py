"""
Subscription Detection and Review Services.

This package provides rule-based subscription detection over raw transaction
history, plus the review and summary services for detected subscriptions.

Public API:
    - SubscriptionDetectionService: Groups charges by merchant and ranks subscription candidates
    - detect_subscriptions: Detection with default reference data and configuration
    - SubscriptionReviewService: Confirm, reject and edit actions on subscriptions
    - SubscriptionSummaryService: Monthly cost summary of confirmed subscriptions
    - SubscriptionReferenceData: Known services and subscription categories
    - DetectionConfig / DetectionOptions: Tuning constants and per-call options
"""

from subscription_engine.services.subscriptions.detection_service import (
    SubscriptionDetectionService,
    detect_subscriptions,
)
from subscription_engine.services.subscriptions.review_service import SubscriptionReviewService
from subscription_engine.services.subscriptions.summary_service import SubscriptionSummaryService
from subscription_engine.services.subscriptions.reference_data import (
    DEFAULT_REFERENCE_DATA,
    KNOWN_SERVICES,
    KnownService,
    SubscriptionReferenceData,
)
from subscription_engine.services.subscriptions.config import (
    DetectionConfig,
    DEFAULT_CONFIG,
    DetectionOptions,
    AmountScoringConfig,
    ConfidenceConfig,
    ExclusionConfig,
    FrequencyThresholds,
    RecurrenceConfig,
    normalize_to_monthly,
)
from subscription_engine.services.subscriptions.merchant_key import (
    MerchantKeyExtractor,
    TextRule,
    MERCHANT_KEY_RULES,
)
from subscription_engine.services.subscriptions.transaction_normalizer import TransactionNormalizer
from subscription_engine.services.subscriptions.candidate_assembler import CandidateAssembler
from subscription_engine.services.subscriptions.analyzers import (
    KnownServiceMatcher,
    CategorySignalEvaluator,
    RecurrenceDetector,
    AmountConsistencyChecker,
    DecisionEngine,
)

__all__ = [
    'SubscriptionDetectionService',
    'detect_subscriptions',
    'SubscriptionReviewService',
    'SubscriptionSummaryService',
    'DEFAULT_REFERENCE_DATA',
    'KNOWN_SERVICES',
    'KnownService',
    'SubscriptionReferenceData',
    'DetectionConfig',
    'DEFAULT_CONFIG',
    'DetectionOptions',
    'AmountScoringConfig',
    'ConfidenceConfig',
    'ExclusionConfig',
    'FrequencyThresholds',
    'RecurrenceConfig',
    'normalize_to_monthly',
    'MerchantKeyExtractor',
    'TextRule',
    'MERCHANT_KEY_RULES',
    'TransactionNormalizer',
    'CandidateAssembler',
    'KnownServiceMatcher',
    'CategorySignalEvaluator',
    'RecurrenceDetector',
    'AmountConsistencyChecker',
    'DecisionEngine',
]
