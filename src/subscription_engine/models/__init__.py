"""
Models package for subscription detection.
"""

from .transaction import (
    NormalizedTransaction,
    SampleTransaction,
    TransactionDirection,
    UNKNOWN_MERCHANT,
    UNKNOWN_MERCHANT_KEY,
)

from .subscription import (
    AmountConsistency,
    CategorySpend,
    DecisionOutcome,
    DetectionMethod,
    DetectionSignals,
    KnownServiceMatch,
    MerchantSpend,
    RecurrencePattern,
    ReviewActionType,
    Subscription,
    SubscriptionCandidate,
    SubscriptionCreate,
    SubscriptionFrequency,
    SubscriptionOverview,
    SubscriptionReviewAction,
    SubscriptionStatus,
    SubscriptionSummary,
    SubscriptionUpdate,
)
