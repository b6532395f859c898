"""
Subscription Detection Models.

This module provides Pydantic models for recurring subscription detection,
including the intermediate analyzer results, the ranked candidates produced
by a detection run, and the reviewed subscription records built from them.
"""

import uuid
import logging
import datetime
from typing import Optional, List, Dict, Any
from enum import Enum

from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing_extensions import Self

from subscription_engine.models.transaction import SampleTransaction

logger = logging.getLogger(__name__)

# Constants
TIMESTAMP_ERROR_MESSAGE = "Timestamp must be a positive integer representing milliseconds since epoch"
MANUAL_PATTERN_TYPE = "manual"


def _now_ms() -> int:
    return int(datetime.datetime.now(datetime.timezone.utc).timestamp() * 1000)


def _today() -> datetime.date:
    return datetime.datetime.now(datetime.timezone.utc).date()


class SubscriptionFrequency(str, Enum):
    """Billing frequency of a subscription."""
    WEEKLY = "weekly"          # ~7 day intervals
    BI_WEEKLY = "bi-weekly"    # ~14 day intervals
    MONTHLY = "monthly"        # ~30 day intervals
    QUARTERLY = "quarterly"    # ~90 day intervals
    ANNUAL = "annual"          # ~365 day intervals


class DetectionMethod(str, Enum):
    """Which decision branch produced a candidate."""
    CATEGORY = "category"
    KNOWN_SUBSCRIPTION = "known_subscription"
    RECURRENCE = "recurrence"


class DecisionOutcome(str, Enum):
    """Tagged result of the ordered decision rules."""
    CATEGORY_MATCH = "category_match"
    KNOWN_SERVICE = "known_service"
    RECURRENCE = "recurrence"
    FALLBACK = "fallback"
    NO_MATCH = "no_match"


class SubscriptionStatus(str, Enum):
    """Lifecycle status of a stored subscription."""
    PENDING = "pending"        # Detected, awaiting user review
    CONFIRMED = "confirmed"    # User confirmed (or created manually)
    REJECTED = "rejected"      # User rejected the candidate


class RecurrencePattern(BaseModel):
    """Periodic pattern inferred from the gaps between charges."""
    frequency: SubscriptionFrequency
    median_gap_days: int = Field(alias="medianGapDays", ge=0)
    consistency: float = Field(ge=0.0, le=1.0)
    gaps: List[int] = Field(default_factory=list)
    is_approximate: bool = Field(default=False, alias="isApproximate")

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    @field_validator('gaps')
    @classmethod
    def check_positive_gaps(cls, v: List[int]) -> List[int]:
        if any(gap <= 0 for gap in v):
            raise ValueError("gaps must be positive day counts")
        return v

    @property
    def pattern_label(self) -> str:
        """Frequency label, marked when the gap only loosely fits a month."""
        if self.is_approximate:
            return f"{self.frequency.value}-approximate"
        return self.frequency.value


class AmountConsistency(BaseModel):
    """How stable the charged amount is across occurrences."""
    median_amount: float = Field(default=0.0, alias="medianAmount")
    max_deviation: float = Field(default=0.0, alias="maxDeviation")
    variance_percentage: float = Field(default=0.0, alias="variancePercentage")
    is_consistent: bool = Field(default=False, alias="isConsistent")
    score: float = Field(default=0.0, ge=0.0, le=1.0)

    model_config = ConfigDict(populate_by_name=True)


class KnownServiceMatch(BaseModel):
    """A merchant recognised in the curated table of recurring-billing services."""
    name: str
    category: str
    typical_frequency: SubscriptionFrequency = Field(
        default=SubscriptionFrequency.MONTHLY,
        alias="typicalFrequency"
    )
    confidence: float = Field(ge=0.0, le=1.0)

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)


class DetectionSignals(BaseModel):
    """Individual signal strengths that fed the confidence score."""
    recurrence_score: float = Field(default=0.0, alias="recurrenceScore")
    amount_consistency_score: float = Field(default=0.5, alias="amountConsistencyScore")
    keyword_score: float = Field(default=0.0, alias="keywordScore")
    category_score: float = Field(default=0.0, alias="categoryScore")

    model_config = ConfigDict(populate_by_name=True)


class SubscriptionCandidate(BaseModel):
    """
    A ranked, explainable subscription candidate produced by one detection run.

    Ownership passes to the persistence layer once returned; it assigns the
    durable identifier and the review status.
    """
    merchant_key: str = Field(alias="merchantKey")
    merchant: str
    category_id: Optional[str] = Field(default=None, alias="categoryId")
    estimated_monthly_amount: float = Field(alias="estimatedMonthlyAmount", ge=0.0)
    frequency: SubscriptionFrequency
    first_detected_date: datetime.date = Field(alias="firstDetectedDate")
    last_charge_date: datetime.date = Field(alias="lastChargeDate")
    next_expected_date: datetime.date = Field(alias="nextExpectedDate")
    confidence_score: float = Field(alias="confidenceScore", ge=0.0, le=1.0)
    contributing_transaction_ids: List[str] = Field(
        default_factory=list,
        alias="contributingTransactionIds"
    )
    occurrence_count: int = Field(alias="occurrenceCount", ge=1)
    average_amount: float = Field(alias="averageAmount", ge=0.0)
    variance_percentage: float = Field(default=0.0, alias="variancePercentage", ge=0.0)
    signals: DetectionSignals = Field(default_factory=DetectionSignals)
    detection_method: DetectionMethod = Field(alias="detectionMethod")
    pattern_type: str = Field(alias="patternType")
    reason: str
    sample_transactions: List[SampleTransaction] = Field(
        default_factory=list,
        alias="sampleTransactions"
    )

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=False  # Preserve enum objects (not strings) for type safety
    )

    @field_validator('sample_transactions')
    @classmethod
    def limit_samples(cls, v: List[SampleTransaction]) -> List[SampleTransaction]:
        if len(v) > 3:
            raise ValueError("at most 3 sample transactions are kept")
        return v

    def to_wire(self) -> Dict[str, Any]:
        """Serialize with camelCase keys and ISO dates for the request layer."""
        return self.model_dump(mode="json", by_alias=True)


class SubscriptionUpdate(BaseModel):
    """Fields a user may edit on a subscription."""
    merchant: Optional[str] = None
    category_id: Optional[str] = Field(default=None, alias="categoryId")
    estimated_monthly_amount: Optional[float] = Field(default=None, alias="estimatedMonthlyAmount", ge=0.0)
    frequency: Optional[SubscriptionFrequency] = None
    notes: Optional[str] = Field(default=None, max_length=1000)

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)


class SubscriptionCreate(BaseModel):
    """Data Transfer Object for a subscription the user adds by hand."""
    user_id: str = Field(alias="userId")
    merchant: str = Field(min_length=1)
    category_id: Optional[str] = Field(default=None, alias="categoryId")
    estimated_monthly_amount: float = Field(alias="estimatedMonthlyAmount", ge=0.0)
    frequency: SubscriptionFrequency = SubscriptionFrequency.MONTHLY
    status: SubscriptionStatus = SubscriptionStatus.CONFIRMED

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)


class ReviewActionType(str, Enum):
    """User decision on a pending subscription."""
    CONFIRM = "confirm"
    REJECT = "reject"
    EDIT = "edit"


class SubscriptionReviewAction(BaseModel):
    """User action when reviewing a subscription."""
    subscription_id: uuid.UUID = Field(alias="subscriptionId")
    user_id: str = Field(alias="userId")
    action: ReviewActionType

    # Edits applied by the "edit" action
    update: Optional[SubscriptionUpdate] = None

    notes: Optional[str] = Field(default=None, max_length=1000)

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)


class Subscription(BaseModel):
    """
    A subscription record as handed to the persistence layer.

    Created with status PENDING from a detection candidate, or directly as a
    manual entry. Review actions move it to CONFIRMED or REJECTED.
    """
    subscription_id: uuid.UUID = Field(default_factory=uuid.uuid4, alias="subscriptionId")
    user_id: str = Field(alias="userId")
    merchant: str
    merchant_key: Optional[str] = Field(default=None, alias="merchantKey")
    category_id: Optional[str] = Field(default=None, alias="categoryId")
    estimated_monthly_amount: float = Field(alias="estimatedMonthlyAmount", ge=0.0)
    frequency: SubscriptionFrequency
    first_detected_date: datetime.date = Field(default_factory=_today, alias="firstDetectedDate")
    last_charge_date: Optional[datetime.date] = Field(default=None, alias="lastChargeDate")
    confidence_score: float = Field(default=1.0, alias="confidenceScore", ge=0.0, le=1.0)
    pattern_type: str = Field(default=MANUAL_PATTERN_TYPE, alias="patternType")
    occurrence_count: int = Field(default=0, alias="occurrenceCount", ge=0)
    average_amount: Optional[float] = Field(default=None, alias="averageAmount")
    variance_percentage: Optional[float] = Field(default=None, alias="variancePercentage")
    transaction_ids: List[str] = Field(default_factory=list, alias="transactionIds")
    status: SubscriptionStatus = SubscriptionStatus.PENDING
    confirmed_date: Optional[datetime.date] = Field(default=None, alias="confirmedDate")
    notes: Optional[str] = Field(default=None, max_length=1000)
    created_at: int = Field(default_factory=_now_ms, alias="createdAt")
    updated_at: int = Field(default_factory=_now_ms, alias="updatedAt")

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=False
    )

    @field_validator('created_at', 'updated_at')
    @classmethod
    def check_positive_timestamp(cls, v: int) -> int:
        if v < 0:
            raise ValueError(TIMESTAMP_ERROR_MESSAGE)
        return v

    @classmethod
    def from_candidate(cls, user_id: str, candidate: SubscriptionCandidate) -> Self:
        """Build a pending subscription from a detection candidate."""
        return cls(
            userId=user_id,
            merchant=candidate.merchant,
            merchantKey=candidate.merchant_key,
            categoryId=candidate.category_id,
            estimatedMonthlyAmount=candidate.estimated_monthly_amount,
            frequency=candidate.frequency,
            firstDetectedDate=candidate.first_detected_date,
            lastChargeDate=candidate.last_charge_date,
            confidenceScore=candidate.confidence_score,
            patternType=candidate.pattern_type,
            occurrenceCount=candidate.occurrence_count,
            averageAmount=candidate.average_amount,
            variancePercentage=candidate.variance_percentage,
            transactionIds=list(candidate.contributing_transaction_ids),
            status=SubscriptionStatus.PENDING
        )

    @classmethod
    def manual(cls, create_data: SubscriptionCreate) -> Self:
        """Build a subscription the user entered by hand (full confidence, no transactions)."""
        subscription = cls(
            userId=create_data.user_id,
            merchant=create_data.merchant,
            categoryId=create_data.category_id,
            estimatedMonthlyAmount=create_data.estimated_monthly_amount,
            frequency=create_data.frequency,
            confidenceScore=1.0,
            patternType=MANUAL_PATTERN_TYPE,
            occurrenceCount=0,
            status=create_data.status
        )
        if subscription.status == SubscriptionStatus.CONFIRMED:
            subscription.confirmed_date = _today()
        return subscription

    def confirm(self) -> None:
        """Mark the subscription as confirmed by the user."""
        self.status = SubscriptionStatus.CONFIRMED
        self.confirmed_date = _today()
        self.updated_at = _now_ms()

    def reject(self) -> None:
        """Mark the subscription as rejected by the user."""
        self.status = SubscriptionStatus.REJECTED
        self.updated_at = _now_ms()

    def update_model_details(self, update_data: SubscriptionUpdate) -> bool:
        """
        Apply user edits. Editing a subscription implies the user accepts it,
        so the status becomes CONFIRMED.

        Returns True if any fields were changed, False otherwise.
        """
        updated_fields = False

        update_dict = update_data.model_dump(exclude_unset=True, exclude_none=True, by_alias=False)

        for key, value in update_dict.items():
            if hasattr(self, key) and getattr(self, key) != value:
                setattr(self, key, value)
                updated_fields = True

        if self.status != SubscriptionStatus.CONFIRMED:
            self.status = SubscriptionStatus.CONFIRMED
            self.confirmed_date = _today()
            updated_fields = True

        if updated_fields:
            self.updated_at = _now_ms()
        return updated_fields


class MerchantSpend(BaseModel):
    """Monthly spend attributed to one confirmed subscription."""
    merchant: str
    amount: float
    frequency: SubscriptionFrequency
    subscription_id: uuid.UUID = Field(alias="subscriptionId")

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)


class CategorySpend(BaseModel):
    """Monthly spend aggregated per category."""
    category_id: str = Field(alias="categoryId")
    amount: float = 0.0
    count: int = 0

    model_config = ConfigDict(populate_by_name=True)


class SubscriptionOverview(BaseModel):
    """One confirmed subscription as listed in the summary."""
    subscription_id: uuid.UUID = Field(alias="subscriptionId")
    merchant: str
    category_id: Optional[str] = Field(default=None, alias="categoryId")
    estimated_monthly_amount: float = Field(alias="estimatedMonthlyAmount")
    frequency: SubscriptionFrequency
    last_transaction_date: Optional[datetime.date] = Field(default=None, alias="lastTransactionDate")

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)


class SubscriptionSummary(BaseModel):
    """Aggregated monthly cost of the user's confirmed subscriptions."""
    total_monthly: float = Field(default=0.0, alias="totalMonthly")
    by_merchant: List[MerchantSpend] = Field(default_factory=list, alias="byMerchant")
    by_category: List[CategorySpend] = Field(default_factory=list, alias="byCategory")
    subscriptions: List[SubscriptionOverview] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)
