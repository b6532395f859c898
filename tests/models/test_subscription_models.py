"""
Unit tests for subscription detection models.
"""

from datetime import date

import pytest
from pydantic import ValidationError

from subscription_engine.models.subscription import (
    DetectionMethod,
    RecurrencePattern,
    Subscription,
    SubscriptionCandidate,
    SubscriptionCreate,
    SubscriptionFrequency,
    SubscriptionStatus,
    SubscriptionUpdate,
)
from subscription_engine.models.transaction import (
    NormalizedTransaction,
    SampleTransaction,
    TransactionDirection,
)


@pytest.fixture
def candidate():
    return SubscriptionCandidate(
        merchantKey="netflix",
        merchant="netflix",
        categoryId="entertainment",
        estimatedMonthlyAmount=15.99,
        frequency=SubscriptionFrequency.MONTHLY,
        firstDetectedDate=date(2024, 1, 15),
        lastChargeDate=date(2024, 3, 15),
        nextExpectedDate=date(2024, 4, 14),
        confidenceScore=0.95,
        contributingTransactionIds=["a", "b", "c"],
        occurrenceCount=3,
        averageAmount=15.99,
        detectionMethod=DetectionMethod.KNOWN_SUBSCRIPTION,
        patternType="known-service",
        reason="Known subscription service (netflix)",
        sampleTransactions=[
            SampleTransaction(id="a", date=date(2024, 1, 15), amount=15.99),
        ]
    )


class TestNormalizedTransaction:
    """Tests for NormalizedTransaction."""

    def test_defaults(self):
        tx = NormalizedTransaction(id="t1")

        assert tx.date is None
        assert tx.amount == 0.0
        assert tx.direction == TransactionDirection.EXPENSE
        assert tx.merchant == "Unknown"
        assert tx.merchant_key == "unknown"
        assert tx.has_resolved_merchant_key is False

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            NormalizedTransaction(id="t1", amount=-1.0)

    def test_sample_from_normalized(self):
        tx = NormalizedTransaction(id="t1", date=date(2024, 1, 1), amount=4.5, merchantKey="hulu")
        sample = SampleTransaction.from_normalized(tx)

        assert (sample.id, sample.date, sample.amount) == ("t1", date(2024, 1, 1), 4.5)


class TestRecurrencePattern:
    """Tests for RecurrencePattern."""

    def test_pattern_label(self):
        pattern = RecurrencePattern(frequency="bi-weekly", medianGapDays=14, consistency=0.9)
        assert pattern.pattern_label == "bi-weekly"

    def test_gaps_must_be_positive(self):
        with pytest.raises(ValidationError):
            RecurrencePattern(frequency="monthly", medianGapDays=30, consistency=1.0, gaps=[30, 0])

    def test_consistency_bounds(self):
        with pytest.raises(ValidationError):
            RecurrencePattern(frequency="monthly", medianGapDays=30, consistency=1.5)


class TestSubscriptionCandidate:
    """Tests for SubscriptionCandidate."""

    def test_enums_are_preserved(self, candidate):
        assert isinstance(candidate.frequency, SubscriptionFrequency)
        assert isinstance(candidate.detection_method, DetectionMethod)

    def test_at_most_three_samples(self, candidate):
        samples = [SampleTransaction(id=str(i), date=date(2024, 1, i + 1), amount=1.0) for i in range(4)]

        with pytest.raises(ValidationError):
            candidate.model_validate({**candidate.model_dump(by_alias=True), 'sampleTransactions': samples})

    def test_confidence_bounds(self, candidate):
        with pytest.raises(ValidationError):
            SubscriptionCandidate.model_validate({**candidate.model_dump(by_alias=True), 'confidenceScore': 1.2})

    def test_to_wire(self, candidate):
        wire = candidate.to_wire()

        assert wire['merchantKey'] == 'netflix'
        assert wire['firstDetectedDate'] == '2024-01-15'
        assert wire['detectionMethod'] == 'known_subscription'
        assert wire['signals']['amountConsistencyScore'] == 0.5


class TestSubscription:
    """Tests for the Subscription lifecycle."""

    def test_from_candidate(self, candidate):
        subscription = Subscription.from_candidate("user-1", candidate)

        assert subscription.status == SubscriptionStatus.PENDING
        assert subscription.user_id == "user-1"
        assert subscription.merchant_key == "netflix"
        assert subscription.transaction_ids == ["a", "b", "c"]
        assert subscription.confidence_score == 0.95
        assert subscription.pattern_type == "known-service"
        assert subscription.confirmed_date is None

    def test_manual_subscription(self):
        subscription = Subscription.manual(
            SubscriptionCreate(userId="user-1", merchant="Gym", estimatedMonthlyAmount=40.0)
        )

        assert subscription.status == SubscriptionStatus.CONFIRMED
        assert subscription.confirmed_date is not None
        assert subscription.confidence_score == 1.0
        assert subscription.occurrence_count == 0
        assert subscription.pattern_type == "manual"

    def test_manual_pending_subscription_is_not_confirmed(self):
        subscription = Subscription.manual(
            SubscriptionCreate(
                userId="user-1", merchant="Gym", estimatedMonthlyAmount=40.0, status=SubscriptionStatus.PENDING
            )
        )
        assert subscription.confirmed_date is None

    def test_confirm_and_reject(self, candidate):
        subscription = Subscription.from_candidate("user-1", candidate)

        subscription.confirm()
        assert subscription.status == SubscriptionStatus.CONFIRMED
        assert subscription.confirmed_date is not None

        subscription.reject()
        assert subscription.status == SubscriptionStatus.REJECTED

    def test_update_model_details_confirms(self, candidate):
        subscription = Subscription.from_candidate("user-1", candidate)

        changed = subscription.update_model_details(SubscriptionUpdate(notes="family plan"))

        assert changed is True
        assert subscription.notes == "family plan"
        assert subscription.status == SubscriptionStatus.CONFIRMED

    def test_update_without_changes(self, candidate):
        subscription = Subscription.from_candidate("user-1", candidate)
        subscription.confirm()

        assert subscription.update_model_details(SubscriptionUpdate(merchant="netflix")) is False

    def test_negative_timestamp_rejected(self):
        with pytest.raises(ValidationError):
            Subscription(
                userId="u", merchant="m", estimatedMonthlyAmount=1.0, frequency="monthly", createdAt=-1
            )
