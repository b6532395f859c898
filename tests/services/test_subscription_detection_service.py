"""
Unit tests for SubscriptionDetectionService.

Covers the detection properties of the service end to end on small, hand
written transaction histories: known services, category signals, recurrence,
the fallback rule, exclusions, options handling and ordering.
"""

from datetime import date

import pytest
from pydantic import ValidationError

from subscription_engine.models.subscription import DetectionMethod, SubscriptionFrequency
from subscription_engine.services.subscriptions import (
    DetectionOptions,
    SubscriptionDetectionService,
    detect_subscriptions,
)
from subscription_engine.utils.detection_tracing import RecordingTracer
from tests.fixtures.subscription_fixtures import (
    create_dated_series,
    create_monthly_netflix,
    create_raw_transaction,
    create_series,
)


class TestSubscriptionDetectionService:
    """Test suite for SubscriptionDetectionService."""

    @pytest.fixture
    def tracer(self):
        return RecordingTracer()

    @pytest.fixture
    def service(self, tracer):
        return SubscriptionDetectionService(tracer=tracer)

    def test_known_service_monthly(self, service):
        candidates = service.detect(create_monthly_netflix(count=3))

        assert len(candidates) == 1
        candidate = candidates[0]
        assert candidate.merchant_key == "netflix"
        assert candidate.merchant == "netflix"
        assert candidate.detection_method == DetectionMethod.KNOWN_SUBSCRIPTION
        assert candidate.pattern_type == "known-service"
        assert candidate.frequency == SubscriptionFrequency.MONTHLY
        assert candidate.confidence_score == pytest.approx(0.95)
        assert candidate.estimated_monthly_amount == pytest.approx(15.99)
        assert candidate.occurrence_count == 3
        assert candidate.contributing_transaction_ids == ["netflix-1", "netflix-2", "netflix-3"]
        assert candidate.first_detected_date == date(2024, 1, 15)
        assert candidate.last_charge_date == date(2024, 3, 15)
        assert candidate.next_expected_date == date(2024, 4, 14)
        assert candidate.signals.keyword_score == 0.9
        assert candidate.signals.recurrence_score == 1.0

    def test_single_known_service_occurrence(self, service):
        candidates = service.detect([
            create_raw_transaction("tx-1", "2024-01-15", -9.99, merchant="Netflix.com")
        ])

        assert len(candidates) == 1
        candidate = candidates[0]
        assert candidate.detection_method == DetectionMethod.KNOWN_SUBSCRIPTION
        assert candidate.frequency == SubscriptionFrequency.MONTHLY
        assert candidate.confidence_score > 0.8
        assert candidate.merchant == "netflix"
        assert candidate.next_expected_date == date(2024, 2, 14)
        assert candidate.signals.amount_consistency_score == 0.7
        assert len(candidate.sample_transactions) == 1

    def test_category_signal(self, service):
        transactions = create_series(
            'fit', 'FitLife Studio', date(2024, 1, 1), 2, 30, -25.0, category='subscription'
        )

        candidates = service.detect(transactions)

        assert len(candidates) == 1
        assert candidates[0].detection_method == DetectionMethod.CATEGORY
        assert candidates[0].pattern_type == "category-based"
        assert candidates[0].confidence_score > 0.7
        assert candidates[0].category_id == "subscription"

    def test_category_id_is_lowercased_most_frequent_category(self, service):
        transactions = create_series('gym', 'Corner Gym', date(2024, 1, 3), 3, 30, -40.0, category='Fitness')
        transactions[1]['category'] = 'Sports'
        transactions[2]['category'] = 'FITNESS'

        candidates = service.detect(transactions)

        assert len(candidates) == 1
        assert candidates[0].category_id == "fitness"

    def test_single_character_merchant_is_not_grouped(self, service):
        transactions = create_series('x', 'X', date(2024, 1, 1), 3, 30, -20.0)
        assert service.detect(transactions) == []

    def test_known_service_takes_recurrence_frequency(self, service):
        transactions = create_dated_series(
            'spotify', 'Spotify', ['2024-01-01', '2024-02-06', '2024-02-25'], [-9.99, -9.99, -9.99]
        )

        candidates = service.detect(transactions)

        assert len(candidates) == 1
        candidate = candidates[0]
        assert candidate.detection_method == DetectionMethod.KNOWN_SUBSCRIPTION
        assert candidate.frequency == SubscriptionFrequency.BI_WEEKLY
        assert candidate.estimated_monthly_amount == pytest.approx(9.99 * 2.17)
        assert candidate.next_expected_date == date(2024, 3, 15)

    def test_max_variance_excludes_group(self, service):
        transactions = create_dated_series(
            'var', 'Variable', ['2024-01-01', '2024-01-31', '2024-03-01'], [-10.0, -50.0, -5.0]
        )

        assert service.detect(transactions, {'maxVarianceThreshold': 0.15}) == []

    def test_min_occurrences_rejects_small_groups(self, service):
        transactions = create_series('gym', 'Corner Gym', date(2024, 1, 1), 2, 30, -40.0)

        assert service.detect(transactions, DetectionOptions(min_occurrences=3)) == []
        assert len(service.detect(transactions)) == 1

    def test_bi_weekly_normalization(self, service):
        transactions = create_dated_series(
            'dog', 'Dog Walker', ['2024-01-01', '2024-01-15', '2024-01-29'], [-20.0, -20.0, -20.0]
        )

        candidate = service.detect(transactions)[0]

        assert candidate.detection_method == DetectionMethod.RECURRENCE
        assert candidate.frequency == SubscriptionFrequency.BI_WEEKLY
        assert candidate.pattern_type == "bi-weekly"
        assert candidate.estimated_monthly_amount == pytest.approx(43.4)
        assert candidate.confidence_score == pytest.approx(0.9)

    def test_quarterly_normalization(self, service):
        transactions = create_series('water', 'Water Utility', date(2024, 1, 1), 3, 90, -30.0)

        candidate = service.detect(transactions)[0]

        assert candidate.frequency == SubscriptionFrequency.QUARTERLY
        assert candidate.estimated_monthly_amount == 10.0

    def test_textual_variants_group_together(self, service):
        transactions = create_dated_series(
            'nf', 'NETFLIX.COM', ['2024-01-15', '2024-02-14', '2024-03-15'], [-15.99] * 3
        )
        transactions[1]['merchant'] = 'Netflix Inc'
        transactions[2]['merchant'] = 'netflix #1234'

        candidates = service.detect(transactions)

        assert len(candidates) == 1
        assert candidates[0].occurrence_count == 3

    def test_fallback_assumes_monthly(self, service):
        transactions = create_dated_series('bake', 'Corner Bakery', ['2024-01-01', '2024-03-15'], [-12.0, -12.0])

        candidate = service.detect(transactions)[0]

        assert candidate.detection_method == DetectionMethod.RECURRENCE
        assert candidate.pattern_type == "assumed-monthly"
        assert candidate.frequency == SubscriptionFrequency.MONTHLY
        assert candidate.confidence_score == 0.4
        assert candidate.next_expected_date == date(2024, 4, 14)

    def test_equal_confidence_keeps_encounter_order(self, service):
        lawn = create_series('lawn', 'Lawn Care', date(2024, 1, 1), 3, 30, -50.0)
        pest = create_series('pest', 'Pest Control', date(2024, 1, 2), 3, 30, -50.0)

        forward = service.detect(lawn + pest)
        backward = service.detect(pest + lawn)

        assert forward[0].confidence_score == forward[1].confidence_score
        assert [c.merchant_key for c in forward] == ["lawn care", "pest control"]
        assert [c.merchant_key for c in backward] == ["pest control", "lawn care"]

    def test_sorted_by_confidence(self, service):
        bakery = create_dated_series('bake', 'Corner Bakery', ['2024-01-01', '2024-03-15'], [-12.0, -12.0])
        netflix = create_monthly_netflix()

        candidates = service.detect(bakery + netflix)

        assert [c.merchant_key for c in candidates] == ["netflix", "corner bakery"]

    @pytest.mark.parametrize("transactions", [None, [], ()])
    def test_empty_input(self, service, transactions):
        assert service.detect(transactions) == []

    def test_rent_is_excluded(self, service):
        by_key = create_series('rent', 'Acme Rentals', date(2024, 1, 1), 3, 30, -1500.0)
        by_category = create_series('pm', 'Property Mgmt', date(2024, 1, 1), 3, 30, -1200.0, category='Rent')

        assert service.detect(by_key) == []
        assert service.detect(by_category) == []

    def test_income_and_undated_rows_are_ignored(self, service):
        transactions = [
            create_raw_transaction("i-1", "2024-01-15", 15.99, merchant="Netflix"),
            create_raw_transaction("i-2", "2024-02-14", -15.99, merchant="Netflix", tx_type="refund credit"),
            create_raw_transaction("i-3", "2024-02-14", 15.99, merchant="Netflix", tx_type="credit"),
            create_raw_transaction("i-4", None, -15.99, merchant="Netflix"),
        ]

        candidates = service.detect(transactions)

        assert len(candidates) == 1
        assert candidates[0].contributing_transaction_ids == ["i-2"]

    def test_unknown_merchant_rows_are_dropped(self, service):
        transactions = [create_raw_transaction("u-1", "2024-01-15", -15.99)]
        assert service.detect(transactions) == []

    def test_snake_case_options_mapping(self, service):
        transactions = create_series('gym', 'Corner Gym', date(2024, 1, 1), 2, 30, -40.0)
        assert service.detect(transactions, {'min_occurrences': 3}) == []

    @pytest.mark.parametrize("options", [
        {'minOccurrences': 1},
        {'amountVarianceTolerance': 0.9},
        {'amountVarianceFixed': -1},
        {'maxVarianceThreshold': -0.5},
    ])
    def test_invalid_options_are_rejected(self, service, options):
        with pytest.raises(ValidationError):
            service.detect(create_monthly_netflix(), options)

    def test_trace_events(self, service, tracer):
        service.detect(create_monthly_netflix() + [create_raw_transaction("x", "2024-01-01", 5.0, merchant="Refund")])

        names = [event.name for event in tracer.events]
        assert names[0] == 'detection_started'
        assert names[-1] == 'detection_completed'
        assert tracer.named('transactions_normalized')[0].fields['dropped_count'] == 1
        assert tracer.named('group_evaluated')[0].fields['outcome'] == 'known_service'
        assert tracer.named('candidate_detected')[0].fields['merchant_key'] == 'netflix'
        assert tracer.named('detection_completed')[0].fields['candidate_count'] == 1

    def test_wire_format(self, service):
        wire = service.detect(create_monthly_netflix())[0].to_wire()

        assert wire['merchantKey'] == 'netflix'
        assert wire['detectionMethod'] == 'known_subscription'
        assert wire['frequency'] == 'monthly'
        assert wire['nextExpectedDate'] == '2024-04-14'
        assert wire['sampleTransactions'][0] == {'id': 'netflix-1', 'date': '2024-01-15', 'amount': 15.99}
        assert set(wire['signals']) == {'recurrenceScore', 'amountConsistencyScore', 'keywordScore', 'categoryScore'}

    def test_detect_is_repeatable(self, service):
        transactions = create_monthly_netflix()
        assert service.detect(transactions) == service.detect(transactions)

    def test_module_level_helper(self):
        candidates = detect_subscriptions(create_monthly_netflix())
        assert [c.merchant_key for c in candidates] == ["netflix"]
