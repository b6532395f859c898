"""
Group analyzers for subscription detection.

This package provides the analyzers that each look at one aspect of a
merchant group (known service, category, recurrence, amount stability) and
the decision rules that combine their results.
"""

from subscription_engine.services.subscriptions.analyzers.known_service import KnownServiceMatcher
from subscription_engine.services.subscriptions.analyzers.category import CategorySignalEvaluator
from subscription_engine.services.subscriptions.analyzers.recurrence import RecurrenceDetector
from subscription_engine.services.subscriptions.analyzers.amount import AmountConsistencyChecker
from subscription_engine.services.subscriptions.analyzers.decision import (
    Decision,
    DecisionEngine,
    DecisionRule,
    CategoryMatchRule,
    KnownServiceRule,
    RecurrenceRule,
    FallbackRule,
    GroupSignals,
    is_housing_payment,
)

__all__ = [
    'KnownServiceMatcher',
    'CategorySignalEvaluator',
    'RecurrenceDetector',
    'AmountConsistencyChecker',
    'Decision',
    'DecisionEngine',
    'DecisionRule',
    'CategoryMatchRule',
    'KnownServiceRule',
    'RecurrenceRule',
    'FallbackRule',
    'GroupSignals',
    'is_housing_payment',
]
