"""
Known-service analyzer for subscription detection.

Matches merchant text against the curated table of recurring-billing services.
"""

import logging
from typing import List, Optional

from subscription_engine.models.subscription import KnownServiceMatch
from subscription_engine.services.subscriptions.merchant_key import (
    SERVICE_NAME_RULES,
    TextPipeline,
)
from subscription_engine.services.subscriptions.reference_data import (
    DEFAULT_REFERENCE_DATA,
    KnownService,
    SubscriptionReferenceData,
)

logger = logging.getLogger(__name__)

EXACT_MATCH_CONFIDENCE = 0.95
CONTAINMENT_MATCH_CONFIDENCE = 0.95
WORD_OVERLAP_CONFIDENCE = 0.9

MIN_CONTAINMENT_LENGTH = 3
WORD_OVERLAP_RATIO = 0.7


class KnownServiceMatcher:
    """
    Recognises well-known subscription services from merchant text.

    The service table is scanned in order and, for each service, its aliases
    are tried in order against three tests:
    1. Exact match of the normalized text
    2. Containment in either direction (both strings at least 3 characters)
    3. Word overlap for multi-word text and aliases (70% of the shorter side)

    The first hit wins.
    """

    def __init__(self, reference_data: SubscriptionReferenceData = DEFAULT_REFERENCE_DATA):
        """
        Initialize the matcher.

        Args:
            reference_data: Reference tables holding the known services
        """
        self.services = reference_data.known_services
        self.pipeline = TextPipeline(SERVICE_NAME_RULES)

    def match(self, text: Optional[str]) -> Optional[KnownServiceMatch]:
        """
        Match a merchant name or description against the service table.

        Args:
            text: Free merchant text

        Returns:
            KnownServiceMatch, or None if nothing matched
        """
        if not text:
            return None

        normalized = self.pipeline.run(text)
        if not normalized:
            return None

        for service in self.services:
            for alias in service.aliases:
                confidence = self._match_alias(normalized, alias.lower().strip())
                if confidence is not None:
                    logger.debug(f"Matched '{text}' to known service '{service.name}' via alias '{alias}'")
                    return self._to_match(service, confidence)

        return None

    def match_first(self, *texts: Optional[str]) -> Optional[KnownServiceMatch]:
        """Try each text in turn and return the first match."""
        for text in texts:
            result = self.match(text)
            if result is not None:
                return result
        return None

    def _match_alias(self, normalized: str, alias: str) -> Optional[float]:
        if normalized == alias:
            return EXACT_MATCH_CONFIDENCE

        if alias in normalized or normalized in alias:
            if len(normalized) >= MIN_CONTAINMENT_LENGTH and len(alias) >= MIN_CONTAINMENT_LENGTH:
                return CONTAINMENT_MATCH_CONFIDENCE

        words = normalized.split()
        alias_words = alias.split()
        if len(words) > 1 and len(alias_words) > 1:
            matching = self._matching_words(words, alias_words)
            if len(matching) >= min(len(words), len(alias_words)) * WORD_OVERLAP_RATIO:
                return WORD_OVERLAP_CONFIDENCE

        return None

    @staticmethod
    def _matching_words(words: List[str], alias_words: List[str]) -> List[str]:
        return [
            word for word in words
            if any(alias_word in word or word in alias_word for alias_word in alias_words)
        ]

    @staticmethod
    def _to_match(service: KnownService, confidence: float) -> KnownServiceMatch:
        return KnownServiceMatch(
            name=service.name,
            category=service.category,
            typicalFrequency=service.typical_frequency,
            confidence=confidence
        )
