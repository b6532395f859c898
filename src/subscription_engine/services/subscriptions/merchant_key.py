"""
Merchant key extraction.

Free-text merchant names are reduced to a stable grouping key by running them
through an ordered list of text rules. Each rule is a pure str -> str
transform, so rules can be tested on their own and pipelines can be
assembled from them (the known-service matcher uses a variant of this one).

Example:
    "NETFLIX.COM INC #48213"  ->  "netflix"
    "Disney+ - 0012345678"    ->  "disney plus"
"""

import re
import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple

from subscription_engine.models.transaction import (
    NormalizedTransaction,
    UNKNOWN_MERCHANT,
    UNKNOWN_MERCHANT_KEY,
)

logger = logging.getLogger(__name__)

MIN_KEY_LENGTH = 2


class TextRule(ABC):
    """A single pure text transform in a normalization pipeline."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def apply(self, text: str) -> str:
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"


class LowercaseTrimRule(TextRule):
    """Lowercase and strip surrounding whitespace."""

    @property
    def name(self) -> str:
        return 'lowercase_trim'

    def apply(self, text: str) -> str:
        return text.lower().strip()


class RegexRule(TextRule):
    """Replace every match of a case-insensitive pattern."""

    def __init__(self, name: str, pattern: str, replacement: str = ''):
        self._name = name
        self.pattern = re.compile(pattern, re.IGNORECASE)
        self.replacement = replacement

    @property
    def name(self) -> str:
        return self._name

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


class CollapseWhitespaceRule(TextRule):
    """Collapse whitespace runs to a single space and trim."""

    @property
    def name(self) -> str:
        return 'collapse_whitespace'

    def apply(self, text: str) -> str:
        return ' '.join(text.split())


STRIP_REFERENCE_NUMBERS = RegexRule(
    'strip_reference_numbers',
    r'\s*(#|inv|invoice|txn|trans|ref|ref#)[\s-]*[0-9]+'
)
STRIP_LONG_DIGIT_RUNS = RegexRule('strip_long_digit_runs', r'(?:^|\s+)[0-9]{6,}(?=\s|$)')
STRIP_DOMAIN_SUFFIXES = RegexRule(
    'strip_domain_suffixes',
    r'\.(com|net|org|io|co|app|tv|plus|us|ca|uk)\b'
)
STRIP_COMPANY_SUFFIXES = RegexRule(
    'strip_company_suffixes',
    r'\s+(inc|llc|ltd|corp|co|usa|ab|gmbh|pty|limited)\b'
)
PLUS_TO_WORD = RegexRule('plus_to_word', r'\s*\+\s*', ' plus ')
AMPERSAND_TO_WORD = RegexRule('ampersand_to_word', r'\s*&\s*', ' and ')
HYPHEN_TO_SPACE = RegexRule('hyphen_to_space', r'\s*-\s*', ' ')
STRIP_PUNCTUATION = RegexRule('strip_punctuation', r'[^\w\s]', ' ')

MERCHANT_KEY_RULES: Tuple[TextRule, ...] = (
    LowercaseTrimRule(),
    STRIP_REFERENCE_NUMBERS,
    STRIP_LONG_DIGIT_RUNS,
    STRIP_DOMAIN_SUFFIXES,
    STRIP_COMPANY_SUFFIXES,
    PLUS_TO_WORD,
    AMPERSAND_TO_WORD,
    HYPHEN_TO_SPACE,
    STRIP_PUNCTUATION,
    CollapseWhitespaceRule(),
)

# Service names are matched without reference stripping, and with a few
# extra country domains.
SERVICE_NAME_RULES: Tuple[TextRule, ...] = (
    LowercaseTrimRule(),
    RegexRule('strip_domain_suffixes', r'\.(com|net|org|io|co|app|tv|plus|us|ca|uk|fr|de)\b'),
    STRIP_COMPANY_SUFFIXES,
    PLUS_TO_WORD,
    HYPHEN_TO_SPACE,
    STRIP_PUNCTUATION,
    CollapseWhitespaceRule(),
)


class TextPipeline:
    """Applies an ordered sequence of text rules."""

    def __init__(self, rules: Sequence[TextRule]):
        self.rules = tuple(rules)

    def run(self, text: Optional[str]) -> str:
        result = text or ''
        for rule in self.rules:
            result = rule.apply(result)
        return result


class MerchantKeyExtractor:
    """
    Derives the grouping key for a merchant.

    Empty input, or a key shorter than two characters, yields the
    "unknown" sentinel.
    """

    def __init__(self, rules: Optional[Sequence[TextRule]] = None):
        """
        Initialize the extractor.

        Args:
            rules: Ordered text rules (default: MERCHANT_KEY_RULES)
        """
        self.pipeline = TextPipeline(rules or MERCHANT_KEY_RULES)

    def extract(self, text: Optional[str]) -> str:
        """
        Extract the merchant key from free text.

        Args:
            text: Merchant name or transaction description

        Returns:
            Normalized key, or "unknown"
        """
        if not text or len(text.strip()) < MIN_KEY_LENGTH:
            return UNKNOWN_MERCHANT_KEY

        key = self.pipeline.run(text)
        if len(key) < MIN_KEY_LENGTH:
            return UNKNOWN_MERCHANT_KEY
        return key

    def recover(self, transaction: NormalizedTransaction) -> NormalizedTransaction:
        """
        Retry key extraction from the merchant display name.

        Applies only when the key is the sentinel and the display name is a
        real name. If the pipeline strips the name away entirely, the
        lowercased display name itself becomes the key, unless it is shorter
        than two characters.

        Returns:
            The same transaction, or an updated copy with the recovered key
        """
        if transaction.has_resolved_merchant_key:
            return transaction

        merchant = transaction.merchant.strip()
        if not merchant or merchant == UNKNOWN_MERCHANT:
            return transaction

        key = self.extract(merchant)
        if key == UNKNOWN_MERCHANT_KEY:
            key = ' '.join(merchant.lower().split())
        if len(key) < MIN_KEY_LENGTH:
            return transaction

        logger.debug(f"Recovered merchant key '{key}' from display name '{merchant}'")
        return transaction.model_copy(update={'merchant_key': key})
