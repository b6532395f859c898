"""
Reference data for subscription detection.

A curated table of well-known recurring-billing services and the category
keywords that imply a subscription. The data is read-only: it is built once
(at import time for the defaults, or from a JSON document) and handed to the
detection service at construction.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Tuple, Union

from subscription_engine.models.subscription import SubscriptionFrequency

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KnownService:
    """One entry of the known-service table."""
    name: str
    aliases: Tuple[str, ...]
    category: str
    typical_frequency: SubscriptionFrequency = SubscriptionFrequency.MONTHLY

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnownService":
        aliases = data.get('aliases') or [data['name']]
        return cls(
            name=str(data['name']).lower().strip(),
            aliases=tuple(str(alias) for alias in aliases),
            category=str(data.get('category', 'other')),
            typical_frequency=SubscriptionFrequency(
                data.get('typicalFrequency', data.get('typical_frequency', 'monthly'))
            )
        )


EXACT_SUBSCRIPTION_CATEGORIES: Tuple[str, ...] = (
    'subscription',
    'subscriptions',
    'recurring',
    'recurring payment',
    'recurring payments',
)

SUBSCRIPTION_CATEGORY_KEYWORDS: Tuple[str, ...] = (
    'subscription',
    'subscriptions',
    'recurring',
    'membership',
    'premium',
    'service',
    'streaming',
    'software',
    'saas',
    'software as a service',
    'monthly service',
    'annual service',
)

_MONTHLY = SubscriptionFrequency.MONTHLY
_ANNUAL = SubscriptionFrequency.ANNUAL

KNOWN_SERVICES: Tuple[KnownService, ...] = (
    # Streaming
    KnownService('netflix', ('netflix', 'netflix.com', 'netflix inc'), 'entertainment', _MONTHLY),
    KnownService('spotify', ('spotify', 'spotify.com', 'spotify usa'), 'entertainment', _MONTHLY),
    KnownService('youtube', ('youtube', 'youtube.com', 'youtube premium', 'google youtube'), 'entertainment', _MONTHLY),
    KnownService('disney', ('disney', 'disney+', 'disney plus', 'disneyplus'), 'entertainment', _MONTHLY),
    KnownService('hulu', ('hulu', 'hulu.com'), 'entertainment', _MONTHLY),
    KnownService('amazon prime', ('amazon prime', 'prime video', 'amazon prime video'), 'entertainment', _MONTHLY),
    KnownService('apple tv', ('apple tv', 'apple tv+', 'appletv'), 'entertainment', _MONTHLY),
    KnownService('hbo', ('hbo', 'hbo max', 'hbomax', 'max'), 'entertainment', _MONTHLY),
    KnownService('paramount', ('paramount', 'paramount+', 'paramount plus'), 'entertainment', _MONTHLY),
    KnownService('peacock', ('peacock', 'nbc peacock'), 'entertainment', _MONTHLY),

    # Music
    KnownService('apple music', ('apple music', 'itunes music'), 'entertainment', _MONTHLY),
    KnownService('tidal', ('tidal', 'tidal.com'), 'entertainment', _MONTHLY),
    KnownService('pandora', ('pandora', 'pandora media'), 'entertainment', _MONTHLY),
    KnownService('soundcloud', ('soundcloud', 'soundcloud go'), 'entertainment', _MONTHLY),

    # Software & cloud
    KnownService('adobe', ('adobe', 'adobe creative cloud', 'adobe systems'), 'software', _MONTHLY),
    KnownService('microsoft 365', ('microsoft 365', 'office 365', 'microsoft office'), 'software', _MONTHLY),
    KnownService('dropbox', ('dropbox', 'dropbox.com'), 'software', _MONTHLY),
    KnownService('google drive', ('google drive', 'google one'), 'software', _MONTHLY),
    KnownService('icloud', ('icloud', 'apple icloud'), 'software', _MONTHLY),
    KnownService('github', ('github', 'github.com'), 'software', _MONTHLY),
    KnownService('notion', ('notion', 'notion.so'), 'software', _MONTHLY),
    KnownService('slack', ('slack', 'slack technologies'), 'software', _MONTHLY),
    KnownService('zoom', ('zoom', 'zoom.us'), 'software', _MONTHLY),

    # Social
    KnownService('snapchat', ('snapchat', 'snap inc'), 'social', _MONTHLY),
    KnownService('twitter', ('twitter', 'twitter blue', 'x.com', 'x premium'), 'social', _MONTHLY),
    KnownService('linkedin', ('linkedin', 'linkedin premium'), 'professional', _MONTHLY),

    # Fitness & health
    KnownService('peloton', ('peloton', 'peloton interactive'), 'fitness', _MONTHLY),
    KnownService('strava', ('strava', 'strava inc'), 'fitness', _MONTHLY),
    KnownService('myfitnesspal', ('myfitnesspal', 'under armour'), 'health', _MONTHLY),
    KnownService('headspace', ('headspace', 'headspace inc'), 'health', _MONTHLY),
    KnownService('calm', ('calm', 'calm.com'), 'health', _MONTHLY),

    # News
    KnownService('new york times', ('new york times', 'nytimes', 'ny times'), 'news', _MONTHLY),
    KnownService('washington post', ('washington post', 'wapo'), 'news', _MONTHLY),
    KnownService('wall street journal', ('wall street journal', 'wsj', 'dow jones'), 'news', _MONTHLY),
    KnownService('the atlantic', ('the atlantic', 'atlantic'), 'news', _MONTHLY),

    # Gaming
    KnownService('xbox game pass', ('xbox game pass', 'xbox live', 'microsoft xbox'), 'gaming', _MONTHLY),
    KnownService('playstation plus', ('playstation', 'playstation plus', 'ps plus', 'sony playstation'), 'gaming', _MONTHLY),
    KnownService('nintendo switch online', ('nintendo', 'nintendo switch online'), 'gaming', _MONTHLY),
    KnownService('steam', ('steam', 'valve'), 'gaming', _MONTHLY),

    # Shopping & delivery
    KnownService('amazon prime', ('amazon prime', 'amazon.com prime'), 'shopping', _ANNUAL),
    KnownService('instacart', ('instacart', 'instacart express'), 'food', _MONTHLY),
    KnownService('doordash', ('doordash', 'doordash pass'), 'food', _MONTHLY),
    KnownService('uber eats', ('uber eats', 'uber pass'), 'food', _MONTHLY),

    # Other
    KnownService('audible', ('audible', 'audible.com'), 'entertainment', _MONTHLY),
    KnownService('kindle unlimited', ('kindle unlimited', 'amazon kindle'), 'entertainment', _MONTHLY),
    KnownService('patreon', ('patreon', 'patreon.com'), 'entertainment', _MONTHLY),
    KnownService('onlyfans', ('onlyfans', 'onlyfans.com'), 'entertainment', _MONTHLY),
)


@dataclass(frozen=True)
class SubscriptionReferenceData:
    """
    Immutable reference tables consulted by the matchers.

    Service order is significant: the known-service matcher returns the first
    entry that matches.
    """
    known_services: Tuple[KnownService, ...] = KNOWN_SERVICES
    exact_categories: Tuple[str, ...] = EXACT_SUBSCRIPTION_CATEGORIES
    category_keywords: Tuple[str, ...] = SUBSCRIPTION_CATEGORY_KEYWORDS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubscriptionReferenceData":
        """
        Build reference data from a plain document.

        Expected keys (all optional, defaults apply when missing):
            knownServices: list of {name, aliases, category, typicalFrequency}
            exactCategories: list of category names
            categoryKeywords: list of category keywords
        """
        services = data.get('knownServices')
        return cls(
            known_services=(
                tuple(KnownService.from_dict(entry) for entry in services)
                if services is not None else KNOWN_SERVICES
            ),
            exact_categories=_lowered(data.get('exactCategories', EXACT_SUBSCRIPTION_CATEGORIES)),
            category_keywords=_lowered(data.get('categoryKeywords', SUBSCRIPTION_CATEGORY_KEYWORDS))
        )

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "SubscriptionReferenceData":
        """Load reference data from a JSON file."""
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        reference_data = cls.from_dict(data)
        logger.info(
            f"Loaded subscription reference data from {path}: "
            f"{len(reference_data.known_services)} known services, "
            f"{len(reference_data.category_keywords)} category keywords"
        )
        return reference_data


def _lowered(values: Iterable[str]) -> Tuple[str, ...]:
    return tuple(str(value).lower().strip() for value in values)


DEFAULT_REFERENCE_DATA = SubscriptionReferenceData()
