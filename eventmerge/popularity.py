"""
Popularity scoring.

The raw score combines engagement (favourites > clickthroughs > views), a
log-scaled venue capacity term, a bonus for premium pricing, a bonus for
events listed by several sources, and a recency decay with a 30 day
half-life. The cold-start score uses only the metadata terms so brand new
events can still be ranked.
"""

import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal, Optional, Protocol

from eventmerge.config import DEFAULT_VENUE_CAPACITIES, PopularityConfig
from eventmerge.models import CandidateEvent, as_utc

_DEFAULT_CONFIG = PopularityConfig()

# (keywords, capacity) checked in order against the lower-cased venue name
_CAPACITY_KEYWORDS: list[tuple[tuple[str, ...], int]] = [
    (("stadium", "ground"), 50000),
    (("arena",), 15000),
    (("theatre", "hall"), 1500),
    (("club", "bar"), 400),
]
_DEFAULT_CAPACITY = 800


class VenueCapacityEstimator(Protocol):
    def capacity(self, venue_name: str) -> int: ...


class KeywordCapacityEstimator:
    """Known-venue lookup, falling back to keyword heuristics on the name."""

    def __init__(self, known_venues: Optional[dict[str, int]] = None):
        self.known_venues = DEFAULT_VENUE_CAPACITIES if known_venues is None else known_venues

    def capacity(self, venue_name: str) -> int:
        if venue_name in self.known_venues:
            return self.known_venues[venue_name]
        name = venue_name.lower()
        for keywords, capacity in _CAPACITY_KEYWORDS:
            if any(k in name for k in keywords):
                return capacity
        return _DEFAULT_CAPACITY


def _estimator_for(config: PopularityConfig, estimator: Optional[VenueCapacityEstimator]):
    return estimator or KeywordCapacityEstimator(config.venue_capacities)


def _metadata_score(
    event: CandidateEvent,
    estimator: VenueCapacityEstimator,
    capacity_weight: float,
    price_weight: float,
    source_weight: float,
    price_threshold: float,
) -> float:
    score = math.log10(max(estimator.capacity(event.venue.name), 0) + 1) * capacity_weight

    if event.price_max and event.price_max > price_threshold:
        score += math.log10(event.price_max) * price_weight

    if len(event.sources) > 1:
        score += len(event.sources) * source_weight

    return score


def calculate_raw_popularity_score(
    event: CandidateEvent,
    config: Optional[PopularityConfig] = None,
    estimator: Optional[VenueCapacityEstimator] = None,
    now: Optional[datetime] = None,
) -> float:
    config = config or _DEFAULT_CONFIG
    stats = event.stats

    score = 0.0
    if stats:
        score += (
            max(stats.favourite_count, 0) * config.favourites
            + max(stats.clickthrough_count, 0) * config.clickthroughs
            + max(stats.view_count, 0) * config.views
        )

    score += _metadata_score(
        event,
        _estimator_for(config, estimator),
        config.venue_capacity,
        config.price_signal,
        config.multi_source,
        config.price_threshold,
    )

    return score * _recency_factor(event.scraped_at, config, now)


def _recency_factor(scraped_at: Optional[datetime], config: PopularityConfig, now: Optional[datetime]) -> float:
    if scraped_at is None:
        return 1.0
    now = as_utc(now) if now else datetime.now(timezone.utc)
    days = max((now - as_utc(scraped_at)).total_seconds() / 86400, 0.0)
    return 1 / (1 + days / config.decay_days)


def get_cold_start_popularity_score(
    event: CandidateEvent,
    config: Optional[PopularityConfig] = None,
    estimator: Optional[VenueCapacityEstimator] = None,
) -> float:
    """Score from venue, price and source count only; ignores stats and scrape time."""
    config = config or _DEFAULT_CONFIG
    return _metadata_score(
        event,
        _estimator_for(config, estimator),
        config.cold_venue_capacity,
        config.cold_price_signal,
        config.cold_multi_source,
        config.price_threshold,
    )


# --- Category percentiles ---

@dataclass
class PopularityRanking:
    event_id: Optional[str]
    category: str
    raw_score: float
    percentile: float  # 0 = least popular in its category, 1 = most


def assign_category_percentiles(
    events: list[CandidateEvent],
    config: Optional[PopularityConfig] = None,
    estimator: Optional[VenueCapacityEstimator] = None,
    now: Optional[datetime] = None,
) -> list[PopularityRanking]:
    """Rank events by raw score within their category. A lone event gets 0.5."""
    config = config or _DEFAULT_CONFIG
    estimator = _estimator_for(config, estimator)
    now = now or datetime.now(timezone.utc)

    by_category: dict[str, list[tuple[float, CandidateEvent]]] = defaultdict(list)
    for event in events:
        score = calculate_raw_popularity_score(event, config, estimator, now)
        by_category[event.category].append((score, event))

    rankings: list[PopularityRanking] = []
    for category, scored in by_category.items():
        scored.sort(key=lambda item: item[0])
        total = len(scored)
        for i, (score, event) in enumerate(scored):
            percentile = 0.5 if total == 1 else i / (total - 1)
            rankings.append(PopularityRanking(event.id, category, score, percentile))
    return rankings


def compare_to_category(
    percentile: float, category_percentiles: list[float],
) -> Literal["below", "average", "above"]:
    if not category_percentiles:
        return "average"
    average = sum(category_percentiles) / len(category_percentiles)
    if percentile < average - 0.1:
        return "below"
    if percentile > average + 0.1:
        return "above"
    return "average"
