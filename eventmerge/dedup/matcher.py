"""
Cross-source duplicate detection.

Events are bucketed by a normalised title prefix (first three significant
words) and, separately, by the first word alone so titles whose later words
diverge still meet. Every cross-source pair inside a bucket is scored once:

    score = 0.50 * title + 0.30 * date + 0.20 * venue

and reported when it reaches ``DedupConfig.overall_threshold``. Same-source
pairs are never compared; each scraper dedups its own output upstream.
"""

import logging
from datetime import timedelta
from typing import Optional

from eventmerge.config import DedupConfig
from eventmerge.dedup.normalise import (
    bucket_key,
    normalise_title,
    title_similarity,
    venue_similarity,
)
from eventmerge.models import CandidateEvent, DuplicateMatch, as_utc

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = DedupConfig()


def date_overlap(e1: CandidateEvent, e2: CandidateEvent, config: Optional[DedupConfig] = None) -> float:
    """
    Score how well two events' date ranges line up.

    1.0 if the ranges overlap, 0.85 if the closest start/end gap is within
    the date window, 0.5 within twice the window, else 0. A missing end date
    is the start date.
    """
    config = config or _DEFAULT_CONFIG
    s1, end1 = as_utc(e1.start_date), as_utc(e1.end_date or e1.start_date)
    s2, end2 = as_utc(e2.start_date), as_utc(e2.end_date or e2.start_date)

    if s1 <= end2 and s2 <= end1:
        return 1.0

    window = timedelta(days=config.date_window_days)
    min_gap = min(abs(s1 - s2), abs(end1 - end2), abs(s1 - end2), abs(s2 - end1))

    if min_gap <= window:
        return 0.85
    if min_gap <= window * 2:
        return 0.5
    return 0.0


def match_score(
    e1: CandidateEvent, e2: CandidateEvent, config: Optional[DedupConfig] = None,
) -> tuple[float, str]:
    """Return the weighted composite score and a "t:.. d:.. v:.." breakdown."""
    config = config or _DEFAULT_CONFIG
    title = title_similarity(e1.title, e2.title, config)
    venue = venue_similarity(e1.venue.name, e2.venue.name, config)
    date = date_overlap(e1, e2, config)

    score = (
        title * config.title_weight
        + date * config.date_weight
        + venue * config.venue_weight
    )
    breakdown = f"t:{title * 100:.0f} d:{date * 100:.0f} v:{venue * 100:.0f}"
    return score, breakdown


def quick_reject(t1: str, t2: str, config: Optional[DedupConfig] = None) -> bool:
    """True if two titles share too few characters to be worth a full comparison."""
    config = config or _DEFAULT_CONFIG
    n1 = normalise_title(t1, config)
    n2 = normalise_title(t2, config)

    if n1 == n2 or n1 in n2 or n2 in n1:
        return False

    chars1, chars2 = set(n1), set(n2)
    overlap = len(chars1 & chars2) / len(chars1 | chars2)
    return overlap < config.quick_reject_threshold


def find_duplicates(
    events: list[CandidateEvent], config: Optional[DedupConfig] = None,
) -> list[DuplicateMatch]:
    """
    Find cross-source duplicate pairs among ``events``.

    Each event must carry a unique ``id``. Events with no id, title, venue
    name or start date are ignored, as are titles that normalise to nothing.
    Each unordered pair is reported at most once.
    """
    config = config or _DEFAULT_CONFIG
    buckets: dict[str, list[CandidateEvent]] = {}

    valid = [e for e in events if e.id and e.title and e.venue and e.venue.name and e.start_date]

    for event in valid:
        key = bucket_key(event.title, config)
        if not key:
            continue
        buckets.setdefault(key, []).append(event)

        first_word = key.split(" ")[0]
        if first_word != key:
            short_bucket = buckets.setdefault(first_word, [])
            if not any(e is event for e in short_bucket):
                short_bucket.append(event)

    duplicates: list[DuplicateMatch] = []
    compared: set[tuple[str, str]] = set()

    for bucket in buckets.values():
        if len(bucket) < 2:
            continue
        # Highest-trust sources first so event1 tends to be the better record
        ordered = sorted(bucket, key=lambda e: config.source_rank(e.source), reverse=True)

        for i, e1 in enumerate(ordered):
            for e2 in ordered[i + 1:]:
                if e1.source == e2.source:
                    continue

                pair = tuple(sorted((e1.id, e2.id)))
                if pair in compared:
                    continue
                compared.add(pair)

                if quick_reject(e1.title, e2.title, config):
                    continue

                score, breakdown = match_score(e1, e2, config)
                if score >= config.overall_threshold:
                    duplicates.append(DuplicateMatch(
                        event1_id=e1.id,
                        event2_id=e2.id,
                        confidence=score,
                        reason=f"{score * 100:.0f}% ({breakdown})",
                    ))

    logger.debug(
        "Compared %d pairs across %d buckets, %d duplicates",
        len(compared), len(buckets), len(duplicates),
    )
    return duplicates
