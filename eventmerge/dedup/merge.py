"""
Merge resolution for duplicate pairs.

The primary record is chosen by source trust rank, then data completeness.
Fields documented as "primary's, falling back to secondary's" follow that
choice; dates, prices, subcategories, accessibility, sources and is_free are
combined over both records so the outcome does not depend on argument order.
"""

from dataclasses import replace
from typing import Iterable, Literal, Optional

from eventmerge.categories import DEFAULT_WHITELIST, CategoryWhitelist
from eventmerge.config import DedupConfig
from eventmerge.models import CandidateEvent, MergedEvent, VenueInfo, as_utc

_DEFAULT_CONFIG = DedupConfig()


def completeness_score(event: CandidateEvent) -> int:
    score = 0
    if event.description and len(event.description) > 100:
        score += 2
    if event.image_url:
        score += 1
    if event.price_min is not None:
        score += 1
    if event.price_details:
        score += 1
    if event.end_date:
        score += 1
    if event.venue.address and "TBA" not in event.venue.address:
        score += 1
    if event.accessibility:
        score += 1
    return score


def select_primary_event(
    e1: CandidateEvent, e2: CandidateEvent, config: Optional[DedupConfig] = None,
) -> Literal["event1", "event2"]:
    """Pick the authoritative record: higher source rank, then more complete. Ties go to e1."""
    config = config or _DEFAULT_CONFIG
    p1, p2 = config.source_rank(e1.source), config.source_rank(e2.source)
    if p1 != p2:
        return "event1" if p1 > p2 else "event2"
    return "event1" if completeness_score(e1) >= completeness_score(e2) else "event2"


def resolve_duplicate(
    e1: CandidateEvent,
    e2: CandidateEvent,
    whitelist: Optional[CategoryWhitelist] = None,
    config: Optional[DedupConfig] = None,
) -> MergedEvent:
    """Select the primary record and merge; the result is the same for either argument order."""
    config = config or _DEFAULT_CONFIG
    if _fully_tied(e1, e2, config):
        primary, secondary = sorted((e1, e2), key=_stable_key)
    elif select_primary_event(e1, e2, config) == "event1":
        primary, secondary = e1, e2
    else:
        primary, secondary = e2, e1
    return merge_events(primary, secondary, whitelist, config)


def _fully_tied(e1: CandidateEvent, e2: CandidateEvent, config: DedupConfig) -> bool:
    return (
        config.source_rank(e1.source) == config.source_rank(e2.source)
        and completeness_score(e1) == completeness_score(e2)
    )


def _stable_key(event: CandidateEvent) -> tuple:
    return (event.source, event.source_id, event.id or "", event.title)


def merge_events(
    primary: CandidateEvent,
    secondary: CandidateEvent,
    whitelist: Optional[CategoryWhitelist] = None,
    config: Optional[DedupConfig] = None,
) -> MergedEvent:
    """Merge ``secondary`` into ``primary``, returning a new record. Neither input is mutated."""
    whitelist = whitelist if whitelist is not None else DEFAULT_WHITELIST
    config = config or _DEFAULT_CONFIG

    category = primary.category or secondary.category

    candidates = _unique([
        primary.subcategory,
        secondary.subcategory,
        *primary.subcategories,
        *secondary.subcategories,
    ])
    subcategories = [s for s in candidates if whitelist.is_valid(category, s)]

    # Earliest start and latest end capture the whole run
    start_date = min(as_utc(primary.start_date), as_utc(secondary.start_date))
    end_date = max(
        as_utc(primary.end_date or primary.start_date),
        as_utc(secondary.end_date or secondary.start_date),
    )

    prices = [
        p for p in (primary.price_min, primary.price_max, secondary.price_min, secondary.price_max)
        if p is not None
    ]

    price_details = " | ".join(d for d in (primary.price_details, secondary.price_details) if d) or None

    venue = VenueInfo(
        name=_longer(primary.venue.name, secondary.venue.name),
        address=secondary.venue.address if "TBA" in primary.venue.address else primary.venue.address,
        suburb=primary.venue.suburb or secondary.venue.suburb or config.default_suburb,
    )

    return replace(
        primary,
        category=category,
        subcategory=subcategories[0] if subcategories else None,
        subcategories=subcategories,
        start_date=start_date,
        end_date=end_date if end_date != start_date else None,
        description=_merge_description(primary.description, secondary.description, config),
        price_min=min(prices) if prices else None,
        price_max=max(prices) if prices else None,
        price_details=price_details,
        venue=venue,
        image_url=primary.image_url or secondary.image_url,
        video_url=primary.video_url or secondary.video_url,
        accessibility=_unique([*primary.accessibility, *secondary.accessibility]),
        age_restriction=primary.age_restriction or secondary.age_restriction,
        duration=primary.duration or secondary.duration,
        is_free=primary.is_free or secondary.is_free,
        booking_url=primary.booking_url or secondary.booking_url or "",
        sources=_unique([*_sources_of(primary), *_sources_of(secondary)]),
    )


def _merge_description(p: Optional[str], s: Optional[str], config: DedupConfig) -> Optional[str]:
    """Prefer a real description over a placeholder, then the longer one."""
    p, s = p or "", s or ""
    if _is_placeholder(p, config) and not _is_placeholder(s, config):
        return s or p or None
    if _is_placeholder(s, config) and not _is_placeholder(p, config):
        return p or s or None
    return _longer(p, s) or None


def _is_placeholder(text: str, config: DedupConfig) -> bool:
    return any(marker in text for marker in config.placeholder_descriptions)


def _longer(a: str, b: str) -> str:
    """The longer of two strings; an equal-length tie goes to ``b``."""
    return a if len(a) > len(b) else b


def _sources_of(event: CandidateEvent) -> list[str]:
    return event.sources or ([event.source] if event.source else [])


def _unique(values: Iterable[Optional[str]]) -> list[str]:
    """Drop empties and duplicates, keeping first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for v in values:
        if v and v not in seen:
            seen.add(v)
            out.append(v)
    return out
