"""Small builders for CandidateEvent test data."""

from datetime import datetime, timezone
from itertools import count

from eventmerge.models import CandidateEvent, EventStats, VenueInfo

_ids = count(1)


def utc(year, month, day, hour=0):
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


def make_event(**overrides) -> CandidateEvent:
    n = next(_ids)
    venue = overrides.pop("venue", "Princess Theatre")
    if isinstance(venue, str):
        venue = VenueInfo(name=venue, address="163 Spring St", suburb="Melbourne")
    stats = overrides.pop("stats", None)
    if isinstance(stats, dict):
        stats = EventStats(**stats)
    fields = dict(
        id=f"evt-{n}",
        title="Test Event",
        venue=venue,
        start_date=utc(2025, 6, 1),
        source="ticketmaster",
        source_id=f"src-{n}",
        category="theatre",
        stats=stats,
    )
    fields.update(overrides)
    return CandidateEvent(**fields)


def hamilton_pair():
    a = make_event(
        id="a",
        source="marriner",
        title="Hamilton",
        venue="Her Majesty's Theatre",
        start_date=utc(2025, 6, 1),
        description="A" * 150,
    )
    b = make_event(
        id="b",
        source="ticketmaster",
        title="HAMILTON - THE MUSICAL",
        venue="Her Majesty's Theatre Melbourne",
        start_date=utc(2025, 6, 3),
        end_date=utc(2025, 8, 1),
        price_min=80,
        price_max=250,
        description="Short blurb",
    )
    return a, b
