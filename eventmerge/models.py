from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from dateutil import parser as dateparser


@dataclass
class VenueInfo:
    name: str
    address: str = ""
    suburb: str = ""


@dataclass
class EventStats:
    view_count: int = 0
    favourite_count: int = 0
    clickthrough_count: int = 0


@dataclass
class CandidateEvent:
    title: str
    venue: VenueInfo
    start_date: datetime
    source: str        # Scraper key, e.g. "marriner", "ticketmaster", "whatson"
    category: str = ""
    end_date: Optional[datetime] = None
    subcategory: Optional[str] = None
    subcategories: list[str] = field(default_factory=list)
    description: Optional[str] = None
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    price_details: Optional[str] = None
    is_free: bool = False
    booking_url: str = ""
    accessibility: list[str] = field(default_factory=list)
    age_restriction: Optional[str] = None
    duration: Optional[str] = None
    sources: list[str] = field(default_factory=list)   # Every source merged into this record
    stats: Optional[EventStats] = None
    scraped_at: Optional[datetime] = None
    source_id: str = ""  # The scraper's own id for the record
    # Caller-assigned unique id, used to report duplicate pairs
    id: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CandidateEvent":
        """Build an event from the camelCase JSON shape scrapers emit."""
        venue = data.get("venue") or {}
        stats = data.get("stats")
        return cls(
            id=_opt_str(data.get("id", data.get("_id"))),
            title=data.get("title") or "",
            venue=VenueInfo(
                name=venue.get("name") or "",
                address=venue.get("address") or "",
                suburb=venue.get("suburb") or "",
            ),
            start_date=parse_timestamp(data["startDate"]),
            end_date=parse_timestamp(data.get("endDate")),
            source=data.get("source") or "",
            source_id=_opt_str(data.get("sourceId")) or "",
            category=data.get("category") or "",
            subcategory=data.get("subcategory"),
            subcategories=list(data.get("subcategories") or []),
            description=data.get("description"),
            image_url=data.get("imageUrl"),
            video_url=data.get("videoUrl"),
            price_min=data.get("priceMin"),
            price_max=data.get("priceMax"),
            price_details=data.get("priceDetails"),
            is_free=bool(data.get("isFree", False)),
            booking_url=data.get("bookingUrl") or "",
            accessibility=list(data.get("accessibility") or []),
            age_restriction=data.get("ageRestriction"),
            duration=data.get("duration"),
            sources=list(data.get("sources") or []),
            stats=EventStats(
                view_count=stats.get("viewCount", 0),
                favourite_count=stats.get("favouriteCount", 0),
                clickthrough_count=stats.get("clickthroughCount", 0),
            ) if stats else None,
            scraped_at=parse_timestamp(data.get("scrapedAt")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "venue": asdict(self.venue),
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "source": self.source,
            "sourceId": self.source_id,
            "category": self.category,
            "subcategory": self.subcategory,
            "subcategories": self.subcategories,
            "description": self.description,
            "imageUrl": self.image_url,
            "videoUrl": self.video_url,
            "priceMin": self.price_min,
            "priceMax": self.price_max,
            "priceDetails": self.price_details,
            "isFree": self.is_free,
            "bookingUrl": self.booking_url,
            "accessibility": self.accessibility,
            "ageRestriction": self.age_restriction,
            "duration": self.duration,
            "sources": self.sources,
            "stats": {
                "viewCount": self.stats.view_count,
                "favouriteCount": self.stats.favourite_count,
                "clickthroughCount": self.stats.clickthrough_count,
            } if self.stats else None,
            "scrapedAt": self.scraped_at.isoformat() if self.scraped_at else None,
        }


# A merged record has the same shape as its inputs
MergedEvent = CandidateEvent


@dataclass
class DuplicateMatch:
    event1_id: str
    event2_id: str
    confidence: float  # Composite similarity score in [0, 1]
    reason: str        # e.g. "93% (t:95 d:85 v:100)", for logs only


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO string or datetime; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    return as_utc(dateparser.isoparse(str(value)))


def as_utc(dt: datetime) -> datetime:
    """Attach UTC to a naive datetime; aware values pass through."""
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def _opt_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)
