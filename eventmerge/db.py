import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from eventmerge.models import CandidateEvent, EventStats, VenueInfo


def connect(db_path: Path) -> sqlite3.Connection:
    if str(db_path) != ":memory:":
        db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    _create_schema(conn)
    return conn


def _create_schema(conn: sqlite3.Connection) -> None:
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS events (
            id                  INTEGER PRIMARY KEY AUTOINCREMENT,
            primary_source      TEXT NOT NULL,
            source_id           TEXT NOT NULL,
            title               TEXT NOT NULL,
            category            TEXT NOT NULL DEFAULT '',
            subcategory         TEXT,
            subcategories       TEXT NOT NULL DEFAULT '[]',
            description         TEXT,
            start_date          TEXT NOT NULL,
            end_date            TEXT,
            venue_name          TEXT NOT NULL,
            venue_address       TEXT NOT NULL DEFAULT '',
            venue_suburb        TEXT NOT NULL DEFAULT '',
            price_min           REAL,
            price_max           REAL,
            price_details       TEXT,
            is_free             INTEGER NOT NULL DEFAULT 0,
            booking_url         TEXT NOT NULL DEFAULT '',
            image_url           TEXT,
            video_url           TEXT,
            accessibility       TEXT NOT NULL DEFAULT '[]',
            age_restriction     TEXT,
            duration            TEXT,
            sources             TEXT NOT NULL DEFAULT '[]',
            source_ids          TEXT NOT NULL DEFAULT '{}',
            booking_urls        TEXT NOT NULL DEFAULT '{}',
            merged_from         TEXT NOT NULL DEFAULT '[]',
            view_count          INTEGER NOT NULL DEFAULT 0,
            favourite_count     INTEGER NOT NULL DEFAULT 0,
            clickthrough_count  INTEGER NOT NULL DEFAULT 0,
            scraped_at          TEXT,
            last_updated        TEXT,
            raw_popularity_score            REAL,
            category_popularity_percentile  REAL,
            last_popularity_update          TEXT,
            is_archived         INTEGER NOT NULL DEFAULT 0,
            UNIQUE(primary_source, source_id)
        );
    """)
    conn.commit()


# Columns written from a CandidateEvent on insert and update
_CONTENT_COLUMNS = (
    "title", "category", "subcategory", "subcategories", "description",
    "start_date", "end_date", "venue_name", "venue_address", "venue_suburb",
    "price_min", "price_max", "price_details", "is_free", "booking_url",
    "image_url", "video_url", "accessibility", "age_restriction", "duration",
    "sources", "scraped_at", "last_updated",
)


def insert_event(conn: sqlite3.Connection, event: CandidateEvent) -> str:
    """Insert a new record; returns its id as a string. Raises sqlite3.IntegrityError on a source_id clash."""
    params = _content_params(event)
    params["primary_source"] = event.source
    params["source_id"] = event.source_id
    params["sources"] = json.dumps(event.sources or [event.source])
    params["source_ids"] = json.dumps({event.source: event.source_id})
    params["booking_urls"] = json.dumps({event.source: event.booking_url})
    stats = event.stats or EventStats()
    params["view_count"] = stats.view_count
    params["favourite_count"] = stats.favourite_count
    params["clickthrough_count"] = stats.clickthrough_count

    columns = ", ".join(params)
    placeholders = ", ".join(f":{c}" for c in params)
    cursor = conn.execute(f"INSERT INTO events ({columns}) VALUES ({placeholders})", params)
    conn.commit()
    return str(cursor.lastrowid)


def update_event(conn: sqlite3.Connection, event_id: str, event: CandidateEvent) -> None:
    """Overwrite the content columns of a stored record. Stats and popularity are left alone."""
    params = _content_params(event)
    assignments = ", ".join(f"{c} = :{c}" for c in _CONTENT_COLUMNS)
    params["id"] = int(event_id)
    conn.execute(f"UPDATE events SET {assignments} WHERE id = :id", params)
    conn.commit()


def record_merge(
    conn: sqlite3.Connection,
    event_id: str,
    source: str,
    source_id: str,
    booking_url: str,
) -> None:
    """Remember that a record from ``source`` was merged into ``event_id``."""
    row = conn.execute(
        "SELECT sources, source_ids, booking_urls, merged_from FROM events WHERE id = ?",
        (int(event_id),),
    ).fetchone()
    if row is None:
        return

    sources = json.loads(row["sources"])
    if source not in sources:
        sources.append(source)
    source_ids = json.loads(row["source_ids"])
    source_ids[source] = source_id
    booking_urls = json.loads(row["booking_urls"])
    booking_urls[source] = booking_url
    merged_from = json.loads(row["merged_from"])
    tag = f"{source}:{source_id}"
    if tag not in merged_from:
        merged_from.append(tag)

    conn.execute(
        """
        UPDATE events
        SET sources = ?, source_ids = ?, booking_urls = ?, merged_from = ?
        WHERE id = ?
        """,
        (json.dumps(sources), json.dumps(source_ids), json.dumps(booking_urls),
         json.dumps(merged_from), int(event_id)),
    )
    conn.commit()


def get_event(conn: sqlite3.Connection, event_id: str) -> Optional[CandidateEvent]:
    row = conn.execute("SELECT * FROM events WHERE id = ?", (int(event_id),)).fetchone()
    return _row_to_event(row) if row else None


def get_all_events(conn: sqlite3.Connection, include_archived: bool = False) -> list[CandidateEvent]:
    query = "SELECT * FROM events"
    if not include_archived:
        query += " WHERE is_archived = 0"
    rows = conn.execute(query + " ORDER BY start_date, id").fetchall()
    return [_row_to_event(r) for r in rows]


def find_by_source_id(conn: sqlite3.Connection, source: str, source_id: str) -> Optional[CandidateEvent]:
    row = conn.execute(
        "SELECT * FROM events WHERE primary_source = ? AND source_id = ?",
        (source, source_id),
    ).fetchone()
    return _row_to_event(row) if row else None


def get_merge_history(conn: sqlite3.Connection, event_id: str) -> dict:
    row = conn.execute(
        "SELECT source_ids, booking_urls, merged_from FROM events WHERE id = ?",
        (int(event_id),),
    ).fetchone()
    if row is None:
        return {}
    return {
        "source_ids": json.loads(row["source_ids"]),
        "booking_urls": json.loads(row["booking_urls"]),
        "merged_from": json.loads(row["merged_from"]),
    }


# --- Popularity ---

def update_popularity(
    conn: sqlite3.Connection,
    event_id: str,
    raw_score: float,
    percentile: float,
    updated_at: datetime,
) -> None:
    conn.execute(
        """
        UPDATE events
        SET raw_popularity_score = ?, category_popularity_percentile = ?, last_popularity_update = ?
        WHERE id = ?
        """,
        (raw_score, percentile, _ts(updated_at), int(event_id)),
    )


def get_popularity(conn: sqlite3.Connection, event_id: str) -> Optional[tuple[float, float]]:
    row = conn.execute(
        "SELECT raw_popularity_score, category_popularity_percentile FROM events WHERE id = ?",
        (int(event_id),),
    ).fetchone()
    if row is None or row["raw_popularity_score"] is None:
        return None
    return row["raw_popularity_score"], row["category_popularity_percentile"]


def archive_past_events(conn: sqlite3.Connection, now: Optional[datetime] = None) -> int:
    """Archive events whose run ended before ``now``. Returns the number archived."""
    cutoff = _ts(now or datetime.now(timezone.utc))
    cursor = conn.execute(
        "UPDATE events SET is_archived = 1 WHERE is_archived = 0 AND COALESCE(end_date, start_date) < ?",
        (cutoff,),
    )
    conn.commit()
    return cursor.rowcount


def _ts(value: Optional[datetime]) -> Optional[str]:
    """Store timestamps as UTC ISO strings so they sort and compare as text."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _content_params(event: CandidateEvent) -> dict:
    return {
        "title":           event.title,
        "category":        event.category,
        "subcategory":     event.subcategory,
        "subcategories":   json.dumps(event.subcategories),
        "description":     event.description,
        "start_date":      _ts(event.start_date),
        "end_date":        _ts(event.end_date),
        "venue_name":      event.venue.name,
        "venue_address":   event.venue.address,
        "venue_suburb":    event.venue.suburb,
        "price_min":       event.price_min,
        "price_max":       event.price_max,
        "price_details":   event.price_details,
        "is_free":         1 if event.is_free else 0,
        "booking_url":     event.booking_url,
        "image_url":       event.image_url,
        "video_url":       event.video_url,
        "accessibility":   json.dumps(event.accessibility),
        "age_restriction": event.age_restriction,
        "duration":        event.duration,
        "sources":         json.dumps(event.sources or [event.source]),
        "scraped_at":      _ts(event.scraped_at),
        "last_updated":    _ts(datetime.now(timezone.utc)),
    }


def _row_to_event(row: sqlite3.Row) -> CandidateEvent:
    return CandidateEvent(
        id=str(row["id"]),
        title=row["title"],
        venue=VenueInfo(
            name=row["venue_name"],
            address=row["venue_address"],
            suburb=row["venue_suburb"],
        ),
        start_date=_from_ts(row["start_date"]),
        end_date=_from_ts(row["end_date"]),
        source=row["primary_source"],
        source_id=row["source_id"],
        category=row["category"],
        subcategory=row["subcategory"],
        subcategories=json.loads(row["subcategories"]),
        description=row["description"],
        image_url=row["image_url"],
        video_url=row["video_url"],
        price_min=row["price_min"],
        price_max=row["price_max"],
        price_details=row["price_details"],
        is_free=bool(row["is_free"]),
        booking_url=row["booking_url"],
        accessibility=json.loads(row["accessibility"]),
        age_restriction=row["age_restriction"],
        duration=row["duration"],
        sources=json.loads(row["sources"]),
        stats=EventStats(
            view_count=row["view_count"],
            favourite_count=row["favourite_count"],
            clickthrough_count=row["clickthrough_count"],
        ),
        scraped_at=_from_ts(row["scraped_at"]),
    )
