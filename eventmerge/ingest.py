"""
Ingestion pipeline: reconcile a batch of scraped events against the store.

For each incoming event:
  1. same (source, source_id) already stored  -> update that record in place
  2. cross-source duplicate of a stored event  -> merge into the stored record
  3. otherwise                                 -> insert as a new record

Events inserted earlier in the same batch take part in matching, so two
sources scraped together still collapse to one record.
"""

import logging
import sqlite3
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional

import eventmerge.config as cfg_module
import eventmerge.db as db_module
from eventmerge.categories import CategoryWhitelist
from eventmerge.config import DedupConfig
from eventmerge.dedup import find_duplicates, merge_events, resolve_duplicate
from eventmerge.models import CandidateEvent
from eventmerge.popularity import assign_category_percentiles

logger = logging.getLogger(__name__)

_PENDING_ID = "pending"


@dataclass
class IngestStats:
    inserted: int = 0
    updated: int = 0
    merged: int = 0
    skipped: int = 0


def process_events_with_deduplication(
    conn: sqlite3.Connection,
    new_events: list[CandidateEvent],
    source_name: str,
    cfg: Optional[dict] = None,
) -> IngestStats:
    cfg = cfg or {}
    dedup_config = cfg_module.get_dedup_config(cfg)
    whitelist = cfg_module.get_category_whitelist(cfg)

    stats = IngestStats()
    logger.info("Processing %d events from '%s'", len(new_events), source_name)

    pool = {e.id: e for e in db_module.get_all_events(conn)}
    logger.info("Found %d existing events", len(pool))

    for event in new_events:
        try:
            same_source = db_module.find_by_source_id(conn, event.source, event.source_id)
            if same_source is not None:
                refreshed = _refresh(event, same_source, whitelist, dedup_config)
                db_module.update_event(conn, same_source.id, refreshed)
                pool[same_source.id] = db_module.get_event(conn, same_source.id)
                stats.updated += 1
                logger.info("Updated: %s", event.title)
                continue

            pending = replace(event, id=_PENDING_ID)
            matches = [
                m for m in find_duplicates([*pool.values(), pending], dedup_config)
                if _PENDING_ID in (m.event1_id, m.event2_id)
            ]

            if matches:
                best = max(matches, key=lambda m: m.confidence)
                target_id = best.event2_id if best.event1_id == _PENDING_ID else best.event1_id
                target = pool[target_id]

                merged = resolve_duplicate(target, event, whitelist, dedup_config)
                db_module.update_event(conn, target_id, merged)
                db_module.record_merge(conn, target_id, event.source, event.source_id, event.booking_url)
                pool[target_id] = db_module.get_event(conn, target_id)
                stats.merged += 1
                logger.info("Merged: '%s' into %s (%s)", event.title, target.source, best.reason)
                continue

            new_id = db_module.insert_event(conn, event)
            pool[new_id] = db_module.get_event(conn, new_id)
            stats.inserted += 1
            logger.info("Inserted: %s", event.title)

        except sqlite3.IntegrityError:
            stats.skipped += 1
            logger.warning("Duplicate key for: %s", event.title)
        except Exception:
            stats.skipped += 1
            logger.exception("Error processing %s", event.title)

    return stats


def _refresh(
    event: CandidateEvent,
    stored: CandidateEvent,
    whitelist: CategoryWhitelist,
    dedup_config: DedupConfig,
) -> CandidateEvent:
    """
    Apply a re-scrape from a record's own source.

    A record nothing else was merged into is simply replaced. Otherwise the
    fresh scrape is merged over the stored record, so the run dates, price
    range and other data brought in by earlier merges survive.
    """
    if not any(s != event.source for s in stored.sources):
        return event
    return merge_events(event, stored, whitelist, dedup_config)


def update_popularity_scores(
    conn: sqlite3.Connection,
    cfg: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> int:
    """Recompute raw popularity and category percentiles for all live events."""
    popularity_config = cfg_module.get_popularity_config(cfg or {})
    now = now or datetime.now(timezone.utc)

    events = db_module.get_all_events(conn)
    rankings = assign_category_percentiles(events, popularity_config, now=now)
    for ranking in rankings:
        db_module.update_popularity(conn, ranking.event_id, ranking.raw_score, ranking.percentile, now)
    conn.commit()

    logger.info("Updated popularity for %d events", len(rankings))
    return len(rankings)
