from eventmerge.dedup.matcher import date_overlap, find_duplicates, match_score, quick_reject
from eventmerge.dedup.merge import (
    completeness_score,
    merge_events,
    resolve_duplicate,
    select_primary_event,
)
from eventmerge.dedup.normalise import (
    normalise_title,
    normalise_venue,
    title_similarity,
    venue_similarity,
)

__all__ = [
    "completeness_score",
    "date_overlap",
    "find_duplicates",
    "match_score",
    "merge_events",
    "normalise_title",
    "normalise_venue",
    "quick_reject",
    "resolve_duplicate",
    "select_primary_event",
    "title_similarity",
    "venue_similarity",
]
