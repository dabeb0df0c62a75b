from datetime import datetime

import pytest

from eventmerge.config import DedupConfig
from eventmerge.dedup.matcher import date_overlap, find_duplicates, match_score, quick_reject

from factories import hamilton_pair, make_event, utc


# --- date_overlap ---

def test_date_overlap_overlapping_ranges():
    e1 = make_event(start_date=utc(2025, 1, 1), end_date=utc(2025, 1, 15))
    e2 = make_event(start_date=utc(2025, 1, 10), end_date=utc(2025, 1, 20))
    assert date_overlap(e1, e2) == 1.0


def test_date_overlap_missing_end_date_is_start_date():
    e1 = make_event(start_date=utc(2025, 1, 1))
    e2 = make_event(start_date=utc(2025, 1, 1))
    assert date_overlap(e1, e2) == 1.0


def test_date_overlap_within_window():
    e1 = make_event(start_date=utc(2025, 1, 1), end_date=utc(2025, 1, 10))
    e2 = make_event(start_date=utc(2025, 1, 12), end_date=utc(2025, 1, 20))
    assert date_overlap(e1, e2) == 0.85


def test_date_overlap_within_double_window():
    e1 = make_event(start_date=utc(2025, 1, 1), end_date=utc(2025, 1, 5))
    e2 = make_event(start_date=utc(2025, 1, 25))
    assert date_overlap(e1, e2) == 0.5


def test_date_overlap_far_apart():
    e1 = make_event(start_date=utc(2025, 1, 1))
    e2 = make_event(start_date=utc(2025, 3, 1))
    assert date_overlap(e1, e2) == 0.0


def test_date_overlap_window_is_configurable():
    e1 = make_event(start_date=utc(2025, 1, 1))
    e2 = make_event(start_date=utc(2025, 1, 4))
    assert date_overlap(e1, e2, DedupConfig(date_window_days=2)) == 0.5


# --- match_score ---

def test_identical_events_score_one():
    e1 = make_event(title="Swan Lake", source="whatson")
    e2 = make_event(title="Swan Lake", source="ticketmaster")
    score, breakdown = match_score(e1, e2)
    assert score == pytest.approx(1.0)
    assert score >= DedupConfig().overall_threshold
    assert breakdown == "t:100 d:100 v:100"


@pytest.mark.parametrize("pair", [
    (
        dict(title="Hamilton", venue="Her Majesty's Theatre", start_date=utc(2025, 6, 1)),
        dict(title="HAMILTON - THE MUSICAL", venue="Her Majesty's Theatre Melbourne",
             start_date=utc(2025, 6, 3), end_date=utc(2025, 8, 1)),
    ),
    (
        dict(title="Swan Lake Ballet", venue="Arts Centre", start_date=utc(2025, 2, 1)),
        dict(title="Swan Lakes", venue="State Theatre", start_date=utc(2025, 3, 1)),
    ),
    (
        dict(title="Hamilton", venue="Princess Theatre"),
        dict(title="Wicked", venue="Regent Theatre", start_date=utc(2026, 1, 1)),
    ),
])
def test_match_score_is_symmetric(pair):
    a = make_event(source="marriner", **pair[0])
    b = make_event(source="ticketmaster", **pair[1])
    assert match_score(a, b) == match_score(b, a)


def test_quick_reject_dissimilar_titles():
    assert quick_reject("Hamilton", "Pop Up Sky")
    assert not quick_reject("Hamilton", "Hamilton the Musical")


# --- find_duplicates ---

def test_find_duplicates_reports_cross_source_pair():
    a = make_event(id="a", title="Swan Lake", source="whatson")
    b = make_event(id="b", title="Swan Lake", source="ticketmaster")
    matches = find_duplicates([a, b])
    assert len(matches) == 1
    assert {matches[0].event1_id, matches[0].event2_id} == {"a", "b"}
    assert matches[0].confidence == pytest.approx(1.0)
    assert matches[0].reason == "100% (t:100 d:100 v:100)"


def test_find_duplicates_puts_higher_ranked_source_first():
    a = make_event(id="a", title="Swan Lake", source="whatson")
    b = make_event(id="b", title="Swan Lake", source="marriner")
    [match] = find_duplicates([a, b])
    assert match.event1_id == "b"


def test_find_duplicates_never_pairs_same_source():
    a = make_event(id="a", title="Swan Lake", source="ticketmaster")
    b = make_event(id="b", title="Swan Lake", source="ticketmaster")
    assert find_duplicates([a, b]) == []


def test_find_duplicates_reports_each_pair_once_across_buckets():
    # Both land in the "swan lake ballet" bucket and the "swan" bucket
    a = make_event(id="a", title="Swan Lake Ballet", source="whatson")
    b = make_event(id="b", title="Swan Lake Ballet", source="marriner")
    assert len(find_duplicates([a, b])) == 1


def test_find_duplicates_first_word_bucket_catches_divergent_titles():
    a = make_event(id="a", title="Hamilton", source="marriner")
    b = make_event(id="b", title="Hamilton Musical Experience", source="ticketmaster")
    assert len(find_duplicates([a, b])) == 1


def test_find_duplicates_ignores_different_events():
    a = make_event(id="a", title="Hamilton", source="marriner")
    b = make_event(id="b", title="Wicked", source="ticketmaster")
    assert find_duplicates([a, b]) == []


def test_find_duplicates_same_title_months_apart_below_threshold():
    a = make_event(id="a", title="Swan Lake", venue="State Theatre", start_date=utc(2025, 1, 1), source="marriner")
    b = make_event(id="b", title="Swan Lake", venue="Palais Theatre", start_date=utc(2025, 9, 1), source="whatson")
    assert find_duplicates([a, b]) == []


def test_find_duplicates_skips_empty_and_stop_word_titles():
    a = make_event(id="a", title="", source="marriner")
    b = make_event(id="b", title="", source="ticketmaster")
    c = make_event(id="c", title="The Show", source="marriner")
    d = make_event(id="d", title="The Show", source="whatson")
    assert find_duplicates([a, b, c, d]) == []


def test_find_duplicates_threshold_is_injected():
    a = make_event(id="a", title="Swan Lake", source="whatson", start_date=utc(2025, 1, 1))
    b = make_event(id="b", title="Swan Lake", source="marriner", start_date=utc(2025, 1, 10))
    # 0.5 + 0.3 * 0.85 + 0.2 = 0.955
    assert len(find_duplicates([a, b])) == 1
    assert find_duplicates([a, b], DedupConfig(overall_threshold=0.99)) == []


def test_find_duplicates_empty_input():
    assert find_duplicates([]) == []


def test_hamilton_scenario_is_a_duplicate():
    a, b = hamilton_pair()
    [match] = find_duplicates([b, a])
    assert match.confidence >= 0.78
    assert {match.event1_id, match.event2_id} == {"a", "b"}


def test_date_overlap_mixes_naive_and_aware_dates():
    naive = make_event(start_date=datetime(2025, 1, 1))
    aware = make_event(start_date=utc(2025, 1, 10))
    assert date_overlap(naive, aware) == 0.85
    assert date_overlap(aware, naive) == 0.85


def test_find_duplicates_skips_events_without_ids():
    events = [
        make_event(id=None, title="Swan Lake", source="whatson"),
        make_event(id=None, title="Swan Lake", source="marriner"),
        make_event(id="c", title="Giselle", source="whatson"),
        make_event(id="d", title="Giselle", source="marriner"),
    ]
    [match] = find_duplicates(events)
    assert {match.event1_id, match.event2_id} == {"c", "d"}
