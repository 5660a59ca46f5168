from __future__ import annotations

from datetime import date

import pytest

from clock_in.aggregation import AggregationCache
from clock_in.models import Tag
from helpers import at, make_segment

HOUR = 3600.0


@pytest.fixture
def reading(tags) -> Tag:
    tag = Tag(name="Reading", order=len(tags))
    tags[tag.name] = tag
    return tag


@pytest.fixture
def mixed_day(make_ledger, tags, reading):
    idle = tags["Idle / Off"]
    return make_ledger(
        [
            make_segment(tags["Work"], at(8), at(9)),
            make_segment(tags["School"], at(9), at(9, 30)),
            make_segment(tags["Food"], at(9, 30), at(10)),
            make_segment(idle, at(10), at(11)),
            make_segment(reading, at(11), at(11, 30)),
        ]
    )


def test_active_segment_is_measured_against_reference_now(make_ledger, tags):
    work = tags["Work"]
    ledger = make_ledger([make_segment(work, at(8))])
    cache = AggregationCache(ledger, now=at(9, 30))

    totals = cache.totals_by_tag(at(8))

    assert totals[work.id] == 1.5 * HOUR
    assert totals[tags["Food"].id] == 0.0


def test_totals_are_memoized_until_the_ledger_changes(make_ledger, tags):
    ledger = make_ledger([make_segment(tags["Work"], at(8), at(9))])
    cache = AggregationCache(ledger, now=at(12))

    cache.totals_by_tag(at(8))
    assert cache.cached_days() == [date(2024, 3, 11)]

    ledger.switch_tag(tags["Food"], now=at(12))
    assert cache.cached_days() == []
    assert cache.totals_by_tag(at(8))[tags["Work"].id] == HOUR


def test_returned_totals_are_copies(make_ledger, tags):
    ledger = make_ledger([make_segment(tags["Work"], at(8), at(9))])
    cache = AggregationCache(ledger, now=at(12))

    cache.totals_by_tag(at(8))[tags["Work"].id] = 0.0

    assert cache.totals_by_tag(at(8))[tags["Work"].id] == HOUR


def test_tick_refreshes_today_while_a_segment_runs(make_ledger, tags):
    work = tags["Work"]
    ledger = make_ledger(
        [make_segment(work, at(9, day=10), at(10, day=10)), make_segment(work, at(8))]
    )
    cache = AggregationCache(ledger, now=at(9))
    assert cache.totals_by_tag(at(8))[work.id] == HOUR
    cache.totals_by_tag(at(9, day=10))

    cache.tick(at(10))

    assert cache.cached_days() == [date(2024, 3, 10)]
    assert cache.totals_by_tag(at(8))[work.id] == 2 * HOUR


def test_tick_without_running_segment_keeps_cache(make_ledger, tags):
    ledger = make_ledger([make_segment(tags["Work"], at(8), at(9))])
    cache = AggregationCache(ledger, now=at(10))
    cache.totals_by_tag(at(8))

    cache.tick(at(11))

    assert cache.cached_days() == [date(2024, 3, 11)]
    assert cache.now == at(11)


def test_closed_cache_stops_listening(make_ledger, tags):
    ledger = make_ledger([make_segment(tags["Work"], at(8), at(9))])
    cache = AggregationCache(ledger, now=at(12))
    cache.close()
    cache.totals_by_tag(at(8))

    ledger.switch_tag(tags["Food"], now=at(12))

    # Stale version is still detected on the next read.
    assert cache.totals_by_tag(at(8))[tags["Food"].id] == 0.0
    assert cache.cached_days() == [date(2024, 3, 11)]


def test_category_breakdown(mixed_day, tags):
    cache = AggregationCache(mixed_day, now=at(12))

    assert cache.focused_time_for_day(at(8)) == 1.5 * HOUR
    assert cache.maintenance_time_for_day(at(8)) == 0.5 * HOUR
    assert cache.idle_time_for_day(at(8)) == HOUR
    # Tags outside both groups still count as active time.
    assert cache.active_time_for_day(at(8)) == 2.5 * HOUR
    assert cache.total_tracked(at(8)) == 3.5 * HOUR


def test_dominant_active_tag(mixed_day, make_ledger, tags):
    cache = AggregationCache(mixed_day, now=at(12))
    assert cache.dominant_active_tag(at(8)).name == "Work"
    assert cache.dominant_active_tag(at(8, day=10)) is None

    idle_only = make_ledger([make_segment(tags["Idle / Off"], at(8), at(12))])
    assert AggregationCache(idle_only, now=at(12)).dominant_active_tag(at(8)) is None


def test_window_covers_anchor_and_six_prior_days(make_ledger, tags):
    work, idle = tags["Work"], tags["Idle / Off"]
    ledger = make_ledger(
        [
            make_segment(work, at(8, day=4), at(12, day=4)),
            make_segment(work, at(8, day=5), at(9, day=5)),
            make_segment(work, at(8, day=10), at(8, 29, day=10)),
            make_segment(idle, at(8, day=9), at(10, day=9)),
            make_segment(work, at(8), at(8, 30)),
        ]
    )
    cache = AggregationCache(ledger, now=at(12))

    assert cache.window_days(at(8)) == [date(2024, 3, d) for d in range(11, 4, -1)]
    assert cache.active_time_for_window(at(8)) == HOUR + 29 * 60 + 30 * 60
    assert cache.focused_time_for_window(at(8)) == cache.active_time_for_window(at(8))
    assert cache.idle_time_for_window(at(8)) == 2 * HOUR
    assert cache.maintenance_time_for_window(at(8)) == 0.0


def test_tracked_days_need_thirty_active_minutes(make_ledger, tags):
    work, idle = tags["Work"], tags["Idle / Off"]
    ledger = make_ledger(
        [
            make_segment(work, at(8, day=10), at(8, 29, day=10)),
            make_segment(idle, at(8, day=9), at(10, day=9)),
            make_segment(work, at(8), at(8, 30)),
        ]
    )
    cache = AggregationCache(ledger, now=at(12))

    assert cache.tracked_days_count(at(8)) == 1


def test_window_totals_by_tag(mixed_day, tags, reading):
    cache = AggregationCache(mixed_day, now=at(12))

    totals = cache.totals_by_tag_for_window(at(8))
    assert set(totals) == {tag.id for tag in mixed_day.tags}
    assert totals[tags["Training"].id] == 0.0

    active = cache.active_totals_by_tag_for_window(at(8))
    assert tags["Idle / Off"].id not in active
    assert tags["Training"].id not in active
    assert active[reading.id] == 0.5 * HOUR


def test_last_n_days_counts_back_from_now(ledger):
    cache = AggregationCache(ledger, now=at(12))

    assert cache.last_n_days(3) == [date(2024, 3, 11), date(2024, 3, 10), date(2024, 3, 9)]
