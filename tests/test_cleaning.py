from __future__ import annotations

from clock_in.cleaning import clean_segments, find_overlap, intervals_overlap, same_tag
from clock_in.models import Segment
from helpers import at, make_segment


def test_noise_and_short_gaps_collapse_into_one_segment(tags):
    work = tags["Work"]
    segments = [
        make_segment(work, at(9, 31), at(10)),
        make_segment(work, at(9), at(9, 30)),
        make_segment(work, at(9, 30), at(9, 30, 45)),
    ]

    cleaned = clean_segments(segments, now=at(12))

    assert len(cleaned) == 1
    assert cleaned[0].start == at(9)
    assert cleaned[0].end == at(10)
    assert cleaned[0].tag_id == work.id


def test_other_tag_noise_is_dropped_and_same_tag_reconnects(tags):
    work, food = tags["Work"], tags["Food"]
    segments = [
        make_segment(work, at(9), at(9, 30)),
        make_segment(food, at(9, 30), at(9, 30, 40)),
        make_segment(work, at(9, 30, 40), at(10)),
    ]

    cleaned = clean_segments(segments, now=at(12))

    assert [(s.tag_id, s.start, s.end) for s in cleaned] == [(work.id, at(9), at(10))]


def test_gap_longer_than_a_minute_keeps_segments_apart(tags):
    work = tags["Work"]
    segments = [
        make_segment(work, at(9), at(9, 30)),
        make_segment(work, at(9, 31, 1), at(10)),
    ]

    cleaned = clean_segments(segments, now=at(12))

    assert len(cleaned) == 2


def test_other_tags_are_left_alone(tags):
    work, food = tags["Work"], tags["Food"]
    segments = [
        make_segment(work, at(9), at(9, 30)),
        make_segment(food, at(9, 30), at(10)),
        make_segment(work, at(10), at(11)),
    ]

    cleaned = clean_segments(segments, now=at(12))

    assert [s.tag_id for s in cleaned] == [work.id, food.id, work.id]


def test_open_end_wins_when_merging(tags):
    work = tags["Work"]
    segments = [
        make_segment(work, at(9), at(9, 30)),
        make_segment(work, at(9, 30, 20)),
    ]

    cleaned = clean_segments(segments, now=at(12))

    assert len(cleaned) == 1
    assert cleaned[0].end is None


def test_short_active_segment_is_not_noise(tags):
    food = tags["Food"]
    segments = [make_segment(food, at(9), None)]

    cleaned = clean_segments(segments, now=at(9, 0, 10))

    assert len(cleaned) == 1


def test_inputs_are_not_mutated(tags):
    work = tags["Work"]
    first = make_segment(work, at(9), at(9, 30))
    second = make_segment(work, at(9, 30, 30), at(10))

    cleaned = clean_segments([first, second], now=at(12))

    assert first.end == at(9, 30)
    assert cleaned[0] is not first


def test_same_tag_falls_back_to_names_without_ids():
    first = Segment(tag_id=None, tag_name="Work", start=at(9))
    second = Segment(tag_id=None, tag_name="Work", start=at(10))
    assert same_tag(first, second)


def test_overlap_is_checked_at_minute_resolution():
    # 09:00-09:02:30 and 09:02:10-09:05 only overlap below minute resolution.
    assert not intervals_overlap(at(9), at(9, 2, 30), at(9, 2, 10), at(9, 5))
    assert intervals_overlap(at(9), at(9, 3, 30), at(9, 2, 10), at(9, 5))
    # Touching intervals do not overlap.
    assert not intervals_overlap(at(9), at(10), at(10), at(11))


def test_find_overlap_uses_now_for_active_segments(tags):
    work = tags["Work"]
    running = make_segment(work, at(9))

    assert find_overlap([running], at(9, 30), at(9, 45), now=at(10)) is running
    assert find_overlap([running], at(9, 30), at(9, 45), now=at(9, 20)) is None
    assert find_overlap([running], at(9, 30), at(9, 45), now=at(10), excluding=running.id) is None
