"""Tests for time-of-day interval arithmetic."""
from datetime import time

from turfbook.services.intervals import (
    END_OF_DAY,
    MIDNIGHT,
    duration_minutes,
    format_range,
    from_minutes,
    normalize_end,
    overlaps,
    to_minutes,
)


def test_overlapping_intervals():
    assert overlaps(time(14), time(15), time(14, 30), time(15, 30))
    assert overlaps(time(14), time(16), time(14, 30), time(15))
    assert overlaps(time(14), time(15), time(14), time(15))


def test_adjacent_intervals_do_not_overlap():
    assert not overlaps(time(14), time(15), time(15), time(16))
    assert not overlaps(time(15), time(16), time(14), time(15))


def test_disjoint_intervals_do_not_overlap():
    assert not overlaps(time(11), time(12), time(20), time(21))


def test_overlap_agrees_with_case_analysis():
    # The four cases a boundary-by-boundary check would enumerate
    def by_cases(s1, e1, s2, e2):
        return (
            (s2 <= s1 < e2)
            or (s2 < e1 <= e2)
            or (s1 <= s2 and e1 >= e2)
            or (s2 <= s1 and e2 >= e1)
        )

    points = [time(h, m) for h in (11, 12, 13) for m in (0, 30)]
    for s1 in points:
        for e1 in points:
            for s2 in points:
                for e2 in points:
                    if s1 < e1 and s2 < e2:
                        assert overlaps(s1, e1, s2, e2) == by_cases(s1, e1, s2, e2)


def test_normalize_end_maps_midnight_to_end_of_day():
    assert normalize_end(MIDNIGHT) == END_OF_DAY
    assert normalize_end(time(15)) == time(15)


def test_minute_conversions_clamp_to_end_of_day():
    assert to_minutes(time(11)) == 660
    assert to_minutes(END_OF_DAY) == 1440
    assert from_minutes(1440) == END_OF_DAY
    assert from_minutes(690) == time(11, 30)


def test_duration_of_last_slot():
    assert duration_minutes(time(23), END_OF_DAY) == 60
    assert duration_minutes(time(23), MIDNIGHT) == 60


def test_format_range():
    assert format_range(time(14), time(15)) == "14:00:00 - 15:00:00"
