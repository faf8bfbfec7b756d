import pytest

from tracker.cursor import PeriodCursor


def triple(c: PeriodCursor):
    return c.year, c.month, c.day


def test_step_month_from_month_end_resets_day():
    c = PeriodCursor(2025, 0, 31)
    c.step_month(1)
    assert triple(c) == (2025, 1, 1)


def test_step_month_back_across_year():
    c = PeriodCursor(2025, 1, 1)
    c.step_month(-2)
    assert triple(c) == (2024, 11, 1)


def test_step_month_wraps_forward_into_next_year():
    c = PeriodCursor(2024, 11, 31)
    c.step_month(1)
    assert triple(c) == (2025, 0, 1)


def test_step_month_large_deltas():
    c = PeriodCursor(2025, 5, 15)
    c.step_month(12)
    assert triple(c) == (2026, 5, 1)
    c.step_month(-25)
    assert triple(c) == (2024, 4, 1)


def test_step_month_always_in_range_and_day_one():
    c = PeriodCursor(2025, 6, 20)
    for delta in [1, -1, 5, -13, 24, -7, 11, -11, 0, 37, -100]:
        c.step_month(delta)
        assert 0 <= c.month <= 11
        assert c.day == 1


def test_step_day_crosses_month_and_year():
    c = PeriodCursor(2024, 11, 31)
    c.step_day(1)
    assert triple(c) == (2025, 0, 1)
    c.step_day(-1)
    assert triple(c) == (2024, 11, 31)


def test_step_day_leap_year():
    c = PeriodCursor(2024, 1, 28)
    c.step_day(1)
    assert triple(c) == (2024, 1, 29)
    c.step_day(1)
    assert triple(c) == (2024, 2, 1)

    c = PeriodCursor(2025, 1, 28)
    c.step_day(1)
    assert triple(c) == (2025, 2, 1)


def test_step_day_is_associative():
    pairs = [(1, 1), (-1, 3), (30, -45), (365, 1), (-400, 60), (0, 0), (59, 1)]
    for a, b in pairs:
        twice = PeriodCursor(2024, 1, 28).step_day(a).step_day(b)
        once = PeriodCursor(2024, 1, 28).step_day(a + b)
        assert triple(twice) == triple(once)


def test_invalid_date_rejected():
    with pytest.raises(ValueError):
        PeriodCursor(2025, 1, 30)
    with pytest.raises(ValueError):
        PeriodCursor(2025, 12, 1)


def test_labels():
    c = PeriodCursor(2025, 6, 26)
    assert c.label() == "July 26, 2025"
    assert c.month_label() == "July 2025"


def test_from_date_uses_zero_based_month():
    from datetime import date

    c = PeriodCursor.from_date(date(2025, 3, 9))
    assert triple(c) == (2025, 2, 9)
    assert c.as_date() == date(2025, 3, 9)
