"""Tests for calendar-day time intervals."""

from datetime import date, time

import pytest

from app.core.time_intervals import TimeInterval

DAY = date(2026, 3, 2)


def interval(start: str, end: str, day: date = DAY) -> TimeInterval:
    return TimeInterval(day, time.fromisoformat(start), time.fromisoformat(end))


def test_partial_overlap() -> None:
    """Test intervals sharing part of their range overlap."""
    assert interval("09:00", "10:00").overlaps(interval("09:30", "10:30"))
    assert interval("09:30", "10:30").overlaps(interval("09:00", "10:00"))


def test_containment_overlaps() -> None:
    """Test an interval inside another overlaps it."""
    assert interval("09:00", "12:00").overlaps(interval("10:00", "10:15"))


def test_touching_intervals_do_not_overlap() -> None:
    """Test back-to-back intervals are both allowed."""
    assert not interval("09:00", "10:00").overlaps(interval("10:00", "11:00"))
    assert not interval("10:00", "11:00").overlaps(interval("09:00", "10:00"))


def test_different_days_never_overlap() -> None:
    """Test identical times on different days are independent."""
    assert not interval("09:00", "10:00").overlaps(interval("09:00", "10:00", date(2026, 3, 3)))


def test_rejects_empty_or_inverted_interval() -> None:
    """Test start must be strictly before end."""
    with pytest.raises(ValueError):
        interval("10:00", "10:00")
    with pytest.raises(ValueError):
        interval("11:00", "10:00")


def test_str() -> None:
    """Test human-readable rendering."""
    assert str(interval("09:00", "10:30")) == "2026-03-02 09:00-10:30"
