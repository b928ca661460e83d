"""Tests for the sliding-window message counters."""

import pytest

from lumibot.automod import DuplicateTracker, RateWindow


def test_rate_window_trips_on_sixth_message():
    window = RateWindow(max_messages=5, window_seconds=5)
    results = [window.record_and_check(1, 100.0 + i * 0.5) for i in range(6)]
    assert results == [False] * 5 + [True]


def test_rate_window_evicts_old_messages():
    window = RateWindow(max_messages=2, window_seconds=5)
    assert not window.record_and_check(1, 0.0)
    assert not window.record_and_check(1, 1.0)
    # Entry at t=0 is exactly one window old and drops out.
    assert not window.record_and_check(1, 5.0)
    assert window.record_and_check(1, 5.5)


def test_rate_window_tracks_users_separately():
    window = RateWindow(max_messages=1, window_seconds=10)
    assert not window.record_and_check(1, 0.0)
    assert not window.record_and_check(2, 0.0)
    assert window.record_and_check(1, 1.0)
    assert window.tracked_users() == 2


@pytest.mark.parametrize("args", [(0, 5), (5, 0), (5, -1)])
def test_rate_window_rejects_bad_config(args):
    with pytest.raises(ValueError):
        RateWindow(*args)


def test_duplicate_third_repeat_trips():
    tracker = DuplicateTracker(max_duplicates=3, window_seconds=60)
    assert not tracker.record_and_check(1, "Buy my course", 0.0)
    assert not tracker.record_and_check(1, "buy my course  ", 1.0)
    assert tracker.record_and_check(1, "  BUY MY COURSE", 2.0)


def test_duplicate_ignores_short_messages():
    tracker = DuplicateTracker(max_duplicates=1, window_seconds=60)
    assert not tracker.record_and_check(1, "  ok  ", 0.0)
    assert not tracker.record_and_check(1, "lol", 1.0)
    assert tracker.tracked_users() == 0


def test_duplicate_window_expiry():
    tracker = DuplicateTracker(max_duplicates=2, window_seconds=60)
    assert not tracker.record_and_check(1, "same message", 0.0)
    assert not tracker.record_and_check(1, "same message", 60.0)
    assert tracker.record_and_check(1, "same message", 61.0)


def test_duplicate_different_texts_do_not_count():
    tracker = DuplicateTracker(max_duplicates=2, window_seconds=60)
    assert not tracker.record_and_check(1, "first message", 0.0)
    assert not tracker.record_and_check(1, "second message", 1.0)
    assert not tracker.record_and_check(2, "first message", 2.0)


def test_rate_window_stays_tripped_while_saturated():
    window = RateWindow(max_messages=2, window_seconds=10)
    for t in (0.0, 1.0):
        window.record_and_check(1, t)
    assert window.record_and_check(1, 2.0)
    assert window.record_and_check(1, 3.0)
    # Everything up to t=3 has left the window.
    assert not window.record_and_check(1, 13.0)
