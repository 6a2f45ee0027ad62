"""
Tests for realised-accuracy tracking.
"""

import pandas as pd
import pytest

from bazaarflow_ai.services.accuracy import AccuracyTracker, mape_accuracy


def test_mape_accuracy_ignores_zero_actuals():
    assert mape_accuracy([10, 0, 20], [12, 5, 20]) == pytest.approx(0.9)
    assert mape_accuracy([0, 0], [1, 2]) is None
    assert mape_accuracy([1], [10]) == 0.0


def test_mape_accuracy_requires_equal_lengths():
    with pytest.raises(ValueError):
        mape_accuracy([1, 2], [1])


def test_re_recording_a_day_replaces_it(config):
    tracker = AccuracyTracker(config)
    tracker.record("biz", "sku-1", "2025-01-05", predicted=10, actual=5)
    tracker.record("biz", "sku-1", "2025-01-05", predicted=10, actual=10)
    report = tracker.report("biz", "sku-1")
    assert report.points == 1
    assert report.accuracy == 1.0


def test_degraded_needs_enough_points(config):
    tracker = AccuracyTracker(config)
    days = pd.date_range("2025-01-01", periods=20, freq='D')
    for day in days[:10]:
        tracker.record("biz", "sku-1", day, predicted=20, actual=10)
    assert not tracker.report("biz", "sku-1").degraded

    for day in days[10:]:
        tracker.record("biz", "sku-1", day, predicted=20, actual=10)
    report = tracker.report("biz", "sku-1")
    assert report.points == 20
    assert report.accuracy == 0.0
    assert report.degraded
    assert tracker.degraded_products("biz") == ["sku-1"]


def test_window_excludes_old_pairs(config):
    tracker = AccuracyTracker(config)
    tracker.record("biz", "sku-1", "2025-01-01", predicted=50, actual=10)
    tracker.record("biz", "sku-1", "2025-06-01", predicted=10, actual=10)
    report = tracker.report("biz", "sku-1", as_of="2025-06-01")
    assert report.points == 1
    assert report.accuracy == 1.0


def test_record_many(config):
    tracker = AccuracyTracker(config)
    frame = pd.DataFrame({
        'date': pd.date_range("2025-02-01", periods=3, freq='D'),
        'predicted': [10.0, 10.0, 10.0],
        'actual': [10.0, 8.0, 12.5],
    })
    assert tracker.record_many("biz", "sku-9", frame) == 3
    assert len(tracker.pairs("biz", "sku-9")) == 3


def test_pairs_outside_window_are_dropped(config):
    tracker = AccuracyTracker(config)
    tracker.record("biz", "sku-1", "2025-01-01", predicted=50, actual=10)
    assert len(tracker.pairs("biz", "sku-1", as_of="2025-01-01")) == 1

    tracker.record("biz", "sku-1", "2025-06-01", predicted=10, actual=10)
    assert tracker.pairs("biz", "sku-1", as_of="2025-01-01").empty

    days = pd.date_range("2025-06-02", periods=200, freq='D')
    for day in days:
        tracker.record("biz", "sku-1", day, predicted=10, actual=10)
    kept = tracker.pairs("biz", "sku-1", as_of=days[-1])
    assert len(kept) == config.forecast.accuracy_window_days
    assert tracker.pairs("biz", "sku-1", as_of=days[-91]).shape[0] == 0
