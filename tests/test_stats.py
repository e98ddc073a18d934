"""Tests for StatsAggregator counters."""

import pytest

from gameplay_models import Tier
from stats import StatsAggregator


def test_empty_accuracy_is_zero():
    assert StatsAggregator().accuracy_percent() == 0.0


def test_counts_and_accuracy():
    stats = StatsAggregator()
    stats.record_hit(Tier.PERFECT)
    stats.record_hit(Tier.GOOD)
    stats.record_hit(Tier.GOOD)
    stats.record_miss()

    snapshot = stats.snapshot()
    assert snapshot.perfect_count == 1
    assert snapshot.good_count == 2
    assert snapshot.miss_count == 1
    assert snapshot.attempts == 4
    assert snapshot.accuracy_percent == pytest.approx(75.0)


def test_combo_breaks_on_miss():
    stats = StatsAggregator()
    for _ in range(3):
        stats.record_hit(Tier.GOOD)
    stats.record_miss()
    stats.record_hit(Tier.PERFECT)
    assert stats.combo() == 1
    assert stats.max_combo() == 3


def test_record_hit_rejects_miss_tier():
    with pytest.raises(ValueError):
        StatsAggregator().record_hit(Tier.MISS)


def test_reset():
    stats = StatsAggregator()
    stats.record_hit(Tier.GOOD)
    stats.record_miss()
    stats.reset()
    assert stats.attempts() == 0
    assert stats.max_combo() == 0
