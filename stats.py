# -*- coding: utf-8 -*-
########################
# stats.py
########################
# Purpose:
# - Counts hit tiers and misses and derives the accuracy percentage.
#
# Design notes:
# - No Qt usage. Pure counters, no timing policy.
# - Accuracy is hits / (hits + misses) * 100, and 0.0 before the first verdict.
#
########################
# Interfaces:
# Public dataclasses:
# - StatsSnapshot(perfect_count, good_count, miss_count, hits, attempts, accuracy_percent, combo, max_combo)
#
# Public classes:
# - class StatsAggregator
#   - record_hit(tier: Tier) -> None
#   - record_miss() -> None
#   - count_for(tier: Tier) -> int
#   - hits() -> int
#   - misses() -> int
#   - attempts() -> int
#   - accuracy_percent() -> float
#   - reset() -> None
#   - snapshot() -> StatsSnapshot
#
########################

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from gameplay_models import Tier


@dataclass(frozen=True)
class StatsSnapshot:
    perfect_count: int
    good_count: int
    miss_count: int
    hits: int
    attempts: int
    accuracy_percent: float
    combo: int
    max_combo: int


class StatsAggregator:
    def __init__(self) -> None:
        self._tier_counts: Dict[Tier, int] = {tier: 0 for tier in Tier}
        self._combo = 0
        self._max_combo = 0

    def record_hit(self, tier: Tier) -> None:
        if not tier.is_hit:
            raise ValueError("record_hit needs a hit tier; use record_miss for misses")
        self._tier_counts[tier] += 1
        self._combo += 1
        if self._combo > self._max_combo:
            self._max_combo = self._combo

    def record_miss(self) -> None:
        self._tier_counts[Tier.MISS] += 1
        self._combo = 0

    def count_for(self, tier: Tier) -> int:
        return int(self._tier_counts[tier])

    def hits(self) -> int:
        return sum(count for tier, count in self._tier_counts.items() if tier.is_hit)

    def misses(self) -> int:
        return self.count_for(Tier.MISS)

    def attempts(self) -> int:
        return self.hits() + self.misses()

    def accuracy_percent(self) -> float:
        attempts = self.attempts()
        if attempts == 0:
            return 0.0
        return self.hits() / attempts * 100.0

    def combo(self) -> int:
        return int(self._combo)

    def max_combo(self) -> int:
        return int(self._max_combo)

    def reset(self) -> None:
        for tier in self._tier_counts:
            self._tier_counts[tier] = 0
        self._combo = 0
        self._max_combo = 0

    def snapshot(self) -> StatsSnapshot:
        return StatsSnapshot(
            perfect_count=self.count_for(Tier.PERFECT),
            good_count=self.count_for(Tier.GOOD),
            miss_count=self.misses(),
            hits=self.hits(),
            attempts=self.attempts(),
            accuracy_percent=self.accuracy_percent(),
            combo=self.combo(),
            max_combo=self.max_combo(),
        )


def _run_unit_tests() -> None:
    stats = StatsAggregator()
    assert stats.accuracy_percent() == 0.0
    stats.record_hit(Tier.PERFECT)
    stats.record_hit(Tier.GOOD)
    stats.record_miss()
    stats.record_hit(Tier.GOOD)
    assert stats.hits() == 3
    assert stats.accuracy_percent() == 75.0
    assert stats.max_combo() == 2
    assert stats.combo() == 1


if __name__ == "__main__":
    _run_unit_tests()
    print("stats.py: ok")
