# -*- coding: utf-8 -*-
########################
# timing_model.py
########################
# Purpose:
# - Converts a song position into a signed offset from the nearest beat and classifies it into a Tier.
# - Owns the ordered tier window policy.
#
# Design notes:
# - No Qt usage. Keep this module pure and deterministic.
# - Accuracy is in beats, range (-0.5, 0.5]. Negative means early, positive means late.
# - Window boundaries are inclusive: |accuracy| == half width is inside, within EDGE_TOLERANCE_BEATS
#   so float rounding of the offset cannot drop one edge of a window.
# - evaluate() notifies on_timing_evaluated subscribers; every other query is side effect free.
#
########################
# Interfaces:
# Public dataclasses:
# - TierWindow(half_width_beats: float, tier: Tier)
#
# Public classes:
# - class TimingWindowPolicy
#   - __init__(windows: Sequence[TierWindow])
#   - from_config(rhythm_config) -> TimingWindowPolicy
#   - windows() -> tuple[TierWindow, ...]
#   - outer_half_width_beats() -> float
#   - classify(accuracy: float) -> Tier
#
# - class TimingEvaluator
#   - __init__(policy: TimingWindowPolicy, beat_interval_provider: Callable[[], float])
#   - policy() -> TimingWindowPolicy
#   - set_policy(policy: TimingWindowPolicy) -> None
#   - accuracy_at(song_position: float) -> float
#   - evaluate(song_position: float) -> TimingResult
#   - is_in_window(song_position: float) -> bool
#   - nearest_beat_time(song_position: float) -> float
#   - window_close_time(beat_index: int) -> float
#   - subscribe_timing_evaluated(callback: Callable[[Tier], None]) -> Callable[[], None]
#
# Inputs:
# - song_position in seconds (from BeatClock).
#
# Outputs:
# - TimingResult consumed by ActionWindowTracker.
#
########################

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Sequence, Tuple

from callbacks import CallbackList
from config import ConfigurationError
from gameplay_models import Tier, TimingResult

EDGE_TOLERANCE_BEATS = 1e-9


@dataclass(frozen=True)
class TierWindow:
    half_width_beats: float
    tier: Tier


class TimingWindowPolicy:
    def __init__(self, windows: Sequence[TierWindow]) -> None:
        ordered = tuple(windows)
        if not ordered:
            raise ConfigurationError("timing window policy needs at least one tier window")
        previous_width = 0.0
        for window in ordered:
            width = float(window.half_width_beats)
            if not 0.0 < width <= 0.5:
                raise ConfigurationError(f"half width must be in (0, 0.5] beats, got {width!r}")
            if width < previous_width:
                raise ConfigurationError("tier windows must be ordered by ascending half width")
            if window.tier is Tier.MISS:
                raise ConfigurationError("a tier window cannot award miss")
            previous_width = width
        self._windows: Tuple[TierWindow, ...] = ordered

    @classmethod
    def from_config(cls, rhythm_config) -> "TimingWindowPolicy":
        return cls(
            [
                TierWindow(half_width_beats=float(item.half_width_beats), tier=Tier(item.tier))
                for item in rhythm_config.tier_windows
            ]
        )

    def windows(self) -> Tuple[TierWindow, ...]:
        return self._windows

    def outer_half_width_beats(self) -> float:
        return float(self._windows[-1].half_width_beats)

    def classify(self, accuracy: float) -> Tier:
        abs_accuracy = abs(float(accuracy))
        for window in self._windows:
            if abs_accuracy <= window.half_width_beats + EDGE_TOLERANCE_BEATS:
                return window.tier
        return Tier.MISS


class TimingEvaluator:
    def __init__(self, policy: TimingWindowPolicy, beat_interval_provider: Callable[[], float]) -> None:
        self._policy = policy
        self._beat_interval_provider = beat_interval_provider
        self._timing_evaluated = CallbackList("on_timing_evaluated")

    def policy(self) -> TimingWindowPolicy:
        return self._policy

    def set_policy(self, policy: TimingWindowPolicy) -> None:
        self._policy = policy

    def subscribe_timing_evaluated(self, callback: Callable[[Tier], None]) -> Callable[[], None]:
        return self._timing_evaluated.subscribe(callback)

    def beat_interval(self) -> float:
        value = float(self._beat_interval_provider())
        if not value > 0.0:
            raise ConfigurationError(f"beat interval must be positive, got {value!r}")
        return value

    def accuracy_at(self, song_position: float) -> float:
        progress = (float(song_position) / self.beat_interval()) % 1.0
        if progress > 0.5:
            return progress - 1.0
        return progress

    def evaluate(self, song_position: float) -> TimingResult:
        accuracy = self.accuracy_at(song_position)
        tier = self._policy.classify(accuracy)
        self._timing_evaluated.emit(tier)
        return TimingResult(accuracy=accuracy, tier=tier)

    def is_in_window(self, song_position: float) -> bool:
        return abs(self.accuracy_at(song_position)) <= self._policy.outer_half_width_beats() + EDGE_TOLERANCE_BEATS

    def nearest_beat_time(self, song_position: float) -> float:
        beat_interval = self.beat_interval()
        position_in_beats = float(song_position) / beat_interval
        nearest_index = int(round(position_in_beats - self.accuracy_at(song_position)))
        return nearest_index * beat_interval

    def window_close_time(self, beat_index: int) -> float:
        """Song time at which the outer window around beat `beat_index` closes."""
        beat_interval = self.beat_interval()
        return int(beat_index) * beat_interval + self._policy.outer_half_width_beats() * beat_interval


def _run_unit_tests() -> None:
    policy = TimingWindowPolicy([TierWindow(0.05, Tier.PERFECT), TierWindow(0.15, Tier.GOOD)])
    evaluator = TimingEvaluator(policy, lambda: 0.5)

    exact = evaluator.evaluate(0.5)
    assert exact.accuracy == 0.0
    assert exact.tier is Tier.PERFECT

    early = evaluator.evaluate(0.42)
    assert abs(early.accuracy - (-0.16)) < 1e-9
    assert early.tier is Tier.MISS
    assert not evaluator.is_in_window(0.42)

    assert abs(evaluator.nearest_beat_time(0.46) - 0.5) < 1e-12
    assert abs(evaluator.window_close_time(1) - 0.575) < 1e-12

    assert not math.isnan(evaluator.accuracy_at(0.0))


if __name__ == "__main__":
    _run_unit_tests()
    print("timing_model.py: ok")
