# -*- coding: utf-8 -*-
########################
# beat_clock.py
########################
# Purpose:
# - Single source of truth for song position and beat index in gameplay.
# - Derives song position from an externally supplied "now" and emits one notification per beat crossed.
#
# Design notes:
# - No Qt usage. Never reads wall-clock time; callers pass the clock source value in.
# - start/stop realign the song to time zero. pause/resume keep the elapsed song position.
# - A clock source that runs backward is clamped to the previous song position and logged.
#
########################
# Interfaces:
# Public dataclasses:
# - BeatClockSnapshot(bpm, beat_interval, song_position, beat_index, is_playing, is_paused)
#
# Public classes:
# - class BeatClock
#   - __init__(bpm: float)
#   - bpm() -> float
#   - beat_interval() -> float
#   - set_bpm(bpm: float) -> None
#   - song_position() -> float
#   - song_position_in_beats() -> float
#   - beat_index() -> int
#   - beat_progress() -> float
#   - is_playing() -> bool
#   - is_paused() -> bool
#   - start(now: float) -> None
#   - stop() -> None
#   - pause() -> None
#   - resume(now: float) -> None
#   - advance(now: float) -> float
#   - subscribe_beat_boundary(callback: Callable[[int], None]) -> Callable[[], None]
#   - snapshot() -> BeatClockSnapshot
#
# Inputs:
# - now: monotonic timestamp in seconds from the clock source collaborator.
#
# Outputs:
# - song_position / beat_index read by the tracker and the evaluator.
# - on_beat_boundary(beat_index) notifications.
#
########################

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable

from callbacks import CallbackList
from config import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BeatClockSnapshot:
    bpm: float
    beat_interval: float
    song_position: float
    beat_index: int
    is_playing: bool
    is_paused: bool


def beat_interval_for_bpm(bpm: float) -> float:
    value = float(bpm)
    if not value > 0.0 or math.isinf(value):
        raise ConfigurationError(f"bpm must be a positive finite number, got {bpm!r}")
    return 60.0 / value


class BeatClock:
    def __init__(self, bpm: float) -> None:
        self._bpm = float(bpm)
        # Validation is deferred to advance() so a misconfigured clock can still be inspected.
        self._beat_interval = 60.0 / self._bpm if self._bpm > 0.0 else 0.0
        self._origin_time = 0.0
        self._song_position = 0.0
        self._beat_index = 0
        self._is_playing = False
        self._is_paused = False
        self._beat_boundary = CallbackList("on_beat_boundary")

    # -----------------
    # Configuration
    # -----------------

    def bpm(self) -> float:
        return float(self._bpm)

    def beat_interval(self) -> float:
        return float(self._beat_interval)

    def set_bpm(self, bpm: float) -> None:
        """Change the cadence. Song position is kept; beat index is re-derived without notifications."""
        self._beat_interval = beat_interval_for_bpm(bpm)
        self._bpm = float(bpm)
        self._beat_index = self._index_for_position(self._song_position)

    # -----------------
    # State
    # -----------------

    def song_position(self) -> float:
        return float(self._song_position)

    def song_position_in_beats(self) -> float:
        if self._beat_interval <= 0.0:
            return 0.0
        return self._song_position / self._beat_interval

    def beat_index(self) -> int:
        return int(self._beat_index)

    def beat_progress(self) -> float:
        return self.song_position_in_beats() % 1.0

    def is_playing(self) -> bool:
        return bool(self._is_playing)

    def is_paused(self) -> bool:
        return bool(self._is_paused)

    def subscribe_beat_boundary(self, callback: Callable[[int], None]) -> Callable[[], None]:
        return self._beat_boundary.subscribe(callback)

    def snapshot(self) -> BeatClockSnapshot:
        return BeatClockSnapshot(
            bpm=self.bpm(),
            beat_interval=self.beat_interval(),
            song_position=self.song_position(),
            beat_index=self.beat_index(),
            is_playing=self.is_playing(),
            is_paused=self.is_paused(),
        )

    # -----------------
    # Transport
    # -----------------

    def start(self, now: float) -> None:
        beat_interval_for_bpm(self._bpm)
        self._origin_time = float(now)
        self._song_position = 0.0
        self._beat_index = 0
        self._is_playing = True
        self._is_paused = False
        logger.info("Clock started at %.3f (bpm=%.2f)", self._origin_time, self._bpm)

    def stop(self) -> None:
        if not self._is_playing and not self._is_paused:
            return
        self._is_playing = False
        self._is_paused = False
        logger.info("Clock stopped at song position %.3f", self._song_position)

    def pause(self) -> None:
        if not self._is_playing:
            return
        self._is_playing = False
        self._is_paused = True
        logger.info("Clock paused at song position %.3f", self._song_position)

    def resume(self, now: float) -> None:
        if not self._is_paused:
            return
        # Shift the origin so the song continues from where it was frozen.
        self._origin_time = float(now) - self._song_position
        self._is_playing = True
        self._is_paused = False
        logger.info("Clock resumed at song position %.3f", self._song_position)

    def advance(self, now: float) -> float:
        """Update song position from the clock source value. Returns the song position."""
        self._beat_interval = beat_interval_for_bpm(self._bpm)
        if not self._is_playing:
            return self._song_position

        candidate_position = float(now) - self._origin_time
        if candidate_position < self._song_position:
            logger.warning(
                "Clock source moved backward (%.6f < %.6f); holding song position",
                candidate_position,
                self._song_position,
            )
            candidate_position = self._song_position
        self._song_position = candidate_position

        new_beat_index = self._index_for_position(candidate_position)
        while self._beat_index < new_beat_index:
            self._beat_index += 1
            self._beat_boundary.emit(self._beat_index)
        return self._song_position

    def _index_for_position(self, song_position: float) -> int:
        if self._beat_interval <= 0.0:
            return 0
        return int(math.floor(float(song_position) / self._beat_interval))


def _run_unit_tests() -> None:
    clock = BeatClock(bpm=120.0)
    beats = []
    clock.subscribe_beat_boundary(beats.append)
    clock.start(10.0)
    clock.advance(10.25)
    assert clock.beat_index() == 0
    clock.advance(11.6)
    assert beats == [1, 2, 3]
    clock.advance(11.0)
    assert abs(clock.song_position() - 1.6) < 1e-9

    clock.pause()
    clock.advance(20.0)
    assert abs(clock.song_position() - 1.6) < 1e-9
    clock.resume(30.0)
    clock.advance(30.5)
    assert abs(clock.song_position() - 2.1) < 1e-9

    broken = BeatClock(bpm=0.0)
    try:
        broken.advance(1.0)
    except ConfigurationError:
        pass
    else:
        raise AssertionError("expected ConfigurationError")


if __name__ == "__main__":
    _run_unit_tests()
    print("beat_clock.py: ok")
