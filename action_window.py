# -*- coding: utf-8 -*-
########################
# action_window.py
########################
# Purpose:
# - Tracks entry and exit of the outer acceptance window and owns the live timing Cycle.
# - Produces exactly one verdict (hit tier or miss) per cycle: from an accepted action,
#   or from the window closing with no input.
# - Re-anchors the next cycle boundary depending on when, if at all, the player acted.
#
# Design notes:
# - No Qt usage. Pure gameplay logic, driven once per tick with the cached song position.
# - Per-cycle state is a CycleVerdict tag plus has_entered_window; has_tried_input and
#   has_succeeded are derived, so contradictory flag combinations cannot be built.
# - An action verdict closes the cycle until song position reaches cycle_end_time (rollover).
# - Entering a window starts a pending cycle, except after an early timing miss anchored to
#   that same window's close: that miss is already the verdict for the window.
# - The first cycle after restart never scores a miss.
# - A tick that jumps across window boundaries is replayed at the midpoint of every
#   crossed region, so a short window cannot be skipped by a slow frame.
#
########################
# Interfaces:
# Public enums:
# - WindowState: OUTSIDE | INSIDE
# - CycleVerdictKind: PENDING | SUCCEEDED | MISSED_BY_TIMING | MISSED_NO_INPUT
#
# Public dataclasses:
# - CycleVerdict(kind: CycleVerdictKind, tier: Optional[Tier], is_early: bool)
# - Cycle(cycle_end_time, next_beat_start_time, has_entered_window, verdict)
# - TrackerSnapshot(state, is_first_cycle, cycle_end_time, next_beat_start_time,
#                   has_entered_window, has_tried_input, has_succeeded, completed_cycles)
#
# Public classes:
# - class ActionWindowTracker
#   - __init__(evaluator: TimingEvaluator)
#   - restart() -> None
#   - update(song_position: float, beat_index: Optional[int] = None) -> list[VerdictEvent]
#   - accept_action(song_position: float, beat_index: int) -> ActionResult
#   - state() -> WindowState
#   - cycle() -> Cycle
#   - is_first_cycle() -> bool
#   - completed_cycles() -> int
#   - recent_verdicts() -> list[VerdictEvent]
#   - clear_recent_verdicts() -> None
#   - snapshot() -> TrackerSnapshot
#   - subscribe_hit / subscribe_miss / subscribe_verdict
#
# Inputs:
# - song_position, beat_index from BeatClock.
# - Action attempts from InputArbiter (through the session).
#
# Outputs:
# - on_hit(tier), on_miss(), on_verdict(VerdictEvent) notifications.
#
########################

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional

from callbacks import CallbackList
from gameplay_models import ActionResult, ActionStatus, Tier, VerdictEvent, VerdictKind
from timing_model import TimingEvaluator

logger = logging.getLogger(__name__)


class WindowState(enum.Enum):
    OUTSIDE = "outside"
    INSIDE = "inside"


class CycleVerdictKind(enum.Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    MISSED_BY_TIMING = "missed_by_timing"
    MISSED_NO_INPUT = "missed_no_input"


@dataclass(frozen=True)
class CycleVerdict:
    kind: CycleVerdictKind = CycleVerdictKind.PENDING
    tier: Optional[Tier] = None
    is_early: bool = False

    @classmethod
    def pending(cls) -> "CycleVerdict":
        return cls(CycleVerdictKind.PENDING, None)

    @classmethod
    def succeeded(cls, tier: Tier) -> "CycleVerdict":
        if not tier.is_hit:
            raise ValueError("a succeeded cycle needs a hit tier")
        return cls(CycleVerdictKind.SUCCEEDED, tier)

    @classmethod
    def missed_by_timing(cls, is_early: bool = False) -> "CycleVerdict":
        return cls(CycleVerdictKind.MISSED_BY_TIMING, Tier.MISS, bool(is_early))

    @classmethod
    def missed_no_input(cls) -> "CycleVerdict":
        return cls(CycleVerdictKind.MISSED_NO_INPUT, Tier.MISS)

    @property
    def is_pending(self) -> bool:
        return self.kind is CycleVerdictKind.PENDING

    @property
    def from_action(self) -> bool:
        return self.kind in (CycleVerdictKind.SUCCEEDED, CycleVerdictKind.MISSED_BY_TIMING)


@dataclass(frozen=True)
class Cycle:
    cycle_end_time: float
    next_beat_start_time: Optional[float]
    has_entered_window: bool = False
    verdict: CycleVerdict = field(default_factory=CycleVerdict.pending)

    @property
    def has_tried_input(self) -> bool:
        return self.verdict.from_action

    @property
    def has_succeeded(self) -> bool:
        return self.verdict.kind is CycleVerdictKind.SUCCEEDED


@dataclass(frozen=True)
class TrackerSnapshot:
    state: WindowState
    is_first_cycle: bool
    cycle_end_time: float
    next_beat_start_time: Optional[float]
    has_entered_window: bool
    has_tried_input: bool
    has_succeeded: bool
    completed_cycles: int


class ActionWindowTracker:
    def __init__(self, evaluator: TimingEvaluator) -> None:
        self._evaluator = evaluator
        self._state = WindowState.OUTSIDE
        self._is_first_cycle = True
        self._cycle = Cycle(cycle_end_time=0.0, next_beat_start_time=None)
        self._last_position: Optional[float] = None
        self._completed_cycles = 0
        self._recent_verdicts: List[VerdictEvent] = []

        self._hit = CallbackList("on_hit")
        self._miss = CallbackList("on_miss")
        self._verdict = CallbackList("on_verdict")

        self.restart()

    # -----------------
    # Subscriptions and queries
    # -----------------

    def subscribe_hit(self, callback: Callable[[Tier], None]) -> Callable[[], None]:
        return self._hit.subscribe(callback)

    def subscribe_miss(self, callback: Callable[[], None]) -> Callable[[], None]:
        return self._miss.subscribe(callback)

    def subscribe_verdict(self, callback: Callable[[VerdictEvent], None]) -> Callable[[], None]:
        return self._verdict.subscribe(callback)

    def state(self) -> WindowState:
        return self._state

    def cycle(self) -> Cycle:
        return self._cycle

    def is_first_cycle(self) -> bool:
        return bool(self._is_first_cycle)

    def completed_cycles(self) -> int:
        return int(self._completed_cycles)

    def recent_verdicts(self) -> List[VerdictEvent]:
        return list(self._recent_verdicts)

    def clear_recent_verdicts(self) -> None:
        self._recent_verdicts.clear()

    def snapshot(self) -> TrackerSnapshot:
        return TrackerSnapshot(
            state=self._state,
            is_first_cycle=self._is_first_cycle,
            cycle_end_time=self._cycle.cycle_end_time,
            next_beat_start_time=self._cycle.next_beat_start_time,
            has_entered_window=self._cycle.has_entered_window,
            has_tried_input=self._cycle.has_tried_input,
            has_succeeded=self._cycle.has_succeeded,
            completed_cycles=self._completed_cycles,
        )

    # -----------------
    # Lifecycle
    # -----------------

    def restart(self) -> None:
        first_window_close = self._evaluator.window_close_time(0)
        self._state = WindowState.OUTSIDE
        self._is_first_cycle = True
        self._cycle = Cycle(cycle_end_time=first_window_close, next_beat_start_time=first_window_close)
        self._last_position = None
        self._completed_cycles = 0
        self._recent_verdicts.clear()

    # -----------------
    # Per tick update
    # -----------------

    def update(self, song_position: float, beat_index: Optional[int] = None) -> List[VerdictEvent]:
        position = float(song_position)
        beat_interval = self._evaluator.beat_interval()
        if beat_index is None:
            beat_index = int(math.floor(position / beat_interval))

        emitted: List[VerdictEvent] = []
        for probe_position in self._crossed_region_probes(position, beat_interval):
            self._step(probe_position, int(math.floor(probe_position / beat_interval)), emitted)
        self._step(position, int(beat_index), emitted)

        if self._last_position is None or position > self._last_position:
            self._last_position = position
        return emitted

    def _crossed_region_probes(self, position: float, beat_interval: float) -> List[float]:
        """Midpoints of the window regions fully passed over since the previous update."""
        if self._last_position is None or position <= self._last_position:
            return []

        half_width = self._evaluator.policy().outer_half_width_beats()
        start_beats = self._last_position / beat_interval
        end_beats = position / beat_interval

        boundaries: List[float] = []
        for beat in range(int(math.floor(start_beats)), int(math.floor(end_beats)) + 2):
            for edge in (beat - half_width, beat + half_width):
                if start_beats < edge < end_beats:
                    boundaries.append(edge)
        if len(boundaries) < 2:
            return []

        boundaries.sort()
        return [(left + right) * 0.5 * beat_interval for left, right in zip(boundaries, boundaries[1:])]

    def _step(self, position: float, beat_index: int, emitted: List[VerdictEvent]) -> None:
        in_window = self._evaluator.is_in_window(position)

        if self._state is WindowState.OUTSIDE and in_window:
            self._state = WindowState.INSIDE
            if not self._early_miss_covers_window(position):
                self._cycle = replace(self._cycle, has_entered_window=True, verdict=CycleVerdict.pending())
            logger.debug("Window entered at %.4f (beat %d)", position, beat_index)

        elif self._state is WindowState.INSIDE and not in_window:
            self._state = WindowState.OUTSIDE
            logger.debug("Window exited at %.4f (beat %d)", position, beat_index)
            if self._is_first_cycle:
                self._is_first_cycle = False
            elif (
                self._cycle.has_entered_window
                and not self._cycle.has_succeeded
                and not self._cycle.has_tried_input
                and self._cycle.verdict.is_pending
            ):
                emitted.append(self._record_no_input_miss(position, beat_index))

        if self._cycle.has_tried_input and position >= self._cycle.cycle_end_time:
            self._rollover(position)

    def _early_miss_covers_window(self, position: float) -> bool:
        verdict = self._cycle.verdict
        if verdict.kind is not CycleVerdictKind.MISSED_BY_TIMING or not verdict.is_early:
            return False
        beat_index = int(round(self._evaluator.nearest_beat_time(position) / self._evaluator.beat_interval()))
        return math.isclose(self._cycle.cycle_end_time, self._evaluator.window_close_time(beat_index), abs_tol=1e-9)

    def _rollover(self, position: float) -> None:
        next_start = self._cycle.next_beat_start_time
        if next_start is None:
            next_start = position
        logger.debug("Cycle rollover at %.4f (cycle end %.4f)", position, self._cycle.cycle_end_time)
        self._cycle = Cycle(
            cycle_end_time=max(float(next_start), self._cycle.cycle_end_time),
            next_beat_start_time=next_start,
        )

    # -----------------
    # Verdicts
    # -----------------

    def _record_no_input_miss(self, position: float, beat_index: int) -> VerdictEvent:
        anchor = self._evaluator.window_close_time(beat_index + 1)
        event = VerdictEvent(
            time_seconds=position,
            kind=VerdictKind.MISS_NO_INPUT,
            tier=Tier.MISS,
            accuracy=None,
            cycle_end_time=anchor,
        )
        # The cycle is finalized; the next one starts pending and waits for its window.
        self._cycle = Cycle(cycle_end_time=anchor, next_beat_start_time=anchor)
        self._publish(event)
        return event

    def accept_action(self, song_position: float, beat_index: int) -> ActionResult:
        """Judge an action taken at song_position. At most one action is accepted per cycle."""
        position = float(song_position)
        if self._cycle.has_tried_input:
            logger.debug("Action at %.4f rejected: already acted this cycle", position)
            return ActionResult(status=ActionStatus.ALREADY_ACTED)

        timing = self._evaluator.evaluate(position)

        if not timing.tier.is_hit:
            anchor = self._evaluator.window_close_time(int(beat_index) + 1)
            verdict = CycleVerdict.missed_by_timing(is_early=timing.accuracy < 0.0)
            kind = VerdictKind.MISS_BY_TIMING
            status = ActionStatus.MISS
        else:
            if timing.accuracy < 0.0:
                anchor = self._evaluator.nearest_beat_time(position)
            else:
                anchor = position
            verdict = CycleVerdict.succeeded(timing.tier)
            kind = VerdictKind.HIT
            status = ActionStatus.HIT

        self._cycle = Cycle(
            cycle_end_time=anchor,
            next_beat_start_time=anchor,
            has_entered_window=self._cycle.has_entered_window,
            verdict=verdict,
        )
        event = VerdictEvent(
            time_seconds=position,
            kind=kind,
            tier=timing.tier,
            accuracy=timing.accuracy,
            cycle_end_time=anchor,
            is_scored=timing.tier.is_hit or not self._is_first_cycle,
        )
        self._publish(event)
        return ActionResult(status=status, timing=timing, verdict=event)

    def _publish(self, event: VerdictEvent) -> None:
        self._completed_cycles += 1
        self._recent_verdicts.append(event)
        logger.debug(
            "Verdict %s tier=%s at %.4f (next boundary %.4f, scored=%s)",
            event.kind.value,
            event.tier.value,
            event.time_seconds,
            event.cycle_end_time,
            event.is_scored,
        )
        if event.is_scored:
            if event.tier.is_hit:
                self._hit.emit(event.tier)
            else:
                self._miss.emit()
        self._verdict.emit(event)
