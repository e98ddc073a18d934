# -*- coding: utf-8 -*-
########################
# rhythm_session.py
########################
# Purpose:
# - Composition root and tick driver for the rhythm timing core.
# - Wires BeatClock + TimingEvaluator + ActionWindowTracker + InputArbiter + StatsAggregator
#   to the injected collaborators (clock source, input source, movement executor, feedback sink).
#
# Design notes:
# - No Qt usage. The Qt harness and tests drive tick() from their own loops.
# - One tick reads "now" once. The same song position feeds the tracker and every input of the tick.
# - Fixed tick order: commands -> clock -> tracker -> input -> status publish.
# - Other threads never touch core state: they submit() SessionCommand values to a queue that the
#   tick drains, and read status() snapshots published under a lock.
# - stop/start realigns the song to time zero; pause/resume keeps the song position.
# - With beat timing off, moves skip judgement and windows are not tracked. Turning it back on
#   restarts the tracker, so the first window after the switch never scores a miss.
#
########################
# Interfaces:
# Public protocols:
# - ClockSource: now() -> float
# - InputSource: direction_vector() -> tuple[float, float]; consume_mode_toggle() -> bool
#
# Public exceptions:
# - WiringError(RuntimeError)
#
# Public enums / dataclasses:
# - CommandKind: START | STOP | RESTART | PAUSE | RESUME | TOGGLE_PAUSE | SET_RHYTHM_MODE | TOGGLE_RHYTHM_MODE
# - SessionCommand(kind: CommandKind, value: Optional[bool])
# - TickReport(song_position, beat_index, verdicts, decision)
# - SessionStatus(state, song_position, beat_index, bpm, require_beat_timing, window_state, stats, feedback_text)
#
# Public classes:
# - class RhythmSession
#   - __init__(*, rhythm_config, clock_source, input_source, movement_executor, feedback_sink=None,
#              feedback_display_seconds=1.0)
#   - tick() -> TickReport
#   - start() / stop() / restart() / pause() / resume() / toggle_pause()
#   - set_rhythm_mode(require_beat_timing: bool) / toggle_rhythm_mode()
#   - apply_rhythm_config(rhythm_config) -> None
#   - submit(command: SessionCommand) -> None
#   - status() -> SessionStatus
#   - clock / evaluator / tracker / arbiter / stats properties
#
########################

from __future__ import annotations

import enum
import logging
import queue
import threading
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from action_window import ActionWindowTracker
from beat_clock import BeatClock, beat_interval_for_bpm
from config import RhythmConfig
from feedback import (
    FeedbackSink,
    message_for_already_acted,
    message_for_blocked,
    message_for_cooldown,
    message_for_mode,
    message_for_no_input_miss,
    message_for_tier,
    message_for_timing_miss,
)
from gameplay_models import (
    ActionResult,
    ActionStatus,
    FeedbackMessage,
    InputIntent,
    MoveResult,
    VerdictEvent,
    VerdictKind,
    timing_bonus,
)
from input_arbiter import ArbiterDecision, InputArbiter, IntentStatus
from movement import MovementExecutor
from stats import StatsAggregator, StatsSnapshot
from timing_model import TimingEvaluator, TimingWindowPolicy

logger = logging.getLogger(__name__)


class WiringError(RuntimeError):
    """A required collaborator was not supplied. The session never enters the tick loop."""


@runtime_checkable
class ClockSource(Protocol):
    def now(self) -> float:
        ...


@runtime_checkable
class InputSource(Protocol):
    def direction_vector(self) -> Tuple[float, float]:
        ...

    def consume_mode_toggle(self) -> bool:
        ...


class CommandKind(enum.Enum):
    START = "start"
    STOP = "stop"
    RESTART = "restart"
    PAUSE = "pause"
    RESUME = "resume"
    TOGGLE_PAUSE = "toggle_pause"
    SET_RHYTHM_MODE = "set_rhythm_mode"
    TOGGLE_RHYTHM_MODE = "toggle_rhythm_mode"


@dataclass(frozen=True)
class SessionCommand:
    kind: CommandKind
    value: Optional[bool] = None


@dataclass(frozen=True)
class TickReport:
    song_position: float
    beat_index: int
    verdicts: List[VerdictEvent] = field(default_factory=list)
    decision: Optional[ArbiterDecision] = None


@dataclass(frozen=True)
class SessionStatus:
    state: str
    song_position: float
    beat_index: int
    bpm: float
    require_beat_timing: bool
    window_state: str
    stats: StatsSnapshot
    feedback_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["ok"] = True
        return payload


class _NullFeedbackSink:
    def show(self, message: FeedbackMessage) -> None:
        logger.debug("Feedback: %s (%s)", message.text, message.severity.value)


class RhythmSession:
    def __init__(
        self,
        *,
        rhythm_config: RhythmConfig,
        clock_source: Optional[ClockSource],
        input_source: Optional[InputSource],
        movement_executor: Optional[MovementExecutor],
        feedback_sink: Optional[FeedbackSink] = None,
        feedback_display_seconds: float = 1.0,
    ) -> None:
        missing: List[str] = []
        if not isinstance(clock_source, ClockSource):
            missing.append("clock source")
        if not isinstance(input_source, InputSource):
            missing.append("input source")
        if not isinstance(movement_executor, MovementExecutor):
            missing.append("movement executor")
        if missing:
            logger.error("Cannot wire rhythm session: missing %s", ", ".join(missing))
            raise WiringError("missing collaborator(s): " + ", ".join(missing))

        beat_interval_for_bpm(rhythm_config.bpm)

        self._clock_source: ClockSource = clock_source
        self._input_source: InputSource = input_source
        self._movement: MovementExecutor = movement_executor
        self._feedback: FeedbackSink = feedback_sink if feedback_sink is not None else _NullFeedbackSink()
        self._feedback_display_seconds = float(feedback_display_seconds)

        self._clock = BeatClock(rhythm_config.bpm)
        self._evaluator = TimingEvaluator(TimingWindowPolicy.from_config(rhythm_config), self._clock.beat_interval)
        self._tracker = ActionWindowTracker(self._evaluator)
        self._stats = StatsAggregator()
        self._arbiter = InputArbiter(
            self._handle_intent,
            min_input_interval=rhythm_config.min_input_interval_seconds,
            deadzone=rhythm_config.deadzone,
        )
        self._require_beat_timing = bool(rhythm_config.require_beat_timing)

        self._tracker.subscribe_hit(self._stats.record_hit)
        self._tracker.subscribe_miss(self._stats.record_miss)
        self._tracker.subscribe_verdict(self._on_verdict)

        self._tick_position = 0.0
        self._tick_beat_index = 0
        self._last_feedback: Optional[FeedbackMessage] = None

        self._commands: "queue.Queue[SessionCommand]" = queue.Queue()
        self._status_lock = threading.Lock()
        self._status = self._build_status()

    # -----------------
    # Component access
    # -----------------

    @property
    def clock(self) -> BeatClock:
        return self._clock

    @property
    def evaluator(self) -> TimingEvaluator:
        return self._evaluator

    @property
    def tracker(self) -> ActionWindowTracker:
        return self._tracker

    @property
    def arbiter(self) -> InputArbiter:
        return self._arbiter

    @property
    def stats(self) -> StatsAggregator:
        return self._stats

    def require_beat_timing(self) -> bool:
        return bool(self._require_beat_timing)

    # -----------------
    # Tick loop
    # -----------------

    def tick(self) -> TickReport:
        self._drain_commands()

        now = float(self._clock_source.now())
        position = self._clock.advance(now)
        beat_index = self._clock.beat_index()
        self._tick_position = position
        self._tick_beat_index = beat_index

        verdicts: List[VerdictEvent] = []
        if self._clock.is_playing() and self._require_beat_timing:
            verdicts = self._tracker.update(position, beat_index)

        if self._input_source.consume_mode_toggle():
            self.toggle_rhythm_mode()

        decision = self._arbiter.on_raw_direction(self._input_source.direction_vector(), position)
        if decision.status is IntentStatus.COOLDOWN and self._clock.is_playing():
            self._show(message_for_cooldown(self._feedback_display_seconds))

        self._publish_status()
        return TickReport(song_position=position, beat_index=beat_index, verdicts=verdicts, decision=decision)

    def _handle_intent(self, intent: InputIntent) -> ActionResult:
        if not self._clock.is_playing():
            return ActionResult(status=ActionStatus.NOT_PLAYING)

        if not self._require_beat_timing:
            move_result = self._movement.attempt_move(intent.direction, 1.0)
            if move_result is MoveResult.BLOCKED:
                self._show(message_for_blocked(self._feedback_display_seconds))
            return ActionResult(status=ActionStatus.FREE_MOVE)

        result = self._tracker.accept_action(intent.time_seconds, self._tick_beat_index)
        if result.status is ActionStatus.ALREADY_ACTED:
            self._show(message_for_already_acted(self._feedback_display_seconds))
        elif result.status is ActionStatus.MISS:
            self._show(message_for_timing_miss(self._feedback_display_seconds))
        elif result.status is ActionStatus.HIT and result.timing is not None:
            tier = result.timing.tier
            move_result = self._movement.attempt_move(intent.direction, timing_bonus(tier))
            if move_result is MoveResult.BLOCKED:
                self._show(message_for_blocked(self._feedback_display_seconds))
            else:
                self._show(message_for_tier(tier, self._feedback_display_seconds))
        return result

    def _on_verdict(self, event: VerdictEvent) -> None:
        if event.kind is VerdictKind.MISS_NO_INPUT:
            self._show(message_for_no_input_miss(self._feedback_display_seconds))

    def _show(self, message: FeedbackMessage) -> None:
        self._last_feedback = message
        self._feedback.show(message)

    # -----------------
    # Transport and mode controls (tick thread only)
    # -----------------

    def start(self) -> None:
        if self._clock.is_playing():
            return
        self._clock.start(self._clock_source.now())
        self._tracker.restart()
        self._arbiter.reset()
        self._publish_status()

    def stop(self) -> None:
        self._clock.stop()
        self._publish_status()

    def pause(self) -> None:
        self._clock.pause()
        self._publish_status()

    def resume(self) -> None:
        self._clock.resume(self._clock_source.now())
        self._publish_status()

    def toggle_pause(self) -> None:
        if self._clock.is_playing():
            self.pause()
        elif self._clock.is_paused():
            self.resume()
        else:
            self.start()

    def restart(self) -> None:
        self._stats.reset()
        self._clock.stop()
        self._clock.start(self._clock_source.now())
        self._tracker.restart()
        self._arbiter.reset()
        reset_movement = getattr(self._movement, "reset", None)
        if callable(reset_movement):
            reset_movement()
        logger.info("Session restarted")
        self._publish_status()

    def set_rhythm_mode(self, require_beat_timing: bool) -> None:
        self._switch_rhythm_mode(require_beat_timing)
        logger.info("Beat timing requirement: %s", "on" if self._require_beat_timing else "off")
        self._show(message_for_mode(self._require_beat_timing, self._feedback_display_seconds))
        self._publish_status()

    def toggle_rhythm_mode(self) -> None:
        self.set_rhythm_mode(not self._require_beat_timing)

    def _switch_rhythm_mode(self, require_beat_timing: bool) -> None:
        enabling = bool(require_beat_timing) and not self._require_beat_timing
        self._require_beat_timing = bool(require_beat_timing)
        if enabling:
            # Windows are not tracked in free mode; judging resumes with a fresh first cycle.
            self._tracker.restart()

    def apply_rhythm_config(self, rhythm_config: RhythmConfig) -> None:
        """Hot reload. A bpm change realigns the song to time zero."""
        beat_interval_for_bpm(rhythm_config.bpm)
        policy = TimingWindowPolicy.from_config(rhythm_config)
        self._arbiter.set_min_input_interval(rhythm_config.min_input_interval_seconds)
        self._arbiter.set_deadzone(rhythm_config.deadzone)
        self._evaluator.set_policy(policy)
        self._switch_rhythm_mode(rhythm_config.require_beat_timing)

        if float(rhythm_config.bpm) != self._clock.bpm():
            self._clock.set_bpm(rhythm_config.bpm)
            if self._clock.is_playing() or self._clock.is_paused():
                self._clock.stop()
                self._clock.start(self._clock_source.now())
            self._tracker.restart()
            self._arbiter.reset()
        logger.info("Rhythm config applied (bpm=%.2f)", self._clock.bpm())
        self._publish_status()

    # -----------------
    # Cross-thread command queue and status
    # -----------------

    def submit(self, command: SessionCommand) -> None:
        self._commands.put(command)

    def _drain_commands(self) -> None:
        while True:
            try:
                command = self._commands.get_nowait()
            except queue.Empty:
                return
            self._execute(command)

    def _execute(self, command: SessionCommand) -> None:
        kind = command.kind
        if kind is CommandKind.START:
            self.start()
        elif kind is CommandKind.STOP:
            self.stop()
        elif kind is CommandKind.RESTART:
            self.restart()
        elif kind is CommandKind.PAUSE:
            self.pause()
        elif kind is CommandKind.RESUME:
            self.resume()
        elif kind is CommandKind.TOGGLE_PAUSE:
            self.toggle_pause()
        elif kind is CommandKind.SET_RHYTHM_MODE:
            self.set_rhythm_mode(bool(command.value))
        elif kind is CommandKind.TOGGLE_RHYTHM_MODE:
            self.toggle_rhythm_mode()

    def _state_name(self) -> str:
        if self._clock.is_playing():
            return "PLAYING"
        if self._clock.is_paused():
            return "PAUSED"
        return "IDLE"

    def _build_status(self) -> SessionStatus:
        return SessionStatus(
            state=self._state_name(),
            song_position=self._clock.song_position(),
            beat_index=self._clock.beat_index(),
            bpm=self._clock.bpm(),
            require_beat_timing=self._require_beat_timing,
            window_state=self._tracker.state().value,
            stats=self._stats.snapshot(),
            feedback_text=self._last_feedback.text if self._last_feedback is not None else None,
        )

    def _publish_status(self) -> None:
        status = self._build_status()
        with self._status_lock:
            self._status = status

    def status(self) -> SessionStatus:
        with self._status_lock:
            return self._status
