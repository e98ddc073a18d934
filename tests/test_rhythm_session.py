"""Integration tests: RhythmSession driving the full tick pipeline."""

import logging
import threading

import pytest

from config import ConfigurationError, RhythmConfig
from gameplay_models import ActionStatus, Direction, MoveResult, Tier
from input_arbiter import IntentStatus
from rhythm_session import CommandKind, RhythmSession, SessionCommand, WiringError

from conftest import ManualClock, RecordingMovement, ScriptedInput


@pytest.fixture
def make_session(manual_clock, scripted_input, recording_movement, recording_feedback):
    def factory(rhythm_config=None):
        return RhythmSession(
            rhythm_config=rhythm_config if rhythm_config is not None else RhythmConfig(),
            clock_source=manual_clock,
            input_source=scripted_input,
            movement_executor=recording_movement,
            feedback_sink=recording_feedback,
        )

    return factory


def _tick_at(session, clock, position):
    clock.value = position
    return session.tick()


def _start_and_pass_first_cycle(session, clock):
    clock.value = 0.0
    session.start()
    _tick_at(session, clock, 0.0)
    _tick_at(session, clock, 0.1)


# -----------------
# Wiring and configuration
# -----------------


@pytest.mark.parametrize("missing", ["clock_source", "input_source", "movement_executor"])
def test_missing_collaborator_is_a_wiring_error(missing, caplog):
    collaborators = {
        "clock_source": ManualClock(),
        "input_source": ScriptedInput(),
        "movement_executor": RecordingMovement(),
    }
    collaborators[missing] = None

    with caplog.at_level(logging.ERROR, logger="rhythm_session"):
        with pytest.raises(WiringError):
            RhythmSession(rhythm_config=RhythmConfig(), **collaborators)

    assert any("missing" in record.getMessage() for record in caplog.records)


def test_non_positive_bpm_refuses_to_start():
    broken = RhythmConfig.model_construct(bpm=0.0)
    with pytest.raises(ConfigurationError):
        RhythmSession(
            rhythm_config=broken,
            clock_source=ManualClock(),
            input_source=ScriptedInput(),
            movement_executor=RecordingMovement(),
        )


def test_feedback_sink_is_optional(manual_clock, scripted_input, recording_movement):
    session = RhythmSession(
        rhythm_config=RhythmConfig(),
        clock_source=manual_clock,
        input_source=scripted_input,
        movement_executor=recording_movement,
    )
    session.start()
    scripted_input.vector = (1.0, 0.0)
    assert _tick_at(session, manual_clock, 0.3).decision.status is IntentStatus.FORWARDED


# -----------------
# Scoring scenarios
# -----------------


def test_on_beat_input_hits_and_moves(make_session, manual_clock, scripted_input, recording_movement, recording_feedback, good_only_config):
    session = make_session(good_only_config)
    _start_and_pass_first_cycle(session, manual_clock)
    _tick_at(session, manual_clock, 0.45)

    scripted_input.vector = (0.0, 1.0)
    report = _tick_at(session, manual_clock, 0.5)

    assert report.decision.action.status is ActionStatus.HIT
    assert report.decision.action.timing.tier is Tier.GOOD
    assert report.decision.intent.time_seconds == report.song_position
    assert session.tracker.cycle().cycle_end_time == pytest.approx(0.5)
    assert recording_movement.attempts == [(Direction.UP, 1.2)]
    assert recording_feedback.texts()[-1] == "Good"
    assert session.stats.hits() == 1


def test_perfect_hit_moves_with_largest_bonus(make_session, manual_clock, scripted_input, recording_movement, recording_feedback):
    session = make_session(RhythmConfig())
    _start_and_pass_first_cycle(session, manual_clock)

    scripted_input.vector = (1.0, 0.0)
    _tick_at(session, manual_clock, 0.5)

    assert recording_movement.attempts == [(Direction.RIGHT, 1.5)]
    assert recording_feedback.texts()[-1] == "PERFECT!"


def test_early_input_outside_window_is_timing_miss(make_session, manual_clock, scripted_input, recording_movement, recording_feedback, good_only_config):
    session = make_session(good_only_config)
    _start_and_pass_first_cycle(session, manual_clock)

    scripted_input.vector = (1.0, 0.0)
    report = _tick_at(session, manual_clock, 0.42)

    assert report.decision.action.status is ActionStatus.MISS
    assert session.tracker.cycle().cycle_end_time == pytest.approx(0.575)
    assert session.stats.misses() == 1
    assert recording_movement.attempts == []
    assert "Timing wrong" in recording_feedback.texts()


def test_window_without_input_is_missed(make_session, manual_clock, recording_feedback, good_only_config):
    session = make_session(good_only_config)
    _start_and_pass_first_cycle(session, manual_clock)

    for position in (0.43, 0.5, 0.575):
        _tick_at(session, manual_clock, position)
    assert session.stats.misses() == 0

    report = _tick_at(session, manual_clock, 0.58)

    assert len(report.verdicts) == 1
    assert session.tracker.cycle().cycle_end_time == pytest.approx(1.075)
    assert session.stats.misses() == 1
    assert recording_feedback.texts()[-1] == "Missed beat"


def test_restart_suppresses_first_cycle_miss(make_session, manual_clock, recording_movement, good_only_config):
    session = make_session(good_only_config)
    _start_and_pass_first_cycle(session, manual_clock)
    _tick_at(session, manual_clock, 0.45)
    _tick_at(session, manual_clock, 0.6)
    assert session.stats.misses() == 1

    manual_clock.value = 10.0
    session.restart()
    assert session.stats.attempts() == 0
    assert recording_movement.reset_calls == 1
    assert session.tracker.is_first_cycle()

    _tick_at(session, manual_clock, 10.0)
    _tick_at(session, manual_clock, 10.1)
    assert session.stats.misses() == 0

    _tick_at(session, manual_clock, 10.45)
    _tick_at(session, manual_clock, 10.6)
    assert session.stats.misses() == 1


def test_blocked_move_still_finalizes_the_cycle(make_session, manual_clock, scripted_input, recording_movement, recording_feedback):
    recording_movement.result = MoveResult.BLOCKED
    session = make_session(RhythmConfig())
    _start_and_pass_first_cycle(session, manual_clock)

    scripted_input.vector = (-1.0, 0.0)
    report = _tick_at(session, manual_clock, 0.5)

    assert report.decision.action.status is ActionStatus.HIT
    assert session.stats.hits() == 1
    assert session.tracker.cycle().has_tried_input
    assert recording_feedback.texts()[-1] == "Blocked"


# -----------------
# Input rejection
# -----------------


def test_cooldown_rejection_is_feedback_only(make_session, manual_clock, scripted_input, recording_feedback):
    session = make_session(RhythmConfig(min_input_interval_seconds=0.12))
    _start_and_pass_first_cycle(session, manual_clock)

    scripted_input.vector = (1.0, 0.0)
    _tick_at(session, manual_clock, 0.48)
    _tick_at(session, manual_clock, 0.51)
    before = session.tracker.snapshot()

    scripted_input.vector = (0.0, 1.0)
    report = _tick_at(session, manual_clock, 0.52)

    assert report.decision.status is IntentStatus.COOLDOWN
    assert session.tracker.snapshot() == before
    assert session.stats.attempts() == 1
    assert recording_feedback.texts()[-1] == "Too fast"


def test_second_action_in_same_cycle_is_already_acted(make_session, manual_clock, scripted_input, recording_movement, recording_feedback, good_only_config):
    session = make_session(good_only_config)
    _start_and_pass_first_cycle(session, manual_clock)

    scripted_input.vector = (1.0, 0.0)
    _tick_at(session, manual_clock, 0.46)
    scripted_input.vector = (0.0, 1.0)
    report = _tick_at(session, manual_clock, 0.47)

    assert report.decision.action.status is ActionStatus.ALREADY_ACTED
    assert len(recording_movement.attempts) == 1
    assert session.stats.attempts() == 1
    assert recording_feedback.texts()[-1] == "Already moved"


def test_input_while_not_playing_is_ignored(make_session, manual_clock, scripted_input, recording_movement):
    session = make_session()
    scripted_input.vector = (1.0, 0.0)
    report = _tick_at(session, manual_clock, 1.0)

    assert report.decision.action.status is ActionStatus.NOT_PLAYING
    assert recording_movement.attempts == []


# -----------------
# Modes and transport
# -----------------


def test_mode_toggle_enables_free_movement(make_session, manual_clock, scripted_input, recording_movement, recording_feedback):
    session = make_session(RhythmConfig(min_input_interval_seconds=0.0))
    _start_and_pass_first_cycle(session, manual_clock)

    scripted_input.pending_toggles = 1
    scripted_input.vector = (1.0, 0.0)
    report = _tick_at(session, manual_clock, 0.3)

    assert not session.require_beat_timing()
    assert report.decision.action.status is ActionStatus.FREE_MOVE
    assert recording_movement.attempts == [(Direction.RIGHT, 1.0)]
    assert session.stats.attempts() == 0
    assert "Beat timing: off" in recording_feedback.texts()


def test_stop_suspends_window_transitions(make_session, manual_clock, good_only_config):
    session = make_session(good_only_config)
    _start_and_pass_first_cycle(session, manual_clock)
    _tick_at(session, manual_clock, 0.45)
    session.stop()

    _tick_at(session, manual_clock, 3.0)

    assert session.stats.misses() == 0
    assert session.status().state == "IDLE"


def test_pause_resume_keeps_song_position(make_session, manual_clock, good_only_config):
    session = make_session(good_only_config)
    _start_and_pass_first_cycle(session, manual_clock)
    _tick_at(session, manual_clock, 0.2)
    session.pause()

    report = _tick_at(session, manual_clock, 50.0)
    assert report.song_position == pytest.approx(0.2)
    assert session.status().state == "PAUSED"

    session.resume()
    assert _tick_at(session, manual_clock, 50.25).song_position == pytest.approx(0.45)
    _tick_at(session, manual_clock, 50.4)
    assert session.stats.misses() == 1


def test_toggle_pause_cycles_through_states(make_session, manual_clock):
    session = make_session()
    session.toggle_pause()
    assert session.clock.is_playing()
    session.toggle_pause()
    assert session.clock.is_paused()
    session.toggle_pause()
    assert session.clock.is_playing()


def test_tick_reads_the_clock_source_once(make_session, scripted_input, recording_movement):
    class CountingClock:
        def __init__(self):
            self.calls = 0

        def now(self):
            self.calls += 1
            return 0.5

    counting_clock = CountingClock()
    session = RhythmSession(
        rhythm_config=RhythmConfig(),
        clock_source=counting_clock,
        input_source=scripted_input,
        movement_executor=recording_movement,
    )
    session.start()
    counting_clock.calls = 0

    scripted_input.vector = (1.0, 0.0)
    session.tick()

    assert counting_clock.calls == 1


def test_apply_config_with_new_bpm_realigns_song(make_session, manual_clock):
    session = make_session()
    _start_and_pass_first_cycle(session, manual_clock)
    _tick_at(session, manual_clock, 1.1)

    session.apply_rhythm_config(RhythmConfig(bpm=60.0))

    assert session.clock.bpm() == 60.0
    assert session.clock.song_position() == 0.0
    assert session.tracker.is_first_cycle()
    assert _tick_at(session, manual_clock, 1.6).song_position == pytest.approx(0.5)


def test_apply_config_with_same_bpm_keeps_position(make_session, manual_clock):
    session = make_session()
    _start_and_pass_first_cycle(session, manual_clock)
    _tick_at(session, manual_clock, 1.1)

    session.apply_rhythm_config(RhythmConfig(min_input_interval_seconds=0.3, require_beat_timing=False))

    assert session.clock.song_position() == pytest.approx(1.1)
    assert session.arbiter.min_input_interval() == pytest.approx(0.3)
    assert not session.require_beat_timing()


# -----------------
# Cross-thread commands and status
# -----------------


def test_commands_from_another_thread_apply_on_next_tick(make_session, manual_clock):
    session = make_session()
    _start_and_pass_first_cycle(session, manual_clock)

    worker = threading.Thread(target=session.submit, args=(SessionCommand(CommandKind.PAUSE),))
    worker.start()
    worker.join()

    assert session.clock.is_playing()
    _tick_at(session, manual_clock, 0.2)
    assert session.clock.is_paused()
    assert session.status().state == "PAUSED"


def test_rhythm_mode_command(make_session, manual_clock):
    session = make_session()
    session.submit(SessionCommand(CommandKind.SET_RHYTHM_MODE, False))
    _tick_at(session, manual_clock, 0.0)
    assert session.status().require_beat_timing is False

    session.submit(SessionCommand(CommandKind.TOGGLE_RHYTHM_MODE))
    _tick_at(session, manual_clock, 0.0)
    assert session.status().require_beat_timing is True


def test_status_payload(make_session, manual_clock, scripted_input):
    session = make_session()
    _start_and_pass_first_cycle(session, manual_clock)
    scripted_input.vector = (1.0, 0.0)
    _tick_at(session, manual_clock, 0.5)

    payload = session.status().to_dict()

    assert payload["ok"] is True
    assert payload["state"] == "PLAYING"
    assert payload["bpm"] == 120.0
    assert payload["stats"]["perfect_count"] == 1
    assert payload["stats"]["accuracy_percent"] == 100.0
    assert payload["feedback_text"] == "PERFECT!"


def test_free_mode_records_no_misses_and_reenabling_starts_fresh(make_session, manual_clock, good_only_config):
    session = make_session(good_only_config)
    _start_and_pass_first_cycle(session, manual_clock)
    session.set_rhythm_mode(False)

    for position in (0.45, 0.6, 0.95, 1.1):
        _tick_at(session, manual_clock, position)
    assert session.stats.misses() == 0

    session.set_rhythm_mode(True)
    assert session.tracker.is_first_cycle()
    _tick_at(session, manual_clock, 1.45)
    _tick_at(session, manual_clock, 1.6)
    assert session.stats.misses() == 0

    _tick_at(session, manual_clock, 1.95)
    _tick_at(session, manual_clock, 2.1)
    assert session.stats.misses() == 1
