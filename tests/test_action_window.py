"""Tests for the ActionWindowTracker cycle state machine."""

import pytest

from action_window import ActionWindowTracker, CycleVerdict, CycleVerdictKind, WindowState
from gameplay_models import ActionStatus, Tier, VerdictKind
from input_arbiter import InputArbiter, IntentStatus
from stats import StatsAggregator
from timing_model import TierWindow, TimingEvaluator, TimingWindowPolicy


def _wire_stats(tracker):
    stats = StatsAggregator()
    tracker.subscribe_hit(stats.record_hit)
    tracker.subscribe_miss(stats.record_miss)
    return stats


def _pass_first_cycle(tracker):
    """Run through the window around beat 0 (120 bpm) so the first cycle is spent."""
    tracker.update(0.0)
    tracker.update(0.1)
    assert not tracker.is_first_cycle()


def test_restart_state(evaluator_120):
    tracker = ActionWindowTracker(evaluator_120)
    snapshot = tracker.snapshot()
    assert snapshot.state is WindowState.OUTSIDE
    assert snapshot.is_first_cycle
    assert snapshot.cycle_end_time == pytest.approx(0.075)
    assert snapshot.next_beat_start_time == pytest.approx(0.075)
    assert not snapshot.has_entered_window
    assert not snapshot.has_tried_input
    assert not snapshot.has_succeeded
    assert snapshot.completed_cycles == 0


def test_scenario_a_on_beat_input_hits_and_ends_cycle_at_action_time(good_only_tracker):
    tracker = good_only_tracker
    stats = _wire_stats(tracker)
    _pass_first_cycle(tracker)

    tracker.update(0.45)
    tracker.update(0.5)
    result = tracker.accept_action(0.5, 1)

    assert result.status is ActionStatus.HIT
    assert result.timing.tier is Tier.GOOD
    assert result.timing.accuracy == pytest.approx(0.0)
    assert tracker.cycle().cycle_end_time == pytest.approx(0.5)
    assert tracker.cycle().has_succeeded
    assert stats.count_for(Tier.GOOD) == 1

    tracker.update(0.5)
    assert not tracker.cycle().has_tried_input

    tracker.update(0.6)
    assert stats.hits() == 1
    assert stats.misses() == 0


def test_scenario_b_early_input_outside_window_misses(good_only_tracker):
    tracker = good_only_tracker
    stats = _wire_stats(tracker)
    _pass_first_cycle(tracker)

    tracker.update(0.42)
    result = tracker.accept_action(0.42, 0)

    assert result.status is ActionStatus.MISS
    assert result.timing.accuracy == pytest.approx(-0.16)
    assert result.verdict.kind is VerdictKind.MISS_BY_TIMING
    assert tracker.cycle().cycle_end_time == pytest.approx(0.575)
    assert tracker.cycle().next_beat_start_time == pytest.approx(0.575)
    assert stats.misses() == 1


def test_miss_by_timing_is_not_counted_again_when_window_closes(good_only_tracker):
    tracker = good_only_tracker
    stats = _wire_stats(tracker)
    _pass_first_cycle(tracker)

    tracker.update(0.42)
    tracker.accept_action(0.42, 0)
    tracker.update(0.45)
    assert tracker.cycle().has_tried_input
    tracker.update(0.58)

    assert stats.misses() == 1
    assert not tracker.cycle().has_tried_input

    # The following window is a fresh cycle and scores on its own.
    tracker.update(0.95)
    tracker.update(1.1)
    assert stats.misses() == 2


def test_late_timing_miss_does_not_block_the_next_beat(evaluator_120):
    """A late miss is anchored to the next window's close but that window still opens fresh."""
    tracker = ActionWindowTracker(evaluator_120)
    stats = _wire_stats(tracker)
    _pass_first_cycle(tracker)
    tracker.update(0.45)
    tracker.update(0.58)
    assert stats.misses() == 1

    late = tracker.accept_action(0.7, 1)
    assert late.status is ActionStatus.MISS
    assert late.timing.accuracy > 0.0
    assert late.verdict.cycle_end_time == pytest.approx(1.075)

    tracker.update(0.8)
    tracker.update(0.93)
    assert tracker.state() is WindowState.INSIDE
    assert not tracker.cycle().has_tried_input
    tracker.update(1.0)

    result = tracker.accept_action(1.0, 2)

    assert result.status is ActionStatus.HIT
    assert result.timing.tier is Tier.PERFECT
    tracker.update(1.1)
    assert stats.hits() == 1
    assert stats.misses() == 2


def test_early_timing_miss_keeps_its_window_closed(good_only_tracker):
    tracker = good_only_tracker
    _pass_first_cycle(tracker)

    tracker.update(0.42)
    assert tracker.accept_action(0.42, 0).status is ActionStatus.MISS
    tracker.update(0.45)

    assert tracker.state() is WindowState.INSIDE
    assert tracker.cycle().verdict.is_early
    assert tracker.accept_action(0.5, 1).status is ActionStatus.ALREADY_ACTED


def test_scenario_c_window_without_input_records_miss(good_only_tracker):
    tracker = good_only_tracker
    stats = _wire_stats(tracker)
    _pass_first_cycle(tracker)

    tracker.update(0.43)
    assert tracker.state() is WindowState.INSIDE
    tracker.update(0.5)
    assert stats.misses() == 0

    # 0.575 is the closing edge and still inside; the next tick lands outside.
    verdicts = tracker.update(0.58)

    assert [event.kind for event in verdicts] == [VerdictKind.MISS_NO_INPUT]
    assert verdicts[0].cycle_end_time == pytest.approx(1.075)
    assert tracker.cycle().cycle_end_time == pytest.approx(1.075)
    assert tracker.cycle().next_beat_start_time == pytest.approx(1.075)
    assert stats.misses() == 1


def test_scenario_d_first_cycle_after_restart_never_misses(good_only_tracker):
    tracker = good_only_tracker
    stats = _wire_stats(tracker)
    _pass_first_cycle(tracker)
    tracker.update(0.45)
    tracker.update(0.6)
    assert stats.misses() == 1

    tracker.restart()
    stats.reset()
    assert tracker.is_first_cycle()

    tracker.update(0.0)
    tracker.update(0.1)
    assert stats.misses() == 0
    assert not tracker.is_first_cycle()

    tracker.update(0.45)
    tracker.update(0.6)
    assert stats.misses() == 1


def test_first_cycle_timing_miss_is_not_scored(evaluator_120):
    tracker = ActionWindowTracker(evaluator_120)
    stats = _wire_stats(tracker)
    verdicts = []
    tracker.subscribe_verdict(verdicts.append)

    result = tracker.accept_action(0.2, 0)

    assert result.status is ActionStatus.MISS
    assert result.verdict.is_scored is False
    assert stats.attempts() == 0
    assert len(verdicts) == 1


def test_first_cycle_hit_is_scored(evaluator_120):
    tracker = ActionWindowTracker(evaluator_120)
    stats = _wire_stats(tracker)
    tracker.update(0.0)
    result = tracker.accept_action(0.01, 0)
    assert result.status is ActionStatus.HIT
    assert stats.hits() == 1


def test_early_hit_ends_cycle_at_nominal_beat(evaluator_120):
    tracker = ActionWindowTracker(evaluator_120)
    _pass_first_cycle(tracker)

    tracker.update(0.46)
    result = tracker.accept_action(0.46, 0)

    assert result.status is ActionStatus.HIT
    assert result.timing.tier is Tier.GOOD
    assert tracker.cycle().cycle_end_time == pytest.approx(0.5)

    tracker.update(0.48)
    assert tracker.accept_action(0.48, 0).status is ActionStatus.ALREADY_ACTED

    tracker.update(0.5)
    assert not tracker.cycle().has_tried_input


def test_late_hit_ends_cycle_at_action_time(evaluator_120):
    tracker = ActionWindowTracker(evaluator_120)
    _pass_first_cycle(tracker)

    tracker.update(0.54)
    result = tracker.accept_action(0.54, 1)

    assert result.status is ActionStatus.HIT
    assert result.verdict.cycle_end_time == pytest.approx(0.54)


def test_input_exactly_on_outer_edge_is_accepted():
    policy = TimingWindowPolicy([TierWindow(0.25, Tier.GOOD)])
    tracker = ActionWindowTracker(TimingEvaluator(policy, lambda: 1.0))
    tracker.update(0.0)
    tracker.update(0.5)

    tracker.update(0.75)
    result = tracker.accept_action(0.75, 0)

    assert result.status is ActionStatus.HIT
    assert result.timing.accuracy == pytest.approx(-0.25)
    assert result.verdict.cycle_end_time == pytest.approx(1.0)


def test_slow_tick_does_not_skip_a_window(evaluator_120):
    """A frame that jumps clean over a window still judges that window."""
    tracker = ActionWindowTracker(evaluator_120)
    stats = _wire_stats(tracker)
    _pass_first_cycle(tracker)

    verdicts = tracker.update(0.9)

    assert [event.kind for event in verdicts] == [VerdictKind.MISS_NO_INPUT]
    assert stats.misses() == 1
    assert tracker.state() is WindowState.OUTSIDE


def test_each_completed_cycle_counts_exactly_once(evaluator_120):
    """Acting on even beats and idling on odd beats at 60 fps."""
    tracker = ActionWindowTracker(evaluator_120)
    stats = _wire_stats(tracker)
    verdicts = []
    tracker.subscribe_verdict(verdicts.append)

    pressed = set()
    frame_seconds = 1.0 / 60.0
    for step in range(int(5.3 * 60)):
        position = step * frame_seconds
        beat_index = int(position // 0.5)
        tracker.update(position, beat_index)

        nominal_beat = int(round(position / 0.5))
        if (
            nominal_beat > 0
            and nominal_beat % 2 == 0
            and nominal_beat not in pressed
            and position >= nominal_beat * 0.5 + 0.02
        ):
            pressed.add(nominal_beat)
            assert tracker.accept_action(position, beat_index).status is ActionStatus.HIT

    assert pressed == {2, 4, 6, 8, 10}
    assert stats.hits() == 5
    assert stats.misses() == 5
    assert stats.attempts() == len(verdicts) == tracker.completed_cycles()


def test_cooldown_rejection_leaves_cycle_untouched(evaluator_120):
    tracker = ActionWindowTracker(evaluator_120)
    _pass_first_cycle(tracker)

    def handler(intent):
        return tracker.accept_action(intent.time_seconds, int(intent.time_seconds // 0.5))

    arbiter = InputArbiter(handler, min_input_interval=0.2)

    tracker.update(0.48)
    assert arbiter.on_raw_direction((1.0, 0.0), 0.48).status is IntentStatus.FORWARDED

    tracker.update(0.52)
    before = tracker.snapshot()
    assert not before.has_tried_input

    decision = arbiter.on_raw_direction((0.0, 1.0), 0.52)

    assert decision.status is IntentStatus.COOLDOWN
    assert tracker.snapshot() == before


def test_cycle_verdict_variants():
    assert CycleVerdict.pending().is_pending
    assert CycleVerdict.succeeded(Tier.GOOD).from_action
    assert CycleVerdict.missed_by_timing().from_action
    assert not CycleVerdict.missed_no_input().from_action
    assert CycleVerdict.missed_no_input().kind is CycleVerdictKind.MISSED_NO_INPUT
    with pytest.raises(ValueError):
        CycleVerdict.succeeded(Tier.MISS)
