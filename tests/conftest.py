"""Shared test fixtures for the rhythm timing core."""

from typing import List, Tuple

import pytest

from action_window import ActionWindowTracker
from config import RhythmConfig, TierWindowConfig
from gameplay_models import Direction, FeedbackMessage, MoveResult, Tier
from timing_model import TierWindow, TimingEvaluator, TimingWindowPolicy


class ManualClock:
    """Clock source whose time only moves when a test sets it."""

    def __init__(self, value: float = 0.0) -> None:
        self.value = float(value)

    def now(self) -> float:
        return self.value


class ScriptedInput:
    """Input source holding whatever vector the test last set."""

    def __init__(self) -> None:
        self.vector: Tuple[float, float] = (0.0, 0.0)
        self.pending_toggles = 0

    def direction_vector(self) -> Tuple[float, float]:
        return self.vector

    def consume_mode_toggle(self) -> bool:
        if self.pending_toggles > 0:
            self.pending_toggles -= 1
            return True
        return False


class RecordingMovement:
    def __init__(self, result: MoveResult = MoveResult.SUCCEEDED) -> None:
        self.result = result
        self.attempts: List[Tuple[Direction, float]] = []
        self.reset_calls = 0

    def attempt_move(self, direction: Direction, timing_bonus: float = 1.0) -> MoveResult:
        self.attempts.append((direction, timing_bonus))
        return self.result

    def reset(self) -> None:
        self.reset_calls += 1


class RecordingFeedback:
    def __init__(self) -> None:
        self.messages: List[FeedbackMessage] = []

    def show(self, message: FeedbackMessage) -> None:
        self.messages.append(message)

    def texts(self) -> List[str]:
        return [message.text for message in self.messages]


@pytest.fixture
def manual_clock():
    return ManualClock()


@pytest.fixture
def scripted_input():
    return ScriptedInput()


@pytest.fixture
def recording_movement():
    return RecordingMovement()


@pytest.fixture
def recording_feedback():
    return RecordingFeedback()


@pytest.fixture
def default_policy():
    """Perfect within 0.05 beats, good within 0.15 beats."""
    return TimingWindowPolicy([TierWindow(0.05, Tier.PERFECT), TierWindow(0.15, Tier.GOOD)])


@pytest.fixture
def good_only_policy():
    return TimingWindowPolicy([TierWindow(0.15, Tier.GOOD)])


@pytest.fixture
def evaluator_120(default_policy):
    """Evaluator at 120 bpm (0.5 s per beat)."""
    return TimingEvaluator(default_policy, lambda: 0.5)


@pytest.fixture
def good_only_tracker(good_only_policy):
    return ActionWindowTracker(TimingEvaluator(good_only_policy, lambda: 0.5))


@pytest.fixture
def rhythm_config():
    return RhythmConfig(bpm=120.0, min_input_interval_seconds=0.12)


@pytest.fixture
def good_only_config():
    return RhythmConfig(
        bpm=120.0,
        tier_windows=[TierWindowConfig(half_width_beats=0.15, tier=Tier.GOOD)],
        min_input_interval_seconds=0.0,
    )
