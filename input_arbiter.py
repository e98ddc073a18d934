# -*- coding: utf-8 -*-
########################
# input_arbiter.py
########################
# Purpose:
# - Turns a continuous 2D direction signal into discrete, edge-triggered input intents.
# - Enforces the minimum interval between forwarded intents.
#
# Design notes:
# - No Qt usage. Device capture lives in keyboard_input.py; this module only sees vectors.
# - Edge rules:
#   - An intent fires when the discrete direction changes from NONE to a direction,
#     or from one direction to a different one. Holding a direction never repeats.
# - Cooldown is consumed by every forwarded intent, whatever the action outcome.
# - A cooldown rejection never reaches the action handler, so cycle state is untouched.
#
########################
# Interfaces:
# Public enums:
# - IntentStatus: NO_INTENT | FORWARDED | COOLDOWN
#
# Public dataclasses:
# - ArbiterDecision(status: IntentStatus, intent: Optional[InputIntent], action: Optional[ActionResult])
#
# Public functions:
# - discretize_direction(vector: tuple[float, float], deadzone: float) -> Direction
#
# Public classes:
# - class InputArbiter
#   - __init__(action_handler: Callable[[InputIntent], ActionResult], min_input_interval: float, deadzone: float)
#   - on_raw_direction(vector: tuple[float, float], now: float) -> ArbiterDecision
#   - set_min_input_interval(seconds: float) -> None
#   - set_deadzone(deadzone: float) -> None
#   - next_allowed_input_time() -> float
#   - last_direction() -> Direction
#   - reset() -> None
#
# Inputs:
# - Latest direction vector from the input source, once per tick.
# - now: the cached song position of the tick.
#
# Outputs:
# - InputIntent forwarded to the action handler (ActionWindowTracker via RhythmSession).
#
########################

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from config import ConfigurationError
from gameplay_models import ActionResult, Direction, InputIntent

logger = logging.getLogger(__name__)


class IntentStatus(enum.Enum):
    NO_INTENT = "no_intent"
    FORWARDED = "forwarded"
    COOLDOWN = "cooldown"


@dataclass(frozen=True)
class ArbiterDecision:
    status: IntentStatus
    intent: Optional[InputIntent] = None
    action: Optional[ActionResult] = None


_NO_INTENT = ArbiterDecision(status=IntentStatus.NO_INTENT)


def discretize_direction(vector: Sequence[float], deadzone: float) -> Direction:
    """
    Resolve a continuous vector to one of the four directions.

    The axis with the larger magnitude wins. Equal magnitudes and magnitudes
    below the deadzone resolve to Direction.NONE. Positive y is up.
    """
    x_value = float(vector[0])
    y_value = float(vector[1])
    abs_x = abs(x_value)
    abs_y = abs(y_value)

    if abs_x == abs_y:
        return Direction.NONE
    if abs_x > abs_y:
        if abs_x < deadzone:
            return Direction.NONE
        return Direction.RIGHT if x_value > 0.0 else Direction.LEFT
    if abs_y < deadzone:
        return Direction.NONE
    return Direction.UP if y_value > 0.0 else Direction.DOWN


class InputArbiter:
    def __init__(
        self,
        action_handler: Callable[[InputIntent], ActionResult],
        *,
        min_input_interval: float,
        deadzone: float = 0.5,
    ) -> None:
        self._action_handler = action_handler
        self._min_input_interval = 0.0
        self._deadzone = 0.5
        self.set_min_input_interval(min_input_interval)
        self.set_deadzone(deadzone)

        self._last_direction = Direction.NONE
        self._next_allowed_input_time = float("-inf")

        # Simple stats for overlays and debugging.
        self._forwarded_intents = 0
        self._cooldown_rejections = 0

    def set_min_input_interval(self, seconds: float) -> None:
        value = float(seconds)
        if value < 0.0:
            raise ConfigurationError(f"min input interval must be >= 0, got {seconds!r}")
        self._min_input_interval = value

    def set_deadzone(self, deadzone: float) -> None:
        value = float(deadzone)
        if not 0.0 <= value < 1.0:
            raise ConfigurationError(f"deadzone must be in [0, 1), got {deadzone!r}")
        self._deadzone = value

    def min_input_interval(self) -> float:
        return float(self._min_input_interval)

    def next_allowed_input_time(self) -> float:
        return float(self._next_allowed_input_time)

    def last_direction(self) -> Direction:
        return self._last_direction

    @property
    def forwarded_intents(self) -> int:
        return self._forwarded_intents

    @property
    def cooldown_rejections(self) -> int:
        return self._cooldown_rejections

    def reset(self) -> None:
        self._last_direction = Direction.NONE
        self._next_allowed_input_time = float("-inf")
        self._forwarded_intents = 0
        self._cooldown_rejections = 0

    def on_raw_direction(self, vector: Sequence[float], now: float) -> ArbiterDecision:
        direction = discretize_direction(vector, self._deadzone)
        previous_direction = self._last_direction
        self._last_direction = direction

        if direction is Direction.NONE or direction is previous_direction:
            return _NO_INTENT

        intent = InputIntent(direction=direction, time_seconds=float(now))
        if intent.time_seconds < self._next_allowed_input_time:
            self._cooldown_rejections += 1
            logger.debug(
                "Intent %s at %.4f rejected by cooldown (next allowed %.4f)",
                direction.name,
                intent.time_seconds,
                self._next_allowed_input_time,
            )
            return ArbiterDecision(status=IntentStatus.COOLDOWN, intent=intent)

        self._next_allowed_input_time = intent.time_seconds + self._min_input_interval
        self._forwarded_intents += 1
        action = self._action_handler(intent)
        return ArbiterDecision(status=IntentStatus.FORWARDED, intent=intent, action=action)


def _run_unit_tests() -> None:
    assert discretize_direction((0.0, 1.0), 0.5) is Direction.UP
    assert discretize_direction((-0.9, 0.2), 0.5) is Direction.LEFT
    assert discretize_direction((0.7, 0.7), 0.5) is Direction.NONE
    assert discretize_direction((0.3, 0.0), 0.5) is Direction.NONE

    from gameplay_models import ActionStatus

    received = []

    def handler(intent: InputIntent) -> ActionResult:
        received.append(intent)
        return ActionResult(status=ActionStatus.HIT)

    arbiter = InputArbiter(handler, min_input_interval=0.2)
    assert arbiter.on_raw_direction((1.0, 0.0), 1.0).status is IntentStatus.FORWARDED
    assert arbiter.on_raw_direction((1.0, 0.0), 1.05).status is IntentStatus.NO_INTENT
    assert arbiter.on_raw_direction((0.0, -1.0), 1.1).status is IntentStatus.COOLDOWN
    assert len(received) == 1


if __name__ == "__main__":
    _run_unit_tests()
    print("input_arbiter.py: ok")
