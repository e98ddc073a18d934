# -*- coding: utf-8 -*-
########################
# gameplay_models.py
########################
# Purpose:
# - Core gameplay data models for the rhythm timing pipeline.
# - Defines tiers, directions, input intents, timing results, verdicts and feedback messages.
#
# Design notes:
# - Keep these models stable. Prefer extending with new optional fields rather than breaking changes.
# - No Qt usage. These are plain enums and dataclasses.
#
########################
# Interfaces:
# Public enums:
# - Tier: MISS | GOOD | PERFECT (ordered by rank)
# - Direction: NONE | UP | DOWN | LEFT | RIGHT
# - VerdictKind: HIT | MISS_BY_TIMING | MISS_NO_INPUT
# - ActionStatus: HIT | MISS | ALREADY_ACTED | NOT_PLAYING | FREE_MOVE
# - MoveResult: SUCCEEDED | BLOCKED
# - Severity: INFO | SUCCESS | WARNING | ERROR
#
# Public dataclasses:
# - TimingResult(accuracy: float, tier: Tier)
# - InputIntent(direction: Direction, time_seconds: float)
# - VerdictEvent(time_seconds, kind, tier, accuracy, cycle_end_time, is_scored)
# - ActionResult(status, timing, verdict)
# - FeedbackMessage(text: str, severity: Severity, display_seconds: float)
#
# Public functions:
# - timing_bonus(tier: Tier) -> float
#
# Inputs/Outputs:
# - These types are exchanged between BeatClock, TimingEvaluator, ActionWindowTracker,
#   InputArbiter, StatsAggregator and the session coordinator.
#
########################

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Tuple


class Tier(str, enum.Enum):
    MISS = "miss"
    GOOD = "good"
    PERFECT = "perfect"

    @property
    def rank(self) -> int:
        return _TIER_RANKS[self]

    @property
    def is_hit(self) -> bool:
        return self is not Tier.MISS


_TIER_RANKS = {Tier.MISS: 0, Tier.GOOD: 1, Tier.PERFECT: 2}


class Direction(enum.Enum):
    NONE = (0, 0)
    UP = (0, 1)
    DOWN = (0, -1)
    LEFT = (-1, 0)
    RIGHT = (1, 0)

    @property
    def vector(self) -> Tuple[int, int]:
        return self.value


class VerdictKind(enum.Enum):
    HIT = "hit"
    MISS_BY_TIMING = "miss_by_timing"
    MISS_NO_INPUT = "miss_no_input"


class ActionStatus(enum.Enum):
    HIT = "hit"
    MISS = "miss"
    ALREADY_ACTED = "already_acted"
    NOT_PLAYING = "not_playing"
    FREE_MOVE = "free_move"


class MoveResult(enum.Enum):
    SUCCEEDED = "succeeded"
    BLOCKED = "blocked"


class Severity(enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class TimingResult:
    accuracy: float
    tier: Tier


@dataclass(frozen=True)
class InputIntent:
    direction: Direction
    time_seconds: float


@dataclass(frozen=True)
class VerdictEvent:
    time_seconds: float
    kind: VerdictKind
    tier: Tier
    accuracy: Optional[float]
    cycle_end_time: float
    # False when the first cycle suppresses a miss.
    is_scored: bool = True


@dataclass(frozen=True)
class ActionResult:
    status: ActionStatus
    timing: Optional[TimingResult] = None
    verdict: Optional[VerdictEvent] = None

    @property
    def finalized_cycle(self) -> bool:
        return self.verdict is not None


@dataclass(frozen=True)
class FeedbackMessage:
    text: str
    severity: Severity
    display_seconds: float


def timing_bonus(tier: Tier) -> float:
    """Movement speed multiplier for an accepted action."""
    if tier is Tier.PERFECT:
        return 1.5
    if tier is Tier.GOOD:
        return 1.2
    return 1.0
