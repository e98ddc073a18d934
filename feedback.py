# -*- coding: utf-8 -*-
########################
# feedback.py
########################
# Purpose:
# - Builds player-facing feedback messages for verdicts, rejections and move results.
# - Provides FeedbackBoard, a sink that keeps the latest message and counts its display time down.
#
# Design notes:
# - No Qt usage. Rendering reads FeedbackBoard.current() each frame.
# - Feedback is presentational only; nothing in the timing core reads it back.
#
########################
# Interfaces:
# Public protocols:
# - FeedbackSink: show(message: FeedbackMessage) -> None
#
# Public functions:
# - message_for_tier(tier: Tier, display_seconds: float) -> FeedbackMessage
# - message_for_timing_miss(display_seconds: float) -> FeedbackMessage
# - message_for_no_input_miss(display_seconds: float) -> FeedbackMessage
# - message_for_blocked(display_seconds: float) -> FeedbackMessage
# - message_for_cooldown(display_seconds: float) -> FeedbackMessage
# - message_for_already_acted(display_seconds: float) -> FeedbackMessage
# - message_for_mode(require_beat_timing: bool, display_seconds: float) -> FeedbackMessage
#
# Public classes:
# - class FeedbackBoard
#   - show(message: FeedbackMessage) -> None
#   - tick(delta_seconds: float) -> None
#   - current() -> Optional[FeedbackMessage]
#   - remaining_seconds() -> float
#   - history() -> list[FeedbackMessage]
#   - clear() -> None
#
########################

from __future__ import annotations

from typing import List, Optional, Protocol, runtime_checkable

from gameplay_models import FeedbackMessage, Severity, Tier

_HISTORY_LIMIT = 32


@runtime_checkable
class FeedbackSink(Protocol):
    def show(self, message: FeedbackMessage) -> None:
        ...


def message_for_tier(tier: Tier, display_seconds: float) -> FeedbackMessage:
    if tier is Tier.PERFECT:
        return FeedbackMessage("PERFECT!", Severity.SUCCESS, float(display_seconds))
    if tier is Tier.GOOD:
        return FeedbackMessage("Good", Severity.SUCCESS, float(display_seconds))
    return FeedbackMessage("Miss", Severity.ERROR, float(display_seconds))


def message_for_timing_miss(display_seconds: float) -> FeedbackMessage:
    return FeedbackMessage("Timing wrong", Severity.ERROR, float(display_seconds))


def message_for_no_input_miss(display_seconds: float) -> FeedbackMessage:
    return FeedbackMessage("Missed beat", Severity.ERROR, float(display_seconds))


def message_for_blocked(display_seconds: float) -> FeedbackMessage:
    return FeedbackMessage("Blocked", Severity.WARNING, float(display_seconds))


def message_for_cooldown(display_seconds: float) -> FeedbackMessage:
    return FeedbackMessage("Too fast", Severity.INFO, float(display_seconds))


def message_for_already_acted(display_seconds: float) -> FeedbackMessage:
    return FeedbackMessage("Already moved", Severity.INFO, float(display_seconds))


def message_for_mode(require_beat_timing: bool, display_seconds: float) -> FeedbackMessage:
    text = "Beat timing: on" if require_beat_timing else "Beat timing: off"
    return FeedbackMessage(text, Severity.INFO, float(display_seconds))


class FeedbackBoard:
    def __init__(self) -> None:
        self._current: Optional[FeedbackMessage] = None
        self._remaining_seconds = 0.0
        self._history: List[FeedbackMessage] = []

    def show(self, message: FeedbackMessage) -> None:
        self._current = message
        self._remaining_seconds = max(0.0, float(message.display_seconds))
        self._history.append(message)
        if len(self._history) > _HISTORY_LIMIT:
            del self._history[0]

    def tick(self, delta_seconds: float) -> None:
        if self._current is None:
            return
        self._remaining_seconds -= max(0.0, float(delta_seconds))
        if self._remaining_seconds <= 0.0:
            self._current = None
            self._remaining_seconds = 0.0

    def current(self) -> Optional[FeedbackMessage]:
        return self._current

    def remaining_seconds(self) -> float:
        return float(self._remaining_seconds)

    def history(self) -> List[FeedbackMessage]:
        return list(self._history)

    def clear(self) -> None:
        self._current = None
        self._remaining_seconds = 0.0
        self._history.clear()
