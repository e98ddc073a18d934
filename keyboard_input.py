# -*- coding: utf-8 -*-
########################
# keyboard_input.py
########################
# Purpose:
# - Single keyboard listener for the rhythm session.
# - Keeps held movement keys and exposes them as the direction vector the InputArbiter polls.
# - Emits Qt signals for the session hotkeys (restart, pause).
#
# Design notes:
# - This must be the only movement input source. No duplicate key mapping elsewhere.
# - This object never judges timing and never forwards intents itself: the session polls
#   direction_vector() once per tick and the arbiter does edge detection and cooldown.
# - Opposite keys cancel per axis. Two axes held at once tie and discretize to no direction.
# - Auto repeat is ignored.
#
########################
# Interfaces:
# Public classes:
# - class KeyboardInputSource(PyQt6.QtCore.QObject)
#   - Signals:
#     - restartRequested()
#     - pauseToggleRequested()
#   - Methods:
#     - handle_key_press(event: QKeyEvent) -> bool
#     - handle_key_release(event: QKeyEvent) -> bool
#     - direction_vector() -> tuple[float, float]
#     - consume_mode_toggle() -> bool
#     - clear_pressed_keys() -> None
#
# Inputs:
# - Raw QKeyEvent from the Qt event loop.
#
# Outputs:
# - Direction vector and mode toggle flag polled by RhythmSession.tick().
#
########################

from __future__ import annotations

from typing import Dict, Optional, Set, Tuple

from PyQt6.QtCore import QObject, Qt, pyqtSignal
from PyQt6.QtGui import QKeyEvent

from gameplay_models import Direction


def _build_default_key_to_direction_map() -> Dict[int, Direction]:
    """
    Accepted keys:
      - Arrow keys: Left, Down, Up, Right
      - WASD keys: A, S, W, D
    """
    key_to_direction: Dict[int, Direction] = {}

    def bind(key_constant: int, direction: Direction) -> None:
        key_to_direction[int(key_constant)] = direction

    # Arrow keys
    bind(Qt.Key.Key_Left, Direction.LEFT)
    bind(Qt.Key.Key_Down, Direction.DOWN)
    bind(Qt.Key.Key_Up, Direction.UP)
    bind(Qt.Key.Key_Right, Direction.RIGHT)

    # WASD
    bind(Qt.Key.Key_A, Direction.LEFT)
    bind(Qt.Key.Key_S, Direction.DOWN)
    bind(Qt.Key.Key_W, Direction.UP)
    bind(Qt.Key.Key_D, Direction.RIGHT)

    return key_to_direction


_MODE_TOGGLE_KEY = int(Qt.Key.Key_Space)
_RESTART_KEY = int(Qt.Key.Key_R)
_PAUSE_KEY = int(Qt.Key.Key_P)


class KeyboardInputSource(QObject):
    restartRequested = pyqtSignal()
    pauseToggleRequested = pyqtSignal()

    def __init__(
        self,
        parent: Optional[QObject] = None,
        key_to_direction_map: Optional[Dict[int, Direction]] = None,
    ) -> None:
        super().__init__(parent)

        self._key_to_direction: Dict[int, Direction] = (
            dict(key_to_direction_map)
            if key_to_direction_map is not None
            else _build_default_key_to_direction_map()
        )
        self._pressed_keys: Set[int] = set()
        self._mode_toggle_pending = False

    # ------------------------------------------------------------------
    # Qt event entry points
    # ------------------------------------------------------------------

    def handle_key_press(self, event: QKeyEvent) -> bool:
        """Returns True if this source consumed the event."""
        key_code = int(event.key())
        if event.isAutoRepeat():
            return self._is_known_key(key_code)

        if key_code == _MODE_TOGGLE_KEY:
            self._mode_toggle_pending = True
            return True
        if key_code == _RESTART_KEY:
            self.restartRequested.emit()
            return True
        if key_code == _PAUSE_KEY:
            self.pauseToggleRequested.emit()
            return True

        if key_code not in self._key_to_direction:
            return False
        self._pressed_keys.add(key_code)
        return True

    def handle_key_release(self, event: QKeyEvent) -> bool:
        key_code = int(event.key())
        if event.isAutoRepeat():
            return self._is_known_key(key_code)

        self._pressed_keys.discard(key_code)
        return self._is_known_key(key_code)

    def clear_pressed_keys(self) -> None:
        """Called by the harness on focus loss or window deactivation."""
        self._pressed_keys.clear()

    # ------------------------------------------------------------------
    # InputSource protocol
    # ------------------------------------------------------------------

    def direction_vector(self) -> Tuple[float, float]:
        x_value = 0.0
        y_value = 0.0
        for direction in {self._key_to_direction[key] for key in self._pressed_keys}:
            step_x, step_y = direction.vector
            x_value += step_x
            y_value += step_y
        return (float(x_value), float(y_value))

    def consume_mode_toggle(self) -> bool:
        pending = self._mode_toggle_pending
        self._mode_toggle_pending = False
        return pending

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _is_known_key(self, key_code: int) -> bool:
        return key_code in self._key_to_direction or key_code in (_MODE_TOGGLE_KEY, _RESTART_KEY, _PAUSE_KEY)

    @property
    def key_to_direction_map(self) -> Dict[int, Direction]:
        return dict(self._key_to_direction)


def _run_unit_tests() -> None:
    source = KeyboardInputSource()
    assert source.key_to_direction_map[int(Qt.Key.Key_A)] is Direction.LEFT
    assert source.key_to_direction_map[int(Qt.Key.Key_Up)] is Direction.UP
    assert source.direction_vector() == (0.0, 0.0)
    assert source.consume_mode_toggle() is False


if __name__ == "__main__":
    _run_unit_tests()
    print("keyboard_input.py: ok")
