# -*- coding: utf-8 -*-
########################
# movement.py
########################
# Purpose:
# - Reference Movement Executor: a grid walker that moves one cell per accepted action.
# - Interpolates between cells with an explicit per-tick progress value.
#
# Design notes:
# - No Qt usage. The harness calls update(delta_seconds) every frame.
# - A move is refused (BLOCKED) while another move is in flight or when the target cell is invalid.
# - The timing bonus divides the move duration, so better timing moves faster.
#
########################
# Interfaces:
# Public protocols:
# - MovementExecutor: attempt_move(direction: Direction, timing_bonus: float = 1.0) -> MoveResult
#
# Public classes:
# - class GridMovement
#   - __init__(*, cell_size: float = 1.0, move_duration_seconds: float = 0.3,
#              half_extent: Optional[int] = None, blocked_cells: Iterable[tuple[int, int]] = ())
#   - attempt_move(direction: Direction, timing_bonus: float = 1.0) -> MoveResult
#   - update(delta_seconds: float) -> None
#   - grid_position() -> tuple[int, int]
#   - world_position() -> tuple[float, float]
#   - is_moving() -> bool
#   - progress() -> float
#   - set_grid_position(position: tuple[int, int]) -> None
#   - stop_movement() -> None
#   - reset() -> None
#   - subscribe_move_start / subscribe_move_complete
#
########################

from __future__ import annotations

from typing import Callable, Iterable, Optional, Protocol, Set, Tuple, runtime_checkable

from callbacks import CallbackList
from gameplay_models import Direction, MoveResult

GridPosition = Tuple[int, int]


@runtime_checkable
class MovementExecutor(Protocol):
    def attempt_move(self, direction: Direction, timing_bonus: float = 1.0) -> MoveResult:
        ...


def ease_in_out(progress: float) -> float:
    clamped = min(1.0, max(0.0, float(progress)))
    return clamped * clamped * (3.0 - 2.0 * clamped)


class GridMovement:
    def __init__(
        self,
        *,
        cell_size: float = 1.0,
        move_duration_seconds: float = 0.3,
        half_extent: Optional[int] = None,
        blocked_cells: Iterable[GridPosition] = (),
    ) -> None:
        self._cell_size = float(cell_size)
        self._move_duration_seconds = float(move_duration_seconds)
        self._half_extent = half_extent
        self._blocked_cells: Set[GridPosition] = {(int(x), int(y)) for x, y in blocked_cells}

        self._grid_position: GridPosition = (0, 0)
        self._target_position: GridPosition = (0, 0)
        self._active_duration = 0.0
        self._elapsed = 0.0
        self._is_moving = False

        self._move_start = CallbackList("on_move_start")
        self._move_complete = CallbackList("on_move_complete")

    def subscribe_move_start(self, callback: Callable[[GridPosition], None]) -> Callable[[], None]:
        return self._move_start.subscribe(callback)

    def subscribe_move_complete(self, callback: Callable[[GridPosition], None]) -> Callable[[], None]:
        return self._move_complete.subscribe(callback)

    def grid_position(self) -> GridPosition:
        return self._grid_position

    def target_position(self) -> GridPosition:
        return self._target_position

    def is_moving(self) -> bool:
        return bool(self._is_moving)

    def progress(self) -> float:
        if not self._is_moving or self._active_duration <= 0.0:
            return 0.0
        return min(1.0, self._elapsed / self._active_duration)

    def world_position(self) -> Tuple[float, float]:
        start_x, start_y = self._grid_position
        if not self._is_moving:
            return (start_x * self._cell_size, start_y * self._cell_size)
        end_x, end_y = self._target_position
        weight = ease_in_out(self.progress())
        return (
            (start_x + (end_x - start_x) * weight) * self._cell_size,
            (start_y + (end_y - start_y) * weight) * self._cell_size,
        )

    def is_valid_position(self, position: GridPosition) -> bool:
        if position in self._blocked_cells:
            return False
        if self._half_extent is not None:
            limit = int(self._half_extent)
            if abs(position[0]) > limit or abs(position[1]) > limit:
                return False
        return True

    def attempt_move(self, direction: Direction, timing_bonus: float = 1.0) -> MoveResult:
        if self._is_moving or direction is Direction.NONE:
            return MoveResult.BLOCKED

        step_x, step_y = direction.vector
        target = (self._grid_position[0] + step_x, self._grid_position[1] + step_y)
        if not self.is_valid_position(target):
            return MoveResult.BLOCKED

        bonus = max(1e-6, float(timing_bonus))
        self._target_position = target
        self._active_duration = self._move_duration_seconds / bonus
        self._elapsed = 0.0
        self._is_moving = True
        self._move_start.emit(target)
        return MoveResult.SUCCEEDED

    def update(self, delta_seconds: float) -> None:
        if not self._is_moving:
            return
        self._elapsed += max(0.0, float(delta_seconds))
        if self._elapsed >= self._active_duration:
            self._grid_position = self._target_position
            self._is_moving = False
            self._elapsed = 0.0
            self._move_complete.emit(self._grid_position)

    def set_grid_position(self, position: GridPosition) -> None:
        if self._is_moving:
            return
        self._grid_position = (int(position[0]), int(position[1]))
        self._target_position = self._grid_position

    def stop_movement(self) -> None:
        if not self._is_moving:
            return
        # Snap to whichever cell the interpolation is closer to.
        if self.progress() >= 0.5:
            self._grid_position = self._target_position
        self._target_position = self._grid_position
        self._is_moving = False
        self._elapsed = 0.0

    def reset(self) -> None:
        self.stop_movement()
        self.set_grid_position((0, 0))


def _run_unit_tests() -> None:
    mover = GridMovement(move_duration_seconds=0.3, half_extent=1)
    assert mover.attempt_move(Direction.UP, 1.5) is MoveResult.SUCCEEDED
    assert mover.attempt_move(Direction.UP) is MoveResult.BLOCKED
    mover.update(0.1)
    assert mover.is_moving()
    mover.update(0.15)
    assert mover.grid_position() == (0, 1)
    assert mover.attempt_move(Direction.UP) is MoveResult.BLOCKED


if __name__ == "__main__":
    _run_unit_tests()
    print("movement.py: ok")
