# -*- coding: utf-8 -*-
########################
# harness.py
########################
# Purpose:
# - Gameplay harness window for local testing and iteration.
# - Integrates RhythmSession + KeyboardInputSource + GridMovement + FeedbackBoard + GridView.
# - Optionally starts the Flask control API in a background thread.
#
# Design notes:
# - One QTimer drives the whole loop. Each timeout advances movement and feedback by the
#   elapsed frame time, then ticks the session once.
# - Keyboard events reach KeyboardInputSource through the controller's event filter.
# - Hotkeys: Space toggles beat timing, R restarts, P toggles pause.
#
########################
# Interfaces:
# Public classes:
# - class PerfCounterClock: now() -> float
# - class HarnessController(PyQt6.QtCore.QObject)
#   - Signals: tickCompleted(TickReport)
#   - start() -> None
#   - session / movement / feedback_board / input_source properties
# - class GridView(PyQt6.QtWidgets.QWidget)
# - class HarnessWindow(PyQt6.QtWidgets.QMainWindow)
#
# Public functions:
# - build_argument_parser() -> argparse.ArgumentParser
# - main() -> int
#
########################

from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import List, Optional, Tuple

from PyQt6.QtCore import QEvent, QObject, QPointF, QRectF, Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QBrush, QColor, QFont, QKeyEvent, QPainter, QPen
from PyQt6.QtWidgets import QApplication, QLabel, QMainWindow, QVBoxLayout, QWidget

from action_window import WindowState
from config import AppConfig, ConfigurationError, load_config, validate_config_dict
from feedback import FeedbackBoard
from gameplay_models import Severity
from keyboard_input import KeyboardInputSource
from movement import GridMovement
from rhythm_session import ClockSource, RhythmSession, TickReport
from web_server import create_flask_app, start_web_server_in_background

logger = logging.getLogger(__name__)

_TICK_INTERVAL_MS = 16

_SEVERITY_COLORS = {
    Severity.INFO: QColor(200, 200, 220),
    Severity.SUCCESS: QColor(90, 220, 120),
    Severity.WARNING: QColor(240, 190, 70),
    Severity.ERROR: QColor(240, 80, 80),
}


class PerfCounterClock:
    def now(self) -> float:
        return time.perf_counter()


class HarnessController(QObject):
    tickCompleted = pyqtSignal(object)

    def __init__(
        self,
        *,
        app_config: AppConfig,
        clock_source: Optional[ClockSource] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)

        self._clock_source: ClockSource = clock_source if clock_source is not None else PerfCounterClock()
        self._input = KeyboardInputSource(parent=self)
        self._movement = GridMovement(
            cell_size=app_config.grid.cell_size,
            move_duration_seconds=app_config.grid.move_duration_seconds,
            half_extent=app_config.grid.half_extent,
        )
        self._feedback_board = FeedbackBoard()
        self._session = RhythmSession(
            rhythm_config=app_config.rhythm,
            clock_source=self._clock_source,
            input_source=self._input,
            movement_executor=self._movement,
            feedback_sink=self._feedback_board,
            feedback_display_seconds=app_config.feedback.display_seconds,
        )

        self._input.restartRequested.connect(self._session.restart)
        self._input.pauseToggleRequested.connect(self._session.toggle_pause)

        self._last_frame_time: Optional[float] = None
        self._timer = QTimer(self)
        self._timer.setInterval(_TICK_INTERVAL_MS)
        self._timer.timeout.connect(self._on_timer)

    @property
    def session(self) -> RhythmSession:
        return self._session

    @property
    def movement(self) -> GridMovement:
        return self._movement

    @property
    def feedback_board(self) -> FeedbackBoard:
        return self._feedback_board

    @property
    def input_source(self) -> KeyboardInputSource:
        return self._input

    def start(self) -> None:
        self._session.start()
        self._last_frame_time = self._clock_source.now()
        if not self._timer.isActive():
            self._timer.start()

    def stop(self) -> None:
        self._timer.stop()
        self._session.stop()

    # -----------------
    # Event filter and timer loop
    # -----------------

    def eventFilter(self, watched: QObject, event: QEvent) -> bool:  # noqa: N802
        if event.type() == QEvent.Type.KeyPress and isinstance(event, QKeyEvent):
            if self._input.handle_key_press(event):
                return True
        if event.type() == QEvent.Type.KeyRelease and isinstance(event, QKeyEvent):
            if self._input.handle_key_release(event):
                return True
        if event.type() in (QEvent.Type.WindowDeactivate, QEvent.Type.FocusOut):
            self._input.clear_pressed_keys()
        return super().eventFilter(watched, event)

    def _on_timer(self) -> None:
        now = self._clock_source.now()
        delta_seconds = 0.0 if self._last_frame_time is None else max(0.0, now - self._last_frame_time)
        self._last_frame_time = now

        self._movement.update(delta_seconds)
        self._feedback_board.tick(delta_seconds)
        report = self._session.tick()
        self.tickCompleted.emit(report)


class GridView(QWidget):
    """Paints the grid, the walker and a beat pulse ring."""

    def __init__(self, controller: HarnessController, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._controller = controller
        self._cell_pixels = 48.0
        self.setMinimumSize(480, 360)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)

    def paintEvent(self, event) -> None:  # type: ignore[override]
        session = self._controller.session
        movement = self._controller.movement

        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        painter.fillRect(self.rect(), QBrush(QColor(10, 10, 12)))

        center = QPointF(self.width() * 0.5, self.height() * 0.5)
        self._paint_grid_lines(painter, center)

        grid_x, grid_y = movement.world_position()
        walker_center = QPointF(
            center.x() + grid_x * self._cell_pixels,
            center.y() - grid_y * self._cell_pixels,
        )

        # Pulse shrinks toward the beat, so the ring is smallest on the beat itself.
        progress = session.clock.beat_progress()
        pulse = min(progress, 1.0 - progress) * 2.0
        in_window = session.tracker.state() is WindowState.INSIDE

        painter.save()
        painter.setPen(QPen(QColor(90, 220, 120) if in_window else QColor(110, 110, 130), 2.0))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        ring_radius = self._cell_pixels * (0.4 + 0.5 * pulse)
        painter.drawEllipse(walker_center, ring_radius, ring_radius)
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QBrush(QColor(240, 240, 240)))
        body_radius = self._cell_pixels * 0.3
        painter.drawEllipse(walker_center, body_radius, body_radius)
        painter.restore()

        self._paint_feedback(painter)
        painter.end()

    def _paint_grid_lines(self, painter: QPainter, center: QPointF) -> None:
        painter.save()
        painter.setPen(QPen(QColor(40, 40, 48), 1.0))
        half_columns = int(self.width() / self._cell_pixels / 2.0) + 1
        half_rows = int(self.height() / self._cell_pixels / 2.0) + 1
        for column in range(-half_columns, half_columns + 1):
            x_value = center.x() + (column + 0.5) * self._cell_pixels
            painter.drawLine(QPointF(x_value, 0.0), QPointF(x_value, float(self.height())))
        for row in range(-half_rows, half_rows + 1):
            y_value = center.y() + (row + 0.5) * self._cell_pixels
            painter.drawLine(QPointF(0.0, y_value), QPointF(float(self.width()), y_value))
        painter.restore()

    def _paint_feedback(self, painter: QPainter) -> None:
        message = self._controller.feedback_board.current()
        if message is None:
            return
        painter.save()
        font = QFont()
        font.setPointSize(20)
        font.setBold(True)
        painter.setFont(font)
        painter.setPen(QPen(_SEVERITY_COLORS.get(message.severity, QColor(230, 230, 230))))
        text_rect = QRectF(0.0, 12.0, float(self.width()), 40.0)
        painter.drawText(text_rect, int(Qt.AlignmentFlag.AlignHCenter | Qt.AlignmentFlag.AlignTop), message.text)
        painter.restore()


class HarnessWindow(QMainWindow):
    def __init__(self, *, controller: HarnessController) -> None:
        super().__init__()
        self.setWindowTitle("BeatGrid Harness")

        self._controller = controller

        root_widget = QWidget(self)
        root_layout = QVBoxLayout(root_widget)

        self._grid_view = GridView(controller, root_widget)
        self._status_label = QLabel("", root_widget)
        self._stats_label = QLabel("", root_widget)
        self._help_label = QLabel("Move: WASD / arrows   Space: beat timing on/off   R: restart   P: pause", root_widget)

        root_layout.addWidget(self._grid_view, stretch=1)
        root_layout.addWidget(self._status_label)
        root_layout.addWidget(self._stats_label)
        root_layout.addWidget(self._help_label)
        self.setCentralWidget(root_widget)

        controller.tickCompleted.connect(self._on_tick)

        # Install the shared event filter.
        self.installEventFilter(controller)
        self._grid_view.installEventFilter(controller)

    @property
    def controller(self) -> HarnessController:
        return self._controller

    def _on_tick(self, report: TickReport) -> None:
        status = self._controller.session.status()
        grid_x, grid_y = self._controller.movement.grid_position()
        mode_text = "on" if status.require_beat_timing else "off"
        self._status_label.setText(
            f"{status.state}  bpm={status.bpm:.1f}  song={report.song_position:.3f}  "
            f"beat={report.beat_index}  window={status.window_state}  timing={mode_text}  "
            f"pos=({grid_x}, {grid_y})"
        )
        stats = status.stats
        self._stats_label.setText(
            f"perfect={stats.perfect_count}  good={stats.good_count}  miss={stats.miss_count}  "
            f"accuracy={stats.accuracy_percent:.1f}%  combo={stats.combo} (max {stats.max_combo})"
        )
        self._grid_view.update()


class _ManualClock:
    def __init__(self) -> None:
        self.value = 0.0

    def now(self) -> float:
        return self.value


class _ScriptedInput:
    def __init__(self) -> None:
        self.vector: Tuple[float, float] = (0.0, 0.0)

    def direction_vector(self) -> Tuple[float, float]:
        return self.vector

    def consume_mode_toggle(self) -> bool:
        return False


def _run_chunk_tests() -> None:
    from config import RhythmConfig
    from gameplay_models import ActionStatus, Tier

    clock = _ManualClock()
    scripted = _ScriptedInput()
    movement = GridMovement()
    board = FeedbackBoard()
    session = RhythmSession(
        rhythm_config=RhythmConfig(bpm=120.0, min_input_interval_seconds=0.0),
        clock_source=clock,
        input_source=scripted,
        movement_executor=movement,
        feedback_sink=board,
    )
    session.start()

    outcomes: List[ActionStatus] = []
    for position, vector in ((0.49, (0.0, 0.0)), (0.50, (0.0, 1.0)), (0.60, (0.0, 0.0)), (1.20, (1.0, 0.0))):
        clock.value = position
        report = session.tick()
        if report.decision is not None and report.decision.action is not None:
            outcomes.append(report.decision.action.status)
        scripted.vector = vector
        clock.value = position + 0.001
        report = session.tick()
        if report.decision is not None and report.decision.action is not None:
            outcomes.append(report.decision.action.status)

    assert ActionStatus.HIT in outcomes
    assert session.stats.count_for(Tier.PERFECT) == 1
    assert session.stats.misses() == 1
    assert board.history()


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="BeatGrid gameplay harness")
    parser.add_argument("--run-tests", action="store_true", help="Run pure logic tests (no window).")
    parser.add_argument("--bpm", type=float, default=None, help="Override the configured bpm.")
    parser.add_argument("--free", action="store_true", help="Start with beat timing off.")
    parser.add_argument("--web", action="store_true", help="Start the local control API.")
    parser.add_argument("--log-level", default=None, help="Override the configured log level.")
    return parser


def _apply_cli_overrides(app_config: AppConfig, args: argparse.Namespace) -> AppConfig:
    rhythm_updates = {}
    if args.bpm is not None:
        rhythm_updates["bpm"] = float(args.bpm)
    if args.free:
        rhythm_updates["require_beat_timing"] = False

    payload = app_config.model_dump()
    payload["rhythm"].update(rhythm_updates)
    if args.web:
        payload["web_server"]["enabled"] = True
    if args.log_level:
        payload["logging"]["level"] = str(args.log_level)

    return validate_config_dict(payload, source="<command line>")


def main() -> int:
    args = build_argument_parser().parse_args()
    if args.run_tests:
        _run_chunk_tests()
        print("Chunk tests passed.")
        return 0

    try:
        app_config, config_path = load_config()
        app_config = _apply_cli_overrides(app_config, args)
    except (ConfigurationError, OSError) as exception:
        logging.basicConfig(level=logging.ERROR)
        logger.error("%s", exception)
        return 2

    logging.basicConfig(
        level=getattr(logging, app_config.logging.level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Config: %s", config_path if config_path is not None else "<defaults>")

    qt_application = QApplication(sys.argv)
    controller = HarnessController(app_config=app_config)
    window = HarnessWindow(controller=controller)
    window.resize(720, 600)
    window.show()

    if app_config.web_server.enabled:
        flask_app = create_flask_app(controller.session)
        start_web_server_in_background(flask_app, app_config.web_server)

    controller.start()
    return int(qt_application.exec())


if __name__ == "__main__":
    raise SystemExit(main())
