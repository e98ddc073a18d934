# -*- coding: utf-8 -*-
from __future__ import annotations

########################
# web_server.py
########################
# Purpose:
# - Local Flask control API for a running rhythm session.
# - Provides /api endpoints for start, stop, pause, resume, restart, rhythm mode and status.
#
# Design notes:
# - Flask handlers run on the server thread. They never touch core timing state:
#   commands go through RhythmSession.submit() and are applied at the start of the next tick.
# - /api/status reads the last status snapshot the tick thread published.
#
########################
# Interfaces:
# Public protocols:
# - SessionControl: submit(command: SessionCommand) -> None; status() -> SessionStatus
#
# Public functions:
# - create_flask_app(session: SessionControl) -> flask.Flask
# - start_web_server_in_background(flask_app: flask.Flask, web_config: config.WebServerConfig) -> threading.Thread
#
# Inputs:
# - HTTP requests from remote clients:
#   - /api/status (GET)
#   - /api/start, /api/stop, /api/pause, /api/resume, /api/toggle-pause, /api/restart (POST)
#   - /api/rhythm-mode (POST, optional JSON body {"require_beat_timing": bool})
#
# Outputs:
# - JSON responses.
#
########################

import logging
import threading
from typing import Protocol

from flask import Flask, Response, jsonify, request

from config import WebServerConfig
from rhythm_session import CommandKind, SessionCommand, SessionStatus

logger = logging.getLogger(__name__)


class SessionControl(Protocol):
    def submit(self, command: SessionCommand) -> None:
        ...

    def status(self) -> SessionStatus:
        ...


def create_flask_app(session: SessionControl) -> Flask:
    flask_app = Flask(__name__, static_folder=None)
    flask_app.extensions["beatgrid_session"] = session

    def submit_command(kind: CommandKind, value=None) -> Response:
        session.submit(SessionCommand(kind=kind, value=value))
        return jsonify({"ok": True, "queued": kind.value})

    @flask_app.after_request
    def add_no_cache_headers(response: Response) -> Response:
        response.headers["Cache-Control"] = "no-store"
        return response

    @flask_app.errorhandler(404)
    def not_found_response(_error) -> Response:
        return jsonify({"ok": False, "error": "Not found"}), 404

    @flask_app.errorhandler(405)
    def method_not_allowed_response(_error) -> Response:
        return jsonify({"ok": False, "error": "Method not allowed"}), 405

    # API

    @flask_app.get("/api/status")
    def api_status() -> Response:
        return jsonify(session.status().to_dict())

    @flask_app.post("/api/start")
    def api_start() -> Response:
        return submit_command(CommandKind.START)

    @flask_app.post("/api/stop")
    def api_stop() -> Response:
        return submit_command(CommandKind.STOP)

    @flask_app.post("/api/pause")
    def api_pause() -> Response:
        return submit_command(CommandKind.PAUSE)

    @flask_app.post("/api/resume")
    def api_resume() -> Response:
        return submit_command(CommandKind.RESUME)

    @flask_app.post("/api/toggle-pause")
    def api_toggle_pause() -> Response:
        return submit_command(CommandKind.TOGGLE_PAUSE)

    @flask_app.post("/api/restart")
    def api_restart() -> Response:
        return submit_command(CommandKind.RESTART)

    @flask_app.post("/api/rhythm-mode")
    def api_rhythm_mode() -> Response:
        payload = request.get_json(silent=True) or {}
        if not isinstance(payload, dict):
            return jsonify({"ok": False, "error": "JSON body must be an object"}), 400

        if "require_beat_timing" not in payload:
            return submit_command(CommandKind.TOGGLE_RHYTHM_MODE)

        require_beat_timing = payload.get("require_beat_timing")
        if not isinstance(require_beat_timing, bool):
            return jsonify({"ok": False, "error": "require_beat_timing must be a boolean"}), 400
        return submit_command(CommandKind.SET_RHYTHM_MODE, require_beat_timing)

    return flask_app


def start_web_server_in_background(flask_app: Flask, web_config: WebServerConfig) -> threading.Thread:
    """Start the Flask development server in a daemon thread."""

    def run_server() -> None:
        flask_app.run(
            host=web_config.host,
            port=int(web_config.port),
            debug=False,
            use_reloader=False,
            threaded=False,
        )

    server_thread = threading.Thread(target=run_server, name="beatgrid-web-server", daemon=True)
    server_thread.start()
    logger.info("Control API listening on http://%s:%d", web_config.host, int(web_config.port))
    return server_thread
