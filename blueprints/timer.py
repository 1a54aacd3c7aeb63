"""Focus timer routes. The client polls /api/timer/poll about once a second."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import login_required

from extensions import EngineManager
from helpers import bad_request, current_user_id, json_body
from session_timer import TimerState, phase

bp = Blueprint("timer", __name__)


def timer_json(state: TimerState, remaining: int, **extra) -> dict:
    return {
        "phase": phase(state),
        "mode": state.mode,
        "is_running": state.is_running,
        "duration_seconds": state.duration_seconds,
        "remaining_seconds": remaining,
        "sessions_completed": state.sessions_completed,
        **extra,
    }


@bp.route("/api/timer")
@login_required
def api_timer():
    timer = EngineManager.timer_for(current_user_id())
    state = timer.state()
    return jsonify(timer_json(state, timer.tick()))


@bp.route("/api/timer/start", methods=["POST"])
@login_required
def api_timer_start():
    data = json_body()
    timer = EngineManager.timer_for(current_user_id())
    try:
        state = timer.start(data.get("duration_seconds"), data.get("mode"))
    except ValueError as e:
        return bad_request(str(e))
    return jsonify(timer_json(state, timer.tick()))


@bp.route("/api/timer/pause", methods=["POST"])
@login_required
def api_timer_pause():
    timer = EngineManager.timer_for(current_user_id())
    state = timer.pause()
    return jsonify(timer_json(state, timer.tick()))


@bp.route("/api/timer/reset", methods=["POST"])
@login_required
def api_timer_reset():
    timer = EngineManager.timer_for(current_user_id())
    state = timer.reset()
    return jsonify(timer_json(state, timer.tick()))


@bp.route("/api/timer/mode", methods=["POST"])
@login_required
def api_timer_mode():
    mode = json_body().get("mode")
    timer = EngineManager.timer_for(current_user_id())
    try:
        state = timer.switch_mode(mode)
    except ValueError as e:
        return bad_request(str(e))
    return jsonify(timer_json(state, timer.tick()))


@bp.route("/api/timer/poll", methods=["POST"])
@login_required
def api_timer_poll():
    result = EngineManager.timer_for(current_user_id()).poll()
    return jsonify(timer_json(
        result["state"],
        result["remaining_seconds"],
        xp_awarded=result["xp_awarded"],
    ))
