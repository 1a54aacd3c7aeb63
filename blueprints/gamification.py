"""Gamification routes: XP ledger reads, awards and admin reset."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import login_required

from extensions import EngineManager, limiter
from gamification import GamificationRecord
from helpers import admin_required, current_user_id, json_body

bp = Blueprint("gamification", __name__)


def record_json(record: GamificationRecord) -> dict:
    return {
        **record.to_dict(),
        "xp_for_current_level": record.xp_for_current_level,
        "xp_for_next_level": record.xp_for_next_level,
        "xp_progress_pct": record.xp_progress_pct,
    }


@bp.route("/api/gamification")
@login_required
def api_gamification():
    record = EngineManager.get_ledger().get(current_user_id())
    return jsonify(record_json(record))


@bp.route("/api/gamification/award", methods=["POST"])
@login_required
@limiter.limit("120 per hour")
def api_gamification_award():
    """Content collaborators (flashcards, quizzes, videos) report earned XP here."""
    data = json_body()
    amount = data.get("amount")
    reason = str(data.get("reason", ""))[:64]
    record = EngineManager.get_ledger().award(current_user_id(), amount, reason=reason)
    return jsonify({"xp_earned": amount, **record_json(record)})


@bp.route("/api/gamification/<user_id>/reset", methods=["POST"])
@login_required
@admin_required
def api_gamification_reset(user_id):
    record = EngineManager.get_ledger().reset(user_id)
    return jsonify(record_json(record))
