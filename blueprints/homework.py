"""Homework routes: owner submissions and teacher review/authoring."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import login_required

from extensions import EngineManager, limiter
from helpers import bad_request, current_user_id, json_body, teacher_required

bp = Blueprint("homework", __name__)


@bp.route("/api/homework")
@login_required
def api_homework_list():
    tasks = EngineManager.get_homework().list_for_owner(current_user_id())
    return jsonify({"homework": [t.to_dict() for t in tasks]})


@bp.route("/api/homework/<task_id>/submit", methods=["POST"])
@login_required
@limiter.limit("30 per minute")
def api_homework_submit(task_id):
    data = json_body()
    task, awarded = EngineManager.get_homework().submit(
        task_id, current_user_id(), submission_url=data.get("submission_url"),
    )
    record = EngineManager.get_ledger().get(task.owner_id)
    return jsonify({
        "success": True,
        "task": task.to_dict(),
        "xp_gained": awarded,
        "experience": record.experience,
        "level": record.level,
    })


@bp.route("/api/homework/<task_id>/resubmit", methods=["POST"])
@login_required
def api_homework_resubmit(task_id):
    data = json_body()
    task = EngineManager.get_homework().resubmit(
        task_id, current_user_id(), submission_url=data.get("submission_url"),
    )
    return jsonify({"success": True, "task": task.to_dict()})


@bp.route("/api/homework", methods=["POST"])
@login_required
@teacher_required
def api_homework_create():
    data = json_body()
    owner_id = data.get("owner_id")
    title = (data.get("title") or "").strip()
    if not owner_id or not title:
        return bad_request("owner_id and title are required")
    task = EngineManager.get_homework().create_task(
        owner_id,
        title,
        due_date=data.get("due_date", ""),
        description=data.get("description", ""),
        teacher_id=current_user_id(),
    )
    return jsonify({"success": True, "task": task.to_dict()}), 201


@bp.route("/api/homework/<task_id>/review", methods=["POST"])
@login_required
@teacher_required
def api_homework_review(task_id):
    data = json_body()
    grade = data.get("grade")
    if grade is not None and (isinstance(grade, bool) or not isinstance(grade, (int, float))):
        return bad_request("grade must be a number")
    task = EngineManager.get_homework().record_review(
        task_id,
        status=data.get("status"),
        grade=grade,
        feedback=data.get("feedback"),
    )
    return jsonify({"success": True, "task": task.to_dict()})
