"""
Request identity — Flask-Login request loader.

Credential checks happen upstream (the portal's auth gateway). By the time a
request reaches the engine it carries the authenticated user in the
``X-User-Id`` header and, for staff, the role in ``X-User-Role``. This module
turns those headers into a Flask-Login user so routes can use
``login_required`` and ``current_user`` as usual.
"""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import LoginManager, UserMixin, current_user, login_required

ROLES = ("student", "teacher", "admin")

USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"

auth_bp = Blueprint("auth", __name__)
login_manager = LoginManager()


class PortalUser(UserMixin):
    """Identity forwarded by the auth gateway."""

    def __init__(self, id: str, role: str = "student"):
        self.id = id
        self.role = role if role in ROLES else "student"

    @property
    def is_teacher(self):
        return self.role in ("teacher", "admin")

    @property
    def is_admin(self):
        return self.role == "admin"


@login_manager.request_loader
def load_user_from_request(request):
    user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
    if not user_id:
        return None
    role = (request.headers.get(USER_ROLE_HEADER) or "student").strip().lower()
    return PortalUser(user_id, role)


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Authentication required", "code": "unauthorized"}), 401


@auth_bp.route("/api/me")
@login_required
def whoami():
    return jsonify({"user_id": current_user.id, "role": current_user.role})
