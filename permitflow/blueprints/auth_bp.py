"""
Auth Blueprint — JWT authentication endpoints.

  POST /api/auth/register   — username + email + password + role → JWT
  POST /api/auth/login      — username (or email) + password → JWT
  GET  /api/auth/me         — current user profile
"""

from flask import Blueprint, jsonify

from permitflow.blueprints import current_actor, json_body
from permitflow.core.exceptions import NotFoundError
from permitflow.services.jwt_service import issue_token
from permitflow.services.user_service import (
    authenticate_user,
    get_user_by_id,
    register_user,
)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.route("/register", methods=["POST"])
def register():
    """Body: { "username", "email", "password", "role" }"""
    data = json_body()
    user = register_user(
        data.get("username"),
        data.get("email"),
        data.get("password"),
        data.get("role"),
    )
    return jsonify(issue_token(user)), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    """Body: { "username": "...", "password": "..." } — username may be an email."""
    data = json_body()
    user = authenticate_user(data.get("username") or data.get("email"), data.get("password"))
    return jsonify(issue_token(user)), 200


@auth_bp.route("/me", methods=["GET"])
def me():
    actor = current_actor()
    user = get_user_by_id(actor.id)
    if user is None:
        raise NotFoundError("User", actor.id)
    return jsonify({"user": user.to_dict()}), 200
