"""
Contractors Blueprint — contractor directory for HSE.

Routes:
  GET /api/contractors        – all contractors, sorted by username
  GET /api/contractors/<id>   – one contractor
"""

from flask import Blueprint, jsonify

from permitflow.blueprints import current_actor
from permitflow.services import user_service

contractors_bp = Blueprint("contractors", __name__, url_prefix="/api/contractors")


@contractors_bp.route("", methods=["GET"])
def list_contractors():
    return jsonify([u.to_dict() for u in user_service.list_contractors(current_actor())])


@contractors_bp.route("/<int:user_id>", methods=["GET"])
def get_contractor(user_id):
    return jsonify(user_service.get_contractor(current_actor(), user_id).to_dict())
