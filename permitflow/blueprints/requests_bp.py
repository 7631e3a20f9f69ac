"""
Requests Blueprint — HSE-to-contractor requests.

Routes:
  POST /api/requests        – create (HSE)
  GET  /api/requests        – role-scoped list, newest first
  GET  /api/requests/<id>   – fetch one
  PUT  /api/requests/<id>   – update status
"""

from flask import Blueprint, jsonify

from permitflow.blueprints import current_actor, json_body
from permitflow.services import request_service

requests_bp = Blueprint("requests", __name__, url_prefix="/api/requests")


@requests_bp.route("", methods=["POST"])
def create_request():
    """Body: { contractor_id, item_id }"""
    data = json_body()
    req = request_service.create_request(
        current_actor(), data.get("contractor_id"), data.get("item_id"),
    )
    return jsonify(req.to_dict()), 201


@requests_bp.route("", methods=["GET"])
def list_requests():
    return jsonify([r.to_dict() for r in request_service.list_requests(current_actor())])


@requests_bp.route("/<int:request_id>", methods=["GET"])
def get_request(request_id):
    req = request_service.get_request(request_id, current_actor())
    return jsonify(req.to_dict(item_fields=("id", "title", "type", "description")))


@requests_bp.route("/<int:request_id>", methods=["PUT"])
def update_request(request_id):
    """Body: { status }"""
    data = json_body()
    req = request_service.update_request_status(request_id, current_actor(), data.get("status"))
    return jsonify(req.to_dict())
