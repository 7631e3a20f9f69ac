"""
MOC Blueprint — the contractor / HSE change-management workflow.

Routes:
  POST /api/moc                  – create MOC (Contractor) or PTW (HSE)
  GET  /api/moc                  – role-scoped MOC list
  GET  /api/moc/contractor       – contractor's own MOCs
  GET  /api/moc/job-started      – started jobs (role-scoped)
  GET  /api/moc/jobStarted       – same, legacy path
  GET  /api/moc/moc/<moc_id>     – PTW issued against a MOC
  GET  /api/moc/<id>             – fetch one
  PUT  /api/moc/<id>/submit      – Draft → Submitted
  PUT  /api/moc/<id>/approve     – Submitted → Approved (HSE)
  PUT  /api/moc/<id>/reject      – Submitted → Rejected (HSE)
  PUT  /api/moc/<id>/accept      – PTW Approved → Job Started (Contractor)
"""

from flask import Blueprint, jsonify

from permitflow.blueprints import current_actor, json_body
from permitflow.services import item_lifecycle

moc_bp = Blueprint("moc", __name__, url_prefix="/api/moc")


@moc_bp.route("", methods=["POST"])
def create_item():
    data = json_body()
    item = item_lifecycle.create_item(current_actor(), data)
    return jsonify(item.to_dict()), 201


@moc_bp.route("", methods=["GET"])
def list_mocs():
    return jsonify([i.to_dict() for i in item_lifecycle.list_mocs(current_actor())])


@moc_bp.route("/contractor", methods=["GET"])
def list_contractor_mocs():
    items = item_lifecycle.list_contractor_mocs(current_actor())
    return jsonify([i.to_dict() for i in items])


@moc_bp.route("/job-started", methods=["GET"])
@moc_bp.route("/jobStarted", methods=["GET"])
def list_job_started():
    items = item_lifecycle.list_job_started(current_actor())
    return jsonify([i.to_dict(include_assignee=True) for i in items])


@moc_bp.route("/moc/<int:moc_id>", methods=["GET"])
def get_ptw_by_moc(moc_id):
    return jsonify(item_lifecycle.get_ptw_by_moc(moc_id, current_actor()))


@moc_bp.route("/<int:item_id>", methods=["GET"])
def get_item(item_id):
    item = item_lifecycle.get_item(item_id, current_actor())
    return jsonify(item.to_dict())


@moc_bp.route("/<int:item_id>/submit", methods=["PUT"])
def submit_item(item_id):
    item = item_lifecycle.submit_item(item_id, current_actor())
    return jsonify(item.to_dict())


@moc_bp.route("/<int:item_id>/approve", methods=["PUT"])
def approve_item(item_id):
    item = item_lifecycle.approve_item(item_id, current_actor())
    return jsonify(item.to_dict())


@moc_bp.route("/<int:item_id>/reject", methods=["PUT"])
def reject_item(item_id):
    item = item_lifecycle.reject_item(item_id, current_actor())
    return jsonify(item.to_dict())


@moc_bp.route("/<int:item_id>/accept", methods=["PUT"])
def accept_ptw(item_id):
    """Contractor accepts an Approved PTW; the job starts."""
    item = item_lifecycle.accept_ptw(item_id, current_actor())
    return jsonify(item.to_dict())
