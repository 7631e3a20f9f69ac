"""
Items Blueprint — generic MOC/PTW endpoints.

Routes:
  GET    /api/items                 – list (filters: type, status, search)
  GET    /api/items/<id>            – fetch one
  POST   /api/items                 – create (HSE only)
  PUT    /api/items/<id>            – generic update / status change
  PUT    /api/items/<id>/approve    – HSE decision
  PUT    /api/items/<id>/reject     – HSE decision
  DELETE /api/items/<id>            – delete (HSE / Admin)

Layer contract:
    - No ORM calls here — all DB work delegated to item_lifecycle.
    - Status rules live in the service; routes only unpack JSON.
"""

from flask import Blueprint, jsonify, request

from permitflow.blueprints import current_actor, json_body
from permitflow.middleware.permission_required import require_operation
from permitflow.services import item_lifecycle

items_bp = Blueprint("items", __name__, url_prefix="/api/items")


@items_bp.route("", methods=["GET"])
def list_items():
    """List items visible to the caller, newest first."""
    items = item_lifecycle.list_items(
        current_actor(),
        item_type=request.args.get("type") or None,
        status=request.args.get("status") or None,
        search=request.args.get("search") or None,
    )
    return jsonify([i.to_dict() for i in items])


@items_bp.route("/<int:item_id>", methods=["GET"])
def get_item(item_id):
    item = item_lifecycle.get_item(item_id, current_actor())
    return jsonify(item.to_dict(include_assignee=True))


@items_bp.route("", methods=["POST"])
@require_operation("item.create")
def create_item():
    """Create an item. Body: { type, title, description, moc_id?, ... }"""
    data = json_body()
    item = item_lifecycle.create_item(current_actor(), data)
    return jsonify(item.to_dict()), 201


@items_bp.route("/<int:item_id>", methods=["PUT"])
def update_item(item_id):
    """Body: any of { title, description, status, assigned_to_id, ... }"""
    data = json_body()
    item = item_lifecycle.update_item(item_id, current_actor(), data)
    return jsonify(item.to_dict())


@items_bp.route("/<int:item_id>/approve", methods=["PUT"])
def approve_item(item_id):
    item = item_lifecycle.approve_item(item_id, current_actor())
    return jsonify(item.to_dict())


@items_bp.route("/<int:item_id>/reject", methods=["PUT"])
def reject_item(item_id):
    item = item_lifecycle.reject_item(item_id, current_actor())
    return jsonify(item.to_dict())


@items_bp.route("/<int:item_id>", methods=["DELETE"])
def delete_item(item_id):
    item_lifecycle.delete_item(item_id, current_actor())
    return jsonify({"message": "Item deleted successfully", "id": item_id})
