"""
Request Service — HSE prompts to contractors about specific items.

Visibility:
  - Contractors see and answer only the requests addressed to them
  - HSE and Admin see and may update every request
"""

import logging

from permitflow.core.exceptions import NotFoundError, PermissionDenied, ValidationError
from permitflow.models import db
from permitflow.models.auth import ROLE_CONTRACTOR, User
from permitflow.models.item import Item
from permitflow.models.request import REQUEST_PENDING, REQUEST_STATUSES, WorkRequest
from permitflow.services.policy import Actor, check_permission, has_permission
from permitflow.utils.helpers import coerce_id, commit_or_raise, get_or_raise

logger = logging.getLogger(__name__)


def create_request(actor: Actor, contractor_id, item_id) -> WorkRequest:
    """Create a Pending request from the calling HSE user to a contractor."""
    check_permission(actor, "request.create")

    missing = {}
    if not contractor_id:
        missing["contractor_id"] = "required"
    if not item_id:
        missing["item_id"] = "required"
    if missing:
        raise ValidationError("Missing contractor or item", details=missing)

    contractor_id = coerce_id(contractor_id, "contractor_id")
    item_id = coerce_id(item_id, "item_id")

    contractor = db.session.get(User, contractor_id)
    if contractor is None or contractor.role != ROLE_CONTRACTOR:
        raise NotFoundError("Contractor", contractor_id)
    get_or_raise(Item, item_id)

    req = WorkRequest(
        contractor_id=contractor.id,
        item_id=item_id,
        requested_by_id=actor.id,
        status=REQUEST_PENDING,
    )
    db.session.add(req)
    commit_or_raise()
    logger.info("Request %s created: item %s -> contractor %s by user %s",
                req.id, item_id, contractor.id, actor.id)
    return req


def list_requests(actor: Actor) -> list[WorkRequest]:
    """Requests visible to the caller, newest first."""
    check_permission(actor, "request.view")
    q = WorkRequest.query
    if not has_permission(actor.role, "request.list_all"):
        q = q.filter(WorkRequest.contractor_id == actor.id)
    return q.order_by(WorkRequest.created_at.desc(), WorkRequest.id.desc()).all()


def get_request(request_id: int, actor: Actor) -> WorkRequest:
    check_permission(actor, "request.view")
    req = db.session.get(WorkRequest, request_id)
    if req is None:
        raise NotFoundError("Request", request_id)
    return req


def update_request_status(request_id: int, actor: Actor, status) -> WorkRequest:
    """
    Set a request's status.

    Contractors may only answer requests addressed to them.
    The new status must be one of Pending, Accepted, Rejected.
    """
    check_permission(actor, "request.update")
    req = get_or_raise(WorkRequest, request_id, label="Request")

    if not has_permission(actor.role, "request.update_any") and req.contractor_id != actor.id:
        raise PermissionDenied(actor.role, "request.update",
                               "Not authorized to update this request")

    if status not in REQUEST_STATUSES:
        raise ValidationError(f"Invalid request status '{status}'",
                              details={"status": f"must be one of {list(REQUEST_STATUSES)}"})

    previous = req.status
    req.status = status
    commit_or_raise()
    logger.info("Request %s: %s -> %s by user %s (%s)",
                req.id, previous, status, actor.id, actor.role)
    return req
