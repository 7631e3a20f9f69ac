"""
Item Lifecycle Service — MOC and PTW status transitions.

Manages item status with:
  - Per-type transition tables (``ITEM_TRANSITIONS`` in models.item)
  - Role checks through the central policy table
  - Ownership checks (contractors act on their own MOCs only)
  - Cross-entity gate: a PTW can only be issued against an Approved MOC

Transitions:
  MOC  submit / approve / reject
  PTW  submit / approve / reject / accept (→ Job Started)

``validate_item_transition`` is the pure decision function: it returns a
result dict and never mutates. Every mutating operation runs it first and
raises ``TransitionError`` on a rejected result, so a failed call leaves
the record untouched.

Concurrency: each call reads, decides and writes a single row in its own
session. Two concurrent transitions on one item are last-write-wins; no
version counter is kept.

Usage:
    from permitflow.services.item_lifecycle import transition_item

    item = transition_item(item_id=7, action="approve", actor=actor)
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.orm import aliased

from permitflow.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDenied,
    TransitionError,
    ValidationError,
)
from permitflow.models import db
from permitflow.models.auth import ROLE_CONTRACTOR, User
from permitflow.models.item import (
    EDITABLE_FIELDS,
    ITEM_STATUSES,
    ITEM_TRANSITIONS,
    ITEM_TYPES,
    STATUS_APPROVED,
    STATUS_DRAFT,
    STATUS_JOB_STARTED,
    STATUS_SUBMITTED,
    TYPE_MOC,
    TYPE_PTW,
    Item,
)
from permitflow.models.request import WorkRequest
from permitflow.services.policy import Actor, check_permission
from permitflow.utils.helpers import coerce_id, commit_or_raise, get_or_raise

logger = logging.getLogger(__name__)


# action → policy operation; submit depends on the item type
_ACTION_PERMISSION = {
    "approve": "item.approve",
    "reject": "item.reject",
    "accept": "item.accept_ptw",
}


def _utcnow():
    return datetime.now(timezone.utc)


def _action_permission(item: Item, action: str) -> str | None:
    if action == "submit":
        return "item.submit_ptw" if item.type == TYPE_PTW else "item.submit_moc"
    return _ACTION_PERMISSION.get(action)


# ═══════════════════════════════════════════════════════════════════════════
# Transition validation
# ═══════════════════════════════════════════════════════════════════════════


def validate_item_transition(item: Item, action: str) -> dict:
    """Validate whether an action is legal for the item's type and status."""
    rules = ITEM_TRANSITIONS.get(item.type, {})
    rule = rules.get(action)
    if not rule:
        return {"valid": False, "from": item.status, "to": None,
                "reason": f"'{action}' is not defined for {item.type} items"}

    if item.status not in rule["from"]:
        return {"valid": False, "from": item.status, "to": rule["to"],
                "reason": f"Only {' or '.join(rule['from'])} {item.type} items can be '{action}'"}

    return {"valid": True, "from": item.status, "to": rule["to"], "reason": None}


def action_for_status(item: Item, target_status: str) -> str | None:
    """Find the lifecycle action that moves ``item`` into ``target_status``."""
    for action, rule in ITEM_TRANSITIONS.get(item.type, {}).items():
        if rule["to"] == target_status:
            return action
    return None


def _check_ownership(item: Item, action: str, actor: Actor) -> None:
    """Contractors may only submit their own MOCs and accept their own PTWs."""
    if not actor.is_contractor:
        return
    if action == "submit" and item.created_by_id != actor.id:
        raise PermissionDenied(actor.role, "item.submit_moc",
                               "Contractors can only submit their own MOCs")
    if action == "accept":
        moc_owner = item.moc.created_by_id if item.moc else None
        if actor.id not in (moc_owner, item.assigned_to_id):
            raise PermissionDenied(actor.role, "item.accept_ptw",
                                   "This PTW was not issued for your MOC")


def _apply_transition(item: Item, action: str, actor: Actor) -> str:
    """Check role, status and ownership, then set status and timestamp.

    Returns the previous status. Does not commit.
    """
    permission = _action_permission(item, action)
    if permission:
        check_permission(actor, permission)

    validation = validate_item_transition(item, action)
    if not validation["valid"]:
        raise TransitionError(item.id, action, item.status, validation["reason"])

    _check_ownership(item, action, actor)

    previous_status = item.status
    item.status = validation["to"]
    setattr(item, ITEM_TRANSITIONS[item.type][action]["stamp"], _utcnow())
    return previous_status


def transition_item(item_id: int, action: str, actor: Actor) -> Item:
    """
    Execute an item lifecycle transition.

    Args:
        item_id: Primary key of the item
        action: One of submit, approve, reject, accept
        actor: Authenticated caller

    Returns:
        The updated Item.

    Raises:
        NotFoundError, PermissionDenied, TransitionError, StorageError
    """
    item = get_or_raise(Item, item_id)
    previous_status = _apply_transition(item, action, actor)
    commit_or_raise()

    logger.info(
        "Item %s %s: %s -> %s by user %s (%s)",
        item.id, action, previous_status, item.status, actor.id, actor.role,
    )
    return item


def submit_item(item_id: int, actor: Actor) -> Item:
    return transition_item(item_id, "submit", actor)


def approve_item(item_id: int, actor: Actor) -> Item:
    return transition_item(item_id, "approve", actor)


def reject_item(item_id: int, actor: Actor) -> Item:
    return transition_item(item_id, "reject", actor)


def accept_ptw(item_id: int, actor: Actor) -> Item:
    return transition_item(item_id, "accept", actor)


# ═══════════════════════════════════════════════════════════════════════════
# Create / update / delete
# ═══════════════════════════════════════════════════════════════════════════


def _resolve_assignee(user_id):
    if user_id in (None, ""):
        return None
    return get_or_raise(User, coerce_id(user_id, "assigned_to_id"), label="Assigned user").id


def create_item(actor: Actor, payload: dict) -> Item:
    """
    Create a MOC (Contractor) or a PTW against an Approved MOC (HSE).

    The new item always starts in Draft, owned by the caller.

    Raises:
        ValidationError: unknown type, or PTW without an Approved MOC
        PermissionDenied: role may not create this type
        ConflictError: the MOC already has a PTW
    """
    item_type = payload.get("type")
    if item_type not in ITEM_TYPES:
        raise ValidationError("Invalid item type",
                              details={"type": f"must be one of {list(ITEM_TYPES)}"})

    moc_id = None
    if item_type == TYPE_MOC:
        check_permission(actor, "item.create_moc")
    else:
        check_permission(actor, "item.create_ptw")
        moc_id = payload.get("moc_id")
        if moc_id is not None:
            moc_id = coerce_id(moc_id, "moc_id")
        moc = db.session.get(Item, moc_id) if moc_id is not None else None
        if moc is None or moc.type != TYPE_MOC or moc.status != STATUS_APPROVED:
            raise ValidationError("PTW can only be created from approved MOC")
        if Item.query.filter_by(type=TYPE_PTW, moc_id=moc.id).first():
            raise ConflictError(f"MOC {moc.id} already has a PTW", resource="Item")

    item = Item(
        type=item_type,
        status=STATUS_DRAFT,
        created_by_id=actor.id,
        assigned_to_id=_resolve_assignee(payload.get("assigned_to_id")),
        moc_id=moc_id,
    )
    for field in EDITABLE_FIELDS:
        value = payload.get(field)
        if value is not None:
            setattr(item, field, str(value).strip())

    db.session.add(item)
    commit_or_raise()
    logger.info("Item %s created: %s by user %s", item.id, item.type, actor.id)
    return item


def update_item(item_id: int, actor: Actor, patch: dict) -> Item:
    """
    Generic update used by the ``PUT /items/<id>`` route.

    Contractors can only move their own Draft MOC to Submitted.
    Reviewers can edit the free-text fields and the assignee; a ``status``
    in the patch is routed through the transition table, so it can never
    skip or reverse a state.
    """
    item = get_or_raise(Item, item_id)

    if "type" in patch and patch["type"] != item.type:
        raise ValidationError("Item type cannot be changed", details={"type": "immutable"})

    target_status = patch.get("status")

    if actor.is_contractor:
        if target_status == STATUS_SUBMITTED and item.status == STATUS_DRAFT:
            return transition_item(item.id, "submit", actor)
        raise PermissionDenied(actor.role, "item.edit", "Contractors cannot edit this item")

    check_permission(actor, "item.edit")

    action = None
    if target_status and target_status != item.status:
        if target_status not in ITEM_STATUSES:
            raise ValidationError(f"Invalid status '{target_status}'",
                                  details={"status": f"must be one of {list(ITEM_STATUSES)}"})
        action = action_for_status(item, target_status)
        if action is None:
            raise TransitionError(item.id, "update", item.status,
                                  f"No transition leads to '{target_status}'")

    assignee_id = item.assigned_to_id
    if "assigned_to_id" in patch:
        assignee_id = _resolve_assignee(patch["assigned_to_id"])

    previous_status = item.status
    if action:
        _apply_transition(item, action, actor)

    if patch.get("title"):
        item.title = str(patch["title"]).strip()
    for field in EDITABLE_FIELDS[1:]:
        if field in patch and patch[field] is not None:
            setattr(item, field, str(patch[field]))
    item.assigned_to_id = assignee_id

    commit_or_raise()
    logger.info("Item %s updated by user %s (%s)%s", item.id, actor.id, actor.role,
                f", status {previous_status} -> {item.status}" if action else "")
    return item


def delete_item(item_id: int, actor: Actor) -> None:
    """
    Delete an item.

    A MOC with an issued PTW cannot be deleted; remove the PTW first.
    Requests that point at the item are kept with their item cleared.
    """
    check_permission(actor, "item.delete")
    item = get_or_raise(Item, item_id)

    if item.type == TYPE_MOC:
        ptw = Item.query.filter_by(type=TYPE_PTW, moc_id=item.id).first()
        if ptw:
            raise ConflictError(
                f"MOC {item.id} has PTW {ptw.id}; delete the PTW first", resource="Item",
            )

    WorkRequest.query.filter_by(item_id=item.id).update(
        {"item_id": None}, synchronize_session=False,
    )
    db.session.delete(item)
    commit_or_raise()
    logger.info("Item %s (%s) deleted by user %s", item_id, item.type, actor.id)


# ═══════════════════════════════════════════════════════════════════════════
# Queries
# ═══════════════════════════════════════════════════════════════════════════


def _newest_first(query):
    return query.order_by(Item.created_at.desc(), Item.id.desc())


def get_item(item_id: int, actor: Actor) -> Item:
    check_permission(actor, "item.view")
    return get_or_raise(Item, item_id)


def list_items(
    actor: Actor,
    *,
    item_type: str | None = None,
    status: str | None = None,
    search: str | None = None,
) -> list[Item]:
    """
    List items visible to the caller, newest first.

    Contractors only ever see items they created. Filters:
        item_type — MOC or PTW
        status    — exact status
        search    — case-insensitive substring of the title
    """
    check_permission(actor, "item.view")

    if item_type and item_type not in ITEM_TYPES:
        raise ValidationError(f"Invalid type filter '{item_type}'")
    if status and status not in ITEM_STATUSES:
        raise ValidationError(f"Invalid status filter '{status}'")

    q = Item.query
    if actor.is_contractor:
        q = q.filter(Item.created_by_id == actor.id)
    if item_type:
        q = q.filter(Item.type == item_type)
    if status:
        q = q.filter(Item.status == status)
    if search:
        q = q.filter(func.lower(Item.title).contains(search.lower(), autoescape=True))
    return _newest_first(q).all()


def list_mocs(actor: Actor) -> list[Item]:
    """Contractor: own MOCs. Reviewers: MOCs raised by contractors."""
    check_permission(actor, "item.view")
    q = Item.query.filter(Item.type == TYPE_MOC)
    if actor.is_contractor:
        q = q.filter(Item.created_by_id == actor.id)
    else:
        q = q.join(User, Item.created_by_id == User.id).filter(User.role == ROLE_CONTRACTOR)
    return _newest_first(q).all()


def list_contractor_mocs(actor: Actor) -> list[Item]:
    check_permission(actor, "item.list_contractor_mocs")
    q = Item.query.filter(Item.type == TYPE_MOC, Item.created_by_id == actor.id)
    return _newest_first(q).all()


def list_job_started(actor: Actor) -> list[Item]:
    """
    Items whose job has started.

    Contractors see the permits issued against their own MOCs;
    reviewers see every started job.
    """
    check_permission(actor, "item.view")
    q = Item.query.filter(Item.status == STATUS_JOB_STARTED)
    if actor.is_contractor:
        source = aliased(Item)
        q = q.join(source, Item.moc_id == source.id).filter(source.created_by_id == actor.id)
    return _newest_first(q).all()


def get_ptw_by_moc(moc_id: int, actor: Actor) -> dict:
    """Return the PTW issued against a MOC, with the MOC owner and the issuer."""
    check_permission(actor, "item.view")
    ptw = Item.query.filter_by(type=TYPE_PTW, moc_id=moc_id).first()
    if ptw is None:
        raise NotFoundError("PTW", moc_id, message="PTW not found for this MOC")

    result = ptw.to_dict(include_assignee=True)
    owner = ptw.moc.created_by if ptw.moc else None
    result["moc_owner"] = owner.summary() if owner else None
    result["issued_by"] = ptw.created_by.summary() if ptw.created_by else None
    return result
