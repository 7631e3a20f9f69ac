"""
permitflow
Item domain model — MOC proposals and PTW permits.

Models:
    - Item: one row per MOC or PTW; a PTW points at its source MOC via moc_id

The status graph lives in ITEM_TRANSITIONS (one table per item type) and is
enforced by ``permitflow.services.item_lifecycle``. Nothing else should
assign ``Item.status``.
"""

from datetime import datetime, timezone

from permitflow.models import db

# ── Constants ────────────────────────────────────────────────────────────────

TYPE_MOC = "MOC"
TYPE_PTW = "PTW"
ITEM_TYPES = (TYPE_MOC, TYPE_PTW)

STATUS_DRAFT = "Draft"
STATUS_SUBMITTED = "Submitted"
STATUS_APPROVED = "Approved"
STATUS_REJECTED = "Rejected"
STATUS_JOB_STARTED = "Job Started"
ITEM_STATUSES = (
    STATUS_DRAFT,
    STATUS_SUBMITTED,
    STATUS_APPROVED,
    STATUS_REJECTED,
    STATUS_JOB_STARTED,
)

# action → {"from": [...], "to": status, "stamp": timestamp column}
ITEM_TRANSITIONS = {
    TYPE_MOC: {
        "submit": {"from": [STATUS_DRAFT], "to": STATUS_SUBMITTED, "stamp": "submitted_at"},
        "approve": {"from": [STATUS_SUBMITTED], "to": STATUS_APPROVED, "stamp": "reviewed_at"},
        "reject": {"from": [STATUS_SUBMITTED], "to": STATUS_REJECTED, "stamp": "reviewed_at"},
    },
    TYPE_PTW: {
        "submit": {"from": [STATUS_DRAFT], "to": STATUS_SUBMITTED, "stamp": "submitted_at"},
        "approve": {"from": [STATUS_SUBMITTED], "to": STATUS_APPROVED, "stamp": "reviewed_at"},
        "reject": {"from": [STATUS_SUBMITTED], "to": STATUS_REJECTED, "stamp": "reviewed_at"},
        "accept": {"from": [STATUS_APPROVED], "to": STATUS_JOB_STARTED, "stamp": "accepted_at"},
    },
}

# Free-text fields a reviewer may edit through the generic update route
EDITABLE_FIELDS = (
    "title",
    "description",
    "reason_for_change",
    "pros",
    "cons",
    "risk_factor",
)


def _iso(value):
    return value.isoformat() if value else None


class Item(db.Model):
    """MOC or PTW record."""

    __tablename__ = "items"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(300), default="")
    description = db.Column(db.Text, default="")
    type = db.Column(db.String(10), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=STATUS_DRAFT, index=True)

    created_by_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True,
    )
    assigned_to_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    moc_id = db.Column(
        db.Integer, db.ForeignKey("items.id"), nullable=True, index=True,
        comment="PTW only: the approved MOC this permit was issued against",
    )

    # MOC proposal details
    reason_for_change = db.Column(db.Text, default="")
    pros = db.Column(db.Text, default="")
    cons = db.Column(db.Text, default="")
    risk_factor = db.Column(db.Text, default="")

    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True,
    )

    created_by = db.relationship("User", foreign_keys=[created_by_id])
    assigned_to = db.relationship("User", foreign_keys=[assigned_to_id])
    moc = db.relationship("Item", remote_side=[id], foreign_keys=[moc_id])

    # ── Derived flags (never stored) ─────────────────────────────────────

    @property
    def is_editable(self):
        return self.status == STATUS_DRAFT and self.type == TYPE_MOC

    @property
    def is_reviewable(self):
        return self.status == STATUS_SUBMITTED and self.type == TYPE_MOC

    @property
    def can_issue_ptw(self):
        return self.type == TYPE_MOC and self.status == STATUS_APPROVED

    @property
    def available_actions(self):
        rules = ITEM_TRANSITIONS.get(self.type, {})
        return [action for action, rule in rules.items() if self.status in rule["from"]]

    def to_dict(self, include_assignee=False):
        d = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "type": self.type,
            "status": self.status,
            "created_by": self.created_by.summary() if self.created_by else None,
            "assigned_to_id": self.assigned_to_id,
            "moc_id": self.moc_id,
            "reason_for_change": self.reason_for_change,
            "pros": self.pros,
            "cons": self.cons,
            "risk_factor": self.risk_factor,
            "submitted_at": _iso(self.submitted_at),
            "reviewed_at": _iso(self.reviewed_at),
            "accepted_at": _iso(self.accepted_at),
            "created_at": _iso(self.created_at),
            "is_editable": self.is_editable,
            "is_reviewable": self.is_reviewable,
            "can_issue_ptw": self.can_issue_ptw,
            "available_actions": self.available_actions,
        }
        if include_assignee:
            d["assigned_to"] = self.assigned_to.summary("id", "username", "role") if self.assigned_to else None
        return d

    def __repr__(self):
        return f"<Item {self.id}: {self.type} {self.status}>"
