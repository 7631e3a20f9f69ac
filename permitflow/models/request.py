"""
permitflow
Work request model — an HSE prompt to a contractor about one item.
"""

from datetime import datetime, timezone

from permitflow.models import db

REQUEST_PENDING = "Pending"
REQUEST_ACCEPTED = "Accepted"
REQUEST_REJECTED = "Rejected"
REQUEST_STATUSES = (REQUEST_PENDING, REQUEST_ACCEPTED, REQUEST_REJECTED)


class WorkRequest(db.Model):
    """One request per (contractor, item) prompt. Never deleted."""

    __tablename__ = "requests"

    id = db.Column(db.Integer, primary_key=True)
    contractor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    item_id = db.Column(
        db.Integer, db.ForeignKey("items.id", ondelete="SET NULL"), nullable=True,
        comment="Cleared when HSE deletes the item; the request itself is kept",
    )
    requested_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=REQUEST_PENDING)
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True,
    )

    contractor = db.relationship("User", foreign_keys=[contractor_id])
    requested_by = db.relationship("User", foreign_keys=[requested_by_id])
    item = db.relationship("Item")

    def to_dict(self, item_fields=("id", "title", "type")):
        item = None
        if self.item is not None:
            item = {f: getattr(self.item, f) for f in item_fields}
        return {
            "id": self.id,
            "status": self.status,
            "item": item,
            "contractor": self.contractor.summary("id", "username") if self.contractor else None,
            "requested_by": (
                self.requested_by.summary("id", "username", "email") if self.requested_by else None
            ),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<WorkRequest {self.id}: {self.status}>"
