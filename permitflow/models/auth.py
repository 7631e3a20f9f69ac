"""
Auth Models — users and their workflow role.

A user holds exactly one role:
  Contractor — proposes MOCs, accepts PTWs, answers requests
  HSE        — reviews MOCs, issues PTWs, sends requests
  Admin      — administrative edits and deletes
"""

from datetime import datetime, timezone

from permitflow.models import db

ROLE_CONTRACTOR = "Contractor"
ROLE_HSE = "HSE"
ROLE_ADMIN = "Admin"
ROLES = (ROLE_CONTRACTOR, ROLE_HSE, ROLE_ADMIN)


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False, index=True)
    email = db.Column(db.String(200), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=ROLE_CONTRACTOR)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def summary(self, *fields):
        """Reference projection used when another record expands this user."""
        fields = fields or ("id", "username", "email", "role")
        return {f: getattr(self, f) for f in fields}

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.username} ({self.role})>"
