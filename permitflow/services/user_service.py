"""
User Service — registration, login and the contractor directory.
"""

import logging

from email_validator import EmailNotValidError, validate_email
from flask import current_app

from permitflow.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from permitflow.models import db
from permitflow.models.auth import ROLE_CONTRACTOR, ROLES, User
from permitflow.services.policy import Actor, check_permission
from permitflow.utils.crypto import hash_password, verify_password
from permitflow.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


# ═══════════════════════════════════════════════════════════════
# Registration / login
# ═══════════════════════════════════════════════════════════════
def register_user(username: str, email: str, password: str, role: str) -> User:
    """Create a new user with a bcrypt-hashed password."""
    errors = {}
    if isinstance(username, str) and username.strip():
        username = username.strip()
    else:
        errors["username"] = "required"
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"must be a string of at least {MIN_PASSWORD_LENGTH} characters"
    if role not in ROLES:
        errors["role"] = f"must be one of {list(ROLES)}"
    if isinstance(email, str):
        try:
            email = validate_email(email, check_deliverability=False).normalized
        except EmailNotValidError as e:
            errors["email"] = str(e)
    else:
        errors["email"] = "required"
    if errors:
        raise ValidationError("Invalid registration data", details=errors)

    if User.query.filter_by(username=username).first():
        raise ConflictError(f"Username {username} is already taken", resource="User")
    if User.query.filter_by(email=email).first():
        raise ConflictError(f"User with email {email} already exists", resource="User")

    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password, rounds=rounds),
        role=role,
    )
    db.session.add(user)
    commit_or_raise()
    logger.info("Registered user %s (%s)", user.id, user.role)
    return user


def authenticate_user(login: str, password: str) -> User:
    """Authenticate by username or email. Returns the User on success."""
    if not isinstance(login, str) or not isinstance(password, str):
        raise ValidationError("Username and password are required")
    login = login.strip()
    if not login or not password:
        raise ValidationError("Username and password are required")

    user = User.query.filter(
        (User.username == login) | (User.email == login.lower())
    ).first()
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("Failed login for '%s'", login)
        raise AuthenticationError("Invalid username or password")
    return user


def get_user_by_id(user_id) -> User | None:
    return db.session.get(User, user_id)


# ═══════════════════════════════════════════════════════════════
# Contractor directory (HSE only)
# ═══════════════════════════════════════════════════════════════
def list_contractors(actor: Actor) -> list[User]:
    check_permission(actor, "contractor.view")
    return User.query.filter_by(role=ROLE_CONTRACTOR).order_by(User.username).all()


def get_contractor(actor: Actor, user_id: int) -> User:
    check_permission(actor, "contractor.view")
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("Contractor", user_id)
    if user.role != ROLE_CONTRACTOR:
        raise PermissionDenied(actor.role, "contractor.view", "Not a contractor account")
    return user
