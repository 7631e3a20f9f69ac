"""
Authorization policy — the single (operation, role) table every service uses.

Route handlers never compare role strings themselves; they pass the caller
(an ``Actor``) to a service, and the service calls ``check_permission``
before touching any record. Ownership rules (a contractor may only submit
their own MOC, only update their own request, ...) are layered on top by
the services, after the role check passes.

Usage:
    from permitflow.services.policy import check_permission

    check_permission(actor, "item.approve")       # raises PermissionDenied

    if has_permission(actor.role, "request.list_all"):
        ...
"""

import logging
from dataclasses import dataclass

from permitflow.core.exceptions import PermissionDenied
from permitflow.models.auth import ROLE_ADMIN, ROLE_CONTRACTOR, ROLE_HSE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Authenticated caller, built from a verified access token."""

    id: int
    username: str
    role: str

    @property
    def is_contractor(self) -> bool:
        return self.role == ROLE_CONTRACTOR


_REVIEWERS = frozenset({ROLE_HSE, ROLE_ADMIN})
_EVERYONE = frozenset({ROLE_CONTRACTOR, ROLE_HSE, ROLE_ADMIN})

POLICY: dict[str, frozenset[str]] = {
    # Items
    "item.view": _EVERYONE,
    "item.create": frozenset({ROLE_HSE}),
    "item.create_moc": frozenset({ROLE_CONTRACTOR}),
    "item.create_ptw": frozenset({ROLE_HSE}),
    "item.submit_moc": frozenset({ROLE_CONTRACTOR}),
    "item.submit_ptw": frozenset({ROLE_HSE}),
    "item.approve": frozenset({ROLE_HSE}),
    "item.reject": frozenset({ROLE_HSE}),
    "item.accept_ptw": frozenset({ROLE_CONTRACTOR}),
    "item.edit": _REVIEWERS,
    "item.delete": _REVIEWERS,
    "item.list_contractor_mocs": frozenset({ROLE_CONTRACTOR}),
    # Requests
    "request.create": frozenset({ROLE_HSE}),
    "request.view": _EVERYONE,
    "request.list_all": _REVIEWERS,
    "request.update": _EVERYONE,
    "request.update_any": _REVIEWERS,
    # Contractor directory
    "contractor.view": frozenset({ROLE_HSE}),
}


def has_permission(role: str | None, operation: str) -> bool:
    """True when ``role`` is granted ``operation``. Unknown operations deny."""
    return role in POLICY.get(operation, ())


def check_permission(actor: Actor, operation: str) -> None:
    """Raise PermissionDenied unless the actor's role is granted ``operation``."""
    if not has_permission(actor.role, operation):
        logger.warning(
            "User %s (%s) denied: '%s'", actor.id, actor.role, operation,
        )
        raise PermissionDenied(
            actor.role, operation,
            f"Role '{actor.role}' may not perform '{operation}' "
            f"(allowed: {', '.join(allowed_roles(operation)) or 'none'})",
        )


def allowed_roles(operation: str) -> list[str]:
    """Roles granted ``operation``, sorted for stable error messages."""
    return sorted(POLICY.get(operation, ()))
