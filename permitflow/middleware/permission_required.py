"""
Permission Decorators — policy-table checks for route protection.

Usage:
    @items_bp.route("", methods=["POST"])
    @require_operation("item.create")
    def create_item():
        ...

Routes whose rule depends on the record (item type, ownership) leave the
check to the service layer, which consults the same policy table.
"""

import functools

from permitflow.blueprints import current_actor
from permitflow.services.policy import check_permission


def require_operation(operation: str):
    """
    Decorator: require the authenticated caller's role to be granted ``operation``.

    Args:
        operation: Policy key, e.g. "item.delete"
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            check_permission(current_actor(), operation)
            return f(*args, **kwargs)
        return decorated
    return decorator
