"""
permitflow
Blueprint registry.
"""

from flask import g, request

from permitflow.core.exceptions import AuthenticationError, ValidationError


def current_actor():
    """Return the authenticated caller set by the JWT middleware.

    Raises AuthenticationError (403) when no identity or role is present.
    """
    actor = getattr(g, "current_user", None)
    if actor is None or not actor.role:
        raise AuthenticationError("Role not found in token", status_code=403)
    return actor


def json_body() -> dict:
    """Return the JSON request body as a dict.

    A missing or unparsable body is treated as empty; any other JSON value
    (list, string, number) is a ValidationError.
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def register_blueprints(app):
    """Register every API blueprint on the app."""
    from permitflow.blueprints.auth_bp import auth_bp
    from permitflow.blueprints.contractors_bp import contractors_bp
    from permitflow.blueprints.health_bp import health_bp
    from permitflow.blueprints.items_bp import items_bp
    from permitflow.blueprints.moc_bp import moc_bp
    from permitflow.blueprints.requests_bp import requests_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(items_bp)
    app.register_blueprint(moc_bp)
    app.register_blueprint(requests_bp)
    app.register_blueprint(contractors_bp)
    app.register_blueprint(health_bp)
