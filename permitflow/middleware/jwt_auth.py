"""
JWT Auth Middleware — Parses the bearer token, sets g.current_user.

Every /api/ route except the public ones below needs
``Authorization: Bearer <token>``:
  - no token, or a token without a known role  →  403
  - expired or tampered token                  →  401
"""

import logging

import jwt as pyjwt
from flask import g, request

from permitflow.core.exceptions import AuthenticationError
from permitflow.models.auth import ROLES
from permitflow.services.jwt_service import decode_access_token
from permitflow.services.policy import Actor

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/auth/login",
    "/api/auth/register",
    "/api/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.current_user = None

        path = request.path
        if not path.startswith("/api/") or request.method == "OPTIONS":
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            raise AuthenticationError("No token, authorization denied", status_code=403)

        token = auth_header[7:]  # Strip "Bearer "
        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired")
        except pyjwt.InvalidTokenError as exc:
            logger.warning("Rejected bearer token on %s: %s", path, exc)
            raise AuthenticationError("Token is not valid")

        role = payload.get("role")
        if role not in ROLES:
            raise AuthenticationError("Role not found in token", status_code=403)

        g.current_user = Actor(
            id=int(payload["sub"]),
            username=payload.get("username", ""),
            role=role,
        )
