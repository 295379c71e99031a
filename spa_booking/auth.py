"""Bearer-token authentication for staff endpoints."""
from __future__ import annotations

from functools import wraps
from typing import Any, Callable

from flask import current_app, g, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .errors import Unauthorized

STAFF_ROLES = frozenset({"staff", "admin"})
ADMIN_ROLES = frozenset({"admin"})


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt="auth-token")


def build_token(payload: dict[str, object]) -> str:
    return _serializer().dumps(payload)


def load_token(token: str) -> dict[str, Any]:
    """Return the payload of a valid token, raising Unauthorized otherwise."""
    try:
        payload = _serializer().loads(token, max_age=current_app.config["TOKEN_MAX_AGE"])
    except SignatureExpired as exc:
        raise Unauthorized("token expired") from exc
    except BadSignature as exc:
        raise Unauthorized("invalid token") from exc
    if not isinstance(payload, dict) or "user_id" not in payload:
        raise Unauthorized("invalid token")
    return payload


def _request_token(allow_query: bool) -> str | None:
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[7:].strip() or None
    if allow_query:
        # Browser EventSource cannot send headers
        return request.args.get("token") or None
    return None


def staff_required(view: Callable | None = None, *, allow_query_token: bool = False, admin_only: bool = False):
    """Reject the request unless it carries a valid staff or admin token.

    With ``admin_only`` a staff token is not enough. The token payload is
    stored on ``g.identity``.
    """
    allowed = ADMIN_ROLES if admin_only else STAFF_ROLES

    def decorator(fn: Callable) -> Callable:
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = _request_token(allow_query_token)
            if not token:
                raise Unauthorized()
            identity = load_token(token)
            if identity.get("role") not in allowed:
                raise Unauthorized("admin role required" if admin_only else "staff role required", forbidden=True)
            g.identity = identity
            return fn(*args, **kwargs)

        return wrapper

    if view is not None:
        return decorator(view)
    return decorator
