# Overview: Request identity and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

ROLE_MANAGER = "manager"
ROLE_STAFF = "staff"
KNOWN_ROLES = {ROLE_MANAGER, ROLE_STAFF}


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user_id') and hasattr(g, 'current_role')


def _unauthorized(message: str):
    return jsonify({"success": False, "error": "unauthorized", "message": message}), 401


def require_auth(f):
    """
    Require an authenticated caller.

    Identity is asserted by the gateway in front of this service:
    - X-User-Id: positive integer user id
    - X-User-Role: one of "manager", "staff"

    Sets g.current_user_id and g.current_role. Returns 401 if either header
    is missing or malformed.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw_id = (request.headers.get("X-User-Id") or "").strip()
        role = (request.headers.get("X-User-Role") or "").strip().lower()

        if not raw_id or not role:
            return _unauthorized("Authentication required")
        if not raw_id.isdigit() or int(raw_id) <= 0:
            return _unauthorized("Invalid user id")
        if role not in KNOWN_ROLES:
            return _unauthorized("Unknown role")

        g.current_user_id = int(raw_id)
        g.current_role = role

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """Require the authenticated caller to hold one of roles. Use after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return _unauthorized("Authentication required")

            if g.current_role not in roles:
                return jsonify({
                    "success": False,
                    "error": "forbidden",
                    "message": f"Requires role: {', '.join(roles)}",
                    "details": {"required_roles": list(roles)},
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
