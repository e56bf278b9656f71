# Overview: Request identity and role decorators for API routes.

"""
Boundary role gate.

The acting user arrives in request headers set by the authentication
collaborator in front of this API:

    X-User-Id:   numeric user id
    X-User-Role: one of ROLES

load_current_user() runs before every request and stores the caller in
g.current_user. Routes declare who may call them with @require_auth and
@require_role(...). Services never check roles.
"""

from dataclasses import dataclass
from functools import wraps

from flask import current_app, g, jsonify, request


ROLE_ADMINISTRATOR = "Administrator"
ROLE_DIRECTOR = "Director"
ROLE_ACCOUNTANT = "Accountant"
ROLE_OFFICER = "Officer"
ROLE_SALES_ASSISTANT = "SalesAssistant"

ROLES = [
    ROLE_ADMINISTRATOR,
    ROLE_DIRECTOR,
    ROLE_ACCOUNTANT,
    ROLE_OFFICER,
    ROLE_SALES_ASSISTANT,
]


@dataclass(frozen=True)
class CurrentUser:
    id: int
    role: str

    @property
    def is_administrator(self) -> bool:
        return self.role == ROLE_ADMINISTRATOR


def load_current_user() -> None:
    """before_request hook: parse identity headers into g.current_user."""
    g.current_user = None

    raw_id = request.headers.get("X-User-Id", "").strip()
    role = request.headers.get("X-User-Role", "").strip()
    if not raw_id or not role:
        return

    try:
        user_id = int(raw_id)
    except ValueError:
        current_app.logger.warning("Ignoring malformed X-User-Id header: %r", raw_id)
        return

    # Accept "Sales Assistant" as sent by the admin screens
    role = role.replace(" ", "")
    if role not in ROLES:
        current_app.logger.warning("Ignoring unknown role %r for user %s", role, user_id)
        return

    g.current_user = CurrentUser(id=user_id, role=role)


def current_user_id() -> int | None:
    user = getattr(g, "current_user", None)
    return user.id if user else None


def require_auth(f):
    """Require an identified caller (401 otherwise)."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if getattr(g, "current_user", None) is None:
            return jsonify({"error": "Authentication required"}), 401
        return f(*args, **kwargs)
    return decorated_function


def require_role(*roles: str):
    """
    Require the caller to hold one of `roles`.

    Administrators pass every role check.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Authentication required"}), 401

            if user.is_administrator or user.role in roles:
                return f(*args, **kwargs)

            current_app.logger.info(
                "Role %s denied on %s %s (requires %s)",
                user.role, request.method, request.path, ", ".join(roles),
            )
            return jsonify({
                "error": "Permission denied",
                "message": f"Access denied. Role '{user.role}' is not authorized.",
                "required_roles": list(roles),
            }), 403

        return decorated_function
    return decorator
