# Overview: Request decorators establishing the acting user for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import ValidationError
from .services.access_service import parse_actor


ACTOR_USER_HEADER = "X-Actor-User-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"
ACTOR_STORES_HEADER = "X-Actor-Store-Ids"
ACTOR_NAME_HEADER = "X-Actor-Name"


def require_actor(f):
    """
    Require gateway-supplied actor headers.

    Sets g.actor (services.access_service.Actor).

    Returns 401 if:
    - X-Actor-User-Id or X-Actor-Role is missing
    - either value is malformed (non-numeric id, unknown role, bad store list)
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = request.headers.get(ACTOR_USER_HEADER)
        role = request.headers.get(ACTOR_ROLE_HEADER)

        if not user_id or not role:
            return jsonify({"error": "Authentication required", "code": "UNAUTHENTICATED", "details": {}}), 401

        try:
            g.actor = parse_actor(
                user_id,
                role,
                request.headers.get(ACTOR_STORES_HEADER),
                request.headers.get(ACTOR_NAME_HEADER),
            )
        except ValidationError as e:
            return jsonify({"error": e.message, "code": "UNAUTHENTICATED", "details": e.details}), 401

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """Require the actor's role to be one of roles (use after @require_actor)."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            actor = getattr(g, "actor", None)
            if actor is None:
                return jsonify({"error": "Authentication required", "code": "UNAUTHENTICATED", "details": {}}), 401

            if actor.role not in roles:
                return jsonify({
                    "error": "Forbidden",
                    "code": "FORBIDDEN",
                    "details": {"required_roles": sorted(roles)},
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
