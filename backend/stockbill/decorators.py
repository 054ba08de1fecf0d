# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g


ACTOR_HEADER = "X-User-Id"


def require_actor(f):
    """
    Require an acting user id and place it on g.actor_user_id.

    Authentication happens upstream; the gateway forwards the verified user
    id in the X-User-Id header. Returns 401 if it is missing or malformed.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(ACTOR_HEADER, "").strip()
        if not raw:
            return jsonify({"error": "Authentication required", "kind": "unauthenticated"}), 401
        if not (raw.isascii() and raw.isdecimal()) or int(raw) <= 0:
            return jsonify({"error": "Invalid user id", "kind": "unauthenticated"}), 401

        g.actor_user_id = int(raw)
        return f(*args, **kwargs)

    return decorated_function
