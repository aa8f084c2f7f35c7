# Overview: Request decorators for API routes.

from functools import wraps
from flask import current_app, g, jsonify, request


def require_user(f):
    """
    Require the trusted user id and establish it as request context.

    Authentication happens upstream (gateway or auth middleware), which
    forwards the opaque user id in the configured header. Sets g.user_id.

    Returns 401 if the header is missing or blank.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        header = current_app.config.get("USER_ID_HEADER", "X-User-Id")
        user_id = (request.headers.get(header) or "").strip()

        if not user_id:
            return jsonify({"error": "Authentication required"}), 401

        if len(user_id) > 64:
            return jsonify({"error": "Invalid user id"}), 401

        g.user_id = user_id
        return f(*args, **kwargs)

    return decorated_function
