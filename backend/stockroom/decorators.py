# backend/stockroom/decorators.py
from functools import wraps

from flask import g, jsonify, request


def _header_int(name: str):
    raw = request.headers.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def require_tenant(f):
    """
    Establish tenant context from gateway headers.

    Authentication happens upstream; the gateway forwards the resolved
    identity. Sets the following Flask g attributes:
    - g.business_id: tenant (X-Business-Id) - REQUIRED
    - g.user_id: acting user (X-User-Id) - REQUIRED
    - g.outlet_id: outlet the user is working in (X-Outlet-Id), may be None

    Returns 401 if a required header is missing or not an integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        business_id = _header_int("X-Business-Id")
        user_id = _header_int("X-User-Id")

        if business_id is None or user_id is None:
            return jsonify({
                "success": False,
                "error": "Missing tenant context",
                "code": "TENANT_CONTEXT_REQUIRED",
            }), 401

        g.business_id = business_id
        g.user_id = user_id
        g.outlet_id = _header_int("X-Outlet-Id")

        return f(*args, **kwargs)

    return decorated_function
