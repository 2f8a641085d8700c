# Overview: JSON envelope helpers shared by blueprints.

# backend/stockroom/responses.py
from flask import current_app, jsonify

from .errors import ServiceError


def success_response(data, status: int = 200):
    return jsonify({"success": True, "data": data}), status


def error_response(exc: Exception):
    """
    Map an exception to the JSON error envelope.

    ServiceError subclasses carry their own status and code. Anything else
    is logged with its traceback and reported as a generic 500 so internal
    details never reach the client.
    """
    if isinstance(exc, ServiceError):
        return jsonify(exc.to_dict()), exc.status_code

    current_app.logger.exception("Unhandled error while processing request")
    return jsonify({
        "success": False,
        "error": "Internal server error",
        "code": "INTERNAL_ERROR",
    }), 500
