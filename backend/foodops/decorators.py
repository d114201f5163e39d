# Overview: Request decorators for API routes: typed error responses and JSON body access.

from functools import wraps
from flask import current_app, jsonify, request

from .errors import FoodOpsError, ValidationError


def json_errors(action: str):
    """
    Map domain errors to JSON responses for a route.

    FoodOpsError subclasses become {"error", "code", "details"} with the
    class's status code. Anything else is logged as "Failed to <action>" and
    answered with a generic 500.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except FoodOpsError as exc:
                if exc.status_code >= 500:
                    current_app.logger.warning("%s: %s", action, exc.message)
                return jsonify(exc.to_dict()), exc.status_code
            except Exception:
                current_app.logger.exception("Failed to %s", action)
                return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR", "details": {}}), 500

        return decorated_function

    return decorator


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data
