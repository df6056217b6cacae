"""
Routes package for the Notespace identity service.

Each module defines one blueprint; app.py registers them. The helpers here
are shared by all of them.
"""

from typing import Any, Dict, Optional

from flask import current_app, jsonify, request

from services.auth_gateway import AuthGateway
from utils.error_handling import ValidationError, create_error_response


def get_gateway() -> AuthGateway:
    """Build the gateway for the current request from the app config."""
    return AuthGateway.from_config(current_app.config)


def read_json() -> Optional[Dict[str, Any]]:
    """Return the request's JSON object, or None if the body is not one."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None
    return data


def json_required():
    """Error response for a request without a JSON object body."""
    body, status = create_error_response(ValidationError('JSON data required'))
    return jsonify(body), status
