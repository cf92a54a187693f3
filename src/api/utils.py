"""
Shared utilities for the QuorumID API.

Authentication, payload validation and response helpers used by every
blueprint.
"""

import os
import secrets
from functools import wraps
from typing import Any

from flask import jsonify, request

# ============================================================
# Security Configuration
# ============================================================

# API key for mutating endpoints (set via environment)
API_KEY = os.getenv("QUORUMID_API_KEY", None)
# SECURITY: Default to requiring authentication
API_KEY_REQUIRED = os.getenv("QUORUMID_REQUIRE_AUTH", "true").lower() == "true"

MAX_PRINCIPAL_LENGTH = 128


# ============================================================
# Validation Utilities
# ============================================================


def validate_json_schema(
    data: Any,
    required_fields: dict[str, type | tuple[type, ...]],
    optional_fields: dict[str, type | tuple[type, ...]] | None = None,
) -> tuple[bool, str | None]:
    """
    Validate a JSON payload against a simple field/type schema.

    Principal-like string fields are bounded by MAX_PRINCIPAL_LENGTH.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(data, dict):
        return False, "Request body must be a JSON object"

    for field_name, expected_type in required_fields.items():
        if field_name not in data:
            return False, f"Missing required field: {field_name}"
        if not _matches(data[field_name], expected_type):
            return False, f"Field '{field_name}' has the wrong type"

    for field_name, expected_type in (optional_fields or {}).items():
        if data.get(field_name) is not None and not _matches(data[field_name], expected_type):
            return False, f"Field '{field_name}' has the wrong type"

    for field_name, value in data.items():
        if isinstance(value, str) and len(value) > MAX_PRINCIPAL_LENGTH:
            return False, f"Field '{field_name}' exceeds maximum length of {MAX_PRINCIPAL_LENGTH}"

    return True, None


def _matches(value: Any, expected_type: type | tuple[type, ...]) -> bool:
    # bool is an int subclass; never accept it for integer fields
    if isinstance(value, bool) and expected_type is int:
        return False
    return isinstance(value, expected_type)


def get_json_payload(
    required_fields: dict[str, type | tuple[type, ...]],
    optional_fields: dict[str, type | tuple[type, ...]] | None = None,
) -> tuple[dict[str, Any] | None, Any]:
    """
    Parse and validate the request body.

    Returns:
        (payload, None) on success, (None, error_response) on failure
    """
    data = request.get_json(silent=True)
    is_valid, error = validate_json_schema(data, required_fields, optional_fields)
    if not is_valid:
        return None, (jsonify({"error": error}), 400)
    return data, None


# ============================================================
# Authentication Decorator
# ============================================================


def require_api_key(f):
    """Decorator to require API key authentication."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not API_KEY_REQUIRED:
            return f(*args, **kwargs)

        provided_key = request.headers.get("X-API-Key")
        if not provided_key:
            return jsonify({
                "error": "API key required",
                "hint": "Provide API key in X-API-Key header",
            }), 401

        if not API_KEY:
            return jsonify({
                "error": "Server API key not configured",
                "hint": "Set QUORUMID_API_KEY environment variable",
            }), 503

        if not secrets.compare_digest(provided_key, API_KEY):
            return jsonify({"error": "Invalid API key"}), 403

        return f(*args, **kwargs)

    return decorated_function
