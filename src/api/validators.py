"""
Validator registry blueprint.
"""

from flask import Blueprint, jsonify, request

from . import state
from .utils import get_json_payload, require_api_key

validators_bp = Blueprint("validators", __name__)


@validators_bp.route("/validators", methods=["POST"])
@require_api_key
def register_validator():
    """
    Register a validator (admin-only).

    Request body:
        {"validator_id": "v1", "caller": "admin"}
    """
    data, error = get_json_payload({"validator_id": str, "caller": str})
    if error:
        return error

    validator = state.get_ledger().register_validator(data["validator_id"], caller=data["caller"])
    state.save_ledger()
    return jsonify(validator.to_dict()), 201


@validators_bp.route("/validators/<validator_id>/deactivate", methods=["POST"])
@require_api_key
def deactivate_validator(validator_id):
    data, error = get_json_payload({"caller": str})
    if error:
        return error

    validator = state.get_ledger().deactivate_validator(validator_id, caller=data["caller"])
    state.save_ledger()
    return jsonify(validator.to_dict())


@validators_bp.route("/validators", methods=["GET"])
def list_validators():
    """
    List validators.

    Query params:
        active_only: "true" to hide deactivated validators
    """
    active_only = request.args.get("active_only", "false").lower() == "true"
    validators = state.get_ledger().validators.list_validators(active_only=active_only)
    return jsonify({"validators": [v.to_dict() for v in validators], "count": len(validators)})


@validators_bp.route("/validators/<validator_id>", methods=["GET"])
def get_validator(validator_id):
    validator = state.get_ledger().validators.get(validator_id)
    if validator is None:
        return jsonify({"error": "NotFound", "message": f"Validator {validator_id} not found"}), 404
    return jsonify(validator.to_dict())
