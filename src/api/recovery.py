"""
Social recovery blueprint.

Guardian management and the initiate / approve / execute flow.
"""

from flask import Blueprint, jsonify

from . import state
from .utils import get_json_payload, require_api_key

recovery_bp = Blueprint("recovery", __name__)


@recovery_bp.route("/recovery/<owner>/guardians", methods=["POST"])
@require_api_key
def appoint_guardian(owner):
    """
    Appoint a guardian for an identity.

    Request body:
        {"guardian_id": "bob", "caller": "alice"}

    Only the owner may appoint its guardians.
    """
    data, error = get_json_payload({"guardian_id": str, "caller": str})
    if error:
        return error

    guardian = state.get_ledger().appoint_guardian(
        owner, data["guardian_id"], caller=data["caller"]
    )
    state.save_ledger()
    return jsonify(guardian.to_dict()), 201


@recovery_bp.route("/recovery/<owner>/guardians/<guardian_id>/deactivate", methods=["POST"])
@require_api_key
def deactivate_guardian(owner, guardian_id):
    data, error = get_json_payload({"caller": str})
    if error:
        return error

    guardian = state.get_ledger().deactivate_guardian(owner, guardian_id, caller=data["caller"])
    state.save_ledger()
    return jsonify(guardian.to_dict())


@recovery_bp.route("/recovery/<owner>/guardians", methods=["GET"])
def list_guardians(owner):
    guardians = state.get_ledger().recovery.list_guardians(owner)
    return jsonify({"owner": owner, "guardians": [g.to_dict() for g in guardians]})


@recovery_bp.route("/recovery/<owner>/initiate", methods=["POST"])
@require_api_key
def initiate_recovery(owner):
    """
    Open a recovery request.

    Request body:
        {
            "new_root": "<64 hex chars>",
            "threshold": 2,
            "initiator_id": "bob"
        }
    """
    data, error = get_json_payload({"new_root": str, "threshold": int, "initiator_id": str})
    if error:
        return error

    request_record = state.get_ledger().initiate_recovery(
        owner, data["new_root"], data["threshold"], data["initiator_id"]
    )
    state.save_ledger()
    return jsonify(request_record.to_dict()), 201


@recovery_bp.route("/recovery/<owner>/approve", methods=["POST"])
@require_api_key
def approve_recovery(owner):
    """
    Request body:
        {"approver_id": "carol"}
    """
    data, error = get_json_payload({"approver_id": str})
    if error:
        return error

    request_record = state.get_ledger().approve_recovery(owner, data["approver_id"])
    state.save_ledger()
    return jsonify(request_record.to_dict())


@recovery_bp.route("/recovery/<owner>/execute", methods=["POST"])
@require_api_key
def execute_recovery(owner):
    """Rekey the identity once the request's threshold is met."""
    ledger = state.get_ledger()
    request_record = ledger.execute_recovery(owner)
    state.save_ledger()
    return jsonify({
        "recovery": request_record.to_dict(),
        "identity": ledger.get_identity(owner).to_dict(),
    })


@recovery_bp.route("/recovery/<owner>", methods=["GET"])
def get_recovery(owner):
    ledger = state.get_ledger()
    request_record = ledger.get_recovery(owner)
    return jsonify({
        "owner": owner,
        "state": ledger.recovery_state(owner).value,
        "request": request_record.to_dict() if request_record else None,
    })
