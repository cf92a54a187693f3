"""
Claim attestation blueprint.
"""

from flask import Blueprint, jsonify

from . import state
from .utils import get_json_payload, require_api_key

attestations_bp = Blueprint("attestations", __name__)


@attestations_bp.route("/attestations", methods=["POST"])
@require_api_key
def attest():
    """
    Add a validator signature to a claim.

    Request body:
        {
            "subject": "alice",
            "claim_id": "kyc-2024",
            "claim_type": "kyc",
            "attester_id": "v1",
            "quorum": 3              // Optional, defaults to global minimum
        }

    Returns:
        The attestation record (201 when the first signature creates it)
    """
    data, error = get_json_payload(
        {"subject": str, "claim_id": str, "claim_type": str, "attester_id": str},
        optional_fields={"quorum": int},
    )
    if error:
        return error

    ledger = state.get_ledger()
    is_new = ledger.get_attestation(data["subject"], data["claim_id"]) is None
    record = ledger.attest(
        data["subject"],
        data["claim_id"],
        data["claim_type"],
        data["attester_id"],
        quorum=data.get("quorum"),
    )
    state.save_ledger()
    return jsonify(record.to_dict()), 201 if is_new else 200


@attestations_bp.route("/attestations/<subject>", methods=["GET"])
def list_attestations(subject):
    records = state.get_ledger().attestations.list_for_subject(subject)
    return jsonify({"subject": subject, "attestations": [r.to_dict() for r in records]})


@attestations_bp.route("/attestations/<subject>/<claim_id>", methods=["GET"])
def get_attestation(subject, claim_id):
    record = state.get_ledger().get_attestation(subject, claim_id)
    if record is None:
        return jsonify({"error": "NotFound", "message": "No attestation for this claim"}), 404
    return jsonify(record.to_dict())
