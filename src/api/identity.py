"""
QuorumID - Identity API Blueprint

Identity registration plus the key-value data attached to an identity:
reputation, attribute proofs and cross-chain links.
"""

from flask import Blueprint, jsonify

from . import state
from .utils import get_json_payload, require_api_key

identity_bp = Blueprint("identity", __name__)


@identity_bp.route("/identities", methods=["POST"])
@require_api_key
def register_identity():
    """
    Register an identity.

    Request body:
        {
            "owner": "alice",
            "merkle_root": "<64 hex chars>"
        }
    """
    data, error = get_json_payload({"owner": str, "merkle_root": str})
    if error:
        return error

    record = state.get_ledger().register_identity(data["owner"], data["merkle_root"])
    state.save_ledger()
    return jsonify(record.to_dict()), 201


@identity_bp.route("/identities/<owner>", methods=["GET"])
def get_identity(owner):
    """
    Resolve an identity with its proofs and chain links.
    """
    ledger = state.get_ledger()
    record = ledger.get_identity(owner)
    if record is None:
        return jsonify({"error": "NotFound", "message": f"Identity {owner} not found"}), 404

    result = record.to_dict()
    result["chain_links"] = [link.to_dict() for link in ledger.identities.get_chain_links(owner)]
    result["attestations"] = [
        r.to_dict() for r in ledger.attestations.list_for_subject(owner)
    ]
    return jsonify(result)


@identity_bp.route("/identities/<owner>/deactivate", methods=["POST"])
@require_api_key
def deactivate_identity(owner):
    data, error = get_json_payload({"caller": str})
    if error:
        return error

    record = state.get_ledger().deactivate_identity(owner, caller=data["caller"])
    state.save_ledger()
    return jsonify(record.to_dict())


@identity_bp.route("/identities/<owner>/reputation", methods=["POST"])
@require_api_key
def adjust_reputation(owner):
    """
    Request body:
        {"delta": -10, "caller": "admin"}
    """
    data, error = get_json_payload({"delta": int, "caller": str})
    if error:
        return error

    record = state.get_ledger().adjust_reputation(owner, data["delta"], caller=data["caller"])
    state.save_ledger()
    return jsonify(record.to_dict())


@identity_bp.route("/identities/<owner>/proofs", methods=["POST"])
@require_api_key
def record_attribute_proof(owner):
    """
    Record a validator-vouched proof hash for one attribute.

    Request body:
        {
            "attribute": "age_over_18",
            "proof_hash": "<64 hex chars>",
            "validator_id": "v1"
        }
    """
    data, error = get_json_payload({"attribute": str, "proof_hash": str, "validator_id": str})
    if error:
        return error

    proof = state.get_ledger().record_attribute_proof(
        owner, data["attribute"], data["proof_hash"], data["validator_id"]
    )
    state.save_ledger()
    return jsonify(proof.to_dict()), 201


@identity_bp.route("/identities/<owner>/proofs/<attribute>", methods=["GET"])
def get_attribute_proof(owner, attribute):
    proof = state.get_ledger().identities.get_attribute_proof(owner, attribute)
    if proof is None:
        return jsonify({"error": "NotFound", "message": "No proof recorded"}), 404
    return jsonify(proof.to_dict())


@identity_bp.route("/identities/<owner>/links", methods=["POST"])
@require_api_key
def link_chain(owner):
    """
    Request body:
        {"chain_id": "eip155:1", "address": "0xabc...", "caller": "alice"}
    """
    data, error = get_json_payload({"chain_id": str, "address": str, "caller": str})
    if error:
        return error

    link = state.get_ledger().link_chain(
        owner, data["chain_id"], data["address"], caller=data["caller"]
    )
    state.save_ledger()
    return jsonify(link.to_dict()), 201
