"""
Core ledger blueprint.

Health, metrics, clock and quorum configuration endpoints.
"""

from flask import Blueprint, Response, jsonify

from monitoring.metrics import metrics

from . import state
from .utils import get_json_payload, require_api_key

core_bp = Blueprint("core", __name__)

VERSION = "0.1.0"


@core_bp.route("/health", methods=["GET"])
def health():
    """Basic health check."""
    ledger = state.get_ledger()
    return jsonify({
        "status": "healthy",
        "service": "quorumid",
        "version": VERSION,
        "block_height": ledger.block_height(),
    })


@core_bp.route("/metrics", methods=["GET"])
def prometheus_metrics():
    """Prometheus text exposition of all metrics."""
    metrics.set_gauge("block_height", state.get_ledger().block_height())
    return Response(metrics.to_prometheus(), mimetype="text/plain; charset=utf-8")


@core_bp.route("/metrics/json", methods=["GET"])
def json_metrics():
    return jsonify(metrics.get_all())


@core_bp.route("/ledger/status", methods=["GET"])
def ledger_status():
    """Summary counts for the ledger."""
    return jsonify(state.get_ledger().stats())


@core_bp.route("/ledger/clock", methods=["GET"])
def get_clock():
    return jsonify(state.get_ledger().clock.to_dict())


@core_bp.route("/ledger/advance", methods=["POST"])
@require_api_key
def advance_clock():
    """
    Advance a manual block clock (admin-only).

    Request body:
        {"blocks": 10, "caller": "admin"}
    """
    data, error = get_json_payload({"blocks": int, "caller": str})
    if error:
        return error
    if data["blocks"] < 0:
        return jsonify({"error": "blocks must be non-negative"}), 400

    height = state.get_ledger().advance_clock(data["blocks"], caller=data["caller"])
    state.save_ledger()
    return jsonify({"block_height": height})


@core_bp.route("/config/min-validators", methods=["GET"])
def get_min_validators():
    return jsonify({"min_validators": state.get_ledger().get_min_validators()})


@core_bp.route("/config/min-validators", methods=["PUT"])
@require_api_key
def set_min_validators():
    """
    Change the global attestation quorum (admin-only).

    Request body:
        {"min_validators": 4, "caller": "admin"}
    """
    data, error = get_json_payload({"min_validators": int, "caller": str})
    if error:
        return error

    value = state.get_ledger().set_min_validators(data["min_validators"], caller=data["caller"])
    state.save_ledger()
    return jsonify({"min_validators": value})
