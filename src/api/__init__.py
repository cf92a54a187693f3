"""
QuorumID API Package.

Flask blueprints exposing the ledger operations:
- core: health, metrics, clock, quorum config
- identity: identity registration, reputation, proofs, chain links
- validators: validator registry
- attestations: claim attestation
- recovery: guardians and social recovery
"""

import logging

from flask import Flask, jsonify

from api.attestations import attestations_bp
from api.core import core_bp
from api.identity import identity_bp
from api.recovery import recovery_bp
from api.validators import validators_bp
from monitoring.middleware import setup_request_logging
from registry_errors import RegistryError, http_status_for

logger = logging.getLogger(__name__)

# Tuple format: (blueprint, url_prefix)
ALL_BLUEPRINTS = [
    (core_bp, ""),
    (identity_bp, ""),
    (validators_bp, ""),
    (attestations_bp, ""),
    (recovery_bp, ""),
]


def register_blueprints(app: Flask) -> None:
    """Register all blueprints with the Flask app."""
    for blueprint, url_prefix in ALL_BLUEPRINTS:
        app.register_blueprint(blueprint, url_prefix=url_prefix)


def create_app(ledger=None, storage_backend=None) -> Flask:
    """
    Build the Flask application.

    Args:
        ledger: Ledger to serve (default: restored from storage or env)
        storage_backend: Snapshot backend (default: from env)
    """
    from api import state

    app = Flask(__name__)
    state.init_state(ledger, storage_backend)
    register_blueprints(app)
    setup_request_logging(app)

    @app.errorhandler(RegistryError)
    def handle_registry_error(error: RegistryError):
        return jsonify(error.to_dict()), http_status_for(error)

    @app.errorhandler(404)
    def handle_not_found(_error):
        return jsonify({"error": "NotFound", "message": "Endpoint not found"}), 404

    return app
