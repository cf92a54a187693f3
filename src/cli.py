#!/usr/bin/env python3
"""
QuorumID Command Line Interface.

Commands:
    - serve: Start the API server
    - check: Verify installation and configuration
    - info: Display system information
    - status: Summarize the persisted ledger

Usage:
    quorumid serve [--host HOST] [--port PORT] [--debug] [--production]
    quorumid check
    quorumid info
    quorumid status
    quorumid --version
"""

import argparse
import os
import sys

from dotenv import load_dotenv

VERSION = "0.1.0"


def cmd_serve(args):
    """Start the QuorumID API server."""
    from api import create_app
    from monitoring.logging import configure_logging

    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    host = args.host or os.getenv("HOST", "0.0.0.0")
    port = args.port or int(os.getenv("PORT", 5000))
    debug = args.debug or os.getenv("FLASK_DEBUG", "").lower() == "true"

    flask_app = create_app()
    print(f"Starting QuorumID API server on {host}:{port}")

    if not args.production:
        flask_app.run(host=host, port=port, debug=debug)
        return 0

    try:
        import gunicorn.app.base
    except ImportError:
        print("Error: gunicorn not installed. Install with: pip install quorumid[production]")
        return 1

    class StandaloneApplication(gunicorn.app.base.BaseApplication):
        """Gunicorn wrapper serving the already-built Flask app."""

        def __init__(self, app, options=None):
            self.options = options or {}
            self.application = app
            super().__init__()

        def load_config(self):
            for key, value in self.options.items():
                if key in self.cfg.settings and value is not None:
                    self.cfg.set(key.lower(), value)

        def load(self):
            return self.application

    # One worker: the ledger lock only serializes calls within a process
    options = {
        "bind": f"{host}:{port}",
        "workers": 1,
        "threads": args.workers or int(os.getenv("WORKERS", 4)),
        "worker_class": "gthread",
        "timeout": 120,
        "accesslog": "-",
        "errorlog": "-",
    }
    StandaloneApplication(flask_app, options).run()
    return 0


def cmd_check(args):
    """Check installation and configuration."""
    print("QuorumID Installation Check")
    print("=" * 40)

    checks = []

    from registry_errors import RegistryError

    try:
        from identity_ledger import IdentityLedger

        IdentityLedger.from_env()
        checks.append(("Ledger configuration", "OK"))
    except (ImportError, ValueError, RegistryError) as e:
        checks.append(("Ledger configuration", f"FAIL: {e}"))

    try:
        from api import create_app  # noqa: F401

        checks.append(("Flask API", "OK"))
    except ImportError as e:
        checks.append(("Flask API", f"FAIL: {e}"))

    try:
        from storage import StorageError, get_storage_backend

        storage = get_storage_backend()
        status = "OK" if storage.is_available() else "WARN (not available)"
        checks.append((f"Storage ({storage.__class__.__name__})", status))
    except StorageError as e:
        checks.append(("Storage", f"FAIL: {e}"))

    try:
        import gunicorn  # noqa: F401

        checks.append(("Gunicorn (production)", "OK"))
    except ImportError:
        checks.append(("Gunicorn (production)", "SKIP (gunicorn not installed)"))

    print()
    all_ok = True
    for name, status in checks:
        icon = "✓" if status == "OK" else ("○" if "SKIP" in status else "✗")
        print(f"  {icon} {name}: {status}")
        if "FAIL" in status:
            all_ok = False

    print()
    if all_ok:
        print("All checks passed!")
        return 0
    print("Some checks failed. See above for details.")
    return 1


def cmd_info(args):
    """Display system information."""
    import platform

    print("QuorumID System Information")
    print("=" * 40)
    print(f"Version: {VERSION}")
    print(f"Python: {platform.python_version()}")
    print(f"Platform: {platform.platform()}")

    print()
    print("Configuration:")
    print(f"  QUORUMID_ADMIN: {os.getenv('QUORUMID_ADMIN', 'admin (default)')}")
    print(f"  QUORUMID_MIN_VALIDATORS: {os.getenv('QUORUMID_MIN_VALIDATORS', '3 (default)')}")
    print(f"  QUORUMID_CLOCK: {os.getenv('QUORUMID_CLOCK', 'manual (default)')}")
    print(f"  STORAGE_BACKEND: {os.getenv('STORAGE_BACKEND', 'json (default)')}")
    print(f"  LOG_LEVEL: {os.getenv('LOG_LEVEL', 'INFO (default)')}")
    print(f"  LOG_FORMAT: {os.getenv('LOG_FORMAT', 'console (default)')}")
    print(f"  API key: {'configured' if os.getenv('QUORUMID_API_KEY') else 'not set'}")

    from storage import get_storage_backend

    print()
    print("Storage:")
    for key, value in get_storage_backend().get_info().items():
        print(f"  {key}: {value}")
    return 0


def cmd_status(args):
    """Summarize the persisted ledger."""
    from identity_ledger import IdentityLedger
    from storage import StorageError, get_storage_backend

    try:
        snapshot = get_storage_backend().load_state()
    except StorageError as e:
        print(f"Error: {e}")
        return 1

    if not snapshot:
        print("No ledger data found.")
        return 0

    ledger = IdentityLedger.from_dict(snapshot)
    print("QuorumID Ledger Status")
    print("=" * 40)
    for key, value in ledger.stats().items():
        print(f"  {key}: {value}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quorumid",
        description="QuorumID - identity attestation and social recovery registry",
    )
    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {VERSION}")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", help="Host to bind to (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, help="Port to bind to (default: 5000)")
    serve_parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    serve_parser.add_argument(
        "--production", action="store_true", help="Use gunicorn for production"
    )
    serve_parser.add_argument("--workers", type=int, help="Worker threads (production mode)")

    subparsers.add_parser("check", help="Check installation and configuration")
    subparsers.add_parser("info", help="Display system information")
    subparsers.add_parser("status", help="Summarize the persisted ledger")
    return parser


COMMANDS = {
    "serve": cmd_serve,
    "check": cmd_check,
    "info": cmd_info,
    "status": cmd_status,
}


def main(argv=None):
    """Main CLI entry point."""
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)
    sys.exit(command(args))


if __name__ == "__main__":
    main()
