"""Flask application factory."""

import logging
from typing import Optional

from flask import Flask, jsonify

from ..connections import ConnectionManager
from ..holdings_service import HoldingsService
from ..sync.orchestrator import SyncOrchestrator
from .routes import bp

logger = logging.getLogger(__name__)

EXTENSION_KEY = "holdings_sync"


def create_app(
    orchestrator: SyncOrchestrator,
    connections: ConnectionManager,
    holdings: HoldingsService,
    api_token: Optional[str] = None,
) -> Flask:
    """
    Create the Flask application.

    Args:
        orchestrator: Runs syncs
        connections: Connects and disconnects brokers
        holdings: Manual holdings and summaries
        api_token: Bearer token required on every /api request (optional)

    Returns:
        Flask app
    """
    app = Flask(__name__)
    app.extensions[EXTENSION_KEY] = {
        "orchestrator": orchestrator,
        "connections": connections,
        "holdings": holdings,
        "api_token": api_token,
    }

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "healthy"}), 200

    app.register_blueprint(bp, url_prefix="/api")

    if not api_token:
        logger.warning("API_TOKEN not set, the HTTP API is unauthenticated")
    return app
