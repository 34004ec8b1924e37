"""API route handlers (Blueprint)."""

import hmac
import logging

from flask import Blueprint, current_app, jsonify, request

from ..broker.errors import AuthenticationError, AuthFailureReason, BrokerError, CredentialError
from ..broker.models import BrokerId
from ..persistence.data_provider import StorageError
from ..sync.errors import NoConnectedBrokersError, SyncInProgressError

logger = logging.getLogger(__name__)

bp = Blueprint("api", __name__)


def _deps() -> dict:
    return current_app.extensions["holdings_sync"]


def _error(message: str, status: int):
    return jsonify({"error": message}), status


def _broker_id(value):
    try:
        return BrokerId.parse(value)
    except ValueError:
        return None


@bp.before_request
def require_token():
    api_token = _deps()["api_token"]
    if not api_token:
        return None
    header = request.headers.get("Authorization", "")
    supplied = header[len("Bearer "):] if header.startswith("Bearer ") else ""
    if not hmac.compare_digest(supplied, api_token):
        return _error("Unauthorized", 401)
    return None


@bp.errorhandler(CredentialError)
def handle_credential_error(e):
    return _error(e.message, 400)


@bp.errorhandler(AuthenticationError)
def handle_authentication_error(e):
    status = 502 if e.reason == AuthFailureReason.TRANSPORT else 401
    return _error(e.message, status)


@bp.errorhandler(BrokerError)
def handle_broker_error(e):
    return _error(e.message, 502)


@bp.errorhandler(StorageError)
def handle_storage_error(e):
    logger.error(f"Storage error: {e}")
    return _error("Portfolio storage is unavailable, nothing was changed", 503)


# ── Brokers ──

@bp.route("/brokers", methods=["GET"])
def list_brokers():
    connections = _deps()["connections"].list_connections()
    return jsonify({"brokers": [c.to_public_dict() for c in connections]})


@bp.route("/brokers/<broker>/connect", methods=["POST"])
def connect_broker(broker):
    broker_id = _broker_id(broker)
    if broker_id is None:
        return _error(f"Unknown broker: {broker}", 404)
    data = request.get_json(silent=True) or {}
    connection = _deps()["connections"].connect(
        broker_id,
        client_id=data.get("clientId", ""),
        client_secret=data.get("clientSecret", ""),
        authorization_code=data.get("authorizationCode"),
        access_token=data.get("accessToken"),
        refresh_token=data.get("refreshToken"),
        redirect_uri=data.get("redirectUri"),
    )
    return jsonify({"broker": connection.to_public_dict()})


@bp.route("/brokers/<broker>/connection", methods=["DELETE"])
def disconnect_broker(broker):
    broker_id = _broker_id(broker)
    if broker_id is None:
        return _error(f"Unknown broker: {broker}", 404)
    connection = _deps()["connections"].disconnect(broker_id)
    return jsonify({"broker": connection.to_public_dict()})


# ── Sync ──

@bp.route("/sync", methods=["POST"])
def sync():
    try:
        report = _deps()["orchestrator"].sync_all()
    except SyncInProgressError as e:
        return _error(str(e), 409)
    except NoConnectedBrokersError as e:
        return _error(str(e), 400)
    return jsonify(report.to_dict())


@bp.route("/sync/status", methods=["GET"])
def sync_status():
    return jsonify(_deps()["orchestrator"].status())


# ── Holdings ──

@bp.route("/holdings", methods=["GET"])
def list_holdings():
    holdings = _deps()["holdings"].list_holdings()
    return jsonify({"holdings": [h.to_dict() for h in holdings]})


@bp.route("/holdings", methods=["POST"])
def add_holding():
    data = request.get_json(silent=True) or {}
    try:
        holding = _deps()["holdings"].add_manual_holding(
            name=data.get("name", ""),
            instrument_type=data.get("type"),
            quantity=data.get("quantity", 0),
            average_price=data.get("avgPrice", 0),
            current_price=data.get("currentPrice", 0),
        )
    except (TypeError, ValueError) as e:
        return _error(str(e), 400)
    return jsonify({"holding": holding.to_dict()}), 201


@bp.route("/holdings/<holding_id>", methods=["DELETE"])
def delete_holding(holding_id):
    try:
        holding = _deps()["holdings"].delete_holding(holding_id)
    except KeyError:
        return _error(f"Holding not found: {holding_id}", 404)
    return jsonify({"deleted": holding.id})


@bp.route("/holdings/summary", methods=["GET"])
def holdings_summary():
    return jsonify(_deps()["holdings"].portfolio_summary())
