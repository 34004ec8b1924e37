"""Fyers broker client (API v2)."""

import hashlib
import logging
from typing import List, Optional

import requests

from ..broker import BrokerClient
from ..errors import AuthenticationError, AuthFailureReason, CredentialError, FetchError
from ..http import AUTH_REJECTED_STATUSES, build_session, error_message, json_or_none
from ..models import AuthSession, BrokerId, RawHoldingRecord

logger = logging.getLogger(__name__)

# Fyers body codes for an invalid or expired token
INVALID_TOKEN_CODES = {-8, -15, -16, -17}


def app_id_hash(client_id: str, client_secret: str) -> str:
    """SHA-256 of ``"<app id>:<secret>"`` as required by validate-authcode."""
    return hashlib.sha256(f"{client_id}:{client_secret}".encode("utf-8")).hexdigest()


class FyersClient(BrokerClient):
    """Fyers broker client.

    API docs: https://api-docs.fyers.in/
    """

    broker_id = BrokerId.FYERS

    BASE_URL = "https://api.fyers.in/api/v2"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        base_url: str = BASE_URL,
        timeout: Optional[float] = None,
        max_retries: int = 3,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or build_session(max_retries=max_retries)

    def authenticate(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: Optional[str] = None,
        authorization_code: Optional[str] = None,
    ) -> AuthSession:
        """Validate an OAuth auth code and obtain an access token."""
        self._require_credentials(client_id, client_secret)
        if not authorization_code:
            raise CredentialError(
                "Fyers: an auth code from the Fyers login redirect is required, "
                "or connect with an access token instead",
                self.broker_id,
            )

        logger.info("Validating Fyers auth code")
        try:
            response = self.session.post(
                f"{self.base_url}/validate-authcode",
                json={
                    "grant_type": "authorization_code",
                    "appIdHash": app_id_hash(client_id, client_secret),
                    "code": authorization_code,
                },
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Fyers authentication request failed: {e}")
            raise AuthenticationError(
                f"Fyers: could not reach the authorization server ({e})",
                reason=AuthFailureReason.TRANSPORT,
                broker_id=self.broker_id,
            ) from e

        payload = json_or_none(response)
        if response.status_code >= 500:
            raise AuthenticationError(
                f"Fyers: authorization server error (HTTP {response.status_code})",
                reason=AuthFailureReason.TRANSPORT,
                broker_id=self.broker_id,
            )
        if not response.ok or (isinstance(payload, dict) and payload.get("s") == "error"):
            message = error_message(payload, "Failed to authenticate with Fyers")
            logger.error(f"Fyers authentication rejected: {message}")
            raise AuthenticationError(
                f"Fyers: {message}",
                reason=AuthFailureReason.REJECTED,
                broker_id=self.broker_id,
            )
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise AuthenticationError(
                "Fyers: authorization server returned no access token",
                reason=AuthFailureReason.MALFORMED,
                broker_id=self.broker_id,
            )

        logger.info("Authenticated with Fyers")
        return AuthSession(access_token=payload["access_token"], refresh_token=payload.get("refresh_token"))

    def fetch_holdings(self, access_token: str) -> List[RawHoldingRecord]:
        """Fetch holdings."""
        try:
            # Fyers takes the bare token, without a Bearer prefix
            response = self.session.get(
                f"{self.base_url}/holdings",
                headers={"Authorization": access_token},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Error fetching holdings from Fyers: {e}")
            raise FetchError(
                f"Fyers: could not reach the holdings service ({e})",
                broker_id=self.broker_id,
            ) from e

        payload = json_or_none(response)
        code = payload.get("code") if isinstance(payload, dict) else None
        if response.status_code in AUTH_REJECTED_STATUSES or code in INVALID_TOKEN_CODES:
            logger.error(f"Fyers rejected the access token ({response.status_code} {code if code is not None else ''})")
            raise FetchError(
                "Fyers: access token was rejected, please reconnect",
                auth_rejected=True,
                broker_id=self.broker_id,
            )
        if not response.ok or (isinstance(payload, dict) and payload.get("s") == "error"):
            message = error_message(payload, f"HTTP {response.status_code}")
            logger.error(f"Error fetching holdings from Fyers: {message}")
            raise FetchError(f"Fyers: failed to fetch holdings ({message})", broker_id=self.broker_id)
        if not isinstance(payload, dict):
            raise FetchError("Fyers: unexpected holdings response", broker_id=self.broker_id)

        holdings = payload.get("holdings")
        if holdings is None:
            holdings = []
        if not isinstance(holdings, list):
            raise FetchError("Fyers: unexpected holdings response", broker_id=self.broker_id)

        records = [record for record in holdings if isinstance(record, dict)]
        logger.info(f"Retrieved {len(records)} holdings from Fyers")
        return records
