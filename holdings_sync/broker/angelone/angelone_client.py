"""AngelOne (Angel Broking) SmartAPI client."""

import logging
from typing import List, Optional

import requests

from ..broker import BrokerClient
from ..errors import AuthenticationError, AuthFailureReason, FetchError, RefreshError
from ..http import AUTH_REJECTED_STATUSES, build_session, error_message, json_or_none
from ..models import AuthSession, BrokerId, RawHoldingRecord

logger = logging.getLogger(__name__)

# SmartAPI error codes meaning the JWT is invalid or expired
INVALID_TOKEN_CODES = {"AG8001", "AG8002", "AG8003"}


class AngelOneClient(BrokerClient):
    """AngelOne SmartAPI client.

    API docs: https://smartapi.angelbroking.com/docs
    """

    broker_id = BrokerId.ANGELONE
    supports_refresh = True

    BASE_URL = "https://apiconnect.angelbroking.com"
    LOGIN_PATH = "/rest/auth/angelbroking/user/v1/loginByPassword"
    REFRESH_PATH = "/rest/auth/angelbroking/jwt/v1/generateTokens"
    HOLDINGS_PATH = "/rest/secure/angelbroking/portfolio/v1/getHolding"

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

    @staticmethod
    def _headers(access_token: Optional[str] = None) -> dict:
        headers = {
            "X-UserType": "USER",
            "X-SourceID": "WEB",
        }
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    def _tokens_from_payload(self, payload) -> Optional[AuthSession]:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict) or not data.get("jwtToken"):
            return None
        return AuthSession(access_token=data["jwtToken"], refresh_token=data.get("refreshToken"))

    def authenticate(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: Optional[str] = None,
        authorization_code: Optional[str] = None,
    ) -> AuthSession:
        """Log in with client code and password."""
        self._require_credentials(client_id, client_secret)

        logger.info(f"Logging into AngelOne as client {client_id}")
        try:
            response = self.session.post(
                f"{self.base_url}{self.LOGIN_PATH}",
                json={"clientcode": client_id, "password": client_secret},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"AngelOne login request failed: {e}")
            raise AuthenticationError(
                f"AngelOne: could not reach the login service ({e})",
                reason=AuthFailureReason.TRANSPORT,
                broker_id=self.broker_id,
            ) from e

        payload = json_or_none(response)
        if response.status_code >= 500:
            raise AuthenticationError(
                f"AngelOne: login service error (HTTP {response.status_code})",
                reason=AuthFailureReason.TRANSPORT,
                broker_id=self.broker_id,
            )
        # SmartAPI reports a failed login as HTTP 200 with status false
        if not response.ok or (isinstance(payload, dict) and payload.get("status") is False):
            message = error_message(payload, "Failed to authenticate with AngelOne")
            logger.error(f"AngelOne login rejected: {message}")
            raise AuthenticationError(
                f"AngelOne: {message}",
                reason=AuthFailureReason.REJECTED,
                broker_id=self.broker_id,
            )

        session = self._tokens_from_payload(payload)
        if session is None:
            raise AuthenticationError(
                "AngelOne: login response did not contain a token",
                reason=AuthFailureReason.MALFORMED,
                broker_id=self.broker_id,
            )
        logger.info("Authenticated with AngelOne")
        return session

    def refresh_access_token(self, refresh_token: str) -> AuthSession:
        """Generate a new JWT from the refresh token."""
        if not refresh_token:
            raise RefreshError("AngelOne: no refresh token available", self.broker_id)
        try:
            response = self.session.post(
                f"{self.base_url}{self.REFRESH_PATH}",
                json={"refreshToken": refresh_token},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"AngelOne token refresh failed: {e}")
            raise RefreshError(f"AngelOne: failed to refresh access token ({e})", self.broker_id) from e

        payload = json_or_none(response)
        session = self._tokens_from_payload(payload) if response.ok else None
        if session is None:
            message = error_message(payload, f"HTTP {response.status_code}")
            logger.error(f"AngelOne token refresh rejected: {message}")
            raise RefreshError(f"AngelOne: failed to refresh access token ({message})", self.broker_id)
        if not session.refresh_token:
            session.refresh_token = refresh_token
        return session

    def fetch_holdings(self, access_token: str) -> List[RawHoldingRecord]:
        """Fetch demat holdings."""
        try:
            response = self.session.get(
                f"{self.base_url}{self.HOLDINGS_PATH}",
                headers=self._headers(access_token),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Error fetching holdings from AngelOne: {e}")
            raise FetchError(
                f"AngelOne: could not reach the holdings service ({e})",
                broker_id=self.broker_id,
            ) from e

        payload = json_or_none(response)
        error_code = payload.get("errorcode") if isinstance(payload, dict) else None
        if response.status_code in AUTH_REJECTED_STATUSES or error_code in INVALID_TOKEN_CODES:
            logger.error(f"AngelOne rejected the access token ({response.status_code} {error_code or ''})")
            raise FetchError(
                "AngelOne: access token was rejected, please reconnect",
                auth_rejected=True,
                broker_id=self.broker_id,
            )
        if not response.ok or (isinstance(payload, dict) and payload.get("status") is False):
            message = error_message(payload, f"HTTP {response.status_code}")
            logger.error(f"Error fetching holdings from AngelOne: {message}")
            raise FetchError(f"AngelOne: failed to fetch holdings ({message})", broker_id=self.broker_id)
        if not isinstance(payload, dict):
            raise FetchError("AngelOne: unexpected holdings response", broker_id=self.broker_id)

        # getHolding returns a list, getAllHolding wraps it in {"holdings": [...]}
        data = payload.get("data")
        if isinstance(data, dict):
            data = data.get("holdings")
        if data is None:
            data = []
        if not isinstance(data, list):
            raise FetchError("AngelOne: unexpected holdings response", broker_id=self.broker_id)

        records = [record for record in data if isinstance(record, dict)]
        logger.info(f"Retrieved {len(records)} holdings from AngelOne")
        return records
