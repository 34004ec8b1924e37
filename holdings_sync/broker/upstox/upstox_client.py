"""Upstox broker client (REST API v2)."""

import logging
import time
from typing import List, Optional

import requests

from ..broker import BrokerClient
from ..errors import AuthenticationError, AuthFailureReason, CredentialError, FetchError, RefreshError
from ..http import AUTH_REJECTED_STATUSES, build_session, error_message, json_or_none
from ..models import AuthSession, BrokerId, RawHoldingRecord
from ..normalizer import first_present, symbol_of, to_number

logger = logging.getLogger(__name__)


class UpstoxClient(BrokerClient):
    """Upstox broker client.

    API docs: https://upstox.com/developer/api-documentation
    """

    broker_id = BrokerId.UPSTOX
    supports_refresh = True

    BASE_URL = "https://api.upstox.com/v2"
    TOKEN_PATH = "/login/authorization/token"

    # (path, required, is_positions); long-term holdings are the primary source
    HOLDINGS_ENDPOINTS = [
        ("/portfolio/long-term-holdings", True, False),
        ("/portfolio/short-term-positions", False, True),
        ("/portfolio/holdings", False, False),
    ]

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        base_url: str = BASE_URL,
        timeout: Optional[float] = None,
        max_retries: int = 3,
    ):
        """
        Initialize Upstox client.

        Args:
            session: Optional pre-built requests session
            base_url: Upstox API base URL
            timeout: Request timeout in seconds (None uses the transport default)
            max_retries: Retry attempts for server errors
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or build_session(max_retries=max_retries)

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _post_token(self, form: dict) -> requests.Response:
        return self.session.post(
            self._url(self.TOKEN_PATH),
            data=form,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=self.timeout,
        )

    def _session_from_payload(self, payload) -> AuthSession:
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise AuthenticationError(
                "Upstox: authorization server returned no access token",
                reason=AuthFailureReason.MALFORMED,
                broker_id=self.broker_id,
            )
        expires_at = None
        expires_in = payload.get("expires_in")
        if expires_in:
            expires_at = int(time.time() * 1000) + int(expires_in) * 1000
        return AuthSession(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_at=expires_at,
        )

    def authenticate(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: Optional[str] = None,
        authorization_code: Optional[str] = None,
    ) -> AuthSession:
        """Exchange an OAuth authorization code for an access token."""
        self._require_credentials(client_id, client_secret)
        if not authorization_code:
            raise CredentialError(
                "Upstox: an authorization code from the Upstox login redirect is required, "
                "or connect with an access token instead",
                self.broker_id,
            )

        logger.info("Exchanging Upstox authorization code for an access token")
        try:
            response = self._post_token({
                "code": authorization_code,
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uri": redirect_uri or "",
                "grant_type": "authorization_code",
            })
        except requests.exceptions.RequestException as e:
            logger.error(f"Upstox authentication request failed: {e}")
            raise AuthenticationError(
                f"Upstox: could not reach the authorization server ({e})",
                reason=AuthFailureReason.TRANSPORT,
                broker_id=self.broker_id,
            ) from e

        payload = json_or_none(response)
        if response.status_code >= 500:
            logger.error(f"Upstox authentication failed with server error {response.status_code}")
            raise AuthenticationError(
                f"Upstox: authorization server error (HTTP {response.status_code})",
                reason=AuthFailureReason.TRANSPORT,
                broker_id=self.broker_id,
            )
        if not response.ok:
            message = error_message(payload, "Authentication failed")
            logger.error(f"Upstox authentication rejected: {message}")
            raise AuthenticationError(
                f"Upstox: {message}",
                reason=AuthFailureReason.REJECTED,
                broker_id=self.broker_id,
            )

        session = self._session_from_payload(payload)
        logger.info("Authenticated with Upstox")
        return session

    def refresh_access_token(self, refresh_token: str) -> AuthSession:
        """Obtain a new access token with a refresh token."""
        if not refresh_token:
            raise RefreshError("Upstox: no refresh token available", self.broker_id)
        try:
            response = self._post_token({
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            })
        except requests.exceptions.RequestException as e:
            logger.error(f"Upstox token refresh failed: {e}")
            raise RefreshError(f"Upstox: failed to refresh access token ({e})", self.broker_id) from e

        if not response.ok:
            message = error_message(json_or_none(response), f"HTTP {response.status_code}")
            logger.error(f"Upstox token refresh rejected: {message}")
            raise RefreshError(f"Upstox: failed to refresh access token ({message})", self.broker_id)

        try:
            session = self._session_from_payload(json_or_none(response))
        except AuthenticationError as e:
            raise RefreshError(e.message, self.broker_id) from e
        # Upstox does not rotate refresh tokens on refresh
        if not session.refresh_token:
            session.refresh_token = refresh_token
        return session

    def _get_records(self, path: str, access_token: str, required: bool) -> List[RawHoldingRecord]:
        """Fetch the ``data`` list of one portfolio endpoint."""
        try:
            response = self.session.get(
                self._url(path),
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            if required:
                logger.error(f"Error fetching {path} from Upstox: {e}")
                raise FetchError(
                    f"Upstox: could not reach the holdings service ({e})",
                    broker_id=self.broker_id,
                ) from e
            logger.warning(f"Skipping Upstox endpoint {path}: {e}")
            return []

        if response.status_code in AUTH_REJECTED_STATUSES:
            logger.error(f"Upstox rejected the access token on {path} ({response.status_code})")
            raise FetchError(
                "Upstox: access token was rejected, please reconnect",
                auth_rejected=True,
                broker_id=self.broker_id,
            )
        if not response.ok:
            if required:
                message = error_message(json_or_none(response), f"HTTP {response.status_code}")
                logger.error(f"Error fetching {path} from Upstox: {message}")
                raise FetchError(f"Upstox: failed to fetch holdings ({message})", broker_id=self.broker_id)
            logger.warning(f"Skipping Upstox endpoint {path}: HTTP {response.status_code}")
            return []

        payload = json_or_none(response)
        data = payload.get("data") if isinstance(payload, dict) else None
        if data is None:
            data = []
        if not isinstance(data, list):
            if required:
                raise FetchError(
                    f"Upstox: unexpected response from {path}",
                    broker_id=self.broker_id,
                )
            logger.warning(f"Ignoring unexpected Upstox payload from {path}")
            return []

        return [record for record in data if isinstance(record, dict)]

    def fetch_holdings(self, access_token: str) -> List[RawHoldingRecord]:
        """Fetch long-term holdings and open positions, deduplicated by symbol."""
        all_records: List[RawHoldingRecord] = []
        for path, required, is_positions in self.HOLDINGS_ENDPOINTS:
            records = self._get_records(path, access_token, required)
            if is_positions:
                # Closed intraday positions come back with zero quantity
                records = [r for r in records if to_number(first_present(r, ["quantity", "buy_quantity"], 0)) > 0]
            logger.info(f"Found {len(records)} records on Upstox {path}")
            all_records.extend(records)

        unique = {}
        for record in all_records:
            symbol = symbol_of(record, self.broker_id)
            if symbol not in unique:
                unique[symbol] = record

        if not unique:
            logger.warning("No holdings found on Upstox (empty account or missing token permissions)")
        logger.info(f"Retrieved {len(unique)} unique holdings from Upstox")
        return list(unique.values())
