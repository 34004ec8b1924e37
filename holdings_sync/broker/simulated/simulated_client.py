"""Simulated broker client for development and tests."""

import copy
import logging
import time
from typing import List, Optional

from ..broker import BrokerClient
from ..errors import FetchError, RefreshError
from ..models import AuthSession, BrokerId, RawHoldingRecord

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "mock-access-token-"
REFRESH_TOKEN = "mock-refresh-token"

SAMPLE_HOLDINGS: List[RawHoldingRecord] = [
    {"name": "RELIANCE", "type": "EQ", "quantity": 10, "avgPrice": 2450.50, "currentPrice": 2500.00},
    {"name": "NIFTYBEES", "type": "ETF", "quantity": 50, "avgPrice": 220.00, "currentPrice": 225.50},
    {"name": "AXISGROWTH", "type": "MUTUALFUND", "quantity": 100, "avgPrice": 45.30, "currentPrice": 48.75},
]


class SimulatedBrokerClient(BrokerClient):
    """Stands in for a real broker without any network access.

    Any non-empty credentials are accepted. Holdings are returned in a
    broker-neutral record shape that the normalizer understands for every
    broker.
    """

    supports_refresh = True

    def __init__(
        self,
        broker_id: BrokerId = BrokerId.UPSTOX,
        holdings: Optional[List[RawHoldingRecord]] = None,
        latency: float = 0.0,
    ):
        """
        Args:
            broker_id: Broker this client impersonates
            holdings: Records to return instead of the sample portfolio
            latency: Seconds to sleep per call, to mimic a slow API
        """
        self.broker_id = BrokerId.parse(broker_id)
        self.holdings = SAMPLE_HOLDINGS if holdings is None else holdings
        self.latency = latency

    def _wait(self) -> None:
        if self.latency > 0:
            time.sleep(self.latency)

    def _new_session(self) -> AuthSession:
        now_ms = int(time.time() * 1000)
        return AuthSession(
            access_token=f"{TOKEN_PREFIX}{now_ms}",
            refresh_token=REFRESH_TOKEN,
            expires_at=now_ms + 3600 * 1000,
        )

    def authenticate(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: Optional[str] = None,
        authorization_code: Optional[str] = None,
    ) -> AuthSession:
        self._require_credentials(client_id, client_secret)
        self._wait()
        logger.info(f"Simulated {self.broker_id.display_name} login for client {client_id}")
        return self._new_session()

    def refresh_access_token(self, refresh_token: str) -> AuthSession:
        self._wait()
        if refresh_token != REFRESH_TOKEN:
            raise RefreshError(f"{self.broker_id.display_name}: invalid refresh token", self.broker_id)
        return self._new_session()

    def fetch_holdings(self, access_token: str) -> List[RawHoldingRecord]:
        self._wait()
        if not access_token:
            raise FetchError(
                f"{self.broker_id.display_name}: access token was rejected, please reconnect",
                auth_rejected=True,
                broker_id=self.broker_id,
            )
        logger.info(f"Returning {len(self.holdings)} simulated holdings for {self.broker_id.display_name}")
        return copy.deepcopy(self.holdings)
