"""Multi-broker sync orchestration."""

import logging
import threading
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from ..broker import create_broker_client
from ..broker.broker import BrokerClient
from ..broker.errors import BrokerError, CredentialError, FetchError, RefreshError
from ..broker.models import AuthSession, BrokerConnection, BrokerId, RawHoldingRecord
from ..broker.normalizer import normalize_all
from ..persistence.credential_store import CredentialStore
from ..persistence.portfolio_store import PortfolioStore
from ..utils.logging_utils import mask_amount, mask_secret
from .errors import NoConnectedBrokersError, SyncInProgressError
from .merge_policy import MergePolicy
from .models import BrokerSyncOutcome, SyncReport

logger = logging.getLogger(__name__)

ClientFactory = Callable[[BrokerId], BrokerClient]


class SyncOrchestrator:
    """Syncs holdings from every connected broker into the portfolio.

    Brokers are processed one at a time. A failure is recorded against its
    broker and never stops the remaining brokers; each successful broker is
    persisted before the next one starts.
    """

    def __init__(
        self,
        portfolio_store: PortfolioStore,
        credential_store: CredentialStore,
        client_factory: Optional[ClientFactory] = None,
        merge_policy: Optional[MergePolicy] = None,
    ):
        """
        Args:
            portfolio_store: Store holding connections and holdings
            credential_store: Store holding cached broker tokens
            client_factory: Creates the client for a broker (defaults to create_broker_client)
            merge_policy: Reconciliation strategy (defaults to MergePolicy())
        """
        self.portfolio_store = portfolio_store
        self.credential_store = credential_store
        self.client_factory = client_factory or create_broker_client
        self.merge_policy = merge_policy or MergePolicy()
        self.last_report: Optional[SyncReport] = None
        self._state_lock = threading.Lock()
        self._in_progress = False

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    def status(self) -> dict:
        return {
            "inProgress": self._in_progress,
            "lastReport": self.last_report.to_dict() if self.last_report else None,
        }

    def sync_all(self, connections: Optional[Iterable[BrokerConnection]] = None) -> SyncReport:
        """
        Sync every connected broker.

        Args:
            connections: Connections to consider (defaults to the stored ones)

        Returns:
            SyncReport with one outcome per connected broker

        Raises:
            SyncInProgressError: If another sync is running
            NoConnectedBrokersError: If no connection is connected
        """
        with self._state_lock:
            if self._in_progress:
                raise SyncInProgressError("A sync is already in progress")
            self._in_progress = True

        try:
            if connections is None:
                connections = self.portfolio_store.load().brokers
            connected = [c for c in connections if c.is_connected]
            if not connected:
                raise NoConnectedBrokersError("Please connect to at least one broker first.")

            logger.info(f"Starting sync for {len(connected)} broker(s): "
                        f"{', '.join(c.broker_id.value for c in connected)}")
            report = SyncReport()
            for connection in connected:
                report.outcomes.append(self.sync_broker(connection))
            report.finished_at = datetime.now()

            if report.succeeded:
                logger.info(report.message)
            else:
                logger.warning(f"Sync finished with errors: {report.message}")
            self.last_report = report
            return report
        finally:
            with self._state_lock:
                self._in_progress = False

    def sync_broker(self, connection: BrokerConnection) -> BrokerSyncOutcome:
        """Sync a single broker, converting any failure into a failed outcome."""
        broker_id = connection.broker_id
        name = connection.display_name or broker_id.display_name
        try:
            access_token = self.credential_store.get_access_token(broker_id)
            if not access_token:
                raise CredentialError(f"{name}: no access token found, please reconnect", broker_id)

            client = self.client_factory(broker_id)
            raw_records = self._fetch_with_reauth(client, connection, access_token)
            fresh = normalize_all(raw_records, broker_id)

            with self.portfolio_store.update() as data:
                data.holdings = self.merge_policy.apply(broker_id, fresh, data.holdings)

            value = sum(h.current_value for h in fresh)
            logger.info(f"[{broker_id.value}] Synced {len(fresh)} holdings, current value {mask_amount(value)}")
            return BrokerSyncOutcome(broker_id=broker_id, success=True, holdings_count=len(fresh))
        except Exception as e:
            message = e.message if isinstance(e, BrokerError) else f"{name}: {e}"
            logger.error(f"[{broker_id.value}] Sync failed: {message}")
            return BrokerSyncOutcome(broker_id=broker_id, success=False, error=message)

    def _fetch_with_reauth(
        self, client: BrokerClient, connection: BrokerConnection, access_token: str
    ) -> List[RawHoldingRecord]:
        """Fetch holdings, re-authenticating once if the token is rejected."""
        try:
            return client.fetch_holdings(access_token)
        except FetchError as e:
            if not e.auth_rejected:
                raise
            logger.warning(f"[{connection.broker_id.value}] Access token {mask_secret(access_token)} "
                           f"rejected, re-authenticating")
            session = self._reauthenticate(client, connection, e)

        self.credential_store.save_session(connection.broker_id, session)
        return client.fetch_holdings(session.access_token)

    def _reauthenticate(self, client: BrokerClient, connection: BrokerConnection, error: FetchError) -> AuthSession:
        broker_id = connection.broker_id
        refresh_token = self.credential_store.get_refresh_token(broker_id)
        if refresh_token and client.supports_refresh:
            try:
                return client.refresh_access_token(refresh_token)
            except RefreshError as e:
                logger.warning(f"[{broker_id.value}] Token refresh failed, trying full authentication: {e}")

        if not connection.has_credentials:
            raise error
        try:
            return client.authenticate(connection.client_id, connection.client_secret)
        except BrokerError as e:
            logger.warning(f"[{broker_id.value}] Re-authentication failed: {e}")
            raise error from e
