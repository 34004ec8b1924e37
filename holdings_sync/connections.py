"""Broker connection management."""

import logging
from typing import Callable, List, Optional

from .broker import create_broker_client
from .broker.broker import BrokerClient
from .broker.errors import CredentialError
from .broker.models import BrokerConnection, BrokerId
from .config import BrokerConfig
from .persistence.credential_store import CredentialStore
from .persistence.portfolio_store import PortfolioStore
from .utils.logging_utils import mask_secret

logger = logging.getLogger(__name__)

MISSING_CREDENTIALS_MESSAGE = "Please provide both Client ID and Client Secret."


class ConnectionManager:
    """Connects and disconnects brokers.

    A connection is only marked connected once the broker has issued an
    access token, which is kept in the credential store for later syncs.
    """

    def __init__(
        self,
        portfolio_store: PortfolioStore,
        credential_store: CredentialStore,
        client_factory: Optional[Callable[[BrokerId], BrokerClient]] = None,
        broker_config: Optional[BrokerConfig] = None,
    ):
        self.portfolio_store = portfolio_store
        self.credential_store = credential_store
        self.client_factory = client_factory or create_broker_client
        self.broker_config = broker_config

    def list_connections(self) -> List[BrokerConnection]:
        return self.portfolio_store.load().brokers

    def get_connection(self, broker_id) -> BrokerConnection:
        """
        Raises:
            ValueError: If the broker id is unknown
        """
        return self.portfolio_store.load().connection(BrokerId.parse(broker_id))

    def connect(
        self,
        broker_id,
        client_id: str,
        client_secret: str,
        authorization_code: Optional[str] = None,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        redirect_uri: Optional[str] = None,
    ) -> BrokerConnection:
        """
        Authenticate with a broker and mark it connected.

        Args:
            broker_id: Broker to connect
            client_id: Developer client id
            client_secret: Developer client secret
            authorization_code: OAuth code (Upstox, Fyers)
            access_token: Existing token to adopt instead of authenticating
            refresh_token: Refresh token accompanying access_token
            redirect_uri: OAuth redirect URI (defaults to the configured one)

        Returns:
            The updated connection

        Raises:
            ValueError: If the broker id is unknown
            CredentialError: If credentials are missing
            AuthenticationError: If the broker refuses to issue a token
        """
        broker_id = BrokerId.parse(broker_id)
        if not client_id or not client_secret:
            raise CredentialError(MISSING_CREDENTIALS_MESSAGE, broker_id)

        client = self.client_factory(broker_id)
        if access_token:
            session = client.authenticate_with_token(access_token, refresh_token)
        else:
            if redirect_uri is None and self.broker_config is not None:
                redirect_uri = self.broker_config.credentials_for(broker_id).redirect_uri
            session = client.authenticate(
                client_id,
                client_secret,
                redirect_uri=redirect_uri,
                authorization_code=authorization_code,
            )

        self.credential_store.save_session(broker_id, session)
        with self.portfolio_store.update() as data:
            connection = data.connection(broker_id)
            connection.client_id = client_id
            connection.client_secret = client_secret
            connection.is_connected = True

        logger.info(f"Connected {broker_id.display_name} (token {mask_secret(session.access_token)})")
        return connection

    def disconnect(self, broker_id) -> BrokerConnection:
        """Forget a broker's credentials and tokens. Its synced holdings are kept."""
        broker_id = BrokerId.parse(broker_id)
        self.credential_store.clear(broker_id)
        with self.portfolio_store.update() as data:
            connection = data.connection(broker_id)
            connection.client_id = ""
            connection.client_secret = ""
            connection.is_connected = False
        logger.info(f"Disconnected {broker_id.display_name}")
        return connection

    def prefill_credentials(self, broker_config: BrokerConfig) -> int:
        """
        Copy configured developer credentials into empty connection records.

        Returns:
            Number of connections updated
        """
        updated = 0
        with self.portfolio_store.update() as data:
            for connection in data.brokers:
                credentials = broker_config.credentials_for(connection.broker_id)
                if connection.has_credentials or not credentials.is_configured():
                    continue
                connection.client_id = credentials.client_id
                connection.client_secret = credentials.client_secret
                updated += 1
        if updated:
            logger.info(f"Prefilled credentials for {updated} broker connection(s) from configuration")
        return updated
