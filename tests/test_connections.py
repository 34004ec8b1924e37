"""Tests for broker connection management."""

from unittest.mock import Mock

import pytest

from holdings_sync.broker.errors import AuthenticationError, CredentialError
from holdings_sync.broker.models import AuthSession, BrokerId
from holdings_sync.broker.simulated import SimulatedBrokerClient
from holdings_sync.config import BrokerConfig
from holdings_sync.connections import ConnectionManager


@pytest.fixture
def manager(portfolio_store, credential_store):
    return ConnectionManager(portfolio_store, credential_store, client_factory=SimulatedBrokerClient)


class TestConnect:
    """Tests for ConnectionManager.connect."""

    def test_connect_stores_session(self, manager, credential_store):
        """A successful login marks the broker connected and caches the tokens."""
        connection = manager.connect("angelone", "A123", "pin")

        assert connection.is_connected
        assert manager.get_connection(BrokerId.ANGELONE).client_id == "A123"
        assert credential_store.get_access_token("angelone").startswith("mock-access-token-")
        assert credential_store.get_refresh_token("angelone") == "mock-refresh-token"

    def test_connect_requires_both_credentials(self, manager):
        """Missing credentials are rejected with the onboarding message."""
        with pytest.raises(CredentialError, match="Please provide both Client ID and Client Secret."):
            manager.connect("upstox", "id", "")
        assert not manager.get_connection("upstox").is_connected

    def test_connect_with_access_token(self, portfolio_store, credential_store, mock_broker_client):
        """An externally obtained token is adopted without authenticating."""
        mock_broker_client.authenticate_with_token.return_value = AuthSession("external", None)
        manager = ConnectionManager(portfolio_store, credential_store, client_factory=lambda b: mock_broker_client)

        manager.connect("upstox", "id", "secret", access_token="external")

        mock_broker_client.authenticate.assert_not_called()
        assert credential_store.get_access_token("upstox") == "external"

    def test_connect_passes_code_and_configured_redirect(self, portfolio_store, credential_store, mock_broker_client):
        """The OAuth code and configured redirect URI reach the client."""
        mock_broker_client.authenticate.return_value = AuthSession("tok")
        config = BrokerConfig(fyers={"redirect_uri": "https://app.example.com/callback"})
        manager = ConnectionManager(
            portfolio_store,
            credential_store,
            client_factory=lambda b: mock_broker_client,
            broker_config=config,
        )

        manager.connect("fyers", "APP", "secret", authorization_code="code-1")

        mock_broker_client.authenticate.assert_called_once_with(
            "APP",
            "secret",
            redirect_uri="https://app.example.com/callback",
            authorization_code="code-1",
        )

    def test_failed_authentication_leaves_disconnected(self, portfolio_store, credential_store, mock_broker_client):
        """A rejected login changes nothing."""
        mock_broker_client.authenticate.side_effect = AuthenticationError("Upstox: invalid")
        manager = ConnectionManager(portfolio_store, credential_store, client_factory=lambda b: mock_broker_client)

        with pytest.raises(AuthenticationError):
            manager.connect("upstox", "id", "secret", authorization_code="bad")

        assert not manager.get_connection("upstox").is_connected
        assert credential_store.get_access_token("upstox") is None

    def test_unknown_broker(self, manager):
        """Unknown broker ids raise ValueError."""
        with pytest.raises(ValueError):
            manager.connect("zerodha", "id", "secret")


class TestDisconnect:
    """Tests for ConnectionManager.disconnect."""

    def test_disconnect_clears_credentials(self, manager, credential_store, portfolio_store, fyers_holding):
        """Disconnecting forgets credentials and tokens but keeps synced holdings."""
        with portfolio_store.update() as data:
            data.holdings = [fyers_holding]
        manager.connect("fyers", "APP", "secret")

        connection = manager.disconnect("fyers")

        assert not connection.is_connected
        assert connection.client_id == ""
        assert credential_store.get_access_token("fyers") is None
        assert portfolio_store.load().holdings == [fyers_holding]


class TestPrefill:
    """Tests for ConnectionManager.prefill_credentials."""

    def test_prefill_only_empty_connections(self, manager):
        """Configured credentials fill empty records without connecting them."""
        manager.connect("upstox", "mine", "secret")
        config = BrokerConfig(
            upstox={"client_id": "cfg", "client_secret": "cfg-secret"},
            angelone={"client_id": "A1", "client_secret": "pin"},
        )

        assert manager.prefill_credentials(config) == 1

        assert manager.get_connection("upstox").client_id == "mine"
        angelone = manager.get_connection("angelone")
        assert angelone.client_id == "A1"
        assert not angelone.is_connected
