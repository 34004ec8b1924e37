"""Tests for the simulated broker client and the client factory."""

import pytest

from holdings_sync.broker import create_broker_client
from holdings_sync.broker.angelone import AngelOneClient
from holdings_sync.broker.errors import CredentialError, FetchError, RefreshError
from holdings_sync.broker.models import BrokerId
from holdings_sync.broker.simulated import SAMPLE_HOLDINGS, SimulatedBrokerClient
from holdings_sync.broker.simulated.simulated_client import REFRESH_TOKEN, TOKEN_PREFIX
from holdings_sync.broker.upstox import UpstoxClient
from holdings_sync.config import BrokerConfig


class TestSimulatedBrokerClient:
    """Tests for SimulatedBrokerClient."""

    def test_authenticate_issues_mock_token(self):
        """Test any non-empty credentials are accepted."""
        client = SimulatedBrokerClient(BrokerId.ANGELONE)
        session = client.authenticate("id", "secret")
        assert session.access_token.startswith(TOKEN_PREFIX)
        assert session.refresh_token == REFRESH_TOKEN
        assert session.expires_at is not None

    def test_authenticate_requires_credentials(self):
        """Test empty credentials are still rejected."""
        client = SimulatedBrokerClient()
        with pytest.raises(CredentialError):
            client.authenticate("id", "")

    def test_fetch_returns_copy_of_sample(self):
        """Test the sample portfolio is returned and cannot be mutated through the result."""
        client = SimulatedBrokerClient()
        records = client.fetch_holdings("token")
        assert [r["name"] for r in records] == ["RELIANCE", "NIFTYBEES", "AXISGROWTH"]
        records[0]["quantity"] = 999
        assert SAMPLE_HOLDINGS[0]["quantity"] == 10

    def test_fetch_without_token(self):
        """Test an empty token is rejected like a real broker would."""
        with pytest.raises(FetchError) as exc_info:
            SimulatedBrokerClient().fetch_holdings("")
        assert exc_info.value.auth_rejected

    def test_refresh(self):
        """Test only the mock refresh token is accepted."""
        client = SimulatedBrokerClient()
        assert client.refresh_access_token(REFRESH_TOKEN).access_token.startswith(TOKEN_PREFIX)
        with pytest.raises(RefreshError):
            client.refresh_access_token("other")


class TestCreateBrokerClient:
    """Tests for create_broker_client."""

    def test_simulated_by_config(self):
        """Test the simulated client is chosen when configured."""
        client = create_broker_client("fyers", config=BrokerConfig(use_simulated=True))
        assert isinstance(client, SimulatedBrokerClient)
        assert client.broker_id == BrokerId.FYERS

    def test_real_clients(self):
        """Test real clients get the configured timeout."""
        config = BrokerConfig(use_simulated=False, request_timeout=7.5, max_retries=1)
        upstox = create_broker_client(BrokerId.UPSTOX, config=config)
        angelone = create_broker_client("ANGELONE", config=config)
        assert isinstance(upstox, UpstoxClient)
        assert isinstance(angelone, AngelOneClient)
        assert upstox.timeout == 7.5

    def test_override(self):
        """Test use_simulated overrides configuration."""
        client = create_broker_client("upstox", config=BrokerConfig(use_simulated=False), use_simulated=True)
        assert isinstance(client, SimulatedBrokerClient)

    def test_unknown_broker(self):
        """Test unknown ids raise ValueError."""
        with pytest.raises(ValueError, match="Unknown broker"):
            create_broker_client("zerodha", config=BrokerConfig())
