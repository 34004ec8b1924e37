"""Pytest configuration and fixtures."""

import copy
from typing import Dict, Optional
from unittest.mock import Mock

import pytest

from holdings_sync.broker.broker import BrokerClient
from holdings_sync.broker.models import BrokerId, Holding, InstrumentType
from holdings_sync.persistence.credential_store import InMemoryCredentialStore
from holdings_sync.persistence.data_provider import DataProvider, StorageError
from holdings_sync.persistence.models import PortfolioData
from holdings_sync.persistence.portfolio_store import PortfolioStore


class InMemoryDataProvider(DataProvider):
    """Data provider keeping documents in a dict, for tests."""

    def __init__(self, documents: Optional[Dict[str, dict]] = None):
        self.documents = dict(documents or {})
        self.save_count = 0
        self.fail_saves = False
        self.fail_reads = False

    def initialize(self) -> None:
        pass

    def read_data(self, user_id: str) -> Optional[PortfolioData]:
        if self.fail_reads:
            raise StorageError("backend unavailable")
        document = self.documents.get(user_id)
        return PortfolioData.from_dict(copy.deepcopy(document)) if document is not None else None

    def save_data(self, user_id: str, data: PortfolioData) -> bool:
        if self.fail_saves:
            return False
        self.documents[user_id] = copy.deepcopy(data.to_dict())
        self.save_count += 1
        return True

    def is_available(self) -> bool:
        return True


def build_response(status_code: int = 200, json_data=None, json_error: bool = False):
    """Create a mock requests.Response."""
    response = Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.url = "https://broker.example.com"
    if json_error:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = json_data
    return response


@pytest.fixture
def data_provider():
    """Create an empty in-memory data provider."""
    return InMemoryDataProvider()


@pytest.fixture
def portfolio_store(data_provider):
    """Create a portfolio store over the in-memory provider."""
    return PortfolioStore(data_provider, "test-user")


@pytest.fixture
def credential_store():
    """Create an empty in-memory credential store."""
    return InMemoryCredentialStore()


@pytest.fixture
def mock_session():
    """Create a mock requests session."""
    session = Mock()
    session.headers = {}
    return session


@pytest.fixture
def manual_holding():
    """Create a manually entered holding."""
    return Holding(
        id="manual-1",
        name="GOLDBOND",
        instrument_type=InstrumentType.STOCK,
        quantity=5,
        average_price=5000.0,
        current_price=6100.0,
    )


@pytest.fixture
def fyers_holding():
    """Create a holding previously synced from Fyers."""
    return Holding(
        id="fyers-1",
        name="NSE:TCS-EQ",
        instrument_type=InstrumentType.STOCK,
        quantity=2,
        average_price=3400.0,
        current_price=3900.0,
        broker_id=BrokerId.FYERS,
    )


@pytest.fixture
def mock_broker_client():
    """Create a mock broker client returning no holdings."""
    client = Mock(spec=BrokerClient)
    client.supports_refresh = True
    client.fetch_holdings.return_value = []
    return client


def mark_connected(portfolio_store, credential_store, broker_id, token="token-123"):
    """Mark a broker connected and store an access token for it."""
    with portfolio_store.update() as data:
        connection = data.connection(broker_id)
        connection.client_id = "client"
        connection.client_secret = "secret"
        connection.is_connected = True
    credential_store.set(f"{BrokerId.parse(broker_id).value}-access-token", token)


@pytest.fixture
def make_response():
    """Factory for mock requests.Response objects."""
    return build_response


@pytest.fixture
def connect_broker(portfolio_store, credential_store):
    """Factory marking a broker connected with a cached token."""
    def _connect(broker_id, token="token-123"):
        mark_connected(portfolio_store, credential_store, broker_id, token)
    return _connect
