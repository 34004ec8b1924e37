"""Data models for the persisted portfolio document."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..broker.models import BrokerConnection, BrokerId, Holding, default_connections

logger = logging.getLogger(__name__)

HOLDINGS_KEY = "investmentHoldings"
BROKERS_KEY = "brokers"


@dataclass
class PortfolioData:
    """The user's stored document as seen by the sync subsystem.

    Only holdings and broker connections are interpreted here. Every other
    top-level key (transactions, budgets, goals, ...) is kept verbatim in
    ``extra`` so a sync never drops data owned by other parts of the app.
    """

    holdings: List[Holding] = field(default_factory=list)
    brokers: List[BrokerConnection] = field(default_factory=default_connections)
    extra: Dict[str, Any] = field(default_factory=dict)
    # Stored entries that could not be parsed, written back unchanged
    unreadable_holdings: List[Any] = field(default_factory=list)
    unreadable_brokers: List[Any] = field(default_factory=list)

    def connection(self, broker_id) -> BrokerConnection:
        """Get the connection record of a broker."""
        broker_id = BrokerId.parse(broker_id)
        for connection in self.brokers:
            if connection.broker_id == broker_id:
                return connection
        raise KeyError(broker_id.value)

    def connected_brokers(self) -> List[BrokerConnection]:
        return [c for c in self.brokers if c.is_connected]

    def holdings_for(self, broker_id) -> List[Holding]:
        """Holdings synced from one broker."""
        broker_id = BrokerId.parse(broker_id)
        return [h for h in self.holdings if h.broker_id == broker_id]

    def to_dict(self) -> dict:
        """Convert to the stored JSON document."""
        result = dict(self.extra)
        result[HOLDINGS_KEY] = [h.to_dict() for h in self.holdings] + list(self.unreadable_holdings)
        result[BROKERS_KEY] = [c.to_dict() for c in self.brokers] + list(self.unreadable_brokers)
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "PortfolioData":
        """
        Build from the stored JSON document, tolerating partial documents.

        Entries that cannot be parsed are kept aside and written back as they
        were, so saving a document never drops them.

        Raises:
            ValueError: If the holdings or brokers value is not a list
        """
        holdings = []
        unreadable_holdings = []
        for item in _stored_list(data, HOLDINGS_KEY):
            try:
                if not isinstance(item, dict):
                    raise TypeError("not an object")
                holdings.append(Holding.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Keeping unreadable holding {item!r} as stored: {e}")
                unreadable_holdings.append(item)

        brokers = []
        unreadable_brokers = []
        for item in _stored_list(data, BROKERS_KEY):
            try:
                if not isinstance(item, dict):
                    raise TypeError("not an object")
                brokers.append(BrokerConnection.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Keeping unreadable broker record {item!r} as stored: {e}")
                unreadable_brokers.append(item)

        # The set of connections is fixed; restore any record that is missing
        known = {c.broker_id for c in brokers}
        for connection in default_connections():
            if connection.broker_id not in known:
                brokers.append(connection)

        extra = {k: v for k, v in data.items() if k not in (HOLDINGS_KEY, BROKERS_KEY)}
        return cls(
            holdings=holdings,
            brokers=brokers,
            extra=extra,
            unreadable_holdings=unreadable_holdings,
            unreadable_brokers=unreadable_brokers,
        )


def _stored_list(data: dict, key: str) -> list:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"Stored {key} is not a list")
    return value
