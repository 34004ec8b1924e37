"""Data models for broker connections, sessions and holdings."""

import math
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class BrokerId(str, Enum):
    """Supported brokerages."""

    UPSTOX = "upstox"
    ANGELONE = "angelone"
    FYERS = "fyers"

    @property
    def display_name(self) -> str:
        """Human readable broker name."""
        return BROKER_DISPLAY_NAMES[self]

    @classmethod
    def parse(cls, value: Any) -> "BrokerId":
        """
        Parse a broker identifier.

        Args:
            value: BrokerId or case-insensitive string id

        Returns:
            Matching BrokerId

        Raises:
            ValueError: If the value is not a supported broker
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(b.value for b in cls)
            raise ValueError(f"Unknown broker: {value}. Must be one of: {valid}")


BROKER_DISPLAY_NAMES = {
    BrokerId.UPSTOX: "Upstox",
    BrokerId.ANGELONE: "AngelOne",
    BrokerId.FYERS: "Fyers",
}


class InstrumentType(str, Enum):
    """Canonical instrument types."""

    STOCK = "Stock"
    ETF = "ETF"
    MUTUAL_FUND = "Mutual Fund"


class ValuationMode(str, Enum):
    """How the price fields of a holding are to be read."""

    PER_UNIT = "per_unit"  # prices are per unit, multiplied by quantity
    TOTAL = "total"  # prices are whole-position totals


# Raw broker payload, one dict per position in the broker's native shape
RawHoldingRecord = Dict[str, Any]


def new_holding_id() -> str:
    """Generate a fresh opaque holding id."""
    return str(uuid.uuid4())


def _stored_number(value: Any) -> float:
    # null, unparseable and non-finite values (NaN is stored as null) read as 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _stored_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


@dataclass(frozen=True)
class Holding:
    """A position in a financial instrument."""

    name: str
    instrument_type: InstrumentType
    quantity: float
    average_price: float
    current_price: float
    broker_id: Optional[BrokerId] = None
    valuation_mode: ValuationMode = ValuationMode.PER_UNIT
    id: str = field(default_factory=new_holding_id)

    def __post_init__(self):
        for value in (self.quantity, self.average_price, self.current_price):
            if not math.isfinite(value):
                raise ValueError(f"Holding values must be finite numbers, got {value}")
        if self.quantity < 0:
            raise ValueError(f"Holding quantity must be non-negative, got {self.quantity}")
        if self.average_price < 0 or self.current_price < 0:
            raise ValueError("Holding prices must be non-negative")

    @property
    def is_manual(self) -> bool:
        """True when the holding was entered by hand rather than synced."""
        return self.broker_id is None

    @property
    def invested_value(self) -> float:
        """Total amount invested in the position."""
        if self.valuation_mode == ValuationMode.TOTAL:
            return self.average_price
        return self.quantity * self.average_price

    @property
    def current_value(self) -> float:
        """Current market value of the position."""
        if self.valuation_mode == ValuationMode.TOTAL:
            return self.current_price
        return self.quantity * self.current_price

    def to_dict(self) -> dict:
        """Convert to the persisted document shape."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.instrument_type.value,
            "quantity": self.quantity,
            "avgPrice": self.average_price,
            "currentPrice": self.current_price,
            "brokerId": self.broker_id.value if self.broker_id else None,
            "valuationMode": self.valuation_mode.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Holding":
        """Build a holding from its persisted document shape."""
        broker_id = data.get("brokerId")
        return cls(
            id=data.get("id") or new_holding_id(),
            name=data.get("name", "Unknown"),
            instrument_type=InstrumentType(data.get("type", InstrumentType.STOCK.value)),
            quantity=_stored_number(data.get("quantity")),
            average_price=_stored_number(data.get("avgPrice")),
            current_price=_stored_number(data.get("currentPrice")),
            broker_id=BrokerId.parse(broker_id) if broker_id else None,
            valuation_mode=ValuationMode(data.get("valuationMode") or ValuationMode.PER_UNIT.value),
        )


@dataclass
class BrokerConnection:
    """A configured brokerage relationship.

    ``is_connected`` is a cached flag: it is set once credentials were
    accepted and a token stored, but the token may have expired since.
    """

    broker_id: BrokerId
    display_name: str
    client_id: str = ""
    client_secret: str = ""
    is_connected: bool = False

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def to_dict(self) -> dict:
        """Convert to the persisted document shape."""
        return {
            "id": self.broker_id.value,
            "name": self.display_name,
            "clientId": self.client_id,
            "clientSecret": self.client_secret,
            "isConnected": self.is_connected,
        }

    def to_public_dict(self) -> dict:
        """Connection details safe to hand to a client (no secret)."""
        return {
            "id": self.broker_id.value,
            "name": self.display_name,
            "clientId": self.client_id,
            "isConnected": self.is_connected,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BrokerConnection":
        """Build a connection from its persisted document shape."""
        broker_id = BrokerId.parse(data["id"])
        return cls(
            broker_id=broker_id,
            display_name=data.get("name") or broker_id.display_name,
            client_id=data.get("clientId", ""),
            client_secret=data.get("clientSecret", ""),
            is_connected=_stored_flag(data.get("isConnected")),
        )


def default_connections() -> List[BrokerConnection]:
    """One disconnected record per supported broker."""
    return [BrokerConnection(broker_id=b, display_name=b.display_name) for b in BrokerId]


@dataclass
class AuthSession:
    """Tokens returned by a broker authentication."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None  # epoch milliseconds
