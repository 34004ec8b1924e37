"""Normalization of broker-specific holding payloads into Holding objects."""

import logging
from typing import Any, Dict, List, Optional, Sequence

from .models import BrokerId, Holding, InstrumentType, RawHoldingRecord, ValuationMode

logger = logging.getLogger(__name__)

NAME = "name"
INSTRUMENT_TYPE = "instrument_type"
QUANTITY = "quantity"
AVERAGE_PRICE = "average_price"
CURRENT_PRICE = "current_price"

# Candidate keys tried, in order, after the broker specific ones
GENERIC_FIELDS: Dict[str, List[str]] = {
    NAME: ["name", "symbol"],
    INSTRUMENT_TYPE: ["type"],
    QUANTITY: ["quantity"],
    AVERAGE_PRICE: ["avgPrice", "average_price"],
    CURRENT_PRICE: ["currentPrice", "ltp"],
}

FIELD_CANDIDATES: Dict[BrokerId, Dict[str, List[str]]] = {
    BrokerId.UPSTOX: {
        NAME: ["tradingsymbol", "trading_symbol", "company_name", "instrument_token"],
        INSTRUMENT_TYPE: ["instrument_type", "product"],
        QUANTITY: ["quantity", "buy_quantity"],
        AVERAGE_PRICE: ["average_price", "avg_price", "buy_price", "avg_cost"],
        CURRENT_PRICE: ["last_price", "close_price", "ltp", "current_price"],
    },
    BrokerId.ANGELONE: {
        NAME: ["tradingsymbol", "symbolname"],
        INSTRUMENT_TYPE: ["product", "instrumenttype"],
        QUANTITY: ["quantity", "realisedquantity", "t1quantity"],
        AVERAGE_PRICE: ["averageprice", "average_price"],
        CURRENT_PRICE: ["ltp", "close"],
    },
    BrokerId.FYERS: {
        NAME: ["symbol", "fyToken"],
        INSTRUMENT_TYPE: ["segment", "holdingType"],
        QUANTITY: ["quantity", "remainingQuantity"],
        AVERAGE_PRICE: ["costPrice"],
        CURRENT_PRICE: ["ltp"],
    },
}

DEFAULT_NAME = "Unknown"
DEFAULT_INSTRUMENT_TYPE = "equity"


def _is_absent(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (int, float)):
        return value == 0
    return False


def first_present(record: RawHoldingRecord, candidates: Sequence[str], default: Any = None) -> Any:
    """
    Return the value of the first candidate key that is present.

    None, empty strings and numeric zero count as absent, so a zero quantity
    falls through to the next candidate just like a missing one.

    Args:
        record: Raw broker record
        candidates: Keys to try, in order
        default: Value returned when no candidate is present

    Returns:
        First present value, or default
    """
    for key in candidates:
        value = record.get(key)
        if not _is_absent(value):
            return value
    return default


def candidates_for(broker_id: BrokerId, field_name: str) -> List[str]:
    """Ordered candidate keys for one canonical field of a broker."""
    broker_fields = FIELD_CANDIDATES.get(broker_id, {})
    return broker_fields.get(field_name, []) + GENERIC_FIELDS[field_name]


def map_instrument_type(value: Any) -> InstrumentType:
    """
    Map a broker instrument/product/segment string to an InstrumentType.

    Anything that is not recognisably an ETF or mutual fund (equity,
    options, futures, unknown) is treated as a stock.
    """
    text = str(value or "").lower()
    if "etf" in text:
        return InstrumentType.ETF
    if "mutual" in text or "mf" in text:
        return InstrumentType.MUTUAL_FUND
    return InstrumentType.STOCK


def to_number(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number or number < 0:  # NaN or negative
        return 0.0
    return number


def symbol_of(raw: RawHoldingRecord, broker_id: BrokerId) -> str:
    """Display symbol of a raw record, 'Unknown' when none is present."""
    return str(first_present(raw, candidates_for(broker_id, NAME), DEFAULT_NAME))


def normalize(raw: RawHoldingRecord, broker_id: BrokerId, holding_id: Optional[str] = None) -> Holding:
    """
    Convert a raw broker record into a Holding.

    Never raises: absent or unparseable fields take their defaults so an
    unexpected payload shape still produces a placeholder holding.

    Args:
        raw: Raw record in the broker's native shape
        broker_id: Broker the record came from
        holding_id: Optional id to use instead of a freshly generated one

    Returns:
        Normalized Holding tagged with broker_id
    """
    if not isinstance(raw, dict):
        logger.warning(f"Unexpected {broker_id.value} record type {type(raw).__name__}, using defaults")
        raw = {}

    kwargs = {}
    if holding_id:
        kwargs["id"] = holding_id

    return Holding(
        name=symbol_of(raw, broker_id),
        instrument_type=map_instrument_type(
            first_present(raw, candidates_for(broker_id, INSTRUMENT_TYPE), DEFAULT_INSTRUMENT_TYPE)
        ),
        quantity=to_number(first_present(raw, candidates_for(broker_id, QUANTITY), 0)),
        average_price=to_number(first_present(raw, candidates_for(broker_id, AVERAGE_PRICE), 0)),
        current_price=to_number(first_present(raw, candidates_for(broker_id, CURRENT_PRICE), 0)),
        broker_id=broker_id,
        valuation_mode=ValuationMode.PER_UNIT,
        **kwargs,
    )


def normalize_all(records: Sequence[RawHoldingRecord], broker_id: BrokerId) -> List[Holding]:
    """Normalize a batch of raw records from one broker."""
    return [normalize(record, broker_id) for record in records]
