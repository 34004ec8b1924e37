"""Manual holdings and portfolio summaries."""

import logging
from typing import Dict, Iterable, List

from .broker.models import Holding, InstrumentType
from .persistence.portfolio_store import PortfolioStore
from .utils.logging_utils import mask_amount

logger = logging.getLogger(__name__)

MANUAL_SOURCE = "manual"


def parse_instrument_type(value) -> InstrumentType:
    """Accept an InstrumentType, its value ("Mutual Fund") or its name ("MUTUAL_FUND")."""
    if isinstance(value, InstrumentType):
        return value
    text = str(value or "").strip()
    for instrument_type in InstrumentType:
        if text.lower() in (instrument_type.value.lower(), instrument_type.name.lower()):
            return instrument_type
    raise ValueError(f"Unknown instrument type: {value}")


def _totals(holdings: Iterable[Holding]) -> Dict[str, float]:
    holdings = list(holdings)
    invested = sum(h.invested_value for h in holdings)
    current = sum(h.current_value for h in holdings)
    gain = current - invested
    return {
        "count": len(holdings),
        "invested": round(invested, 2),
        "current": round(current, 2),
        "gain": round(gain, 2),
        "gainPct": round(gain / invested * 100, 2) if invested > 0 else 0.0,
    }


class HoldingsService:
    """Read access to holdings plus manual entry and deletion."""

    def __init__(self, portfolio_store: PortfolioStore):
        self.portfolio_store = portfolio_store

    def list_holdings(self) -> List[Holding]:
        return self.portfolio_store.load().holdings

    def add_manual_holding(
        self,
        name: str,
        instrument_type,
        quantity: float,
        average_price: float,
        current_price: float,
    ) -> Holding:
        """
        Add a hand-entered holding. Syncs never modify it.

        Raises:
            ValueError: If the name is empty, the type unknown or a value negative
        """
        if not name or not str(name).strip():
            raise ValueError("Holding name is required")
        holding = Holding(
            name=str(name).strip(),
            instrument_type=parse_instrument_type(instrument_type),
            quantity=float(quantity),
            average_price=float(average_price),
            current_price=float(current_price),
        )
        with self.portfolio_store.update() as data:
            data.holdings = data.holdings + [holding]
        logger.info(f"Added manual holding {holding.name} ({mask_amount(holding.current_value)})")
        return holding

    def delete_holding(self, holding_id: str) -> Holding:
        """
        Remove a holding by id.

        Raises:
            KeyError: If no holding has that id
        """
        with self.portfolio_store.update() as data:
            for holding in data.holdings:
                if holding.id == holding_id:
                    data.holdings = [h for h in data.holdings if h.id != holding_id]
                    break
            else:
                raise KeyError(holding_id)
        logger.info(f"Deleted holding {holding.name}")
        return holding

    def portfolio_summary(self) -> dict:
        """Invested value, current value and gain, overall and per source."""
        holdings = self.list_holdings()
        by_source: Dict[str, List[Holding]] = {}
        for holding in holdings:
            source = holding.broker_id.value if holding.broker_id else MANUAL_SOURCE
            by_source.setdefault(source, []).append(holding)

        summary = _totals(holdings)
        summary["bySource"] = {source: _totals(items) for source, items in by_source.items()}
        summary["byType"] = {
            instrument_type.value: _totals(h for h in holdings if h.instrument_type == instrument_type)
            for instrument_type in InstrumentType
            if any(h.instrument_type == instrument_type for h in holdings)
        }
        return summary
