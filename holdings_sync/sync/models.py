"""Data models for sync results."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ..broker.models import BrokerId


@dataclass
class BrokerSyncOutcome:
    """Result of syncing one broker."""

    broker_id: BrokerId
    success: bool
    holdings_count: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "brokerId": self.broker_id.value,
            "success": self.success,
            "holdingsCount": self.holdings_count,
            "error": self.error,
        }


@dataclass
class SyncReport:
    """Aggregate result of a multi-broker sync."""

    outcomes: List[BrokerSyncOutcome] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    @property
    def total_synced(self) -> int:
        """Holdings inserted across all successful brokers."""
        return sum(o.holdings_count for o in self.outcomes if o.success)

    @property
    def errors(self) -> List[str]:
        return [o.error for o in self.outcomes if not o.success and o.error]

    @property
    def succeeded(self) -> bool:
        """True when every attempted broker synced."""
        return all(o.success for o in self.outcomes)

    def outcome_for(self, broker_id) -> Optional[BrokerSyncOutcome]:
        broker_id = BrokerId.parse(broker_id)
        for outcome in self.outcomes:
            if outcome.broker_id == broker_id:
                return outcome
        return None

    @property
    def message(self) -> str:
        """Summary suitable for showing to the user."""
        if not self.errors:
            return f"Successfully synced {self.total_synced} holdings"
        if any(o.success for o in self.outcomes):
            return f"Successfully synced {self.total_synced} holdings. " + "; ".join(self.errors)
        return "; ".join(self.errors)

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "totalSynced": self.total_synced,
            "succeeded": self.succeeded,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
        }
