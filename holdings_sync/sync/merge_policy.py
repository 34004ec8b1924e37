"""Reconciliation of freshly synced holdings with the stored portfolio."""

import dataclasses
import logging
from typing import Callable, List, Sequence

from ..broker.models import BrokerId, Holding, new_holding_id

logger = logging.getLogger(__name__)


class MergePolicy:
    """Full-replace merge scoped to one broker.

    Holdings fetched from a broker replace everything previously stored for
    that broker. Holdings of other brokers and manual holdings are returned
    untouched, in their original order. Edits made to a broker-sourced
    holding are discarded on that broker's next sync.
    """

    def __init__(self, id_factory: Callable[[], str] = new_holding_id):
        """
        Args:
            id_factory: Produces the id given to every inserted holding
        """
        self.id_factory = id_factory

    def apply(self, broker_id, fresh: Sequence[Holding], existing: Sequence[Holding]) -> List[Holding]:
        """
        Replace a broker's holdings.

        Args:
            broker_id: Broker being synced
            fresh: Holdings just fetched from that broker
            existing: Currently stored holdings

        Returns:
            Existing holdings of other brokers and manual holdings, followed
            by the fresh holdings re-issued with new ids
        """
        broker_id = BrokerId.parse(broker_id)
        kept = [h for h in existing if h.broker_id != broker_id]
        inserted = [
            dataclasses.replace(h, id=self.id_factory(), broker_id=broker_id)
            for h in fresh
        ]
        logger.info(
            f"[{broker_id.value}] Replaced {len(existing) - len(kept)} holdings with {len(inserted)}; "
            f"kept {len(kept)} from other sources"
        )
        return kept + inserted
