"""Broker holdings sync."""

from .errors import NoConnectedBrokersError, SyncError, SyncInProgressError
from .merge_policy import MergePolicy
from .models import BrokerSyncOutcome, SyncReport
from .orchestrator import SyncOrchestrator

__all__ = [
    "BrokerSyncOutcome",
    "MergePolicy",
    "NoConnectedBrokersError",
    "SyncError",
    "SyncInProgressError",
    "SyncOrchestrator",
    "SyncReport",
]
