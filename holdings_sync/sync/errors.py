"""Exceptions raised when a sync cannot run at all."""


class SyncError(Exception):
    """Base class for sync failures that abort the whole run."""


class NoConnectedBrokersError(SyncError):
    """No broker connection is marked connected."""


class SyncInProgressError(SyncError):
    """Another sync is already running."""
