"""Broker clients, models and normalization."""

from .broker import BrokerClient
from .errors import (
    AuthenticationError,
    AuthFailureReason,
    BrokerError,
    CredentialError,
    FetchError,
    RefreshError,
)
from .factory import create_broker_client
from .models import (
    AuthSession,
    BrokerConnection,
    BrokerId,
    Holding,
    InstrumentType,
    ValuationMode,
    default_connections,
)
from .normalizer import normalize

__all__ = [
    "AuthSession",
    "AuthenticationError",
    "AuthFailureReason",
    "BrokerClient",
    "BrokerConnection",
    "BrokerError",
    "BrokerId",
    "CredentialError",
    "FetchError",
    "Holding",
    "InstrumentType",
    "RefreshError",
    "ValuationMode",
    "create_broker_client",
    "default_connections",
    "normalize",
]
