"""Portfolio and credential persistence."""

from .credential_store import CredentialStore, InMemoryCredentialStore, JsonFileCredentialStore
from .data_provider import (
    DataProvider,
    StorageError,
    FirestoreDataProvider,
    HybridDataProvider,
    JsonFileDataProvider,
    create_data_provider,
)
from .models import PortfolioData
from .portfolio_store import PortfolioStore

__all__ = [
    "CredentialStore",
    "DataProvider",
    "FirestoreDataProvider",
    "HybridDataProvider",
    "InMemoryCredentialStore",
    "JsonFileCredentialStore",
    "JsonFileDataProvider",
    "PortfolioData",
    "PortfolioStore",
    "StorageError",
    "create_data_provider",
]
