"""Configuration package."""

from .config import ApiConfig, BrokerConfig, BrokerCredentials, Config, PersistenceConfig, get_config

__all__ = [
    "ApiConfig",
    "BrokerConfig",
    "BrokerCredentials",
    "Config",
    "PersistenceConfig",
    "get_config",
]
